"""Bleichenbacher's adaptive chosen-ciphertext attack on PKCS#1 v1.5
encryption padding.

Given a ciphertext and an oracle telling whether any ciphertext decrypts to
a PKCS conforming block (one starting with ``00 02``), the plaintext is
recovered by repeatedly multiplying it by chosen numbers ``s`` and
narrowing down the set of intervals it may lie in.

See "Chosen Ciphertext Attacks Against Protocols Based on the RSA
Encryption Standard PKCS #1", D. Bleichenbacher, CRYPTO '98.

The steps below follow the numbering of the paper:

    1. Blinding: skipped, the ciphertext is known to be conforming (s0 = 1).
    2. Searching for the next conforming multiplier ``s_i``:
        a. first search, from ``n / 3B``,
        b. linear search when several intervals are left,
        c. windowed search when a single interval is left.
    3. Narrowing the set of intervals.
    4. Done when a single interval of width one is left.

Example:
    >>> pub, priv = generate_keypair(128)
    >>> ciphertext = pub.encrypt(PKCS1v1_5, b"hi")
    >>> oracle = lambda c: priv.decrypt(PKCS1v1_5, c) is not None
    >>> bleichenbacher_attack(pub, ciphertext, oracle)     # doctest: +SKIP
    b'hi'
"""

import logging

import pytest

from .bn import binary, ceil_div, floor_div
from .padding import PKCS1v1_5
from .rsa import generate_keypair

logger = logging.getLogger(__name__)


class _Oracle(object):
    """Queries the padding oracle with ``c * s^e mod n``, counting queries."""

    def __init__(self, public_key, ciphertext, oracle, max_queries=None):
        self.public_key = public_key
        self.ciphertext = ciphertext
        self.oracle = oracle
        self.max_queries = max_queries
        self.queries = 0

    def __call__(self, s):
        if self.max_queries is not None and self.queries >= self.max_queries:
            raise Exception("Padding oracle attack did not finish within %d queries"
                            % self.max_queries)

        self.queries += 1
        n = self.public_key.n
        return bool(self.oracle((self.ciphertext * pow(s, self.public_key.e, n)) % n))


def _search_from(query, s):
    """Steps 2.a and 2.b: the smallest conforming multiplier from s upwards."""
    while not query(s):
        s += 1
    return s


def _search_one_interval(query, n, B, interval, s_prev):
    """Step 2.c: with a single interval [a, b] left, try small windows of
    multipliers for increasing values of r, which roughly halves the interval
    at each iteration."""
    a, b = interval

    r = ceil_div(2 * (b * s_prev - 2 * B), n)
    while True:
        s_start = ceil_div(2 * B + r * n, b)
        s_end = ceil_div(3 * B + r * n, a)

        for s in range(s_start, s_end):
            if query(s):
                return s
        r += 1


def _narrow(intervals, s, n, B):
    """Step 3: the intervals containing the plaintext, knowing that
    ``plaintext * s mod n`` is conforming."""
    narrowed = []

    for a, b in intervals:
        r_start = ceil_div(a * s - 3 * B + 1, n)
        r_end = floor_div(b * s - 2 * B, n)

        for r in range(r_start, r_end + 1):
            new_a = max(a, ceil_div(2 * B + r * n, s))
            new_b = min(b, floor_div(3 * B - 1 + r * n, s))
            if new_a <= new_b:
                narrowed.append((new_a, new_b))

    return sorted(set(narrowed))


def bleichenbacher_attack(public_key, ciphertext, oracle, max_queries=None):
    """Decrypt a PKCS#1 v1.5 ciphertext with a padding oracle.

    Args:
        public_key (PublicKey): the key the ciphertext was made with.
        ciphertext (int): a ciphertext of a conforming block.
        oracle: a function returning True if a ciphertext decrypts to a
            block starting with ``00 02``. Stricter oracles, that also check
            the rest of the padding, work too but need more queries.
        max_queries (int): give up after that many oracle queries. The
            default is to never give up.

    Returns:
        bytes: the unpadded plaintext.

    Raises:
        Exception: if the ciphertext is not conforming, if the oracle
            answers inconsistently or if max_queries is exceeded.
    """
    n = public_key.n
    k = public_key.len_bytes()
    B = 2 ** (8 * (k - 2))

    query = _Oracle(public_key, ciphertext, oracle, max_queries)

    # Step 1: the ciphertext is conforming already
    s = 1
    if not query(s):
        raise Exception("The ciphertext is not PKCS conforming")

    intervals = [(2 * B, 3 * B - 1)]

    i = 1
    while True:
        # Step 2
        if i == 1:
            s = _search_from(query, ceil_div(n, 3 * B))
        elif len(intervals) >= 2:
            s = _search_from(query, s + 1)
        else:
            s = _search_one_interval(query, n, B, intervals[0], s)

        logger.debug("Step %d: s = %d after %d queries", i, s, query.queries)

        # Step 3
        intervals = _narrow(intervals, s, n, B)
        if not intervals:
            raise Exception("No interval left, the oracle is inconsistent")

        logger.debug("Step %d: %d intervals left", i, len(intervals))

        # Step 4
        if len(intervals) == 1 and intervals[0][0] == intervals[0][1]:
            block = intervals[0][0]
            logger.info("Padding oracle attack done after %d steps and %d queries",
                        i, query.queries)
            return PKCS1v1_5.unpad(k, block)

        i += 1


# ---------- Tests ------------

PLAINTEXT = b"kick it, CC"


class Adversary(object):
    """A server holding a private key, leaking whether ciphertexts are
    conforming."""

    def __init__(self, bits):
        self.public_key, self.private_key = generate_keypair(bits)
        self.queries = 0

    def get_ciphertext(self):
        return self.public_key.encrypt(PKCS1v1_5, PLAINTEXT)

    def oracle(self, ciphertext):
        self.queries += 1
        return self.private_key.decrypt(PKCS1v1_5, ciphertext) is not None

    def loose_oracle(self, ciphertext):
        # Only checks the 00 02 header
        self.queries += 1
        block = self.private_key.textbook_process(ciphertext)
        return binary(block, self.public_key.len_bytes())[:2] == b"\x00\x02"


def test_narrow():
    # A toy modulus: only the arithmetic matters here
    n, B = 1009, 10
    intervals = _narrow([(2 * B, 3 * B - 1)], 1, n, B)
    assert intervals == [(20, 29)]

    # 25 * 122 = 3050 = 23 mod n is the only conforming product
    assert _narrow([(20, 29)], 122, n, B) == [(25, 25)]


def test_narrow_keeps_plaintext():
    n, B = 65537 * 3 + 2, 2 ** 8
    plaintext = 2 * B + 100
    intervals = [(2 * B, 3 * B - 1)]

    for s in range(1, 5000):
        if 2 * B <= (plaintext * s) % n < 3 * B:
            intervals = _narrow(intervals, s, n, B)
            assert any(a <= plaintext <= b for a, b in intervals)


def test_bleichenbacher_256():
    adversary = Adversary(256)
    ciphertext = adversary.get_ciphertext()

    assert adversary.oracle(ciphertext)
    assert bleichenbacher_attack(adversary.public_key, ciphertext, adversary.oracle) == PLAINTEXT


def test_bleichenbacher_768():
    adversary = Adversary(768)
    ciphertext = adversary.get_ciphertext()

    assert adversary.loose_oracle(ciphertext)
    recovered = bleichenbacher_attack(adversary.public_key, ciphertext, adversary.loose_oracle)
    assert recovered == PLAINTEXT


def test_bleichenbacher_not_conforming():
    adversary = Adversary(256)
    ciphertext = adversary.public_key.textbook_process(12345)

    with pytest.raises(Exception) as excinfo:
        bleichenbacher_attack(adversary.public_key, ciphertext, adversary.oracle)
    assert 'not PKCS conforming' in str(excinfo.value)


def test_bleichenbacher_max_queries():
    adversary = Adversary(256)
    ciphertext = adversary.get_ciphertext()

    with pytest.raises(Exception) as excinfo:
        bleichenbacher_attack(adversary.public_key, ciphertext, adversary.oracle, max_queries=100)
    assert 'within 100 queries' in str(excinfo.value)
    assert adversary.queries == 100

