"""Probable prime generation for RSA moduli.

A candidate is accepted when it survives three tests of increasing cost:
trial division by a table of small primes, a few rounds of the Fermat test
and finally the Miller-Rabin test.

Example:
    >>> p = gen_prime(64)
    >>> p.bit_length()
    64
    >>> is_probable_prime(p)
    True
"""

import logging
import threading

import pytest

from .bn import random_range

logger = logging.getLogger(__name__)

FIRST_PRIMES_COUNT = 2048
FERMAT_ROUNDS = 5
RABIN_MILLER_K = 128  # Probability of false-positive is 2^(-k)


_first_primes = None
_first_primes_lock = threading.Lock()


def _compute_first_primes(count):
    primes = [2]
    x = 3
    while len(primes) < count:
        is_prime = True
        for p in primes:
            if p * p > x:
                break
            if x % p == 0:
                is_prime = False
                break
        if is_prime:
            primes.append(x)
        x += 2
    return tuple(primes[:count])


def first_primes():
    """Returns the (immutable) table of the first FIRST_PRIMES_COUNT primes.
    The table is built once, on first use, and shared by all threads."""
    global _first_primes

    with _first_primes_lock:
        if _first_primes is None:
            _first_primes = _compute_first_primes(FIRST_PRIMES_COUNT)
    return _first_primes


def sieve(candidate):
    """Returns False if the candidate is divisible by one of the small primes
    (other than itself)."""
    for prime in first_primes():
        if candidate == prime:
            return True
        if candidate % prime == 0:
            return False
    return True


def fermat(candidate, rounds=None):
    """Fermat primality test.

    Args:
        candidate (int): the number to test.
        rounds (int): number of random bases to try. Defaults to FERMAT_ROUNDS.

    Returns:
        bool: False if a witness of compositeness was found.
    """
    if rounds is None:
        rounds = FERMAT_ROUNDS
    if candidate < 2:
        return False

    for _ in range(rounds):
        a = random_range(1, candidate)
        if pow(a, candidate - 1, candidate) != 1:
            return False

    return True


def rewrite(d):
    """Rewrite d into ``2^s * d'`` with d' odd, returning ``(s, d')``."""
    s = 0
    while d % 2 == 0:
        d >>= 1
        s += 1
    return s, d


def miller_rabin(candidate, k=None):
    """Miller-Rabin primality test.

    Each random basis lets a composite through with probability at most
    1/4, so ``k / 2`` bases are tried to bound the false positive
    probability by ``2^(-k)``.

    Args:
        candidate (int): the number to test.
        k (int): the security parameter. Defaults to RABIN_MILLER_K.
    """
    if k is None:
        k = RABIN_MILLER_K

    if candidate < 2:
        return False
    if candidate in (2, 3):
        return True
    if candidate % 2 == 0:
        return False

    candidate_minus_one = candidate - 1
    s, d = rewrite(candidate_minus_one)

    for _ in range(max(1, (k + 1) // 2)):
        basis = random_range(2, candidate - 1)
        v = pow(basis, d, candidate)

        if v == 1 or v == candidate_minus_one:
            continue

        for _ in range(s - 1):
            v = pow(v, 2, candidate)
            if v == candidate_minus_one:
                break
            if v == 1:
                return False
        else:
            return False

    return True


def is_probable_prime(candidate):
    """Returns True if the number is prime, with negligible prob. of error."""
    if candidate < 2:
        return False
    return sieve(candidate) and fermat(candidate) and miller_rabin(candidate)


def gen_prime(bits):
    """Builds a probable prime of exactly bits bits.

    Candidates are drawn uniformly from ``[2^(bits-1) + 1, 2^bits - 1)`` and
    forced odd. There is no bound on the number of attempts.
    """
    if bits < 3:
        raise Exception("Cannot generate a prime of %d bits" % bits)

    low = 2 ** (bits - 1) + 1
    high = 2 ** bits - 1

    attempts = 0
    while True:
        attempts += 1
        candidate = random_range(low, high) | 1

        if not is_probable_prime(candidate):
            continue

        logger.debug("Found a %d bit prime after %d candidates", bits, attempts)
        return candidate


def gen_rsa_prime(bits, e):
    """Builds a prime p of bits bits such that ``p - 1`` is coprime with the
    (prime) public exponent e, that is ``p mod e != 1``."""
    while True:
        candidate = gen_prime(bits)

        if candidate % e == 1:
            logger.debug("Rejecting prime congruent to 1 mod %d", e)
            continue

        return candidate


# ---------- Tests ------------

SMALL_PRIMES = [2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 97, 7919, 104729]
COMPOSITES = [0, 1, 4, 6, 9, 15, 21, 25, 49, 91, 561, 1105, 1729, 8911, 104730]


def test_first_primes():
    table = first_primes()
    assert isinstance(table, tuple)
    assert len(table) == FIRST_PRIMES_COUNT
    assert table[:10] == (2, 3, 5, 7, 11, 13, 17, 19, 23, 29)
    assert all(a < b for a, b in zip(table, table[1:]))
    assert first_primes() is table


def test_first_primes_threads():
    results = []

    def worker():
        results.append(first_primes())

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(r is results[0] for r in results)


def test_sieve():
    assert sieve(7)
    assert not sieve(9)
    assert not sieve(7 * 7919)


def test_rewrite():
    assert rewrite(12) == (2, 3)
    assert rewrite(7) == (0, 7)


def test_miller_rabin():
    for _ in range(20):
        for p in SMALL_PRIMES:
            assert miller_rabin(p)
        for c in COMPOSITES:
            assert not miller_rabin(c)


def test_miller_rabin_big():
    m61 = 2**61 - 1
    m31 = 2**31 - 1
    assert miller_rabin(m61)
    assert miller_rabin(2**127 - 1)
    assert not miller_rabin(m61 * m31)
    assert not miller_rabin(m61 * m61)


def test_fermat():
    for p in SMALL_PRIMES:
        assert fermat(p)
    assert not fermat(1)
    assert not fermat(2**61 - 2)


def test_is_probable_prime():
    for p in SMALL_PRIMES:
        assert is_probable_prime(p)
    for c in COMPOSITES:
        assert not is_probable_prime(c)


def test_gen_prime():
    for bits in [8, 64, 256]:
        p = gen_prime(bits)
        assert p.bit_length() == bits
        assert p % 2 == 1
        assert miller_rabin(p)

    with pytest.raises(Exception) as excinfo:
        gen_prime(2)
    assert 'Cannot generate' in str(excinfo.value)


def test_gen_rsa_prime():
    for _ in range(5):
        p = gen_rsa_prime(32, 3)
        assert p % 3 != 1
        assert is_probable_prime(p)
