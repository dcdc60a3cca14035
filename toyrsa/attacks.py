"""Attacks against textbook RSA and against weak RSA padding.

All attacks only use public information plus, where stated, an oracle
callable standing for a vulnerable server. Oracles are plain functions
taking the ciphertext as an ``int``.

Example:
    Recover a message sent to three recipients with ``e = 3``:

    >>> keys = [generate_keypair(256)[0] for _ in range(3)]
    >>> m = 0xC0FFEE
    >>> e_3_broadcast_attack([(pub, pub.textbook_process(m)) for pub in keys]) == m
    True
"""

import logging
from base64 import b64decode

import pytest

from .bn import crt, icbrt, inv_mod, from_binary, ceil_div, random_below
from .digest import SHA1, SHA256
from .padding import PKCS1v1_5, BadPKCS1v1_5
from .rsa import generate_keypair, keypair_from_primes

logger = logging.getLogger(__name__)


def e_3_broadcast_attack(pairs):
    """Recover a plaintext encrypted, without padding, under three public
    keys with exponent 3.

    The cube of the plaintext is rebuilt modulo ``n0 * n1 * n2`` with the
    Chinese Remainder Theorem. Since it is smaller than that product, its
    integer cube root is the plaintext.

    Args:
        pairs (list): three ``(PublicKey, ciphertext)`` tuples.

    Returns:
        int: the plaintext, or None if the recovered value is not a cube.

    Raises:
        Exception: on wrong inputs, or if two moduli share a factor.
    """
    if len(pairs) != 3:
        raise Exception("Need exactly 3 ciphertexts, got %d" % len(pairs))

    for public_key, _ in pairs:
        if public_key.e != 3:
            raise Exception("Public exponent must be 3")

    moduli = [public_key.n for public_key, _ in pairs]
    ciphertexts = [ciphertext for _, ciphertext in pairs]

    cube = crt(ciphertexts, moduli)
    root = icbrt(cube)

    if root ** 3 != cube:
        logger.debug("Recovered value is not a perfect cube")
        return None
    return root


def unpadded_message_recovery(public_key, s, ciphertext, oracle):
    """Decrypt a ciphertext with a decryption oracle that refuses to decrypt
    that very ciphertext.

    The ciphertext of ``s * plaintext`` is submitted instead, and the
    answer divided by s.

    Args:
        public_key (PublicKey): the key the ciphertext was made with.
        s (int): any number coprime with the modulus, eg. 2.
        ciphertext (int): the ciphertext to decrypt.
        oracle: a function that decrypts a ciphertext (without padding), or
            returns None.

    Returns:
        int: the plaintext, or None if the oracle did not answer.
    """
    n = public_key.n

    s_inv = inv_mod(s, n)
    if s_inv is None:
        raise Exception("s must be coprime with the modulus")

    malleated = (pow(s, public_key.e, n) * ciphertext) % n
    plaintext = oracle(malleated)
    if plaintext is None:
        return None

    return (plaintext * s_inv) % n


def forge_signature(public_key, digest, message):
    """Forge a signature of message valid under BadPKCS1v1_5 verification,
    for a public key with exponent 3 and no private key.

    The flawed verifier ignores whatever follows the digest, so it is enough
    to find a number whose cube starts with the bytes
    ``00 01 FF 00 <DigestInfo prefix> <digest>``. The smallest cube above
    that prefix followed by zero bytes fits when the remaining garbage bytes
    span more values than the gap between consecutive cubes.

    Returns:
        int: a signature that verifies, or None if the modulus is too small
        for one to exist.
    """
    if public_key.e != 3:
        raise Exception("Public exponent must be 3")

    block_len = public_key.len_bytes()
    header = b"\x00\x01\xff\x00" + digest.asn1_prefix + digest.digest(message)

    garbage_len = block_len - len(header)
    if garbage_len <= 0:
        return None

    lower = from_binary(header + b"\x00" * garbage_len)
    upper = from_binary(header + b"\xff" * garbage_len)

    root = icbrt(lower)
    if root ** 3 < lower:
        root += 1

    while root ** 3 <= upper:
        if public_key.verify(BadPKCS1v1_5, digest, message, root):
            return root
        logger.debug("Forged root does not verify, adjusting")
        root += 1

    return None


def parity_oracle_attack(public_key, ciphertext, oracle):
    """Decrypt a ciphertext with an oracle telling whether the plaintext of
    any ciphertext is even.

    Multiplying the ciphertext by ``2^e`` doubles the plaintext modulo n.
    The modulus is odd, so a doubled plaintext is odd exactly when the
    doubling wrapped around n. After ``i`` doublings the answers give the
    first i bits of ``plaintext / n``, and once ``2^i > n`` this pins down
    the plaintext exactly.

    Bounds are tracked as integer numerators over the denominator ``2^i``,
    the plaintext lying in ``[n * lower / 2^i, n * (lower + 1) / 2^i)``.

    Args:
        public_key (PublicKey): the key the ciphertext was made with.
        ciphertext (int): the ciphertext to decrypt.
        oracle: a function returning True if the ciphertext decrypts to an
            even number, False if odd, and None on failure.

    Returns:
        int: the plaintext, after exactly ``n.bit_length()`` oracle calls.
    """
    n = public_key.n
    double = pow(2, public_key.e, n)

    lower = 0
    denominator = 1

    for i in range(n.bit_length()):
        ciphertext = (ciphertext * double) % n

        is_even = oracle(ciphertext)
        if is_even is None:
            raise Exception("Parity oracle failed at step %d" % i)

        lower *= 2
        denominator *= 2
        if not is_even:
            lower += 1

    logger.info("Parity oracle attack done after %d queries", n.bit_length())
    return ceil_div(n * lower, denominator)


# ---------- Tests ------------


@pytest.fixture(scope="module")
def keypair_1024():
    return generate_keypair(1024)


def test_e_3_broadcast_attack():
    keys = [generate_keypair(512)[0] for _ in range(3)]
    plaintext = random_below(min(pub.n for pub in keys))

    pairs = [(pub, pub.textbook_process(plaintext)) for pub in keys]
    assert e_3_broadcast_attack(pairs) == plaintext


def test_e_3_broadcast_attack_bad_inputs():
    pub_0, _ = keypair_from_primes(3, 11, 23)
    pub_1, _ = keypair_from_primes(3, 11, 17)
    pub_2, _ = keypair_from_primes(3, 5, 23)

    # 253 and 187 share the factor 11
    with pytest.raises(Exception) as excinfo:
        e_3_broadcast_attack([(pub_0, 1), (pub_1, 1), (pub_2, 1)])
    assert 'coprime' in str(excinfo.value)

    with pytest.raises(Exception) as excinfo:
        e_3_broadcast_attack([(pub_0, 1), (pub_1, 1)])
    assert 'exactly 3' in str(excinfo.value)

    pub_big, _ = generate_keypair(64, e=65537)
    with pytest.raises(Exception) as excinfo:
        e_3_broadcast_attack([(pub_big, 1), (pub_big, 1), (pub_big, 1)])
    assert 'exponent' in str(excinfo.value)


class CachingServer(object):
    """Decrypts any ciphertext, but only once."""

    def __init__(self, keypair):
        self.public_key, self.private_key = keypair
        self.cache = set()

    def encrypt(self, plaintext):
        return self.public_key.textbook_process(plaintext)

    def decrypt(self, ciphertext):
        if ciphertext in self.cache:
            return None

        self.cache.add(ciphertext)
        return self.private_key.textbook_process(ciphertext)


def test_unpadded_message_recovery_server(keypair_1024):
    server = CachingServer(keypair_1024)
    plaintext = random_below(123456789123456789)

    ciphertext = server.encrypt(plaintext)
    assert server.decrypt(ciphertext) == plaintext
    assert server.decrypt(ciphertext) is None


def test_unpadded_message_recovery(keypair_1024):
    server = CachingServer(keypair_1024)
    plaintext = random_below(123456789123456789)

    ciphertext = server.encrypt(plaintext)
    assert server.decrypt(ciphertext) == plaintext

    recovered = unpadded_message_recovery(server.public_key, 2, ciphertext, server.decrypt)
    assert recovered == plaintext

    # The server now refuses to decrypt the malleated ciphertext too
    assert unpadded_message_recovery(server.public_key, 2, ciphertext, server.decrypt) is None

    with pytest.raises(Exception) as excinfo:
        unpadded_message_recovery(server.public_key, 0, ciphertext, server.decrypt)
    assert 'coprime' in str(excinfo.value)


def test_forge_signature(keypair_1024):
    public_key, private_key = keypair_1024
    message = b"hi mom"

    signature = private_key.sign(BadPKCS1v1_5, SHA1, message)
    assert public_key.verify(BadPKCS1v1_5, SHA1, message, signature)

    forged = forge_signature(public_key, SHA1, message)
    assert public_key.verify(BadPKCS1v1_5, SHA1, message, forged)
    assert not public_key.verify(PKCS1v1_5, SHA1, message, forged)
    assert forged != signature

    # 73 garbage bytes are too few to absorb the gap between cubes
    assert forge_signature(public_key, SHA256, message) is None


def test_forge_signature_small_modulus():
    public_key, _ = generate_keypair(256)
    assert forge_signature(public_key, SHA256, b"hi mom") is None


def test_parity_oracle_attack(keypair_1024):
    public_key, private_key = keypair_1024
    plaintext = from_binary(b64decode(
        "VGhhdCdzIHdoeSBJIGZvdW5kIHlvdSBkb24ndCBwbGF5IGFyb3VuZCB3aXRoIHRoZSBGdW5reSBDb2xkIE1lZGluYQ=="))

    queries = []

    def oracle(ciphertext):
        queries.append(ciphertext)
        decrypted = private_key.textbook_process(ciphertext)
        if decrypted is None:
            return None
        return decrypted % 2 == 0

    ciphertext = public_key.textbook_process(plaintext)
    assert parity_oracle_attack(public_key, ciphertext, oracle) == plaintext
    assert len(queries) == public_key.n.bit_length()


def test_parity_oracle_attack_edges():
    public_key, private_key = keypair_from_primes(3, 11, 23)

    def oracle(ciphertext):
        return private_key.textbook_process(ciphertext) % 2 == 0

    for plaintext in range(public_key.n):
        ciphertext = public_key.textbook_process(plaintext)
        assert parity_oracle_attack(public_key, ciphertext, oracle) == plaintext


def test_parity_oracle_failure():
    public_key, _ = keypair_from_primes(3, 11, 23)
    with pytest.raises(Exception) as excinfo:
        parity_oracle_attack(public_key, 5, lambda c: None)
    assert 'failed' in str(excinfo.value)
