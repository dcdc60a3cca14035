"""The RSA public-key cryptosystem, from the math up.

Keys are immutable value objects. The raw ("textbook") transform is exposed
as ``textbook_process``; the padded operations combine it with one of the
schemes of :mod:`toyrsa.padding` and a digest from :mod:`toyrsa.digest`.

Example:
    How to encrypt, decrypt, sign and verify:

    >>> pub, priv = generate_keypair(512)
    >>> ciphertext = pub.encrypt(PKCS1v1_5, b"Hello World!")
    >>> priv.decrypt(PKCS1v1_5, ciphertext)
    b'Hello World!'
    >>> signature = priv.sign(PKCS1v1_5, SHA256, b"Hello World!")
    >>> pub.verify(PKCS1v1_5, SHA256, b"Hello World!", signature)
    True
"""

import logging

import pytest

from .bn import egcd, inv_mod, num_bytes, random_below
from .primes import gen_rsa_prime
from .padding import PKCS1v1_5, BadPKCS1v1_5, BadNoPadding
from .digest import MD4, SHA1, SHA256, _digests

logger = logging.getLogger(__name__)

# A not-very-safe default exponent. It's not inherently insecure, but it
# makes several of the attacks in toyrsa.attacks possible.
E = 3


class _Key(object):
    """An immutable RSA key: an exponent and a modulus n."""

    __slots__ = ["_exponent", "n"]
    _exponent_name = None

    def __init__(self, exponent, n):
        object.__setattr__(self, "_exponent", exponent)
        object.__setattr__(self, "n", n)

    def __setattr__(self, name, value):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __delattr__(self, name):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __eq__(self, other):
        return type(self) is type(other) and \
            self._exponent == other._exponent and self.n == other.n

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self.__class__.__name__, self._exponent, self.n))

    def __repr__(self):
        return "%s(%s=%d, n=%d)" % (self.__class__.__name__, self._exponent_name,
                                    self._exponent, self.n)

    def len_bytes(self):
        """The length of the modulus in bytes."""
        return num_bytes(self.n)

    def textbook_process(self, message):
        """Returns ``message^exponent mod n``, or None if the message does not
        fit in the modulus."""
        if message < 0 or message >= self.n:
            return None
        return pow(message, self._exponent, self.n)


class PublicKey(_Key):
    """ An RSA public key ``(e, n)``.

    Allows encrypting a message (that can be decrypted with the corresponding
    private key) or verifying a signature (that was generated with the
    corresponding private key).
    """

    __slots__ = []
    _exponent_name = "e"

    def __init__(self, e, n):
        _Key.__init__(self, e, n)

    @property
    def e(self):
        return self._exponent

    def encrypt(self, padding, plaintext):
        """Pad and encrypt plaintext bytes.

        Returns:
            int: the ciphertext, or None if the plaintext is too long.
        """
        block = padding.pad(self.len_bytes(), plaintext)
        if block is None:
            return None
        return self.textbook_process(block)

    def verify(self, padding, digest, message, signature):
        """Check that signature is a valid signature of message.

        Args:
            padding: the signature padding scheme.
            digest (Digest): the hash function.
            message (bytes): the signed message.
            signature (int): the signature.

        Returns:
            bool: whether the signature verifies.
        """
        block = self.textbook_process(signature)
        if block is None:
            return False
        return padding.unpad_verify(digest, self.len_bytes(), message, block)


class PrivateKey(_Key):
    """ An RSA private key ``(d, n)``.

    Allows decrypting a message (that was encrypted with the corresponding
    public key) or generating a signature (to be verified with the
    corresponding public key).
    """

    __slots__ = []
    _exponent_name = "d"

    def __init__(self, d, n):
        _Key.__init__(self, d, n)

    @property
    def d(self):
        return self._exponent

    def decrypt(self, padding, ciphertext):
        """Decrypt and unpad a ciphertext.

        Returns:
            bytes: the plaintext, or None if the ciphertext is out of range
            or does not decrypt to a validly padded block.
        """
        block = self.textbook_process(ciphertext)
        if block is None:
            return None
        return padding.unpad(self.len_bytes(), block)

    def sign(self, padding, digest, message):
        """Hash, pad and sign a message.

        Returns:
            int: the signature, or None if the modulus is too small for the
            padded digest.
        """
        block = padding.hash_pad(digest, self.len_bytes(), message)
        if block is None:
            return None
        return self.textbook_process(block)


def keypair_from_primes(e, p, q):
    """Generate an RSA keypair with a specific exponent e and primes p and q.

    The private exponent is the inverse of e modulo Carmichael's function
    ``lcm(p - 1, q - 1)``, rather than Euler's totient.

    Returns:
        (PublicKey, PrivateKey): the keypair, or None if e has no inverse.
    """
    p_1 = p - 1
    q_1 = q - 1

    gcd_p_1_q_1, _, _ = egcd(p_1, q_1)
    if gcd_p_1_q_1 <= 0:
        raise Exception("GCD shouldn't have been negative")

    totient = p_1 * q_1 // gcd_p_1_q_1

    d = inv_mod(e, totient)
    if d is None:
        return None

    n = p * q
    return PublicKey(e, n), PrivateKey(d, n)


def generate_keypair(bits, e=E):
    """Randomly generate an RSA keypair of (about) bits bits, with exponent e.

    Two distinct primes of ``bits / 2`` bits are drawn until they make a
    valid keypair.
    """
    if bits < 10:
        raise Exception("Cannot generate a keypair of %d bits" % bits)

    while True:
        p = gen_rsa_prime(bits // 2, e)
        q = gen_rsa_prime(bits // 2, e)

        if p == q:
            logger.debug("Drew the same prime twice, retrying")
            continue

        keypair = keypair_from_primes(e, p, q)
        if keypair is None:
            logger.debug("No private exponent for e=%d, retrying", e)
            continue

        return keypair


# ---------- Tests ------------


@pytest.fixture(scope="module")
def keypair_1024():
    return generate_keypair(1024)


def test_rsa_bad_keygen():
    assert keypair_from_primes(E, 7, 11) is None


def test_rsa_keygen_from_primes():
    pub, priv = keypair_from_primes(E, 11, 23)
    assert pub == PublicKey(3, 253)
    assert priv.n == 253
    # lcm(10, 22) = 110 and 3 * 37 = 111
    assert priv.d == 37


def test_rsa_full():
    pub, priv = keypair_from_primes(E, 11, 23)

    plaintext = random_below(pub.n)
    ciphertext = pub.textbook_process(plaintext)
    assert priv.textbook_process(ciphertext) == plaintext

    plaintext = pub.n - 1
    ciphertext = pub.textbook_process(plaintext)
    assert priv.textbook_process(ciphertext) == plaintext

    for plaintext in range(pub.n):
        assert priv.textbook_process(pub.textbook_process(plaintext)) == plaintext


def test_rsa_message_too_big():
    pub, priv = keypair_from_primes(E, 11, 23)
    assert pub.textbook_process(pub.n) is None
    assert priv.textbook_process(pub.n + 1) is None
    assert pub.textbook_process(-1) is None


def test_rsa_full_big_primes(keypair_1024):
    pub, priv = keypair_1024
    assert pub.n == priv.n
    assert pub.len_bytes() == 128

    for plaintext in [random_below(pub.n), pub.n - 1, 0, 1]:
        ciphertext = pub.textbook_process(plaintext)
        assert priv.textbook_process(ciphertext) == plaintext


def test_rsa_small_keygen():
    for _ in range(10):
        pub, priv = generate_keypair(16)
        for plaintext in [0, 1, 2, pub.n - 1]:
            assert priv.textbook_process(pub.textbook_process(plaintext)) == plaintext

    with pytest.raises(Exception) as excinfo:
        generate_keypair(4)
    assert 'Cannot generate' in str(excinfo.value)


def test_rsa_other_exponent():
    pub, priv = generate_keypair(256, e=65537)
    assert pub.e == 65537
    m = random_below(pub.n)
    assert priv.textbook_process(pub.textbook_process(m)) == m


def test_rsa_encrypt_decrypt(keypair_1024):
    pub, priv = keypair_1024

    ciphertext = pub.encrypt(PKCS1v1_5, b"Hello World!")
    assert priv.decrypt(PKCS1v1_5, ciphertext) == b"Hello World!"

    # Too long for the modulus
    assert pub.encrypt(PKCS1v1_5, b"A" * 118) is None
    assert pub.encrypt(PKCS1v1_5, b"A" * 117) is not None

    # Out of range ciphertext
    assert priv.decrypt(PKCS1v1_5, pub.n) is None

    ciphertext = pub.encrypt(BadNoPadding, b"Hello World!")
    assert ciphertext == pub.textbook_process(int.from_bytes(b"Hello World!", "big"))
    assert priv.decrypt(BadNoPadding, ciphertext) == b"Hello World!"


def test_rsa_sign_verify(keypair_1024):
    pub, priv = keypair_1024

    for padding in [PKCS1v1_5, BadPKCS1v1_5, BadNoPadding]:
        for digest in [SHA1, SHA256]:
            signature = priv.sign(padding, digest, b"hi mom")
            assert pub.verify(padding, digest, b"hi mom", signature)
            assert not pub.verify(padding, digest, b"hi dad", signature)

    assert not pub.verify(PKCS1v1_5, SHA256, b"hi mom", pub.n)


def test_rsa_sign_every_digest():
    pub, priv = generate_keypair(512)

    for digest in _digests.values():
        if digest.output_length + len(digest.asn1_prefix) + 11 > pub.len_bytes():
            continue
        signature = priv.sign(PKCS1v1_5, digest, b"hi mom")
        assert signature is not None
        assert pub.verify(PKCS1v1_5, digest, b"hi mom", signature)
        assert not pub.verify(PKCS1v1_5, digest, b"hi dad", signature)

    assert pub.verify(PKCS1v1_5, MD4, b"abc", priv.sign(PKCS1v1_5, MD4, b"abc"))


def test_rsa_signature_flip(keypair_1024):
    pub, priv = keypair_1024
    signature = priv.sign(PKCS1v1_5, SHA256, b"hi mom").to_bytes(128, "big")

    for i in range(len(signature)):
        flipped = signature[:i] + bytes([signature[i] ^ 0x80]) + signature[i + 1:]
        assert not pub.verify(PKCS1v1_5, SHA256, b"hi mom", int.from_bytes(flipped, "big"))


def test_rsa_sign_small_modulus():
    pub, priv = generate_keypair(256)
    # 32 bytes cannot hold a padded SHA-256 digest
    assert priv.sign(PKCS1v1_5, SHA256, b"hi mom") is None


def test_keys_are_values():
    pub, priv = keypair_from_primes(E, 11, 23)
    assert pub == PublicKey(3, 253)
    assert hash(pub) == hash(PublicKey(3, 253))
    assert pub != PublicKey(65537, 253)
    assert PublicKey(37, 253) != priv
    assert "PrivateKey(d=37, n=253)" == repr(priv)
    assert len(set([pub, PublicKey(3, 253), priv])) == 2

    with pytest.raises(AttributeError):
        pub.e = 5
    with pytest.raises(AttributeError):
        priv.n = 5
    with pytest.raises(AttributeError):
        del priv.d
