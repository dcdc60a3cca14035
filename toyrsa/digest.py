""" Message digest providers for use in RSA signature padding.

A provider knows its output length and the DER encoded ``DigestInfo``
prefix identifying the hash algorithm in a PKCS#1 v1.5 signature block.
Providers are backed by ``hashlib``, by pycryptodome (for MD4, which current
OpenSSL builds no longer expose to ``hashlib``) or by the OpenSSL EVP interface.

Example:
    >>> d = get_digest("sha256")
    >>> d.output_length
    32
    >>> len(d.digest(b"Hello World!")) == d.output_length
    True
    >>> hexlify(SHA1.asn1_prefix) == b'3021300906052b0e03021a05000414'
    True
"""

import hashlib
from binascii import hexlify, unhexlify

import pytest
from Crypto.Hash import MD4 as _MD4

from .bindings import _FFI, EVP_MAX_MD_SIZE, get_lib, get_errors, needs_openssl


class Digest(object):
    """ The digest capability consumed by the padding schemes.

    Args:
        name (str): the name of the hash function, eg. "sha256".
        output_length (int): the digest length in bytes.
        asn1_prefix (bytes): the DER prefix of the DigestInfo structure.
    """

    __slots__ = ["name", "output_length", "asn1_prefix"]

    def __init__(self, name, output_length, asn1_prefix):
        self.name = name
        self.output_length = output_length
        self.asn1_prefix = asn1_prefix

    def digest(self, message):
        """Returns the digest of message, as exactly output_length bytes."""
        raise NotImplementedError()

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.name)


class HashlibDigest(Digest):
    """A digest computed by the python ``hashlib`` module."""

    __slots__ = []

    def digest(self, message):
        h = hashlib.new(self.name)
        h.update(message)
        out = h.digest()

        if len(out) != self.output_length:
            raise Exception("Digest %s: unexpected length %d" % (self.name, len(out)))
        return out


class PycryptodomeDigest(Digest):
    """A digest computed by pycryptodome, for hashes ``hashlib`` may lack."""

    __slots__ = []

    _modules = {"md4": _MD4}

    def digest(self, message):
        out = self._modules[self.name].new(bytes(message)).digest()

        if len(out) != self.output_length:
            raise Exception("Digest %s: unexpected length %d" % (self.name, len(out)))
        return out


MD4 = PycryptodomeDigest("md4", 16, unhexlify(b"3020300c06082a864886f70d020405000410"))
MD5 = HashlibDigest("md5", 16, unhexlify(b"3020300c06082a864886f70d020505000410"))
SHA1 = HashlibDigest("sha1", 20, unhexlify(b"3021300906052b0e03021a05000414"))
SHA224 = HashlibDigest("sha224", 28, unhexlify(b"302d300d06096086480165030402040500041c"))
SHA256 = HashlibDigest("sha256", 32, unhexlify(b"3031300d060960864801650304020105000420"))
SHA384 = HashlibDigest("sha384", 48, unhexlify(b"3041300d060960864801650304020205000430"))
SHA512 = HashlibDigest("sha512", 64, unhexlify(b"3051300d060960864801650304020305000440"))

_digests = dict((d.name, d) for d in [MD4, MD5, SHA1, SHA224, SHA256, SHA384, SHA512])


def get_digest(name):
    """Returns the digest provider registered under name.

    Raises:
        Exception: if no such digest is known.
    """
    try:
        return _digests[name.lower()]
    except KeyError:
        raise Exception("Unknown digest: %s" % name)


class OpenSSLDigest(Digest):
    """A digest computed by OpenSSL, looked up by name through the EVP interface.

    Args:
        name (str): the name of a known hash function, eg. "sha1".

    Example:
        >>> d = OpenSSLDigest("sha1")      # doctest: +SKIP
        >>> d.digest(b"abc") == SHA1.digest(b"abc")      # doctest: +SKIP
        True
    """

    __slots__ = ["md"]

    def __init__(self, name):
        known = get_digest(name)
        Digest.__init__(self, known.name, known.output_length, known.asn1_prefix)

        self.md = get_lib().EVP_get_digestbyname(self.name.encode("utf8"))
        if self.md == _FFI.NULL:
            raise Exception("OpenSSL does not provide digest %s" % name)

    def digest(self, message):
        out_md = _FFI.new("unsigned char[]", EVP_MAX_MD_SIZE)
        out_len = _FFI.new("unsigned int *")

        data = bytes(message)
        if get_lib().EVP_Digest(data, len(data), out_md, out_len, self.md, _FFI.NULL) != 1:
            raise Exception("Digest %s: OpenSSL error %s" % (self.name, get_errors()))

        if int(out_len[0]) != self.output_length:
            raise Exception("Digest %s: unexpected length %d" % (self.name, out_len[0]))

        return bytes(_FFI.buffer(out_md, self.output_length))


# ---------- Tests ------------


def test_vectors():
    assert hexlify(SHA1.digest(b"abc")) == b"a9993e364706816aba3e25717850c26c9cd0d89d"
    assert hexlify(SHA256.digest(b"abc")) == \
        b"ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert hexlify(MD5.digest(b"")) == b"d41d8cd98f00b204e9800998ecf8427e"


def test_known_answers():
    vectors = {
        "md4": b"a448017aaf21d8525fc10ae87aa6729d",
        "md5": b"900150983cd24fb0d6963f7d28e17f72",
        "sha1": b"a9993e364706816aba3e25717850c26c9cd0d89d",
        "sha224": b"23097d223405d8228642a477bda255b32aadbce4bda0b3f7e36c9da7",
        "sha256": b"ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad",
        "sha384": b"cb00753f45a35e8bb5a03d699ac65007272c32ab0eded163"
                  b"1a8b605a43ff5bed8086072ba1e7cc2358baeca134c825a7",
        "sha512": b"ddaf35a193617abacc417349ae20413112e6fa4e89a97ea20a9eeee64b55d39a"
                  b"2192992a274fc1a836ba3c23a3feebbd454d4423643ce80e2a9ac94fa54ca49f",
    }
    assert sorted(vectors) == sorted(_digests)

    for name, d in _digests.items():
        out = d.digest(b"abc")
        assert len(out) == d.output_length
        assert hexlify(out) == vectors[name]

    assert hexlify(MD4.digest(b"")) == b"31d6cfe0d16ae931b73c59d7e0c089c0"


def test_prefixes():
    for d in _digests.values():
        # The DigestInfo ends with the OCTET STRING header of the digest
        assert d.asn1_prefix[-2:] == bytes([0x04, d.output_length])
        # ... and the outer SEQUENCE covers the prefix and the digest
        assert d.asn1_prefix[1] == len(d.asn1_prefix) - 2 + d.output_length


def test_get_digest():
    assert get_digest("sha256") is SHA256
    assert get_digest("SHA1") is SHA1

    with pytest.raises(Exception) as excinfo:
        get_digest("sha999")
    assert 'Unknown digest' in str(excinfo.value)


def test_abstract():
    d = Digest("none", 0, b"")
    with pytest.raises(NotImplementedError):
        d.digest(b"")
    assert repr(SHA1) == "HashlibDigest('sha1')"


@needs_openssl
def test_openssl_digest():
    for name in ["sha1", "sha256", "sha512"]:
        d = OpenSSLDigest(name)
        assert d.output_length == get_digest(name).output_length
        assert d.digest(b"Hello World!") == get_digest(name).digest(b"Hello World!")
        assert d.digest(b"") == get_digest(name).digest(b"")


@needs_openssl
def test_openssl_unknown():
    with pytest.raises(Exception) as excinfo:
        OpenSSLDigest("sha999")
    assert 'Unknown digest' in str(excinfo.value)
