# Example use of the toyrsa keys: generation, padded encryption,
# signatures and key serialization.

from toyrsa.rsa import generate_keypair
from toyrsa.padding import PKCS1v1_5
from toyrsa.digest import SHA256, OpenSSLDigest
from toyrsa.bindings import needs_openssl
from toyrsa.pack import encode, decode

import pytest


def gen_key(bits=1024):
    """Example RSA key generation, with e = 65537"""
    return generate_keypair(bits, e=2**16 + 1)


def enc(pub, plaintext):
    """RSA encryption with PKCS#1 v1.5 padding"""
    return pub.encrypt(PKCS1v1_5, plaintext)


def dec(priv, ciphertext):
    """RSA decryption. NOT const. time."""
    return priv.decrypt(PKCS1v1_5, ciphertext)


def sign(priv, message, digest=SHA256):
    return priv.sign(PKCS1v1_5, digest, message)


def verify(pub, message, signature, digest=SHA256):
    return pub.verify(PKCS1v1_5, digest, message, signature)


def test_toyrsa():
    pub, priv = gen_key()
    c = enc(pub, b"Hello World!")
    p = dec(priv, c)
    assert p == b"Hello World!"
    print(p)


def test_sign():
    pub, priv = gen_key()
    sig = sign(priv, b"Hello World!")
    assert verify(pub, b"Hello World!", sig)
    assert not verify(pub, b"Hello World?", sig)


@needs_openssl
def test_sign_openssl():
    pub, priv = gen_key()
    sha512 = OpenSSLDigest("sha512")

    sig = sign(priv, b"Hello World!", sha512)
    assert verify(pub, b"Hello World!", sig, sha512)
    # A SHA-512 signature is no SHA-256 signature
    assert verify(pub, b"Hello World!", sig, SHA256) is False
    assert sig == sign(priv, b"Hello World!", OpenSSLDigest("sha512"))


def test_store_keys():
    pub, priv = gen_key(512)
    data = encode({"pub": pub, "priv": priv})

    keys = decode(data)
    c = enc(keys["pub"], b"Hello World!")
    assert dec(priv, c) == b"Hello World!"
