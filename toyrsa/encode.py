""" JSON encoding of toyrsa keys.

Key numbers are stored base64 encoded, in big-endian order, and tagged with
the key type:

    >>> pub, priv = keypair_from_primes(3, 11, 23)
    >>> KeyEnc().encode(pub)
    '{"_t": "PublicKey", "e": "Aw==", "n": "/Q=="}'
    >>> KeyDec().decode(KeyEnc().encode([pub, priv])) == [pub, priv]
    True
"""

import json
from base64 import b64encode, b64decode

import pytest

from .bn import binary, from_binary
from .rsa import PublicKey, PrivateKey, keypair_from_primes, generate_keypair


def _b64(num):
    return b64encode(binary(num)).strip().decode("utf8")


def _num(s):
    return from_binary(b64decode(s))


class KeyEnc(json.JSONEncoder):
    """
    A JSON encoder that knows about PublicKey and PrivateKey
    """

    def __init__(self):
        json.JSONEncoder.__init__(self)

    def default(self, o):  # pylint: disable=method-hidden
        if isinstance(o, PublicKey):
            return {
                '_t': "PublicKey",
                'e': _b64(o.e),
                'n': _b64(o.n)
                }

        if isinstance(o, PrivateKey):
            return {
                '_t': "PrivateKey",
                'd': _b64(o.d),
                'n': _b64(o.n)
                }

        return json.JSONEncoder.default(self, o)


class KeyDec(json.JSONDecoder):
    """
    A JSON Decoder that knows about PublicKey and PrivateKey
    """

    def __init__(self):
        json.JSONDecoder.__init__(self, object_hook=self.dict_to_object)

    def dict_to_object(self, d):
        if u"_t" in d and d[u"_t"] == u"PublicKey":
            return PublicKey(_num(d[u"e"]), _num(d[u"n"]))

        if u"_t" in d and d[u"_t"] == u"PrivateKey":
            return PrivateKey(_num(d[u"d"]), _num(d[u"n"]))

        return d


# ---------- Tests ------------


def test_encoder_keys():
    pub, priv = generate_keypair(512)
    s = KeyEnc().encode([pub, priv, "note"])
    x = KeyDec().decode(s)
    assert x == [pub, priv, "note"]
    assert isinstance(x[0], PublicKey) and isinstance(x[1], PrivateKey)


def test_encoder_small():
    pub, priv = keypair_from_primes(3, 11, 23)
    s = KeyEnc().encode({"alice": pub, "secret": priv, "n": pub.n})
    x = KeyDec().decode(s)
    assert x == {"alice": pub, "secret": priv, "n": 253}

    x = json.loads(s)
    assert x["alice"] == {"_t": "PublicKey", "e": "Aw==", "n": "/Q=="}


def test_encoder_bytes_rejected():
    # Only key numbers are base64 encoded, raw bytes are not JSON
    with pytest.raises(TypeError):
        KeyEnc().encode([b"\x00\xff"])


def test_decoder_plain_dicts():
    s = '{"_t": "Other", "e": "Aw=="}'
    assert KeyDec().decode(s) == {"_t": "Other", "e": "Aw=="}


def test_encoder_unknown():
    with pytest.raises(TypeError):
        KeyEnc().encode([object()])
