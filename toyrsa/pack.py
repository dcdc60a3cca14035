"""Binary storage of toyrsa keys with msgpack.

msgpack integers stop at 64 bits, so key numbers travel as signed
big-endian byte strings inside msgpack extension types:

- code 0: ``PublicKey``, the packed pair ``[e, n]``;
- code 1: ``PrivateKey``, the packed pair ``[d, n]``;
- code 2: ``Int``, an integer of any size.

Example:
    >>> pub, priv = keypair_from_primes(3, 11, 23)
    >>> data = encode({"alice": pub, "secret": priv, "n": Int(2**100)})
    >>> keys = decode(data)
    >>> keys["alice"] == pub and keys["secret"] == priv
    True
    >>> keys["n"]
    Int(1267650600228229401496703205376)

"""

import msgpack
import pytest

from .bn import binary, from_binary
from .rsa import PublicKey, PrivateKey, keypair_from_primes, generate_keypair

__all__ = ["encode", "decode", "Int"]

PUBLIC_KEY_CODE = 0
PRIVATE_KEY_CODE = 1
INT_CODE = 2


class Int(int):
    """Marks an integer of any size to be packed as bytes."""

    def __repr__(self):
        return "Int(%d)" % self


def _int_bytes(num):
    sign = b"-" if num < 0 else b"+"
    return sign + binary(abs(num))


def _bytes_int(data):
    if data[:1] not in (b"+", b"-"):
        raise Exception("Bad packed integer sign: %r" % data[:1])
    num = from_binary(data[1:])
    return -num if data[:1] == b"-" else num


def _pack_pair(a, b):
    return msgpack.packb([_int_bytes(a), _int_bytes(b)], use_bin_type=True)


def _unpack_pair(data):
    a, b = msgpack.unpackb(data, raw=False)
    return _bytes_int(a), _bytes_int(b)


def _to_ext(obj):
    if isinstance(obj, PublicKey):
        return msgpack.ExtType(PUBLIC_KEY_CODE, _pack_pair(obj.e, obj.n))

    if isinstance(obj, PrivateKey):
        return msgpack.ExtType(PRIVATE_KEY_CODE, _pack_pair(obj.d, obj.n))

    # Plain ints only get here when they overflow a msgpack integer
    if isinstance(obj, int) and not isinstance(obj, bool):
        return msgpack.ExtType(INT_CODE, _int_bytes(obj))

    # Packing with strict types leaves tuples to us
    if type(obj) is tuple:
        return list(obj)

    raise TypeError("Cannot pack %r" % (type(obj),))


def _from_ext(code, data):
    if code == PUBLIC_KEY_CODE:
        return PublicKey(*_unpack_pair(data))

    if code == PRIVATE_KEY_CODE:
        return PrivateKey(*_unpack_pair(data))

    if code == INT_CODE:
        return Int(_bytes_int(data))

    raise Exception("Unknown ext type code: %d" % code)


def encode(structure):
    """Packs a structure of lists, dicts, bytes, strings, numbers and keys.

    Raises:
        TypeError: if the structure holds an object msgpack cannot represent.
    """
    return msgpack.packb(structure, default=_to_ext, use_bin_type=True, strict_types=True)


def decode(packed_data):
    """Unpacks data made by ``encode``. Tuples come back as lists.

    Raises:
        Exception: on an extension type that toyrsa did not write.
    """
    return msgpack.unpackb(packed_data, ext_hook=_from_ext, raw=False, strict_map_key=False)


# ---------- Tests ------------


def test_keypair_roundtrip():
    pub, priv = generate_keypair(512)
    x = decode(encode([pub, priv]))
    assert x == [pub, priv]
    assert isinstance(x[0], PublicKey) and isinstance(x[1], PrivateKey)


def test_keys_work_after_decode():
    pub, priv = decode(encode(generate_keypair(256)))
    m = 0xC0FFEE
    assert priv.textbook_process(pub.textbook_process(m)) == m


def test_key_ext_codes():
    pub, priv = keypair_from_primes(3, 11, 23)

    ext = msgpack.unpackb(encode(pub), raw=False)
    assert ext == msgpack.ExtType(PUBLIC_KEY_CODE, _pack_pair(3, 253))

    ext = msgpack.unpackb(encode(priv), raw=False)
    assert ext.code == PRIVATE_KEY_CODE
    assert _unpack_pair(ext.data) == (37, 253)


def test_keys_in_a_dict():
    pub, priv = keypair_from_primes(3, 11, 23)
    stored = {"pub": pub, "priv": priv, pub: "as a map key", "n": 5, "raw": b"\x00\xff"}
    assert decode(encode(stored)) == stored


def test_big_ints():
    test_data = [Int(0), Int(-1), Int(2**2048 + 1), -2**100, 2**64, 2**63 - 1]
    x = decode(encode(test_data))
    assert x == test_data
    assert all(isinstance(v, Int) for v in x[:5])
    # Small enough for a native msgpack integer
    assert type(x[5]) is int


def test_bad_int_sign():
    with pytest.raises(Exception) as excinfo:
        _bytes_int(b"*\x01")
    assert 'sign' in str(excinfo.value)


def test_unknown_type():
    with pytest.raises(TypeError):
        encode([object()])


def test_unknown_ext_code():
    data = msgpack.packb(msgpack.ExtType(42, b""), use_bin_type=True)
    with pytest.raises(Exception) as excinfo:
        decode(data)
    assert 'Unknown ext type' in str(excinfo.value)
