""" Message padding schemes for RSA signatures and encryption.

Each scheme is a class exposing two families of static functions:

* signatures: ``hash_pad(digest, block_len, message)`` and
  ``unpad_verify(digest, block_len, message, signature)``,
* encryption: ``pad(block_len, plaintext)`` and ``unpad(block_len, block)``.

Padded blocks are handled as integers, since they are immediately fed to
(or come straight out of) the RSA modular exponentiation. A block of
``block_len`` bytes always starts with a zero byte, which the integer drops;
it is put back with a fixed width conversion before parsing.

Malformed blocks are never an error: ``hash_pad`` and ``pad`` return None,
``unpad_verify`` returns False and ``unpad`` returns None.

Example:
    >>> block = PKCS1v1_5.hash_pad(SHA256, 128, b"Hello")
    >>> PKCS1v1_5.unpad_verify(SHA256, 128, b"Hello", block)
    True
    >>> block = PKCS1v1_5.pad(64, b"Hello")
    >>> PKCS1v1_5.unpad(64, block)
    b'Hello'
"""

import pytest

from .bn import binary, from_binary, num_bytes, random_nonzero_bytes
from .digest import SHA1, SHA256

# Minimum number of padding bytes in a PKCS#1 v1.5 block
MIN_PADDING_LEN = 8


def _to_block(value, block_len):
    # None if the value does not fit in block_len bytes
    if value < 0 or num_bytes(value) > block_len:
        return None
    return binary(value, block_len)


class PKCS1v1_5(object):
    """ `PKCS#1 v1.5 <https://tools.ietf.org/html/rfc2313>`_ padding.

    Signature blocks look like ``00 01 FF..FF 00 <DigestInfo prefix> <digest>``
    and encryption blocks like ``00 02 <random non-zero bytes> 00 <plaintext>``,
    with at least MIN_PADDING_LEN padding bytes in both cases.
    """

    @staticmethod
    def hash_pad(digest, block_len, message):
        """Hash and pad a message for signing.

        Args:
            digest (Digest): the hash function to use.
            block_len (int): the length of the block in bytes (modulus length).
            message (bytes): the message to sign.

        Returns:
            int: the padded block, or None if block_len is too small.
        """
        hash_value = digest.digest(message)
        prefix = digest.asn1_prefix

        if block_len < len(hash_value) + len(prefix) + 3 + MIN_PADDING_LEN:
            return None

        padding_len = block_len - len(hash_value) - len(prefix) - 3
        block = b"\x00\x01" + b"\xff" * padding_len + b"\x00" + prefix + hash_value

        return from_binary(block)

    @staticmethod
    def unpad_verify(digest, block_len, message, signature):
        """Unpad a signature block and check it against the hash of message.

        Args:
            digest (Digest): the hash function to use.
            block_len (int): the length of the block in bytes.
            message (bytes): the message that should be signed.
            signature (int): the block recovered from the signature.

        Returns:
            bool: whether the block is a valid padding of the message hash.
        """
        hash_len = digest.output_length
        prefix = digest.asn1_prefix

        if block_len < hash_len + len(prefix) + 3 + MIN_PADDING_LEN:
            return False

        block = _to_block(signature, block_len)
        if block is None or block[0] != 0x00 or block[1] != 0x01:
            return False

        separator = block_len - hash_len - len(prefix) - 1
        if block[separator] != 0x00:
            return False

        padding = block[2:separator]
        if len(padding) < MIN_PADDING_LEN or padding != b"\xff" * len(padding):
            return False

        if block[separator + 1:block_len - hash_len] != prefix:
            return False

        return block[block_len - hash_len:] == digest.digest(message)

    @staticmethod
    def pad(block_len, plaintext):
        """Pad a plaintext for encryption, with fresh random padding bytes.

        Returns:
            int: the padded block, or None if the plaintext is too long.
        """
        padding_len = block_len - len(plaintext) - 3
        if padding_len < MIN_PADDING_LEN:
            return None

        block = b"\x00\x02" + random_nonzero_bytes(padding_len) + b"\x00" + plaintext
        return from_binary(block)

    @staticmethod
    def unpad(block_len, block):
        """Recover the plaintext from a padded encryption block.

        Returns:
            bytes: the plaintext, or None if the block is not conforming.
        """
        data = _to_block(block, block_len)
        if data is None or data[0] != 0x00 or data[1] != 0x02:
            return None

        separator = data.find(b"\x00", 2)
        if separator == -1 or separator - 2 < MIN_PADDING_LEN:
            return None

        return data[separator + 1:]


class BadPKCS1v1_5(PKCS1v1_5):
    """ **INTENTIONALLY UNSAFE** PKCS#1 v1.5 padding, whose signature verifier
    stops parsing the block right after the digest, even if there are bytes
    remaining. It also accepts a single byte of 0xFF padding.

    Blocks are built exactly as by PKCS1v1_5.

    Example:
        >>> h = SHA1.digest(b"hi mom")
        >>> block = from_binary(b"\\x00\\x01\\xff\\x00" + SHA1.asn1_prefix + h + b"\\x13" * 89)
        >>> BadPKCS1v1_5.unpad_verify(SHA1, 128, b"hi mom", block)
        True
        >>> PKCS1v1_5.unpad_verify(SHA1, 128, b"hi mom", block)
        False
    """

    @staticmethod
    def unpad_verify(digest, block_len, message, signature):
        block = _to_block(signature, block_len)
        if block is None or block_len < 2 or block[0] != 0x00 or block[1] != 0x01:
            return False

        padding_end = 2
        while padding_end < block_len and block[padding_end] == 0xff:
            padding_end += 1

        if padding_end == 2 or padding_end == block_len or block[padding_end] != 0x00:
            return False

        padding_end += 1

        prefix = digest.asn1_prefix
        if block[padding_end:padding_end + len(prefix)] != prefix:
            return False

        hash_start = padding_end + len(prefix)
        signature_hash = block[hash_start:hash_start + digest.output_length]

        return signature_hash == digest.digest(message)


class BadNoPadding(object):
    """ **INTENTIONALLY UNSAFE** no-op padding scheme.

    Signatures are the bare digest, and plaintexts are encrypted as they are
    (leading zero bytes of a plaintext do not survive decryption).
    """

    @staticmethod
    def hash_pad(digest, block_len, message):
        if block_len < digest.output_length:
            return None

        return from_binary(digest.digest(message))

    @staticmethod
    def unpad_verify(digest, block_len, message, signature):
        if num_bytes(signature) > min(block_len, digest.output_length):
            return False

        return binary(signature, digest.output_length) == digest.digest(message)

    @staticmethod
    def pad(block_len, plaintext):
        if len(plaintext) > block_len:
            return None

        return from_binary(plaintext)

    @staticmethod
    def unpad(block_len, block):
        if num_bytes(block) > block_len:
            return None

        return binary(block)


# ---------- Tests ------------

BITS = 1024


def _sig_block(*parts):
    return from_binary(b"".join(parts))


def _valid_parts(digest=SHA256, message=b""):
    return [b"\x01", b"\xff" * 74, b"\x00", digest.asn1_prefix, digest.digest(message)]


def test_pkcs1_v1_5_signature_pad():
    padded = PKCS1v1_5.hash_pad(SHA256, BITS // 8, b"")

    # + 15 because of 0x0001 left-side padding = 15 zero bits
    assert padded.bit_length() + 15 == BITS
    assert binary(padded) == b"".join(_valid_parts())
    assert BadPKCS1v1_5.hash_pad(SHA256, BITS // 8, b"") == padded


def test_pkcs1_v1_5_signature_pad_too_small():
    prefix_len = len(SHA256.asn1_prefix)
    assert PKCS1v1_5.hash_pad(SHA256, 10 + prefix_len + 32, b"") is None
    assert PKCS1v1_5.hash_pad(SHA256, 11 + prefix_len + 32, b"") is not None


def test_pkcs1_v1_5_signature_unpad():
    signature = _sig_block(*_valid_parts())
    assert PKCS1v1_5.unpad_verify(SHA256, BITS // 8, b"", signature)
    assert BadPKCS1v1_5.unpad_verify(SHA256, BITS // 8, b"", signature)


@pytest.mark.parametrize("scheme", [PKCS1v1_5, BadPKCS1v1_5])
def test_signature_unpad_rejects(scheme):
    prefix = SHA256.asn1_prefix
    h = SHA256.digest(b"")

    bad_blocks = [
        # bad start
        [b"\x13", b"\xff" * 74, b"\x00", prefix, h],
        # bad length
        [b"\x01", b"\xff" * 37, b"\x00", prefix, h],
        # bad padding
        [b"\x01", b"\x13" * 74, b"\x00", prefix, h],
        # bad separator
        [b"\x01", b"\xff" * 74, b"\x13", prefix, h],
        # bad prefix
        [b"\x01", b"\xff" * 74, b"\x00", b"\x00" * len(prefix), h],
        # bad digest
        [b"\x01", b"\xff" * 74, b"\x00", prefix, SHA256.digest(b"Not empty slice!")],
    ]

    for parts in bad_blocks:
        assert not scheme.unpad_verify(SHA256, BITS // 8, b"", _sig_block(*parts))

    # Too big to be a block
    assert not scheme.unpad_verify(SHA256, BITS // 8, b"", 2 ** BITS)


def test_pkcs1_v1_5_signature_padding_floor():
    prefix = SHA256.asn1_prefix
    h = SHA256.digest(b"")

    short = _sig_block(b"\x01", b"\xff" * 7, b"\x00", prefix, h)
    assert not PKCS1v1_5.unpad_verify(SHA256, 10 + len(prefix) + len(h), b"", short)

    minimal = _sig_block(b"\x01", b"\xff" * 8, b"\x00", prefix, h)
    assert PKCS1v1_5.unpad_verify(SHA256, 11 + len(prefix) + len(h), b"", minimal)


def test_signature_flip_any_byte():
    block = binary(PKCS1v1_5.hash_pad(SHA1, 64, b"flip"), 64)
    for i in range(len(block)):
        flipped = block[:i] + bytes([block[i] ^ 0x01]) + block[i + 1:]
        assert not PKCS1v1_5.unpad_verify(SHA1, 64, b"flip", from_binary(flipped))


def test_bad_pkcs1_v1_5_accepts_right_garbage():
    signature = _sig_block(b"\x01\xff\x00", SHA256.asn1_prefix, SHA256.digest(b""), b"\x13" * 73)

    assert BadPKCS1v1_5.unpad_verify(SHA256, BITS // 8, b"", signature)
    assert not PKCS1v1_5.unpad_verify(SHA256, BITS // 8, b"", signature)


def test_bad_pkcs1_v1_5_truncated():
    # The digest runs past the end of the block
    signature = _sig_block(b"\x01\xff\x00", SHA256.asn1_prefix, SHA256.digest(b"")[:10])
    assert not BadPKCS1v1_5.unpad_verify(SHA256, 3 + len(SHA256.asn1_prefix) + 10 + 1, b"", signature)

    # All padding, no separator
    assert not BadPKCS1v1_5.unpad_verify(SHA256, 16, b"", _sig_block(b"\x01", b"\xff" * 14))


def test_pkcs1_v1_5_encryption_pad():
    block = PKCS1v1_5.pad(32, b"kick it, CC")
    data = binary(block, 32)

    assert data[:2] == b"\x00\x02"
    assert data[-12:] == b"\x00kick it, CC"
    assert b"\x00" not in data[2:-12]
    assert PKCS1v1_5.unpad(32, block) == b"kick it, CC"

    # Random padding
    assert PKCS1v1_5.pad(32, b"kick it, CC") != block


def test_pkcs1_v1_5_encryption_pad_limits():
    assert PKCS1v1_5.pad(32, b"A" * 21) is not None
    assert PKCS1v1_5.pad(32, b"A" * 22) is None
    assert PKCS1v1_5.unpad(32, PKCS1v1_5.pad(32, b"")) == b""


def test_pkcs1_v1_5_encryption_unpad_padding_floor():
    seven = from_binary(b"\x02" + b"\x11" * 7 + b"\x00" + b"hello")
    assert PKCS1v1_5.unpad(15, seven) is None

    eight = from_binary(b"\x02" + b"\x11" * 8 + b"\x00" + b"hello")
    assert PKCS1v1_5.unpad(16, eight) == b"hello"


def test_pkcs1_v1_5_encryption_unpad_rejects():
    assert PKCS1v1_5.unpad(17, from_binary(b"\x02" + b"\x11" * 9 + b"\x00hello")) == b"hello"
    # Missing separator
    assert PKCS1v1_5.unpad(16, from_binary(b"\x02" + b"\x11" * 14)) is None
    # Wrong type byte
    assert PKCS1v1_5.unpad(17, from_binary(b"\x01" + b"\x11" * 9 + b"\x00hello")) is None
    # Wrong length
    assert PKCS1v1_5.unpad(18, from_binary(b"\x02" + b"\x11" * 9 + b"\x00hello")) is None
    assert PKCS1v1_5.unpad(16, from_binary(b"\x02" + b"\x11" * 9 + b"\x00hello")) is None


def test_no_padding():
    block = BadNoPadding.hash_pad(SHA1, 128, b"hello")
    assert block == from_binary(SHA1.digest(b"hello"))
    assert BadNoPadding.unpad_verify(SHA1, 128, b"hello", block)
    assert not BadNoPadding.unpad_verify(SHA1, 128, b"hellx", block)
    assert BadNoPadding.hash_pad(SHA1, 19, b"hello") is None

    assert BadNoPadding.pad(16, b"hello") == from_binary(b"hello")
    assert BadNoPadding.unpad(16, from_binary(b"hello")) == b"hello"
    assert BadNoPadding.pad(4, b"hello") is None
    assert BadNoPadding.unpad(4, from_binary(b"hello")) is None
