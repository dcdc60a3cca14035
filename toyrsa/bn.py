"""Big number utilities over native python integers.

All the arithmetic needed by toyrsa is done on plain python ``int`` values,
which are arbitrary precision. This module adds what the built-in operators
do not provide directly: the extended Euclidean algorithm, modular inverses,
exact integer roots, rounding divisions and fixed-width big-endian encoding.

Example:
    >>> inv_mod(17, 3120)
    2753
    >>> (17 * 2753) % 3120
    1
    >>> inv_mod(2, 4) is None
    True
    >>> iroot(27, 3)
    3
    >>> hexlify(binary(66051, 4)) == b'00010203'
    True
"""

import secrets
from os import urandom
from binascii import hexlify, unhexlify  # pylint: disable=unused-import

import pytest


def egcd(a, b):
    """Extended Euclidean algorithm.

    Args:
        a (int): first operand, possibly negative.
        b (int): second operand, possibly negative.

    Returns:
        (int, int, int): a tuple ``(g, x, y)`` such that ``a * x + b * y == g``
        where ``g`` is the greatest common divisor of ``a`` and ``b``.

    Example:
        >>> egcd(3, 26)
        (1, 9, -1)
    """
    old_r, r = a, b
    old_x, x = 1, 0
    old_y, y = 0, 1

    while r != 0:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_x, x = x, old_x - q * x
        old_y, y = y, old_y - q * y

    return old_r, old_x, old_y


def gcd(a, b):
    """Returns the non-negative greatest common divisor of a and b."""
    g, _, _ = egcd(a, b)
    return abs(g)


def lcm(a, b):
    """Returns the least common multiple of a and b."""
    if a == 0 or b == 0:
        return 0
    return abs(a * b) // gcd(a, b)


def math_mod(x, n):
    """Mathematical modulo: the result is always in ``[0, n)``.

    Example:
        >>> math_mod(-1, 5)
        4
    """
    return ((x % n) + n) % n


def inv_mod(a, n):
    """Computes the inverse of a modulo n, such that ``a * res == 1 mod n``.

    Returns:
        int: the inverse in ``[0, n)``, or None if ``gcd(a, n) != 1``.
    """
    g, x, _ = egcd(math_mod(a, n), n)
    if g != 1:
        return None

    return math_mod(x, n)


def crt(residues, moduli):
    """Chinese Remainder Theorem.

    Args:
        residues (list of int): the values ``x mod moduli[i]``.
        moduli (list of int): pairwise coprime moduli.

    Returns:
        int: the unique x in ``[0, prod(moduli))`` with the given residues.

    Raises:
        Exception: if the moduli are not pairwise coprime.

    Example:
        >>> crt([2, 3, 2], [3, 5, 7])
        23
    """
    if len(residues) != len(moduli):
        raise Exception("Need as many residues as moduli")

    product = 1
    for n in moduli:
        product *= n

    result = 0
    for r, n in zip(residues, moduli):
        m_s = product // n
        inv = inv_mod(m_s, n)
        if inv is None:
            raise Exception("Moduli are not pairwise coprime")
        result += r * m_s * inv

    return result % product


def ceil_div(a, b):
    """Integer division rounding towards positive infinity."""
    return -(-a // b)


def floor_div(a, b):
    """Integer division rounding towards negative infinity."""
    return a // b


def iroot(x, k):
    """Returns the integer k-th root of x, rounded down.

    Uses Newton's method on integers only, so it is exact for numbers of any
    size.

    Example:
        >>> iroot(26, 3), iroot(27, 3), iroot(28, 3)
        (2, 3, 3)
    """
    if x < 0:
        raise Exception("Cannot take the root of a negative number")
    if k < 1:
        raise Exception("Root degree must be positive")
    if x < 2 or k == 1:
        return x

    # Start above the root, and walk down.
    r = 1 << ((x.bit_length() + k - 1) // k)
    while True:
        s = ((k - 1) * r + x // r ** (k - 1)) // k
        if s >= r:
            return r
        r = s


def icbrt(x):
    """Returns the integer cube root of x, rounded down."""
    return iroot(x, 3)


def num_bits(num):
    """Returns the number of bits representing this number"""
    return num.bit_length()


def num_bytes(num):
    """Returns the number of bytes needed to represent this number"""
    return (num.bit_length() + 7) // 8


def from_binary(sbin):
    """Creates a number from a byte sequence representing it in Big-endian 8 bit atoms.

    Example:
        >>> byte_seq = unhexlify(b"010203")
        >>> from_binary(byte_seq)
        66051
        >>> (1 * 256**2) + (2 * 256) + 3
        66051
    """
    return int.from_bytes(sbin, "big")


def binary(num, length=None):
    """Returns a byte sequence storing the number in Big-Endian format.

    Args:
        num (int): a non-negative number.
        length (int): the exact length of the output. Leading zero bytes are
            added as needed. Defaults to the minimal length.

    Raises:
        Exception: if the number is negative or does not fit in length bytes.
    """
    if num < 0:
        raise Exception("Cannot represent negative numbers")

    if length is None:
        length = num_bytes(num)

    if num_bytes(num) > length:
        raise Exception("Number does not fit in %d bytes" % length)

    return num.to_bytes(length, "big")


def random_below(bound):
    """Returns a cryptographically strong random number 0 <= rnd < bound."""
    return secrets.randbelow(bound)


def random_range(low, high):
    """Returns a cryptographically strong random number low <= rnd < high."""
    if high <= low:
        raise Exception("Empty range [%d, %d)" % (low, high))
    return low + secrets.randbelow(high - low)


def random_nonzero_bytes(length):
    """Returns length random bytes, none of which is zero."""
    out = b""
    while len(out) < length:
        out += urandom(length - len(out)).replace(b"\x00", b"")
    return out


# ---------- Tests ------------


def test_egcd():
    g, x, y = egcd(3, 26)
    assert (g, x, y) == (1, 9, -1)
    assert 3 * x + 26 * y == g

    g, x, y = egcd(240, 46)
    assert g == 2
    assert 240 * x + 46 * y == g

    assert egcd(0, 7) == (7, 0, 1)


def test_egcd_signed():
    for a, b in [(-3, 26), (3, -26), (-240, -46), (2**521 - 1, -(2**127 - 1))]:
        g, x, y = egcd(a, b)
        assert a * x + b * y == g
        assert abs(g) == gcd(a, b)


def test_egcd_big():
    a = 2**4096 + 1
    b = 3**2500
    g, x, y = egcd(a, b)
    assert a * x + b * y == g


def test_gcd_lcm():
    assert gcd(6, 10) == 2
    assert gcd(-6, 10) == 2
    assert lcm(6, 10) == 30
    assert lcm(0, 10) == 0


def test_math_mod():
    assert math_mod(-1, 5) == 4
    assert math_mod(6, 5) == 1
    assert math_mod(0, 5) == 0
    assert math_mod(-10, 5) == 0


def test_inv_mod():
    assert inv_mod(17, 3120) == 2753
    assert inv_mod(3, 16) == 11
    assert inv_mod(2, 4) is None
    assert inv_mod(0, 13) is None

    # Operands bigger than the modulus are reduced first
    assert inv_mod(17 + 3120, 3120) == 2753


def test_crt():
    assert crt([2, 3, 2], [3, 5, 7]) == 23
    assert crt([0, 0], [11, 13]) == 0

    x = 2**200 + 7
    moduli = [2**127 - 1, 2**89 - 1, 2**61 - 1]
    assert crt([x % n for n in moduli], moduli) == x

    with pytest.raises(Exception) as excinfo:
        crt([1, 2], [6, 10])
    assert 'coprime' in str(excinfo.value)


def test_rounding_div():
    assert ceil_div(10, 3) == 4
    assert ceil_div(9, 3) == 3
    assert ceil_div(-10, 3) == -3
    assert floor_div(10, 3) == 3
    assert floor_div(-10, 3) == -4


def test_iroot():
    assert icbrt(0) == 0
    assert icbrt(1) == 1
    assert icbrt(7) == 1
    assert icbrt(8) == 2
    assert iroot(99, 2) == 9
    assert iroot(100, 2) == 10

    x = 2**1000 + 12345
    assert icbrt(x ** 3) == x
    assert icbrt(x ** 3 - 1) == x - 1
    assert icbrt(x ** 3 + 1) == x

    with pytest.raises(Exception) as excinfo:
        icbrt(-8)
    assert 'negative' in str(excinfo.value)


def test_binary():
    assert from_binary(binary(100)) == 100
    assert binary(0) == b""
    assert binary(0, 2) == b"\x00\x00"
    assert binary(1, 4) == b"\x00\x00\x00\x01"
    assert num_bytes(255) == 1
    assert num_bytes(256) == 2
    assert num_bits(256) == 9

    with pytest.raises(Exception) as excinfo:
        binary(-100)
    assert 'negative' in str(excinfo.value)

    with pytest.raises(Exception) as excinfo:
        binary(2**16, 2)
    assert 'does not fit' in str(excinfo.value)


def test_random():
    assert 0 <= random_below(15) < 15
    assert 10 <= random_range(10, 12) < 12
    assert len(random_nonzero_bytes(300)) == 300
    assert b"\x00" not in random_nonzero_bytes(300)

    with pytest.raises(Exception) as excinfo:
        random_range(5, 5)
    assert 'Empty' in str(excinfo.value)
