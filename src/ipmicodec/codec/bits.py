"""
Byte and Bit Primitives

Fixed-width integer extraction, sign extension and single-bit helpers used
by every record decoder. IPMI multi-byte fields are little-endian unless
noted otherwise; the big-endian variants exist for the few fields (and the
configuration parameter codecs) that use network byte order.
"""

import struct
from typing import Optional

from .errors import InsufficientData


def _check(data: bytes, offset: int, width: int, what: str) -> None:
    if offset < 0 or len(data) < offset + width:
        raise InsufficientData(what, len(data), offset + width)


def unpack_uint8(data: bytes, offset: int) -> int:
    _check(data, offset, 1, "uint8")
    return data[offset]


def unpack_uint16(data: bytes, offset: int) -> int:
    """Big-endian 16-bit unsigned integer."""
    _check(data, offset, 2, "uint16")
    return struct.unpack_from(">H", data, offset)[0]


def unpack_uint16l(data: bytes, offset: int) -> int:
    """Little-endian 16-bit unsigned integer."""
    _check(data, offset, 2, "uint16")
    return struct.unpack_from("<H", data, offset)[0]


def unpack_uint24l(data: bytes, offset: int) -> int:
    """Little-endian 24-bit unsigned integer (IANA manufacturer ids, FRU dates)."""
    _check(data, offset, 3, "uint24")
    return int.from_bytes(data[offset:offset + 3], "little")


def unpack_uint32(data: bytes, offset: int) -> int:
    """Big-endian 32-bit unsigned integer."""
    _check(data, offset, 4, "uint32")
    return struct.unpack_from(">I", data, offset)[0]


def unpack_uint32l(data: bytes, offset: int) -> int:
    """Little-endian 32-bit unsigned integer."""
    _check(data, offset, 4, "uint32")
    return struct.unpack_from("<I", data, offset)[0]


def unpack_bytes(data: bytes, offset: int, length: int) -> bytes:
    _check(data, offset, length, "bytes")
    return bytes(data[offset:offset + length])


def twos_complement(value: int, bits: int) -> int:
    """Sign-extend the low ``bits`` bits of ``value`` as a 2's complement number.

    Args:
        value: Unsigned container holding the field
        bits: Field width in bits (4 for R/B exponents, 10 for M and B, 8 for readings)

    Returns:
        Signed integer

    Examples:
        >>> twos_complement(0x3ff, 10)
        -1
        >>> twos_complement(0x7, 4)
        7
    """
    if bits < 1:
        raise ValueError(f"Invalid field width {bits}, must be >= 1")
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def ones_complement(value: int, bits: int) -> int:
    """Interpret the low ``bits`` bits of ``value`` as a 1's complement number.

    Negative zero (all ones) is returned as 0.
    """
    if bits < 1:
        raise ValueError(f"Invalid field width {bits}, must be >= 1")
    mask = (1 << bits) - 1
    value &= mask
    if value & (1 << (bits - 1)):
        return -(value ^ mask)
    return value


def _check_bit(n: int) -> None:
    if not 0 <= n <= 7:
        raise ValueError(f"Invalid bit index {n}, must be 0-7")


def is_bit_set(value: int, n: int) -> bool:
    _check_bit(n)
    return bool(value & (1 << n))


def set_bit(value: int, n: int) -> int:
    _check_bit(n)
    return (value | (1 << n)) & 0xff


def clear_bit(value: int, n: int) -> int:
    _check_bit(n)
    return value & ~(1 << n) & 0xff


class ByteReader:
    """Wraps a bytes buffer with typed reads and a moving cursor.

    Used by the offset-advancing FRU area decoders. Reads past the bounded
    region raise InsufficientData naming the structure being decoded.
    """

    __slots__ = ("_data", "_start", "_pos", "_end", "what")

    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None, what: str = "buffer"):
        self._data = data
        self._start = offset
        self._pos = offset
        self._end = end if end is not None else len(data)
        self.what = what

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return self._end - self._pos

    def _read(self, size: int) -> bytes:
        if self._pos + size > self._end:
            raise InsufficientData(self.what, self._end - self._start, self._pos + size - self._start)
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return bytes(chunk)

    def peek(self) -> int:
        if self._pos >= self._end:
            raise InsufficientData(self.what, self._end - self._start, self._pos + 1 - self._start)
        return self._data[self._pos]

    def uint8(self) -> int:
        return self._read(1)[0]

    def uint16l(self) -> int:
        return struct.unpack_from("<H", self._read(2))[0]

    def uint24l(self) -> int:
        return int.from_bytes(self._read(3), "little")

    def bytes(self, size: int) -> bytes:
        return self._read(size)

    def skip(self, size: int) -> None:
        self._read(size)


def require_length(data: bytes, size: int, what: str) -> None:
    """Raise InsufficientData unless ``data`` holds at least ``size`` bytes."""
    if len(data) < size:
        raise InsufficientData(what, len(data), size)
