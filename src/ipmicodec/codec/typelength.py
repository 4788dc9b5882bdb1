"""
Type/Length String Codec

A Type/Length byte prefixes every variable string in SDR and FRU records.
Bits 7:6 select the encoding and bits 5:0 give the number of encoded bytes
that follow. The number of decoded characters (``size``) depends on both.

Encodings:
- 00b binary or unspecified: bytes returned unchanged
- 01b BCD plus: two characters per byte, low nibble first
- 10b 6-bit ASCII packed: four characters per three bytes
- 11b 8-bit ASCII + Latin 1 (a length of 1 is reserved, 0xC1 is the FRU end mark)

Example Usage:
    >>> tl = TypeLength(0x83)
    >>> tl.length, tl.size
    (3, 4)
    >>> tl.decode(bytes([121, 158, 3]))
    'YYY '
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from .bits import ByteReader, require_length
from .errors import LengthMismatch

BCD_PLUS_TABLE = "0123456789 -.:,_"
ASCII_6BIT_TABLE = "".join(chr(0x20 + i) for i in range(64))

# FRU area custom field list terminator (type 11b, length 1)
END_OF_FIELDS = 0xC1


class TypeCode(IntEnum):
    """Type/Length encodings"""
    BINARY = 0
    BCD_PLUS = 1
    ASCII_6BIT = 2
    ASCII_8BIT = 3


class TypeLength:
    """A single Type/Length byte"""

    __slots__ = ("value",)

    def __init__(self, value: int):
        if not 0 <= value <= 0xff:
            raise ValueError(f"Invalid type/length byte {value}, must be 0-255")
        self.value = value

    @property
    def type_code(self) -> TypeCode:
        return TypeCode(self.value >> 6)

    @property
    def length(self) -> int:
        """Number of encoded bytes following the Type/Length byte."""
        return self.value & 0x3f

    @property
    def size(self) -> int:
        """Number of characters (or bytes for binary) produced by decode()."""
        length = self.length
        code = self.type_code
        if code == TypeCode.BCD_PLUS:
            return length * 2
        if code == TypeCode.ASCII_6BIT:
            return (length + 2) // 3 * 4
        return length

    @property
    def is_end_mark(self) -> bool:
        return self.value == END_OF_FIELDS

    @property
    def is_reserved(self) -> bool:
        return self.type_code == TypeCode.ASCII_8BIT and self.length == 1

    def decode(self, raw: bytes) -> Union[bytes, str]:
        """Decode the encoded bytes that follow this Type/Length byte.

        Args:
            raw: Exactly ``length`` encoded bytes

        Returns:
            bytes for binary fields, otherwise a string of ``size`` characters

        Raises:
            LengthMismatch: If len(raw) differs from ``length``
        """
        if len(raw) != self.length:
            raise LengthMismatch(self.length, len(raw))

        code = self.type_code
        if code == TypeCode.BINARY:
            return bytes(raw)
        if code == TypeCode.BCD_PLUS:
            return "".join(
                BCD_PLUS_TABLE[b & 0x0f] + BCD_PLUS_TABLE[b >> 4] for b in raw
            )
        if code == TypeCode.ASCII_6BIT:
            return _decode_6bit(raw)
        return bytes(raw).decode("latin-1")

    @classmethod
    def encode(cls, data: Union[bytes, str], type_code: TypeCode = TypeCode.BINARY) -> bytes:
        """Build a Type/Length byte followed by the field bytes.

        Only binary and 8-bit ASCII fields can be encoded.

        Raises:
            ValueError: If the field is too long, reserved or uses another encoding
        """
        if type_code == TypeCode.BINARY:
            payload = bytes(data) if not isinstance(data, str) else data.encode("latin-1")
        elif type_code == TypeCode.ASCII_8BIT:
            payload = data.encode("latin-1") if isinstance(data, str) else bytes(data)
            if len(payload) == 1:
                raise ValueError("8-bit ASCII fields of length 1 are reserved")
        else:
            raise ValueError(f"Encoding {type_code.name} is not supported")

        if len(payload) > 0x3f:
            raise ValueError(f"Field too long: {len(payload)} bytes, maximum 63")
        return bytes([(type_code << 6) | len(payload)]) + payload

    def __int__(self) -> int:
        return self.value

    def __eq__(self, other) -> bool:
        if isinstance(other, TypeLength):
            return self.value == other.value
        if isinstance(other, int):
            return self.value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"TypeLength({self.value:#04x}: {self.type_code.name}, length={self.length})"


def _decode_6bit(raw: bytes) -> str:
    # Each 3-byte group is a little-endian 24-bit word holding four 6-bit
    # characters at bit offsets 0, 6, 12 and 18. A short trailing group is
    # zero padded, which decodes to spaces.
    padded = bytes(raw) + b"\x00" * (-len(raw) % 3)
    chars = []
    for i in range(0, len(padded), 3):
        word = padded[i] | (padded[i + 1] << 8) | (padded[i + 2] << 16)
        for shift in (0, 6, 12, 18):
            chars.append(ASCII_6BIT_TABLE[(word >> shift) & 0x3f])
    return "".join(chars)


@dataclass(frozen=True)
class TypeLengthField:
    """A decoded Type/Length prefixed field (SDR ID strings, FRU area fields)

    Attributes:
        type_length: The Type/Length byte
        raw: Encoded field bytes
    """
    type_length: TypeLength
    raw: bytes

    @property
    def value(self) -> Union[bytes, str]:
        return self.type_length.decode(self.raw)

    @property
    def text(self) -> str:
        """Printable form: binary fields as hex, strings with trailing padding removed."""
        value = self.value
        if isinstance(value, bytes):
            return value.hex()
        return value.rstrip()

    def __str__(self) -> str:
        return self.text


def read_field(reader: ByteReader) -> TypeLengthField:
    """Read one Type/Length byte and its encoded bytes, advancing the reader.

    Raises:
        InsufficientData: If the declared length runs past the buffer
    """
    type_length = TypeLength(reader.uint8())
    raw = reader.bytes(type_length.length)
    return TypeLengthField(type_length, raw)


def read_id_string(data: bytes, tl_offset: int, min_size: int, what: str) -> TypeLengthField:
    """Decode the trailing ID string of an SDR record.

    The Type/Length byte sits at ``tl_offset`` inside the fixed part and the
    encoded bytes start right after the fixed part at ``min_size``.

    Raises:
        InsufficientData: If the record is shorter than min_size + length
    """
    require_length(data, min_size, what)
    type_length = TypeLength(data[tl_offset])
    require_length(data, min_size + type_length.length, what)
    return TypeLengthField(type_length, bytes(data[min_size:min_size + type_length.length]))
