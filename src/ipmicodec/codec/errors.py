"""
Decode Error Types

Every error raised while decoding SDR, FRU and SEL bytes derives from
IPMIError so callers can catch the whole family at once. Checksum failures
are deliberately not part of this hierarchy: they are reported through
``valid()``/``checksum_valid`` booleans and left to the caller.
"""


class IPMIError(Exception):
    """Base exception for IPMI-related errors"""
    pass


class InsufficientData(IPMIError):
    """Raised when a buffer is shorter than a fixed or declared length

    Attributes:
        what: Short description of the structure being decoded
        have: Number of bytes available
        need: Number of bytes required
    """

    def __init__(self, what: str, have: int, need: int):
        self.what = what
        self.have = have
        self.need = need
        super().__init__(f"{what}: have {have} bytes, need {need}")


class LengthMismatch(IPMIError):
    """Raised when a Type/Length byte disagrees with the bytes supplied"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"type/length declares {expected} bytes, got {actual}")
