"""
System Event Log Records

Decodes the fixed 16-byte SEL entries returned by Get SEL Entry. Record
types 0x00-0xBF use the system event layout, 0xC0-0xDF are timestamped OEM
records and 0xE0-0xFF non-timestamped OEM records.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .bits import require_length, unpack_bytes, unpack_uint16l, unpack_uint24l, unpack_uint32l
from .events import Event, lookup_event
from .tables import event_reading_type_name, sensor_type_name

SEL_ENTRY_SIZE = 16
SYSTEM_EVENT_RECORD = 0x02

# Timestamps at or below this value count seconds since controller init
PRE_INIT_TIMESTAMP_MAX = 0x20000000
UNSPECIFIED_TIMESTAMP = 0xffffffff


class SELRecordRange(Enum):
    STANDARD = "standard"
    TIMESTAMPED_OEM = "timestamped OEM"
    NON_TIMESTAMPED_OEM = "non-timestamped OEM"

    @classmethod
    def from_record_type(cls, record_type: int) -> "SELRecordRange":
        if record_type >= 0xe0:
            return cls.NON_TIMESTAMPED_OEM
        if record_type >= 0xc0:
            return cls.TIMESTAMPED_OEM
        return cls.STANDARD


@dataclass(frozen=True)
class SystemEvent:
    """Standard (system event) SEL body

    Attributes:
        timestamp: Seconds since 1970-01-01 UTC
        generator_id: Software or IPMB slave address and LUN of the generator
        evm_revision: Event message format revision (0x04 for IPMI 1.5+)
        sensor_type: Sensor type code
        sensor_number: Sensor number
        deassertion: Event direction bit
        event_reading_type: Event/reading type code (bits 6:0)
        event_data: Event data 1-3
    """
    timestamp: int
    generator_id: int
    evm_revision: int
    sensor_type: int
    sensor_number: int
    deassertion: bool
    event_reading_type: int
    event_data: bytes

    @property
    def offset(self) -> int:
        return self.event_data[0] & 0x0f

    @property
    def data2_usage(self) -> int:
        """Event data 1 bits 7:6 (trigger reading, OEM or extension data in byte 2)."""
        return self.event_data[0] >> 6

    @property
    def data3_usage(self) -> int:
        """Event data 1 bits 5:4 (trigger threshold, OEM or extension data in byte 3)."""
        return (self.event_data[0] >> 4) & 0x03

    @property
    def sensor_type_name(self) -> str:
        return sensor_type_name(self.sensor_type)

    @property
    def event_reading_type_name(self) -> str:
        return event_reading_type_name(self.event_reading_type)

    @property
    def event(self) -> Event:
        return lookup_event(self.event_reading_type, self.sensor_type, self.offset, not self.deassertion)


@dataclass(frozen=True)
class OEMTimestampedEvent:
    timestamp: int
    manufacturer_id: int
    oem_data: bytes


@dataclass(frozen=True)
class OEMEvent:
    oem_data: bytes


@dataclass(frozen=True)
class SEL:
    """One decoded SEL entry

    Example:
        >>> sel = parse_sel(bytes.fromhex("4d150290b3c66741000409010b03ffff"))
        >>> sel.event.name, str(sel.event.severity)
        ('Non-redundant (Sufficient Resources from Redundant)', 'Critical')
    """
    record_id: int
    record_type: int
    body: object
    next_record_id: int = 0xffff
    raw: bytes = b""

    @property
    def range(self) -> SELRecordRange:
        return SELRecordRange.from_record_type(self.record_type)

    @property
    def timestamp(self) -> Optional[int]:
        return getattr(self.body, "timestamp", None)

    @property
    def time(self) -> Optional[datetime]:
        """Absolute event time, None for pre-init or unspecified timestamps."""
        ts = self.timestamp
        if ts is None or ts == UNSPECIFIED_TIMESTAMP or ts <= PRE_INIT_TIMESTAMP_MAX:
            return None
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    @property
    def event(self) -> Optional[Event]:
        """Event name and severity, None for OEM records."""
        if isinstance(self.body, SystemEvent):
            return self.body.event
        return None


def parse_sel(data: bytes, next_record_id: int = 0xffff) -> SEL:
    """Decode one 16-byte SEL entry.

    Raises:
        InsufficientData: If fewer than 16 bytes are given
    """
    require_length(data, SEL_ENTRY_SIZE, "sel entry")
    data = bytes(data[:SEL_ENTRY_SIZE])
    record_type = data[2]
    record_range = SELRecordRange.from_record_type(record_type)

    if record_range == SELRecordRange.STANDARD:
        body = SystemEvent(
            timestamp=unpack_uint32l(data, 3),
            generator_id=unpack_uint16l(data, 7),
            evm_revision=data[9],
            sensor_type=data[10],
            sensor_number=data[11],
            deassertion=bool(data[12] & 0x80),
            event_reading_type=data[12] & 0x7f,
            event_data=unpack_bytes(data, 13, 3),
        )
    elif record_range == SELRecordRange.TIMESTAMPED_OEM:
        body = OEMTimestampedEvent(
            timestamp=unpack_uint32l(data, 3),
            manufacturer_id=unpack_uint24l(data, 7),
            oem_data=unpack_bytes(data, 10, 6),
        )
    else:
        body = OEMEvent(oem_data=unpack_bytes(data, 3, 13))

    return SEL(
        record_id=unpack_uint16l(data, 0),
        record_type=record_type,
        body=body,
        next_record_id=next_record_id,
        raw=data,
    )
