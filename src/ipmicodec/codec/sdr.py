"""
Sensor Data Record Parser

Decodes one raw SDR (5-byte record header plus body, as returned by Get SDR)
into an ``SDR`` holding exactly one typed record body. Dispatch is on the
record type byte; unknown types decode to an ``UnknownRecord`` carrying the
body bytes so that a repository scan never stops on vendor specific records.

Key Components:
- RecordHeader: record id, SDR version, record type and body length
- FullSensor: threshold/analog sensor with calibration factors (type 0x01)
- CompactSensor: sensor without calibration, optionally shared (type 0x02)
- EventOnly: sensor that only generates events (type 0x03)
- parse_sdr: the dispatcher

Example Usage:
    sdr = parse_sdr(raw_bytes, next_record_id=0x0042)
    if sdr.record_type == SDRRecordType.FULL_SENSOR:
        print(sdr.name, sdr.record.convert_reading(0x4a), sdr.record.unit.label)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional, Union

from .bits import is_bit_set, require_length, unpack_uint16l
from .locators import (
    BMCChannelInfo,
    DeviceRelativeEntityAssociation,
    EntityAssociation,
    EntityRef,
    FRUDeviceLocator,
    GenericLocator,
    MCConfirmation,
    MCDeviceLocator,
    OEMRecord,
    parse_bmc_channel_info,
    parse_device_relative_association,
    parse_entity_association,
    parse_fru_locator,
    parse_generic_locator,
    parse_mc_confirmation,
    parse_mc_locator,
    parse_oem_record,
)
from .mask import Mask, SensorClass, SensorEvents, ThresholdType
from .reading import (
    Linearization,
    ReadingFactors,
    SensorUnit,
    convert_reading,
    convert_sensor_hysteresis,
    convert_sensor_tolerance,
    hysteresis_specified,
    parse_reading_factors,
    reading_max_specified,
    reading_min_specified,
)
from .tables import event_reading_type_name, sensor_type_name
from .typelength import TypeLengthField, read_id_string

SDR_HEADER_SIZE = 5
FULL_SENSOR_MIN_SIZE = 48
COMPACT_SENSOR_MIN_SIZE = 32
EVENT_ONLY_MIN_SIZE = 17

# Last record id in the next-record-id chain
LAST_RECORD_ID = 0xffff


class SDRRecordType(IntEnum):
    """SDR record type codes (IPMI 2.0 section 43)"""
    FULL_SENSOR = 0x01
    COMPACT_SENSOR = 0x02
    EVENT_ONLY = 0x03
    ENTITY_ASSOCIATION = 0x08
    DEVICE_RELATIVE_ENTITY_ASSOCIATION = 0x09
    GENERIC_LOCATOR = 0x10
    FRU_DEVICE_LOCATOR = 0x11
    MC_DEVICE_LOCATOR = 0x12
    MC_CONFIRMATION = 0x13
    BMC_CHANNEL_INFO = 0x14
    OEM = 0xc0


@dataclass(frozen=True)
class RecordHeader:
    """The 5-byte header shared by all SDR types

    Attributes:
        record_id: Repository record id
        sdr_version: SDR version (0x51 for IPMI 1.5/2.0)
        record_type: Record type byte
        record_length: Number of body bytes following the header
    """
    record_id: int
    sdr_version: int
    record_type: int
    record_length: int

    @classmethod
    def parse(cls, data: bytes) -> "RecordHeader":
        require_length(data, SDR_HEADER_SIZE, "sdr header")
        return cls(unpack_uint16l(data, 0), data[2], data[3], data[4])

    @property
    def total_length(self) -> int:
        return SDR_HEADER_SIZE + self.record_length


class HysteresisAccess(IntEnum):
    NONE = 0
    READABLE = 1
    READABLE_SETTABLE = 2
    FIXED = 3


class ThresholdAccess(IntEnum):
    NONE = 0
    READABLE = 1
    READABLE_SETTABLE = 2
    FIXED = 3


class EventMessageControl(IntEnum):
    PER_THRESHOLD = 0
    ENTIRE_SENSOR = 1
    GLOBAL_ONLY = 2
    NONE = 3


@dataclass(frozen=True)
class SensorInitialization:
    """Sensor initialization byte (Full/Compact byte 10)"""
    settable: bool
    init_scanning: bool
    init_events: bool
    init_thresholds: bool
    init_hysteresis: bool
    init_sensor_type: bool
    event_generation_enabled: bool
    scanning_enabled: bool

    @classmethod
    def parse(cls, value: int) -> "SensorInitialization":
        return cls(*(is_bit_set(value, bit) for bit in range(7, -1, -1)))


@dataclass(frozen=True)
class SensorCapabilities:
    """Sensor capabilities byte (Full/Compact byte 11)"""
    ignore_if_no_entity: bool
    auto_rearm: bool
    hysteresis_access: HysteresisAccess
    threshold_access: ThresholdAccess
    event_message_control: EventMessageControl

    @classmethod
    def parse(cls, value: int) -> "SensorCapabilities":
        return cls(
            ignore_if_no_entity=is_bit_set(value, 7),
            auto_rearm=is_bit_set(value, 6),
            hysteresis_access=HysteresisAccess((value >> 4) & 0x03),
            threshold_access=ThresholdAccess((value >> 2) & 0x03),
            event_message_control=EventMessageControl(value & 0x03),
        )


class _SensorRecord:
    """Accessors shared by Full, Compact and Event-Only records"""

    @property
    def name(self) -> str:
        return self.id_string.text

    @property
    def sensor_type_name(self) -> str:
        return sensor_type_name(self.sensor_type)

    @property
    def event_reading_type_name(self) -> str:
        return event_reading_type_name(self.event_reading_type)

    @property
    def sensor_class(self) -> SensorClass:
        return SensorClass.from_event_reading_type(self.event_reading_type)

    @property
    def is_threshold(self) -> bool:
        return self.sensor_class == SensorClass.THRESHOLD


@dataclass(frozen=True)
class FullSensor(_SensorRecord):
    """Full Sensor record (type 0x01)

    Raw threshold and limit bytes are kept as read; the helpers convert them
    with the record's own calibration and return None where the record says
    the value is unspecified.
    """
    generator_id: int
    sensor_number: int
    entity: EntityRef
    initialization: SensorInitialization
    capabilities: SensorCapabilities
    sensor_type: int
    event_reading_type: int
    mask: Mask
    unit: SensorUnit
    linearization: int
    factors: ReadingFactors
    normal_min_specified: bool
    normal_max_specified: bool
    nominal_specified: bool
    nominal_raw: int
    normal_max_raw: int
    normal_min_raw: int
    sensor_max_raw: int
    sensor_min_raw: int
    unr_raw: int
    ucr_raw: int
    unc_raw: int
    lnr_raw: int
    lcr_raw: int
    lnc_raw: int
    positive_hysteresis_raw: int
    negative_hysteresis_raw: int
    id_string: TypeLengthField

    @property
    def has_analog_reading(self) -> bool:
        return self.unit.is_analog

    @property
    def is_non_linear(self) -> bool:
        """Reading factors must be fetched per sample (linearization 0x70-0x7F)."""
        return Linearization.is_non_linear(self.linearization)

    def convert_reading(self, raw: int, factors: Optional[ReadingFactors] = None) -> float:
        """Convert a raw reading or threshold.

        Args:
            raw: 8-bit raw value
            factors: Factors from Get Sensor Reading Factors, required for
                non-linear sensors; the record's own factors otherwise

        Returns:
            The converted value, or float(raw) for non-analog sensors
        """
        if not self.has_analog_reading:
            return float(raw)
        return convert_reading(raw, self.unit.analog_format, factors or self.factors, self.linearization)

    def convert_hysteresis(self, raw: int) -> float:
        if not self.has_analog_reading:
            return float(raw)
        return convert_sensor_hysteresis(raw, self.unit.analog_format, self.factors)

    @property
    def tolerance(self) -> float:
        if not self.has_analog_reading:
            return float(self.factors.tolerance)
        return convert_sensor_tolerance(self.factors.tolerance, self.unit.analog_format, self.factors)

    @property
    def nominal(self) -> Optional[float]:
        return self.convert_reading(self.nominal_raw) if self.nominal_specified else None

    @property
    def normal_max(self) -> Optional[float]:
        return self.convert_reading(self.normal_max_raw) if self.normal_max_specified else None

    @property
    def normal_min(self) -> Optional[float]:
        return self.convert_reading(self.normal_min_raw) if self.normal_min_specified else None

    @property
    def sensor_max(self) -> Optional[float]:
        if not reading_max_specified(self.sensor_max_raw, self.unit.analog_format):
            return None
        value = self.convert_reading(self.sensor_max_raw)
        if self.has_analog_reading and value == 0.0:
            return None
        return value

    @property
    def sensor_min(self) -> Optional[float]:
        if not reading_min_specified(self.sensor_min_raw, self.unit.analog_format):
            return None
        value = self.convert_reading(self.sensor_min_raw)
        if self.has_analog_reading and value == 0.0:
            return None
        return value

    def threshold_raw(self, threshold: ThresholdType) -> int:
        return getattr(self, f"{threshold.value}_raw")

    def threshold(self, threshold: ThresholdType) -> Optional[float]:
        """Converted threshold value, None when the threshold is not readable."""
        if threshold not in self.mask.readable_thresholds():
            return None
        return self.convert_reading(self.threshold_raw(threshold))

    @property
    def thresholds(self) -> Dict[ThresholdType, float]:
        """All readable thresholds, converted."""
        return {t: self.convert_reading(self.threshold_raw(t)) for t in self.mask.readable_thresholds()}

    @property
    def positive_hysteresis(self) -> Optional[float]:
        if not hysteresis_specified(self.positive_hysteresis_raw):
            return None
        return self.convert_hysteresis(self.positive_hysteresis_raw)

    @property
    def negative_hysteresis(self) -> Optional[float]:
        if not hysteresis_specified(self.negative_hysteresis_raw):
            return None
        return self.convert_hysteresis(self.negative_hysteresis_raw)

    def supported_events(self) -> SensorEvents:
        return self.mask.supported_events(self.sensor_class)


def _mask_from(data: bytes) -> Mask:
    return Mask.from_words(unpack_uint16l(data, 14), unpack_uint16l(data, 16), unpack_uint16l(data, 18))


def parse_full_sensor(data: bytes) -> FullSensor:
    """Decode a Full Sensor record.

    Raises:
        InsufficientData: If the record is shorter than 48 bytes plus the
            declared ID string length
    """
    what = "sdr (full sensor)"
    require_length(data, FULL_SENSOR_MIN_SIZE, what)
    flags = data[30]
    return FullSensor(
        generator_id=unpack_uint16l(data, 5),
        sensor_number=data[7],
        entity=EntityRef.parse(data[8], data[9]),
        initialization=SensorInitialization.parse(data[10]),
        capabilities=SensorCapabilities.parse(data[11]),
        sensor_type=data[12],
        event_reading_type=data[13],
        mask=_mask_from(data),
        unit=SensorUnit.parse(data[20], data[21], data[22]),
        linearization=data[23] & 0x7f,
        factors=parse_reading_factors(data[24:30]),
        normal_min_specified=is_bit_set(flags, 2),
        normal_max_specified=is_bit_set(flags, 1),
        nominal_specified=is_bit_set(flags, 0),
        nominal_raw=data[31],
        normal_max_raw=data[32],
        normal_min_raw=data[33],
        sensor_max_raw=data[34],
        sensor_min_raw=data[35],
        unr_raw=data[36],
        ucr_raw=data[37],
        unc_raw=data[38],
        lnr_raw=data[39],
        lcr_raw=data[40],
        lnc_raw=data[41],
        positive_hysteresis_raw=data[42],
        negative_hysteresis_raw=data[43],
        id_string=read_id_string(data, 47, FULL_SENSOR_MIN_SIZE, what),
    )


class IDStringModifier(IntEnum):
    """ID string instance modifier type for shared records"""
    NUMERIC = 0
    ALPHA = 1


@dataclass(frozen=True)
class RecordSharing:
    """Sensor sharing fields of Compact and Event-Only records

    A shared record stands for ``share_count`` sensors with consecutive
    numbers; each gets the ID string plus a modifier suffix.
    """
    direction: int
    modifier_type: int
    share_count: int
    entity_instance_increments: bool
    modifier_offset: int

    @classmethod
    def parse(cls, first: int, second: int) -> "RecordSharing":
        return cls(
            direction=(first >> 6) & 0x03,
            modifier_type=(first >> 4) & 0x03,
            share_count=first & 0x0f,
            entity_instance_increments=is_bit_set(second, 7),
            modifier_offset=second & 0x7f,
        )

    def suffix(self, index: int) -> str:
        """ID string suffix for the ``index``-th shared sensor (0 based)."""
        n = self.modifier_offset + index
        if self.modifier_type == IDStringModifier.ALPHA:
            # A..Z, AA..ZZ
            if n < 26:
                return chr(ord("A") + n)
            return chr(ord("A") + n // 26 - 1) + chr(ord("A") + n % 26)
        return str(n)


@dataclass(frozen=True)
class CompactSensor(_SensorRecord):
    """Compact Sensor record (type 0x02)"""
    generator_id: int
    sensor_number: int
    entity: EntityRef
    initialization: SensorInitialization
    capabilities: SensorCapabilities
    sensor_type: int
    event_reading_type: int
    mask: Mask
    unit: SensorUnit
    sharing: RecordSharing
    positive_hysteresis_raw: int
    negative_hysteresis_raw: int
    id_string: TypeLengthField

    @property
    def sensor_direction(self) -> int:
        return self.sharing.direction

    def shared_names(self):
        """Names of every sensor the record stands for."""
        count = max(self.sharing.share_count, 1)
        if count == 1:
            return [self.name]
        return [self.name + self.sharing.suffix(i) for i in range(count)]

    def supported_events(self) -> SensorEvents:
        return self.mask.supported_events(self.sensor_class)


def parse_compact_sensor(data: bytes) -> CompactSensor:
    what = "sdr (compact sensor)"
    require_length(data, COMPACT_SENSOR_MIN_SIZE, what)
    return CompactSensor(
        generator_id=unpack_uint16l(data, 5),
        sensor_number=data[7],
        entity=EntityRef.parse(data[8], data[9]),
        initialization=SensorInitialization.parse(data[10]),
        capabilities=SensorCapabilities.parse(data[11]),
        sensor_type=data[12],
        event_reading_type=data[13],
        mask=_mask_from(data),
        unit=SensorUnit.parse(data[20], data[21], data[22]),
        sharing=RecordSharing.parse(data[23], data[24]),
        positive_hysteresis_raw=data[25],
        negative_hysteresis_raw=data[26],
        id_string=read_id_string(data, 31, COMPACT_SENSOR_MIN_SIZE, what),
    )


@dataclass(frozen=True)
class EventOnly(_SensorRecord):
    """Event-Only Sensor record (type 0x03)"""
    generator_id: int
    sensor_number: int
    entity: EntityRef
    sensor_type: int
    event_reading_type: int
    sharing: RecordSharing
    id_string: TypeLengthField


def parse_event_only(data: bytes) -> EventOnly:
    what = "sdr (event-only)"
    require_length(data, EVENT_ONLY_MIN_SIZE, what)
    return EventOnly(
        generator_id=unpack_uint16l(data, 5),
        sensor_number=data[7],
        entity=EntityRef.parse(data[8], data[9]),
        sensor_type=data[10],
        event_reading_type=data[11],
        sharing=RecordSharing.parse(data[12], data[13]),
        id_string=read_id_string(data, 16, EVENT_ONLY_MIN_SIZE, what),
    )


@dataclass(frozen=True)
class UnknownRecord:
    """Body of a record whose type has no decoder"""
    record_type: int
    body: bytes


RecordBody = Union[
    FullSensor, CompactSensor, EventOnly, EntityAssociation,
    DeviceRelativeEntityAssociation, GenericLocator, FRUDeviceLocator,
    MCDeviceLocator, MCConfirmation, BMCChannelInfo, OEMRecord, UnknownRecord,
]

RECORD_PARSERS: Dict[int, Callable[[bytes], RecordBody]] = {
    SDRRecordType.FULL_SENSOR: parse_full_sensor,
    SDRRecordType.COMPACT_SENSOR: parse_compact_sensor,
    SDRRecordType.EVENT_ONLY: parse_event_only,
    SDRRecordType.ENTITY_ASSOCIATION: parse_entity_association,
    SDRRecordType.DEVICE_RELATIVE_ENTITY_ASSOCIATION: parse_device_relative_association,
    SDRRecordType.GENERIC_LOCATOR: parse_generic_locator,
    SDRRecordType.FRU_DEVICE_LOCATOR: parse_fru_locator,
    SDRRecordType.MC_DEVICE_LOCATOR: parse_mc_locator,
    SDRRecordType.MC_CONFIRMATION: parse_mc_confirmation,
    SDRRecordType.BMC_CHANNEL_INFO: parse_bmc_channel_info,
    SDRRecordType.OEM: parse_oem_record,
}


@dataclass(frozen=True)
class SDR:
    """One decoded SDR

    Attributes:
        header: Record header
        record: The typed record body, exactly one per record type
        next_record_id: Next id in the repository chain (0xFFFF = last)
        raw: The raw record bytes, header included
    """
    header: RecordHeader
    record: RecordBody
    next_record_id: int = LAST_RECORD_ID
    raw: bytes = b""

    @property
    def record_id(self) -> int:
        return self.header.record_id

    @property
    def record_type(self) -> int:
        return self.header.record_type

    @property
    def is_sensor(self) -> bool:
        return isinstance(self.record, (FullSensor, CompactSensor))

    @property
    def name(self) -> str:
        """ID string of sensor and locator records, empty otherwise."""
        return getattr(self.record, "name", "")

    def __str__(self) -> str:
        try:
            type_name = SDRRecordType(self.record_type).name
        except ValueError:
            type_name = f"reserved ({self.record_type:#04x})"
        return f"SDR {self.record_id:#06x} {type_name} {self.name}".rstrip()


def parse_sdr(data: bytes, next_record_id: int = LAST_RECORD_ID) -> SDR:
    """Decode one SDR record, header included.

    Args:
        data: Raw record bytes as read from the repository
        next_record_id: Next record id returned by Get SDR alongside the record

    Returns:
        SDR with the record body matching the header's record type

    Raises:
        InsufficientData: If the buffer is shorter than the header, the
            record type's fixed size, or fixed size plus ID string length

    Examples:
        >>> sdr = parse_sdr(bytes([0x01, 0x00, 0x51, 0x08, 0x0b]) + bytes(11))
        >>> type(sdr.record).__name__
        'EntityAssociation'
    """
    data = bytes(data)
    header = RecordHeader.parse(data)
    parser = RECORD_PARSERS.get(header.record_type)
    if parser is None:
        record = UnknownRecord(header.record_type, data[SDR_HEADER_SIZE:])
    else:
        record = parser(data)
    return SDR(header=header, record=record, next_record_id=next_record_id, raw=data)

