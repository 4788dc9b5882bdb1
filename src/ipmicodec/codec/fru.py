"""
FRU Inventory Parser

Decodes the IPMI Platform Management FRU Information Storage Definition:
the 8-byte common header, the internal use, chassis, board and product info
areas, and the MultiRecord list.

Area offsets and lengths are stored in multiples of 8 bytes. Each info area
ends with a checksum byte chosen so that all area bytes sum to zero modulo
256; MultiRecords carry one checksum for the header and one for the data.
Checksums are reported as booleans and never raise, so inventory from
non-conformant hardware can still be read.

Example Usage:
    fru = parse_fru(fru_bytes)
    if fru.board is not None and fru.board.checksum_valid:
        print(fru.board.manufacturer, fru.board.manufactured_at)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .bits import ByteReader, require_length, unpack_uint16l
from .errors import InsufficientData
from .tables import chassis_type_name, multirecord_type_name
from .typelength import END_OF_FIELDS, TypeLengthField, read_field

COMMON_HEADER_SIZE = 8
MULTIRECORD_HEADER_SIZE = 5
AREA_UNIT = 8

# Board manufacturing date counts minutes from this instant
BOARD_DATE_EPOCH = datetime(1996, 1, 1, tzinfo=timezone.utc)

MULTIRECORD_POWER_SUPPLY = 0x00
MULTIRECORD_DC_OUTPUT = 0x01


def zero_checksum(data: bytes) -> int:
    """Checksum byte that makes ``data`` plus the checksum sum to zero."""
    return (-sum(data)) & 0xff


def area_checksum_valid(data: bytes) -> bool:
    """True when the bytes, trailing checksum included, sum to 0 mod 256."""
    return sum(data) % 256 == 0


@dataclass(frozen=True)
class FRUCommonHeader:
    """FRU common header

    Offsets are kept as stored (units of 8 bytes, 0 = area absent); the
    ``*_start`` properties give byte offsets.
    """
    format_version: int
    internal_use_offset: int
    chassis_offset: int
    board_offset: int
    product_offset: int
    multirecord_offset: int
    pad: int
    checksum: int

    @classmethod
    def parse(cls, data: bytes) -> "FRUCommonHeader":
        require_length(data, COMMON_HEADER_SIZE, "fru common header")
        return cls(*data[:COMMON_HEADER_SIZE])

    def pack(self) -> bytes:
        return bytes([
            self.format_version, self.internal_use_offset, self.chassis_offset,
            self.board_offset, self.product_offset, self.multirecord_offset,
            self.pad, self.checksum,
        ])

    def valid(self) -> bool:
        """Header bytes, checksum included, sum to zero modulo 256.

        Example:
            >>> FRUCommonHeader.parse(bytes([0x01, 0, 0x01, 0x03, 0x07, 0, 0, 0xF4])).valid()
            True
        """
        return area_checksum_valid(self.pack())

    @property
    def internal_use_start(self) -> int:
        return self.internal_use_offset * AREA_UNIT

    @property
    def chassis_start(self) -> int:
        return self.chassis_offset * AREA_UNIT

    @property
    def board_start(self) -> int:
        return self.board_offset * AREA_UNIT

    @property
    def product_start(self) -> int:
        return self.product_offset * AREA_UNIT

    @property
    def multirecord_start(self) -> int:
        return self.multirecord_offset * AREA_UNIT

    def area_starts(self) -> List[int]:
        """Byte offsets of all present areas, ascending."""
        return sorted(
            start for start in (
                self.internal_use_start, self.chassis_start, self.board_start,
                self.product_start, self.multirecord_start,
            ) if start
        )


def _area_reader(data: bytes, what: str) -> ByteReader:
    # version byte, length byte (8-byte units), ..., checksum
    require_length(data, 2, what)
    length = data[1] * AREA_UNIT
    if length < 2:
        raise InsufficientData(what, length, 2)
    require_length(data, length, what)
    return ByteReader(data, offset=2, end=length - 1, what=what)


def _read_fixed_fields(reader: ByteReader, count: int) -> List[Optional[TypeLengthField]]:
    # Some writers end the area before all fixed fields are present
    fields: List[Optional[TypeLengthField]] = []
    for _ in range(count):
        if reader.remaining <= 0 or reader.peek() == END_OF_FIELDS:
            fields.append(None)
            continue
        fields.append(read_field(reader))
    return fields


def _read_custom_fields(reader: ByteReader) -> List[TypeLengthField]:
    fields = []
    while reader.remaining > 0:
        if reader.peek() == END_OF_FIELDS:
            break
        custom = read_field(reader)
        if custom.type_length.length == 0:
            break
        fields.append(custom)
    return fields


def _text(value: Optional[TypeLengthField]) -> str:
    return value.text if value is not None else ""


@dataclass(frozen=True)
class FRUInternalUseArea:
    format_version: int
    data: bytes


def parse_internal_use_area(data: bytes) -> FRUInternalUseArea:
    """Internal use area: a version byte and opaque data to the next area."""
    require_length(data, 1, "fru internal use area")
    return FRUInternalUseArea(data[0], bytes(data[1:]))


@dataclass(frozen=True)
class FRUChassisInfoArea:
    """Chassis Info Area"""
    format_version: int
    length: int
    chassis_type: int
    part_number: Optional[TypeLengthField]
    serial_number: Optional[TypeLengthField]
    custom: List[TypeLengthField]
    checksum: int
    checksum_valid: bool

    @property
    def chassis_type_name(self) -> str:
        return chassis_type_name(self.chassis_type)

    def fields(self) -> Dict[str, str]:
        return {
            "Chassis Type": self.chassis_type_name,
            "Chassis Part Number": _text(self.part_number),
            "Chassis Serial": _text(self.serial_number),
        }


def parse_chassis_area(data: bytes) -> FRUChassisInfoArea:
    """Decode a Chassis Info Area starting at ``data[0]``.

    Raises:
        InsufficientData: If the declared length exceeds the buffer or a
            field runs past the area
    """
    what = "fru chassis info area"
    reader = _area_reader(data, what)
    length = data[1] * AREA_UNIT
    chassis_type = reader.uint8()
    part_number, serial_number = _read_fixed_fields(reader, 2)
    return FRUChassisInfoArea(
        format_version=data[0] & 0x0f,
        length=length,
        chassis_type=chassis_type,
        part_number=part_number,
        serial_number=serial_number,
        custom=_read_custom_fields(reader),
        checksum=data[length - 1],
        checksum_valid=area_checksum_valid(data[:length]),
    )


@dataclass(frozen=True)
class FRUBoardInfoArea:
    """Board Info Area

    Attributes:
        manufacturing_minutes: Minutes since 1996-01-01 00:00 UTC, 0 if unspecified
    """
    format_version: int
    length: int
    language_code: int
    manufacturing_minutes: int
    manufacturer: Optional[TypeLengthField]
    product_name: Optional[TypeLengthField]
    serial_number: Optional[TypeLengthField]
    part_number: Optional[TypeLengthField]
    fru_file_id: Optional[TypeLengthField]
    custom: List[TypeLengthField]
    checksum: int
    checksum_valid: bool

    @property
    def manufactured_at(self) -> Optional[datetime]:
        if self.manufacturing_minutes == 0:
            return None
        return BOARD_DATE_EPOCH + timedelta(minutes=self.manufacturing_minutes)

    def fields(self) -> Dict[str, str]:
        manufactured_at = self.manufactured_at
        return {
            "Board Mfg Date": manufactured_at.strftime("%Y-%m-%d %H:%M") if manufactured_at else "unspecified",
            "Board Mfg": _text(self.manufacturer),
            "Board Product": _text(self.product_name),
            "Board Serial": _text(self.serial_number),
            "Board Part Number": _text(self.part_number),
        }


def parse_board_area(data: bytes) -> FRUBoardInfoArea:
    what = "fru board info area"
    reader = _area_reader(data, what)
    length = data[1] * AREA_UNIT
    language_code = reader.uint8()
    minutes = reader.uint24l()
    manufacturer, product_name, serial_number, part_number, fru_file_id = _read_fixed_fields(reader, 5)
    return FRUBoardInfoArea(
        format_version=data[0] & 0x0f,
        length=length,
        language_code=language_code,
        manufacturing_minutes=minutes,
        manufacturer=manufacturer,
        product_name=product_name,
        serial_number=serial_number,
        part_number=part_number,
        fru_file_id=fru_file_id,
        custom=_read_custom_fields(reader),
        checksum=data[length - 1],
        checksum_valid=area_checksum_valid(data[:length]),
    )


@dataclass(frozen=True)
class FRUProductInfoArea:
    """Product Info Area"""
    format_version: int
    length: int
    language_code: int
    manufacturer: Optional[TypeLengthField]
    name: Optional[TypeLengthField]
    part_number: Optional[TypeLengthField]
    version: Optional[TypeLengthField]
    serial_number: Optional[TypeLengthField]
    asset_tag: Optional[TypeLengthField]
    fru_file_id: Optional[TypeLengthField]
    custom: List[TypeLengthField]
    checksum: int
    checksum_valid: bool

    def fields(self) -> Dict[str, str]:
        return {
            "Product Manufacturer": _text(self.manufacturer),
            "Product Name": _text(self.name),
            "Product Part Number": _text(self.part_number),
            "Product Version": _text(self.version),
            "Product Serial": _text(self.serial_number),
            "Product Asset Tag": _text(self.asset_tag),
        }


def parse_product_area(data: bytes) -> FRUProductInfoArea:
    what = "fru product info area"
    reader = _area_reader(data, what)
    length = data[1] * AREA_UNIT
    language_code = reader.uint8()
    (manufacturer, name, part_number, version,
     serial_number, asset_tag, fru_file_id) = _read_fixed_fields(reader, 7)
    return FRUProductInfoArea(
        format_version=data[0] & 0x0f,
        length=length,
        language_code=language_code,
        manufacturer=manufacturer,
        name=name,
        part_number=part_number,
        version=version,
        serial_number=serial_number,
        asset_tag=asset_tag,
        fru_file_id=fru_file_id,
        custom=_read_custom_fields(reader),
        checksum=data[length - 1],
        checksum_valid=area_checksum_valid(data[:length]),
    )


@dataclass(frozen=True)
class PowerSupplyRecord:
    """Power Supply Information MultiRecord (type 0x00)

    Voltages are in 10 mV units, currents in amps and frequencies in Hz.
    """
    overall_capacity: int
    peak_va: int
    inrush_current: int
    inrush_interval_ms: int
    low_input_voltage_1: int
    high_input_voltage_1: int
    low_input_voltage_2: int
    high_input_voltage_2: int
    low_input_frequency: int
    high_input_frequency: int
    input_dropout_tolerance_ms: int
    tachometer_pulses: bool
    hot_swap: bool
    autoswitch: bool
    power_factor_correction: bool
    predictive_fail_support: bool
    peak_holdup_seconds: int
    peak_capacity: int
    combined_voltage_1: int
    combined_voltage_2: int
    total_combined_wattage: int
    predictive_fail_tach_threshold: int

    @classmethod
    def parse(cls, data: bytes) -> "PowerSupplyRecord":
        require_length(data, 24, "fru power supply record")
        flags = data[17]
        peak = unpack_uint16l(data, 18)
        return cls(
            overall_capacity=unpack_uint16l(data, 0) & 0x0fff,
            peak_va=unpack_uint16l(data, 2),
            inrush_current=data[4],
            inrush_interval_ms=data[5],
            low_input_voltage_1=unpack_uint16l(data, 6),
            high_input_voltage_1=unpack_uint16l(data, 8),
            low_input_voltage_2=unpack_uint16l(data, 10),
            high_input_voltage_2=unpack_uint16l(data, 12),
            low_input_frequency=data[14],
            high_input_frequency=data[15],
            input_dropout_tolerance_ms=data[16],
            tachometer_pulses=bool(flags & 0x10),
            hot_swap=bool(flags & 0x08),
            autoswitch=bool(flags & 0x04),
            power_factor_correction=bool(flags & 0x02),
            predictive_fail_support=bool(flags & 0x01),
            peak_holdup_seconds=peak >> 12,
            peak_capacity=peak & 0x0fff,
            combined_voltage_1=data[20] >> 4,
            combined_voltage_2=data[20] & 0x0f,
            total_combined_wattage=unpack_uint16l(data, 21),
            predictive_fail_tach_threshold=data[23],
        )


def _signed16(value: int) -> int:
    return value - 0x10000 if value & 0x8000 else value


@dataclass(frozen=True)
class DCOutputRecord:
    """DC Output MultiRecord (type 0x01), voltages in 10 mV, currents in mA"""
    standby: bool
    output_number: int
    nominal_voltage: int
    max_negative_deviation: int
    max_positive_deviation: int
    ripple_noise_mv: int
    min_current_ma: int
    max_current_ma: int

    @classmethod
    def parse(cls, data: bytes) -> "DCOutputRecord":
        require_length(data, 13, "fru dc output record")
        return cls(
            standby=bool(data[0] & 0x80),
            output_number=data[0] & 0x0f,
            nominal_voltage=_signed16(unpack_uint16l(data, 1)),
            max_negative_deviation=_signed16(unpack_uint16l(data, 3)),
            max_positive_deviation=_signed16(unpack_uint16l(data, 5)),
            ripple_noise_mv=unpack_uint16l(data, 7),
            min_current_ma=unpack_uint16l(data, 9),
            max_current_ma=unpack_uint16l(data, 11),
        )

    @property
    def nominal_volts(self) -> float:
        return self.nominal_voltage / 100.0


@dataclass(frozen=True)
class FRUMultiRecord:
    """One MultiRecord: header fields, raw data and the decoded payload"""
    record_type: int
    end_of_list: bool
    format_version: int
    length: int
    record_checksum: int
    header_checksum: int
    data: bytes
    checksum_valid: bool
    header_checksum_valid: bool
    payload: Optional[object] = None

    @property
    def type_name(self) -> str:
        return multirecord_type_name(self.record_type)


# record type: (minimum payload size, decoder)
MULTIRECORD_DECODERS = {
    MULTIRECORD_POWER_SUPPLY: (24, PowerSupplyRecord.parse),
    MULTIRECORD_DC_OUTPUT: (13, DCOutputRecord.parse),
}


def parse_multirecord(data: bytes, offset: int = 0) -> FRUMultiRecord:
    what = "fru multirecord"
    require_length(data, offset + MULTIRECORD_HEADER_SIZE, what)
    header = data[offset:offset + MULTIRECORD_HEADER_SIZE]
    length = header[2]
    require_length(data, offset + MULTIRECORD_HEADER_SIZE + length, what)
    start = offset + MULTIRECORD_HEADER_SIZE
    body = bytes(data[start:start + length])
    checksum_valid = (sum(body) + header[3]) % 256 == 0

    # Short or corrupt records keep their raw data only
    payload = None
    decoder = MULTIRECORD_DECODERS.get(header[0])
    if decoder is not None and checksum_valid and length >= decoder[0]:
        payload = decoder[1](body)

    return FRUMultiRecord(
        record_type=header[0],
        end_of_list=bool(header[1] & 0x80),
        format_version=header[1] & 0x0f,
        length=length,
        record_checksum=header[3],
        header_checksum=header[4],
        data=body,
        checksum_valid=checksum_valid,
        header_checksum_valid=area_checksum_valid(header),
        payload=payload,
    )


def parse_multirecords(data: bytes, offset: int = 0) -> List[FRUMultiRecord]:
    """Walk the MultiRecord list until the end-of-list flag.

    Raises:
        InsufficientData: If a record runs past the buffer before the end
            of the list
    """
    records = []
    while True:
        record = parse_multirecord(data, offset)
        records.append(record)
        if record.end_of_list:
            return records
        offset += MULTIRECORD_HEADER_SIZE + record.length


@dataclass(frozen=True)
class FRU:
    """A decoded FRU inventory device"""
    header: FRUCommonHeader
    internal_use: Optional[FRUInternalUseArea] = None
    chassis: Optional[FRUChassisInfoArea] = None
    board: Optional[FRUBoardInfoArea] = None
    product: Optional[FRUProductInfoArea] = None
    multirecords: List[FRUMultiRecord] = field(default_factory=list)

    @property
    def checksums_valid(self) -> bool:
        """Header, every info area and every MultiRecord checksum hold."""
        if not self.header.valid():
            return False
        for area in (self.chassis, self.board, self.product):
            if area is not None and not area.checksum_valid:
                return False
        return all(r.checksum_valid and r.header_checksum_valid for r in self.multirecords)

    def fields(self) -> Dict[str, str]:
        """Printable inventory fields of all present info areas."""
        result: Dict[str, str] = {}
        for area in (self.chassis, self.board, self.product):
            if area is not None:
                result.update(area.fields())
        return result


def parse_fru(data: bytes) -> FRU:
    """Decode a complete FRU inventory image.

    Args:
        data: FRU data from offset 0, as read with Read FRU Data

    Returns:
        FRU with an entry for every area the common header points at

    Raises:
        InsufficientData: If the header or any area is truncated
    """
    data = bytes(data)
    header = FRUCommonHeader.parse(data)
    starts = header.area_starts()

    internal_use = None
    if header.internal_use_start:
        start = header.internal_use_start
        following = [s for s in starts if s > start]
        end = following[0] if following else len(data)
        require_length(data, end, "fru internal use area")
        internal_use = parse_internal_use_area(data[start:end])

    chassis = parse_chassis_area(data[header.chassis_start:]) if header.chassis_start else None
    board = parse_board_area(data[header.board_start:]) if header.board_start else None
    product = parse_product_area(data[header.product_start:]) if header.product_start else None
    multirecords = parse_multirecords(data, header.multirecord_start) if header.multirecord_start else []

    return FRU(
        header=header,
        internal_use=internal_use,
        chassis=chassis,
        board=board,
        product=product,
        multirecords=multirecords,
    )
