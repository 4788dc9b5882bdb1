"""
Tests for the FRU inventory parser
"""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from ipmicodec.codec.errors import InsufficientData
from ipmicodec.codec.fru import (
    DCOutputRecord,
    FRUCommonHeader,
    PowerSupplyRecord,
    area_checksum_valid,
    parse_fru,
    parse_multirecord,
    zero_checksum,
)
from ipmicodec.codec.typelength import TypeCode, TypeLength

# Test Data
POWER_SUPPLY_PAYLOAD = bytes([
    0xf4, 0x01,              # overall capacity 500 W
    0x58, 0x02,              # peak VA 600
    0x20, 0x05,              # inrush current, interval
    0x28, 0x23, 0x20, 0x67,  # input range 1: 90 V - 264 V
    0x00, 0x00, 0x00, 0x00,  # input range 2 unused
    47, 63,                  # input frequency
    20,                      # dropout tolerance
    0x0a,                    # hot swap, power factor correction
    0x26, 0x22,              # peak capacity 550 W, 2 s holdup
    0x12,                    # combined voltages
    0x90, 0x01,              # total combined wattage 400 W
    0x00,
])

DC_OUTPUT_PAYLOAD = bytes([
    0x81,                    # standby, output 1
    0xb0, 0x04,              # 12.00 V
    0xce, 0xff,              # -0.50 V
    0x32, 0x00,              # +0.50 V
    0x64, 0x00,              # 100 mV ripple
    0x00, 0x00,
    0x20, 0x4e,              # 20 A
])


def tl(text: str) -> bytes:
    return TypeLength.encode(text, TypeCode.ASCII_8BIT)


def info_area(payload: bytes) -> bytes:
    """Wrap area fields with version, length, end mark, padding and checksum"""
    body = payload + b"\xc1"
    body += bytes(-(len(body) + 3) % 8)
    body = bytes([0x01, (len(body) + 3) // 8]) + body
    return body + bytes([zero_checksum(body)])


def multirecord(record_type: int, payload: bytes, last: bool = False) -> bytes:
    header = bytes([record_type, 0x82 if last else 0x02, len(payload), zero_checksum(payload)])
    return header + bytes([zero_checksum(header)]) + payload


def chassis_area(custom: Optional[List[bytes]] = None) -> bytes:
    fields = tl("CH-PN") + tl("CH-SN") + b"".join(custom if custom is not None else [tl("Extra")])
    return info_area(bytes([0x17]) + fields)


def board_area(fields: Optional[bytes] = None) -> bytes:
    if fields is None:
        fields = tl("Acme") + tl("Mainboard") + tl("SN123") + tl("PN456") + bytes([0x00])
    return info_area(bytes([0x19, 0xa0, 0x05, 0x00]) + fields)


def product_area() -> bytes:
    fields = (tl("Acme") + tl("Server") + tl("P-100") + tl("v2") +
              tl("PSN789") + tl("ASSET1") + bytes([0x00]))
    return info_area(bytes([0x19]) + fields)


def fru_image(internal: Optional[bytes] = None, chassis: Optional[bytes] = None,
              board: Optional[bytes] = None, product: Optional[bytes] = None,
              multirecords: Optional[bytes] = None) -> bytes:
    offsets = []
    data = b""
    for area in (internal, chassis, board, product, multirecords):
        if area is None:
            offsets.append(0)
            continue
        offsets.append((8 + len(data)) // 8)
        data += area
    header = bytes([0x01] + offsets + [0x00])
    return header + bytes([zero_checksum(header)]) + data


@pytest.fixture
def full_image() -> bytes:
    records = multirecord(0x00, POWER_SUPPLY_PAYLOAD) + multirecord(0x01, DC_OUTPUT_PAYLOAD, last=True)
    return fru_image(
        internal=bytes([0x01, 0xaa, 0xbb, 0xcc, 0xdd, 0xee, 0xff, 0x00]),
        chassis=chassis_area(),
        board=board_area(),
        product=product_area(),
        multirecords=records,
    )


class TestChecksums:
    """Test zero checksums"""

    def test_zero_checksum(self):
        data = bytes([0x01, 0x02, 0x03])
        assert zero_checksum(data) == 0xfa
        assert area_checksum_valid(data + bytes([0xfa]))
        assert not area_checksum_valid(data + bytes([0xfb]))

    def test_empty(self):
        assert zero_checksum(b"") == 0


class TestCommonHeader:
    """Test the 8-byte common header"""

    def test_valid_header(self):
        header = FRUCommonHeader.parse(bytes([0x01, 0x00, 0x01, 0x03, 0x07, 0x00, 0x00, 0xf4]))
        assert header.valid()
        assert header.format_version == 0x01
        assert header.chassis_start == 8
        assert header.board_start == 24
        assert header.product_start == 56
        assert header.multirecord_start == 0
        assert header.area_starts() == [8, 24, 56]

    def test_bad_checksum(self):
        header = FRUCommonHeader.parse(bytes([0x01, 0x00, 0x01, 0x03, 0x07, 0x00, 0x00, 0xf5]))
        assert not header.valid()

    def test_pack(self):
        raw = bytes([0x01, 0x00, 0x01, 0x03, 0x07, 0x00, 0x00, 0xf4])
        assert FRUCommonHeader.parse(raw).pack() == raw

    def test_short(self):
        with pytest.raises(InsufficientData):
            FRUCommonHeader.parse(bytes(7))


class TestInfoAreas:
    """Test chassis, board and product info areas"""

    def test_chassis(self, full_image):
        chassis = parse_fru(full_image).chassis
        assert chassis.chassis_type == 0x17
        assert chassis.chassis_type_name == "Rack Mount Chassis"
        assert chassis.part_number.text == "CH-PN"
        assert chassis.serial_number.text == "CH-SN"
        assert [f.text for f in chassis.custom] == ["Extra"]
        assert chassis.length % 8 == 0
        assert chassis.checksum_valid

    def test_board(self, full_image):
        board = parse_fru(full_image).board
        assert board.language_code == 0x19
        assert board.manufacturing_minutes == 1440
        assert board.manufactured_at == datetime(1996, 1, 2, tzinfo=timezone.utc)
        assert board.manufacturer.text == "Acme"
        assert board.product_name.text == "Mainboard"
        assert board.serial_number.text == "SN123"
        assert board.part_number.text == "PN456"
        assert board.fru_file_id.value == b""
        assert board.custom == []
        assert board.checksum_valid

    def test_board_fields(self, full_image):
        fields = parse_fru(full_image).board.fields()
        assert fields["Board Mfg Date"] == "1996-01-02 00:00"
        assert fields["Board Mfg"] == "Acme"
        assert fields["Board Serial"] == "SN123"

    def test_unspecified_date(self):
        board = parse_fru(fru_image(board=info_area(bytes([0x19, 0, 0, 0]) + tl("Acme")))).board
        assert board.manufactured_at is None
        assert board.fields()["Board Mfg Date"] == "unspecified"

    def test_product(self, full_image):
        product = parse_fru(full_image).product
        assert product.manufacturer.text == "Acme"
        assert product.name.text == "Server"
        assert product.part_number.text == "P-100"
        assert product.version.text == "v2"
        assert product.serial_number.text == "PSN789"
        assert product.asset_tag.text == "ASSET1"
        assert product.checksum_valid

    def test_early_end_mark(self):
        """Test fixed fields missing after an early end mark read as None"""
        board = parse_fru(fru_image(board=board_area(tl("Acme")))).board
        assert board.manufacturer.text == "Acme"
        assert board.product_name is None
        assert board.fru_file_id is None
        assert board.custom == []

    def test_zero_length_custom_field_ends_list(self):
        chassis = parse_fru(fru_image(chassis=chassis_area([bytes([0xc0]), tl("XY")]))).chassis
        assert chassis.custom == []

    def test_area_checksum_failure(self):
        image = bytearray(fru_image(board=board_area()))
        image[8 + 7] ^= 0x01
        fru = parse_fru(bytes(image))
        assert not fru.board.checksum_valid
        assert not fru.checksums_valid

    def test_truncated_area(self):
        image = fru_image(board=board_area())
        with pytest.raises(InsufficientData):
            parse_fru(image[:len(image) - 4])

    def test_field_runs_past_area(self):
        area = bytearray(board_area())
        # manufacturer length far past the area end
        area[6] = 0xff
        area[-1] = zero_checksum(bytes(area[:-1]))
        with pytest.raises(InsufficientData):
            parse_fru(fru_image(board=bytes(area)))


class TestMultiRecords:
    """Test the MultiRecord list"""

    def test_records(self, full_image):
        records = parse_fru(full_image).multirecords
        assert [r.record_type for r in records] == [0x00, 0x01]
        assert [r.end_of_list for r in records] == [False, True]
        assert records[0].type_name == "Power Supply"
        assert records[1].type_name == "DC Output"
        assert all(r.checksum_valid and r.header_checksum_valid for r in records)

    def test_power_supply(self, full_image):
        psu = parse_fru(full_image).multirecords[0].payload
        assert isinstance(psu, PowerSupplyRecord)
        assert psu.overall_capacity == 500
        assert psu.peak_va == 600
        assert psu.low_input_voltage_1 == 9000
        assert psu.high_input_voltage_1 == 26400
        assert psu.hot_swap
        assert psu.power_factor_correction
        assert not psu.autoswitch
        assert psu.peak_holdup_seconds == 2
        assert psu.peak_capacity == 550
        assert psu.total_combined_wattage == 400

    def test_dc_output(self, full_image):
        dc = parse_fru(full_image).multirecords[1].payload
        assert isinstance(dc, DCOutputRecord)
        assert dc.standby
        assert dc.output_number == 1
        assert dc.nominal_volts == 12.0
        assert dc.max_negative_deviation == -50
        assert dc.max_positive_deviation == 50
        assert dc.max_current_ma == 20000

    def test_bad_checksum_keeps_raw_data(self):
        raw = bytearray(multirecord(0x00, POWER_SUPPLY_PAYLOAD, last=True))
        raw[3] ^= 0x01
        record = parse_multirecord(bytes(raw))
        assert not record.checksum_valid
        assert record.payload is None
        assert record.data == POWER_SUPPLY_PAYLOAD

    def test_short_payload_not_decoded(self):
        record = parse_multirecord(multirecord(0x00, bytes(10), last=True))
        assert record.checksum_valid
        assert record.payload is None

    def test_unknown_type(self):
        record = parse_multirecord(multirecord(0xc0, b"\x01\x02", last=True))
        assert record.type_name == "OEM"
        assert record.payload is None

    def test_list_without_end(self):
        image = fru_image(multirecords=multirecord(0x01, DC_OUTPUT_PAYLOAD))
        with pytest.raises(InsufficientData):
            parse_fru(image)


class TestFRU:
    """Test complete inventory images"""

    def test_all_areas(self, full_image):
        fru = parse_fru(full_image)
        assert fru.header.valid()
        assert fru.internal_use.format_version == 0x01
        assert fru.internal_use.data == bytes([0xaa, 0xbb, 0xcc, 0xdd, 0xee, 0xff, 0x00])
        assert fru.checksums_valid

    def test_fields(self, full_image):
        fields = parse_fru(full_image).fields()
        assert fields["Chassis Type"] == "Rack Mount Chassis"
        assert fields["Board Product"] == "Mainboard"
        assert fields["Product Asset Tag"] == "ASSET1"

    def test_absent_areas(self):
        fru = parse_fru(fru_image(board=board_area()))
        assert fru.chassis is None
        assert fru.product is None
        assert fru.internal_use is None
        assert fru.multirecords == []
        assert fru.checksums_valid

    def test_header_checksum_failure(self):
        image = bytearray(fru_image(board=board_area()))
        image[7] ^= 0x01
        assert not parse_fru(bytes(image)).checksums_valid
