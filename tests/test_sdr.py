"""
Tests for the Sensor Data Record parser
"""

from dataclasses import FrozenInstanceError
from typing import Dict, Optional

import pytest

from ipmicodec.codec.errors import InsufficientData
from ipmicodec.codec.mask import SensorClass, ThresholdType
from ipmicodec.codec.reading import AnalogFormat, ReadingFactors
from ipmicodec.codec.sdr import (
    SDR,
    CompactSensor,
    EventMessageControl,
    EventOnly,
    FullSensor,
    HysteresisAccess,
    RecordSharing,
    SDRRecordType,
    ThresholdAccess,
    UnknownRecord,
    parse_sdr,
)


def with_header(record_id: int, record_type: int, body: bytes) -> bytes:
    return bytes([record_id & 0xff, record_id >> 8, 0x51, record_type, len(body)]) + body


def full_sensor(name: bytes = b"CPU Temp", overrides: Optional[Dict[int, int]] = None) -> bytes:
    """Build a Full Sensor record: CPU temperature, M=1, unsigned, degrees C"""
    values = {
        5: 0x20,            # owner id
        7: 0x30,            # sensor number
        8: 0x03, 9: 0x01,   # processor 1
        10: 0x7f, 11: 0x68,
        12: 0x01, 13: 0x01,  # temperature, threshold
        14: 0x80, 15: 0x02,  # unc+ and ucr+ assertion
        16: 0x80, 17: 0x02,  # unc+ and ucr+ deassertion
        18: 0x18, 19: 0x18,  # unc/ucr readable and settable
        20: 0x00, 21: 0x01, 22: 0x00,
        23: 0x00,
        24: 0x01, 25: 0x00, 26: 0x00, 27: 0x00, 28: 0x00, 29: 0x00,
        30: 0x01,            # nominal specified
        31: 0x28, 32: 0x50, 33: 0x0a,
        34: 0xff, 35: 0x00,  # sensor max/min not specified
        36: 0x64, 37: 0x5a, 38: 0x55, 39: 0x00, 40: 0x00, 41: 0x00,
        42: 0x02, 43: 0x02,
    }
    values.update(overrides or {})
    body = bytearray(42)
    for offset, value in values.items():
        body[offset - 5] = value
    body = bytes(body) + bytes([0xc0 | len(name)]) + name
    return with_header(0x0001, 0x01, body)


def compact_sensor(name: bytes = b"PSU", sharing: int = 0x13, offset: int = 0x80) -> bytes:
    """Build a Compact Sensor record: power supply, sensor-specific discrete"""
    body = bytearray(26)
    values = {
        7: 0x40, 8: 0x0a, 9: 0x01, 10: 0x63, 11: 0x40,
        12: 0x08, 13: 0x6f,
        14: 0x03, 15: 0x00,
        16: 0x01, 17: 0x00,
        18: 0x0f, 19: 0x00,
        20: 0xc0, 21: 0x00, 22: 0x00,
        23: sharing, 24: offset,
    }
    for pos, value in values.items():
        body[pos - 5] = value
    body = bytes(body) + bytes([0xc0 | len(name)]) + name
    return with_header(0x0002, 0x02, body)


def event_only(name: bytes = b"Sys Event") -> bytes:
    body = bytes([0x20, 0x00, 0x50, 0x07, 0x01, 0x12, 0x6f, 0x00, 0x00, 0x00, 0x00])
    body += bytes([0xc0 | len(name)]) + name
    return with_header(0x0003, 0x03, body)


class TestHeader:
    """Test record header and dispatch"""

    def test_header_fields(self):
        sdr = parse_sdr(full_sensor(), next_record_id=0x0042)
        assert sdr.record_id == 0x0001
        assert sdr.header.sdr_version == 0x51
        assert sdr.record_type == SDRRecordType.FULL_SENSOR
        assert sdr.header.total_length == len(full_sensor())
        assert sdr.next_record_id == 0x0042
        assert sdr.raw == full_sensor()

    def test_short_header(self):
        with pytest.raises(InsufficientData):
            parse_sdr(b"\x01\x00\x51\x01")

    def test_unknown_type(self):
        """Test unknown record types keep their body instead of failing"""
        sdr = parse_sdr(with_header(0x0010, 0x15, b"\x01\x02\x03"))
        assert isinstance(sdr.record, UnknownRecord)
        assert sdr.record.record_type == 0x15
        assert sdr.record.body == b"\x01\x02\x03"
        assert not sdr.is_sensor
        assert sdr.name == ""
        assert str(sdr) == "SDR 0x0010 reserved (0x15)"

    def test_str(self):
        assert str(parse_sdr(full_sensor())) == "SDR 0x0001 FULL_SENSOR CPU Temp"


class TestFullSensor:
    """Test Full Sensor record decoding"""

    @pytest.fixture
    def sensor(self) -> FullSensor:
        sdr = parse_sdr(full_sensor())
        assert isinstance(sdr, SDR)
        return sdr.record

    def test_identity(self, sensor):
        assert isinstance(sensor, FullSensor)
        assert sensor.name == "CPU Temp"
        assert sensor.sensor_number == 0x30
        assert sensor.generator_id == 0x0020
        assert sensor.entity.entity_id == 0x03
        assert sensor.entity.instance == 1
        assert sensor.entity.name == "processor"
        assert sensor.sensor_type_name == "Temperature"
        assert sensor.event_reading_type_name == "Threshold"
        assert sensor.sensor_class == SensorClass.THRESHOLD
        assert sensor.is_threshold

    def test_initialization_and_capabilities(self, sensor):
        assert sensor.initialization.scanning_enabled
        assert sensor.initialization.event_generation_enabled
        assert not sensor.initialization.settable
        assert sensor.capabilities.auto_rearm
        assert sensor.capabilities.hysteresis_access == HysteresisAccess.READABLE_SETTABLE
        assert sensor.capabilities.threshold_access == ThresholdAccess.READABLE_SETTABLE
        assert sensor.capabilities.event_message_control == EventMessageControl.PER_THRESHOLD

    def test_unit(self, sensor):
        assert sensor.unit.analog_format == AnalogFormat.UNSIGNED
        assert sensor.unit.label == "degrees C"
        assert sensor.has_analog_reading

    def test_convert_reading(self, sensor):
        assert sensor.convert_reading(45) == 45.0

    def test_limits(self, sensor):
        assert sensor.nominal == 40.0
        assert sensor.normal_max is None
        assert sensor.normal_min is None
        assert sensor.sensor_max is None
        assert sensor.sensor_min is None

    def test_thresholds(self, sensor):
        assert sensor.threshold(ThresholdType.UCR) == 90.0
        assert sensor.threshold(ThresholdType.LNC) is None
        assert sensor.threshold_raw(ThresholdType.UNR) == 0x64
        assert sensor.thresholds == {ThresholdType.UNC: 85.0, ThresholdType.UCR: 90.0}

    def test_hysteresis(self, sensor):
        assert sensor.positive_hysteresis == 2.0
        assert sensor.negative_hysteresis == 2.0

    def test_supported_events(self, sensor):
        events = sensor.supported_events()
        assert events.filter_assert().strings() == ["unc+", "ucr+"]
        assert events.filter_deassert().strings() == ["unc+", "ucr+"]

    def test_unspecified_hysteresis(self):
        sensor = parse_sdr(full_sensor(overrides={42: 0x00, 43: 0xff})).record
        assert sensor.positive_hysteresis is None
        assert sensor.negative_hysteresis is None

    def test_sensor_max_converted(self):
        sensor = parse_sdr(full_sensor(overrides={34: 0x64, 35: 0x05})).record
        assert sensor.sensor_max == 100.0
        assert sensor.sensor_min == 5.0

    def test_sensor_max_zero_is_unspecified(self):
        """Test an analog limit that converts to zero reads as not given"""
        sensor = parse_sdr(full_sensor(overrides={34: 0x00})).record
        assert sensor.sensor_max is None

    def test_twos_complement_sentinel(self):
        sensor = parse_sdr(full_sensor(overrides={20: 0x80, 34: 0x7f, 35: 0x80})).record
        assert sensor.sensor_max is None
        assert sensor.sensor_min is None

    def test_signed_calibrated(self):
        # two's complement, M=5, R_Exp=-1
        sensor = parse_sdr(full_sensor(overrides={20: 0x80, 24: 0x05, 29: 0xf0})).record
        assert sensor.factors == ReadingFactors(m=5, r_exp=-1)
        assert sensor.convert_reading(0xfe) == pytest.approx(-1.0)
        assert sensor.positive_hysteresis == pytest.approx(1.0)

    def test_not_analog(self):
        sensor = parse_sdr(full_sensor(overrides={20: 0xc0})).record
        assert not sensor.has_analog_reading
        assert sensor.convert_reading(5) == 5.0

    def test_non_linear(self):
        sensor = parse_sdr(full_sensor(overrides={23: 0x70})).record
        assert sensor.is_non_linear
        assert sensor.convert_reading(10, ReadingFactors(m=3)) == 30.0

    def test_reserved_linearization(self):
        """Test a reserved linearization code converts as linear"""
        sensor = parse_sdr(full_sensor(overrides={23: 0x0c})).record
        assert sensor.linearization == 0x0c
        assert sensor.convert_reading(45) == 45.0
        assert sensor.nominal == 40.0
        assert sensor.thresholds == {ThresholdType.UNC: 85.0, ThresholdType.UCR: 90.0}

    def test_record_is_immutable(self, sensor):
        readable = sensor.mask.readable_thresholds()
        sensor.mask.parse_reading(0)
        assert sensor.mask.readable_thresholds() == readable
        with pytest.raises(FrozenInstanceError):
            sensor.mask = None

    def test_hashable(self):
        assert hash(parse_sdr(full_sensor())) == hash(parse_sdr(full_sensor()))
        assert hash(parse_sdr(compact_sensor())) == hash(parse_sdr(compact_sensor()))

    def test_linearization_reserved_bit_masked(self):
        sensor = parse_sdr(full_sensor(overrides={23: 0x80})).record
        assert sensor.linearization == 0x00

    def test_empty_id_string_at_minimum_size(self):
        raw = full_sensor(name=b"")
        assert len(raw) == 48
        assert parse_sdr(raw).record.name == ""

    def test_one_byte_short(self):
        with pytest.raises(InsufficientData):
            parse_sdr(full_sensor(name=b"")[:47])

    def test_id_string_truncated(self):
        with pytest.raises(InsufficientData):
            parse_sdr(full_sensor(name=b"CPU Temp")[:52])


class TestCompactSensor:
    """Test Compact Sensor record decoding"""

    def test_fields(self):
        sdr = parse_sdr(compact_sensor())
        sensor = sdr.record
        assert isinstance(sensor, CompactSensor)
        assert sdr.is_sensor
        assert sensor.name == "PSU"
        assert sensor.sensor_number == 0x40
        assert sensor.sensor_type_name == "Power Supply"
        assert sensor.sensor_class == SensorClass.DISCRETE
        assert not sensor.is_threshold
        assert not sensor.unit.is_analog

    def test_discrete_events(self):
        sensor = parse_sdr(compact_sensor()).record
        assert sensor.supported_events().strings() == ["state0", "state1", "state0"]
        assert sensor.mask.readable_states() == [0, 1, 2, 3]

    def test_sharing(self):
        sensor = parse_sdr(compact_sensor()).record
        assert sensor.sharing.share_count == 3
        assert sensor.sharing.entity_instance_increments
        assert sensor.shared_names() == ["PSUA", "PSUB", "PSUC"]

    def test_numeric_sharing(self):
        sensor = parse_sdr(compact_sensor(name=b"PS", sharing=0x03, offset=0x01)).record
        assert sensor.shared_names() == ["PS1", "PS2", "PS3"]

    def test_unshared(self):
        sensor = parse_sdr(compact_sensor(sharing=0x00, offset=0x00)).record
        assert sensor.shared_names() == ["PSU"]

    def test_minimum_size(self):
        raw = compact_sensor(name=b"")
        assert len(raw) == 32
        with pytest.raises(InsufficientData):
            parse_sdr(raw[:31])


class TestRecordSharing:
    """Test ID string suffixes of shared records"""

    def test_alpha_wraps_to_two_letters(self):
        sharing = RecordSharing.parse(0x10, 0x00)
        assert sharing.suffix(0) == "A"
        assert sharing.suffix(25) == "Z"
        assert sharing.suffix(26) == "AA"
        assert sharing.suffix(27) == "AB"

    def test_direction(self):
        sharing = RecordSharing.parse(0x82, 0x00)
        assert sharing.direction == 2
        assert sharing.share_count == 2


class TestEventOnly:
    """Test Event-Only record decoding"""

    def test_fields(self):
        sdr = parse_sdr(event_only())
        record = sdr.record
        assert isinstance(record, EventOnly)
        assert record.name == "Sys Event"
        assert record.sensor_number == 0x50
        assert record.sensor_type_name == "System Event"
        assert record.sensor_class == SensorClass.DISCRETE
        assert not sdr.is_sensor
        assert sdr.name == "Sys Event"

    def test_minimum_size(self):
        raw = event_only(name=b"")
        assert len(raw) == 17
        parse_sdr(raw)
        with pytest.raises(InsufficientData):
            parse_sdr(raw[:16])
