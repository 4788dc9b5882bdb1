"""
IPMI Record Codec

Pure decoders for the binary records a BMC hands out: Sensor Data Records,
FRU inventory and SEL entries, plus the conversion of raw sensor samples to
engineering units. Nothing in this package performs I/O or logs; callers
supply the raw bytes and decide what to do with decode errors.
"""

from .errors import IPMIError, InsufficientData, LengthMismatch
from .events import Event, EventSeverity, lookup_event
from .fru import FRU, FRUCommonHeader, parse_fru
from .mask import Mask, SensorClass, SensorEvent, SensorEvents, ThresholdType
from .reading import (
    AnalogFormat,
    Linearization,
    ReadingFactors,
    SensorUnit,
    convert_reading,
    convert_sensor_hysteresis,
    convert_sensor_tolerance,
)
from .sdr import SDR, CompactSensor, EventOnly, FullSensor, SDRRecordType, parse_sdr
from .sel import SEL, parse_sel
from .typelength import TypeCode, TypeLength, TypeLengthField

__all__ = [
    "AnalogFormat",
    "CompactSensor",
    "Event",
    "EventOnly",
    "EventSeverity",
    "FRU",
    "FRUCommonHeader",
    "FullSensor",
    "IPMIError",
    "InsufficientData",
    "LengthMismatch",
    "Linearization",
    "Mask",
    "ReadingFactors",
    "SDR",
    "SDRRecordType",
    "SEL",
    "SensorClass",
    "SensorEvent",
    "SensorEvents",
    "SensorUnit",
    "ThresholdType",
    "TypeCode",
    "TypeLength",
    "TypeLengthField",
    "convert_reading",
    "convert_sensor_hysteresis",
    "convert_sensor_tolerance",
    "lookup_event",
    "parse_fru",
    "parse_sdr",
    "parse_sel",
]
