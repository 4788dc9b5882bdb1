"""
Sensor Reading Conversion Engine

Turns raw 8-bit sensor samples, thresholds, hysteresis and tolerance values
into engineering units using the calibration fields of a Full Sensor record:

    y = L[(M * x + B * 10^B_Exp) * 10^R_Exp]

where x is the raw value interpreted per the analog data format and L is the
linearization function. Values outside a function's domain follow IEEE 754
float semantics (log of zero is -inf, reciprocal of zero is inf, and so on)
instead of raising.
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict

from .bits import ones_complement, twos_complement
from .errors import InsufficientData
from .tables import unit_name


class AnalogFormat(IntEnum):
    """Analog (numeric) data format, SDR units 1 bits 7:6"""
    UNSIGNED = 0
    ONES_COMPLEMENT = 1
    TWOS_COMPLEMENT = 2
    NOT_ANALOG = 3


class RateUnit(IntEnum):
    """Rate unit, SDR units 1 bits 5:3"""
    NONE = 0
    PER_MICROSECOND = 1
    PER_MILLISECOND = 2
    PER_SECOND = 3
    PER_MINUTE = 4
    PER_HOUR = 5
    PER_DAY = 6
    RESERVED = 7


class ModifierRelation(IntEnum):
    """Modifier unit relation, SDR units 1 bits 2:1"""
    NONE = 0
    DIVIDE = 1
    MULTIPLY = 2
    RESERVED = 3


class Linearization(IntEnum):
    """Linearization function codes, SDR Full record byte 23"""
    LINEAR = 0x00
    LN = 0x01
    LOG10 = 0x02
    LOG2 = 0x03
    E = 0x04
    EXP10 = 0x05
    EXP2 = 0x06
    INVERSE = 0x07
    SQR = 0x08
    CUBE = 0x09
    SQRT = 0x0a
    CUBE_ROOT = 0x0b
    NON_LINEAR = 0x70

    @staticmethod
    def is_non_linear(code: int) -> bool:
        """True for 0x70 (non-linear) and 0x71-0x7F (OEM non-linear)."""
        return 0x70 <= code <= 0x7f


RATE_SUFFIXES = {
    RateUnit.PER_MICROSECOND: "/us",
    RateUnit.PER_MILLISECOND: "/ms",
    RateUnit.PER_SECOND: "/s",
    RateUnit.PER_MINUTE: "/min",
    RateUnit.PER_HOUR: "/hour",
    RateUnit.PER_DAY: "/day",
}


@dataclass(frozen=True)
class SensorUnit:
    """Decoded SDR units bytes (Full/Compact bytes 20-22)

    Attributes:
        analog_format: Numeric format of readings and thresholds
        rate: Rate unit appended to the base unit
        modifier_relation: How the modifier unit combines with the base unit
        percentage: Reading is a percentage
        base_unit: Base unit type code
        modifier_unit: Modifier unit type code
    """
    analog_format: AnalogFormat = AnalogFormat.UNSIGNED
    rate: RateUnit = RateUnit.NONE
    modifier_relation: ModifierRelation = ModifierRelation.NONE
    percentage: bool = False
    base_unit: int = 0
    modifier_unit: int = 0

    @classmethod
    def parse(cls, units1: int, base_unit: int, modifier_unit: int) -> "SensorUnit":
        return cls(
            analog_format=AnalogFormat((units1 >> 6) & 0x03),
            rate=RateUnit((units1 >> 3) & 0x07),
            modifier_relation=ModifierRelation((units1 >> 1) & 0x03),
            percentage=bool(units1 & 0x01),
            base_unit=base_unit,
            modifier_unit=modifier_unit,
        )

    @property
    def is_analog(self) -> bool:
        return self.analog_format != AnalogFormat.NOT_ANALOG

    @property
    def label(self) -> str:
        """Human readable unit, e.g. "degrees C", "Watts/hour" or "% RPM"."""
        text = unit_name(self.base_unit)
        if self.modifier_relation == ModifierRelation.DIVIDE:
            text = f"{text}/{unit_name(self.modifier_unit)}"
        elif self.modifier_relation == ModifierRelation.MULTIPLY:
            text = f"{text}*{unit_name(self.modifier_unit)}"
        text += RATE_SUFFIXES.get(self.rate, "")
        if self.percentage:
            text = f"% {text}"
        return text


@dataclass(frozen=True)
class ReadingFactors:
    """Calibration factors (Full record bytes 24-29)

    Attributes:
        m: Signed 10-bit multiplier
        tolerance: Unsigned 6-bit tolerance in +/- half raw counts
        b: Signed 10-bit offset
        accuracy: Unsigned 10-bit accuracy in 1/100 percent units
        accuracy_exp: Unsigned 2-bit accuracy exponent
        direction: Sensor direction (0 unspecified, 1 input, 2 output)
        r_exp: Signed 4-bit result exponent
        b_exp: Signed 4-bit offset exponent
    """
    m: int = 1
    tolerance: int = 0
    b: int = 0
    accuracy: int = 0
    accuracy_exp: int = 0
    direction: int = 0
    r_exp: int = 0
    b_exp: int = 0

    @property
    def accuracy_percent(self) -> float:
        return self.accuracy * (10 ** self.accuracy_exp) / 100.0


def parse_reading_factors(data: bytes) -> ReadingFactors:
    """Decode the six packed factor bytes.

    The same layout is used by Full record bytes 24-29 and by the response
    of Get Sensor Reading Factors (after its next-reading byte).

    Args:
        data: At least 6 bytes starting at the M LS byte

    Raises:
        InsufficientData: If fewer than 6 bytes are given
    """
    if len(data) < 6:
        raise InsufficientData("reading factors", len(data), 6)
    m_ls, m_tol, b_ls, b_acc, acc_dir, exps = data[:6]
    return ReadingFactors(
        m=twos_complement(((m_tol & 0xc0) << 2) | m_ls, 10),
        tolerance=m_tol & 0x3f,
        b=twos_complement(((b_acc & 0xc0) << 2) | b_ls, 10),
        accuracy=((acc_dir & 0xf0) << 2) | (b_acc & 0x3f),
        accuracy_exp=(acc_dir & 0x0c) >> 2,
        direction=acc_dir & 0x03,
        r_exp=twos_complement(exps >> 4, 4),
        b_exp=twos_complement(exps & 0x0f, 4),
    )


def _safe(func: Callable[[float], float]) -> Callable[[float], float]:
    def wrapper(x: float) -> float:
        try:
            return func(x)
        except OverflowError:
            return math.inf
    return wrapper


def _log(base_log: Callable[[float], float]) -> Callable[[float], float]:
    def apply(x: float) -> float:
        if x == 0:
            return -math.inf
        if x < 0:
            return math.nan
        return base_log(x)
    return apply


def _inverse(x: float) -> float:
    if x == 0:
        return math.copysign(math.inf, x)
    return 1.0 / x


def _sqrt(x: float) -> float:
    if x < 0:
        return math.nan
    return math.sqrt(x)


def _cube_root(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


LINEARIZATIONS: Dict[int, Callable[[float], float]] = {
    Linearization.LINEAR: lambda x: x,
    Linearization.LN: _log(math.log),
    Linearization.LOG10: _log(math.log10),
    Linearization.LOG2: _log(math.log2),
    Linearization.E: _safe(math.exp),
    Linearization.EXP10: _safe(lambda x: math.pow(10.0, x)),
    Linearization.EXP2: _safe(lambda x: math.pow(2.0, x)),
    Linearization.INVERSE: _inverse,
    Linearization.SQR: _safe(lambda x: x * x),
    Linearization.CUBE: _safe(lambda x: x * x * x),
    Linearization.SQRT: _sqrt,
    Linearization.CUBE_ROOT: _cube_root,
}


def raw_to_signed(raw: int, analog_format: AnalogFormat) -> int:
    """Reinterpret an 8-bit raw value per the analog data format."""
    raw &= 0xff
    if analog_format == AnalogFormat.ONES_COMPLEMENT:
        return ones_complement(raw, 8)
    if analog_format == AnalogFormat.TWOS_COMPLEMENT:
        return twos_complement(raw, 8)
    return raw


def _apply_linearization(value: float, linearization: int) -> float:
    # 0x70-0x7F: the factors were fetched for this sample, so the result is
    # already linear. Reserved codes have no function and are read as linear.
    func = LINEARIZATIONS.get(linearization)
    if func is None:
        return value
    return func(value)


def convert_reading(raw: int, analog_format: AnalogFormat, factors: ReadingFactors,
                    linearization: int = Linearization.LINEAR) -> float:
    """Convert a raw reading or raw threshold to engineering units.

    Args:
        raw: 8-bit raw value
        analog_format: How to interpret the raw byte
        factors: Calibration factors; for linearization 0x70-0x7F these must
            come from Get Sensor Reading Factors for this very sample
        linearization: Linearization function code

    Returns:
        Converted value, 0.0 when the sensor has no analog reading. Reserved
        linearization codes (0x0C-0x6F, 0x80+) convert as linear.

    Example:
        >>> convert_reading(0x40, AnalogFormat.UNSIGNED, ReadingFactors(m=2, r_exp=-1))
        12.8
    """
    if analog_format == AnalogFormat.NOT_ANALOG:
        return 0.0
    x = raw_to_signed(raw, analog_format)
    value = (factors.m * x + factors.b * (10.0 ** factors.b_exp)) * (10.0 ** factors.r_exp)
    return _apply_linearization(value, linearization)


def convert_sensor_hysteresis(raw: int, analog_format: AnalogFormat, factors: ReadingFactors) -> float:
    """Convert a raw hysteresis count to units.

    Hysteresis is an unsigned delta in raw counts, so the offset B and the
    linearization function do not apply.
    """
    if analog_format == AnalogFormat.NOT_ANALOG:
        return 0.0
    return factors.m * (raw & 0xff) * (10.0 ** factors.r_exp)


def convert_sensor_tolerance(raw: int, analog_format: AnalogFormat, factors: ReadingFactors) -> float:
    """Convert a tolerance in +/- half raw counts to units."""
    if analog_format == AnalogFormat.NOT_ANALOG:
        return 0.0
    return (factors.m * (raw & 0x3f) / 2.0) * (10.0 ** factors.r_exp)


def hysteresis_specified(raw: int) -> bool:
    """0x00 and 0xFF mean no hysteresis value is given."""
    return raw not in (0x00, 0xff)


MAX_SENTINELS = {
    AnalogFormat.UNSIGNED: 0xff,
    AnalogFormat.ONES_COMPLEMENT: 0x00,
    AnalogFormat.TWOS_COMPLEMENT: 0x7f,
}

MIN_SENTINELS = {
    AnalogFormat.UNSIGNED: 0x00,
    AnalogFormat.ONES_COMPLEMENT: 0xff,
    AnalogFormat.TWOS_COMPLEMENT: 0x80,
}


def reading_max_specified(raw: int, analog_format: AnalogFormat) -> bool:
    """False when the raw sensor maximum is the format's "not specified" value."""
    return MAX_SENTINELS.get(analog_format) != raw


def reading_min_specified(raw: int, analog_format: AnalogFormat) -> bool:
    """False when the raw sensor minimum is the format's "not specified" value."""
    return MIN_SENTINELS.get(analog_format) != raw
