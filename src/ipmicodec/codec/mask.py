"""
Threshold and Discrete Event Mask Model

Full and Compact sensor records carry three 16-bit mask words (SDR bytes
14-19). Each word is read two ways depending on the sensor class:

- Assertion Event Mask / Lower Threshold Reading Mask
    threshold: bits 0-11 going-low/going-high assertion events for LNC, LCR,
    LNR, UNC, UCR, UNR; bits 12-14 lower threshold comparison returned
    discrete: bits 0-14 assertion event supported for state 0-14
- Deassertion Event Mask / Upper Threshold Reading Mask
    threshold: bits 0-11 deassertion events; bits 12-14 upper threshold
    comparison returned for UNC, UCR, UNR
    discrete: bits 0-14 deassertion event supported for state 0-14
- Discrete Reading Mask / Settable Threshold Mask, Readable Threshold Mask
    threshold: bits 0-5 threshold readable, bits 8-13 threshold settable
    discrete: bits 0-14 state reading supported

The bit positions live in the tables below; decoding is a table walk.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

DISCRETE_STATES = 15


class SensorClass(Enum):
    """Sensor class selected by the event/reading type code"""
    NOT_APPLICABLE = "n/a"
    THRESHOLD = "threshold"
    DISCRETE = "discrete"
    OEM = "oem"

    @classmethod
    def from_event_reading_type(cls, code: int) -> "SensorClass":
        if code == 0x01:
            return cls.THRESHOLD
        if 0x02 <= code <= 0x0c or code == 0x6f:
            return cls.DISCRETE
        if 0x70 <= code <= 0x7f:
            return cls.OEM
        return cls.NOT_APPLICABLE


class ThresholdType(Enum):
    """The six threshold levels, in mask order"""
    LNC = "lnc"  # Lower Non-Critical
    LCR = "lcr"  # Lower Critical
    LNR = "lnr"  # Lower Non-Recoverable
    UNC = "unc"  # Upper Non-Critical
    UCR = "ucr"  # Upper Critical
    UNR = "unr"  # Upper Non-Recoverable

    @property
    def is_lower(self) -> bool:
        return self in (ThresholdType.LNC, ThresholdType.LCR, ThresholdType.LNR)


THRESHOLD_ORDER = tuple(ThresholdType)

# (going-low bit, going-high bit) in the assertion and deassertion words
EVENT_BITS: Dict[ThresholdType, tuple] = {
    ThresholdType.LNC: (0, 1),
    ThresholdType.LCR: (2, 3),
    ThresholdType.LNR: (4, 5),
    ThresholdType.UNC: (6, 7),
    ThresholdType.UCR: (8, 9),
    ThresholdType.UNR: (10, 11),
}

# Threshold comparison status bits: lower levels in the assertion word,
# upper levels in the deassertion word
STATUS_BITS: Dict[ThresholdType, int] = {
    ThresholdType.LNC: 12,
    ThresholdType.LCR: 13,
    ThresholdType.LNR: 14,
    ThresholdType.UNC: 12,
    ThresholdType.UCR: 13,
    ThresholdType.UNR: 14,
}

READABLE_BITS: Dict[ThresholdType, int] = {t: i for i, t in enumerate(THRESHOLD_ORDER)}
SETTABLE_BITS: Dict[ThresholdType, int] = {t: i + 8 for i, t in enumerate(THRESHOLD_ORDER)}


def _bit(word: int, n: int) -> bool:
    return bool(word & (1 << n))


@dataclass(frozen=True)
class SensorEvent:
    """One assertion or deassertion event a sensor can generate

    Threshold events name a level and direction, discrete events a state.
    """
    sensor_class: SensorClass
    assertion: bool
    threshold: Optional[ThresholdType] = None
    high: bool = False
    state: int = 0

    def __str__(self) -> str:
        if self.sensor_class == SensorClass.THRESHOLD:
            return self.threshold.value + ("+" if self.high else "-")
        return f"state{self.state}"


class SensorEvents(list):
    """List of SensorEvent with chainable filters"""

    def filter_assert(self) -> "SensorEvents":
        return SensorEvents(e for e in self if e.assertion)

    def filter_deassert(self) -> "SensorEvents":
        return SensorEvents(e for e in self if not e.assertion)

    def filter_threshold(self) -> "SensorEvents":
        return SensorEvents(e for e in self if e.sensor_class == SensorClass.THRESHOLD)

    def filter_discrete(self) -> "SensorEvents":
        return SensorEvents(e for e in self if e.sensor_class == SensorClass.DISCRETE)

    def strings(self) -> List[str]:
        return [str(e) for e in self]


@dataclass(frozen=True)
class ThresholdMask:
    """Per-threshold flags collected from all three mask words"""
    readable: bool = False
    settable: bool = False
    status_returned: bool = False
    low_assert: bool = False
    high_assert: bool = False
    low_deassert: bool = False
    high_deassert: bool = False


@dataclass(frozen=True)
class DiscreteMask:
    """Per-state flags collected from all three mask words"""
    assert_supported: bool = False
    deassert_supported: bool = False
    readable: bool = False


@dataclass(frozen=True)
class Mask:
    """Event and reading masks of a Full or Compact sensor record

    The per-threshold and per-state views are derived from the three words
    when the mask is built. The ``parse_*`` methods return a new Mask.

    Attributes:
        assert_lower: Raw assertion event / lower threshold reading word
        deassert_upper: Raw deassertion event / upper threshold reading word
        reading: Raw discrete reading / settable / readable threshold word

    Example:
        >>> mask = Mask().parse_assert_lower(0x0201)
        >>> mask.supported_threshold_events().filter_assert().strings()
        ['lnc-', 'ucr+']
    """
    assert_lower: int = 0
    deassert_upper: int = 0
    reading: int = 0
    threshold: Mapping[ThresholdType, ThresholdMask] = field(
        init=False, repr=False, compare=False, default_factory=lambda: MappingProxyType({}))
    discrete: Tuple[DiscreteMask, ...] = field(init=False, repr=False, compare=False, default=())

    def __post_init__(self):
        lower, upper, reading = self.assert_lower, self.deassert_upper, self.reading
        threshold = {}
        for t in THRESHOLD_ORDER:
            low_bit, high_bit = EVENT_BITS[t]
            status_word = lower if t.is_lower else upper
            threshold[t] = ThresholdMask(
                readable=_bit(reading, READABLE_BITS[t]),
                settable=_bit(reading, SETTABLE_BITS[t]),
                status_returned=_bit(status_word, STATUS_BITS[t]),
                low_assert=_bit(lower, low_bit),
                high_assert=_bit(lower, high_bit),
                low_deassert=_bit(upper, low_bit),
                high_deassert=_bit(upper, high_bit),
            )
        discrete = tuple(
            DiscreteMask(
                assert_supported=_bit(lower, state),
                deassert_supported=_bit(upper, state),
                readable=_bit(reading, state),
            )
            for state in range(DISCRETE_STATES)
        )
        object.__setattr__(self, "threshold", MappingProxyType(threshold))
        object.__setattr__(self, "discrete", discrete)

    @classmethod
    def from_words(cls, assert_lower: int, deassert_upper: int, reading: int) -> "Mask":
        return cls(assert_lower & 0xffff, deassert_upper & 0xffff, reading & 0xffff)

    def parse_assert_lower(self, word: int) -> "Mask":
        return replace(self, assert_lower=word & 0xffff)

    def parse_deassert_upper(self, word: int) -> "Mask":
        return replace(self, deassert_upper=word & 0xffff)

    def parse_reading(self, word: int) -> "Mask":
        return replace(self, reading=word & 0xffff)

    def _thresholds_where(self, attr: str) -> List[ThresholdType]:
        return [t for t in THRESHOLD_ORDER if getattr(self.threshold[t], attr)]

    def readable_thresholds(self) -> List[ThresholdType]:
        return self._thresholds_where("readable")

    def settable_thresholds(self) -> List[ThresholdType]:
        return self._thresholds_where("settable")

    def status_returned_thresholds(self) -> List[ThresholdType]:
        return self._thresholds_where("status_returned")

    def supported_threshold_events(self) -> SensorEvents:
        """All threshold events enabled in the assertion and deassertion words."""
        events = SensorEvents()
        for assertion, low_attr, high_attr in (
            (True, "low_assert", "high_assert"),
            (False, "low_deassert", "high_deassert"),
        ):
            for t in THRESHOLD_ORDER:
                flags = self.threshold[t]
                if getattr(flags, low_attr):
                    events.append(SensorEvent(SensorClass.THRESHOLD, assertion, t, high=False))
                if getattr(flags, high_attr):
                    events.append(SensorEvent(SensorClass.THRESHOLD, assertion, t, high=True))
        return events

    def supported_discrete_events(self) -> SensorEvents:
        """All discrete state events enabled in the assertion and deassertion words."""
        events = SensorEvents()
        for assertion, attr in ((True, "assert_supported"), (False, "deassert_supported")):
            for state, flags in enumerate(self.discrete):
                if getattr(flags, attr):
                    events.append(SensorEvent(SensorClass.DISCRETE, assertion, state=state))
        return events

    def supported_events(self, sensor_class: SensorClass) -> SensorEvents:
        """Events under the interpretation selected by the sensor class."""
        if sensor_class == SensorClass.THRESHOLD:
            return self.supported_threshold_events()
        return self.supported_discrete_events()

    def readable_states(self) -> List[int]:
        return [state for state, flags in enumerate(self.discrete) if flags.readable]


def threshold_events_from_bits(bits: Iterable[int], assertion: bool = True) -> SensorEvents:
    """Inverse lookup: the threshold events named by a set of event bit positions."""
    by_bit = {}
    for t, (low_bit, high_bit) in EVENT_BITS.items():
        by_bit[low_bit] = (t, False)
        by_bit[high_bit] = (t, True)
    events = SensorEvents()
    for bit in sorted(bits):
        if bit in by_bit:
            t, high = by_bit[bit]
            events.append(SensorEvent(SensorClass.THRESHOLD, assertion, t, high=high))
    return events
