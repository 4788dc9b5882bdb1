"""
Event Names and Severities

Immutable lookup tables that turn (event/reading type, sensor type, offset)
into an event name and a severity for assertion or deassertion:

- generic event/reading types 0x01-0x0C (IPMI 2.0 table 42-2); severities
  can differ per sensor type, key 0x00 holds the default
- sensor-specific events, event/reading type 0x6F (IPMI 2.0 table 42-3),
  keyed by sensor type

Lookups never fail; unknown combinations give an "unknown" event with N/A
severity.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .mask import SensorClass


class EventSeverity(Enum):
    INFO = "Info"
    OK = "OK"
    WARNING = "Warning"
    CRITICAL = "Critical"
    DEGRADED = "Degraded"
    NON_FATAL = "Non-fatal"
    NA = "N/A"

    def __str__(self) -> str:
        return self.value


I = EventSeverity.INFO
W = EventSeverity.WARNING
C = EventSeverity.CRITICAL
NA = EventSeverity.NA

DEFAULT_SENSOR_TYPE = 0x00


@dataclass(frozen=True)
class EventDefinition:
    """An event offset with its per-sensor-type severities

    Attributes:
        name: Event description
        assert_severity: Sensor type -> severity on assertion, 0x00 default
        deassert_severity: Sensor type -> severity on deassertion, 0x00 default
    """
    name: str
    assert_severity: Mapping[int, EventSeverity]
    deassert_severity: Mapping[int, EventSeverity]

    def severity(self, sensor_type: int, assertion: bool = True) -> EventSeverity:
        table = self.assert_severity if assertion else self.deassert_severity
        if sensor_type in table:
            return table[sensor_type]
        return table.get(DEFAULT_SENSOR_TYPE, NA)


def _ev(name: str, asserted: EventSeverity, deasserted: Optional[EventSeverity] = None,
        assert_overrides: Optional[dict] = None, deassert_overrides: Optional[dict] = None) -> EventDefinition:
    if deasserted is None:
        deasserted = asserted
    assert_map = {DEFAULT_SENSOR_TYPE: asserted}
    assert_map.update(assert_overrides or {})
    deassert_map = {DEFAULT_SENSOR_TYPE: deasserted}
    deassert_map.update(deassert_overrides or {})
    return EventDefinition(name, MappingProxyType(assert_map), MappingProxyType(deassert_map))


def _freeze(table: dict) -> Mapping:
    return MappingProxyType({k: MappingProxyType(v) for k, v in table.items()})


# Per-sensor-type severities of the generic "State Asserted" (0x03 offset 1)
_STATE_ASSERTED_OVERRIDES = {
    0x01: W,  # Temperature
    0x02: W,  # Voltage
    0x04: W,  # Fan
    0x07: C,  # Processor
    0x08: W,  # Power Supply
    0x09: W,  # Power Unit
    0x0c: C,  # Memory
    0x0d: I,  # Drive Slot
    0x0e: W,  # POST Memory Resize
    0x0f: W,  # System Firmware Progress
    0x12: W,  # System Event
    0x14: I,  # Button / Switch
    0x15: C,  # Module / Board
    0x1e: C,  # Boot Error
    0x20: C,  # OS Stop / Shutdown
    0x24: C,  # Platform Alert
}

GENERIC_EVENTS: Mapping[int, Mapping[int, EventDefinition]] = _freeze({
    0x01: {
        0x00: _ev("Lower Non-critical - going low", W, I),
        0x01: _ev("Lower Non-critical - going high", I, I),
        0x02: _ev("Lower Critical - going low", C, W),
        0x03: _ev("Lower Critical - going high", W, W),
        0x04: _ev("Lower Non-recoverable - going low", C, C),
        0x05: _ev("Lower Non-recoverable - going high", C, C),
        0x06: _ev("Upper Non-critical - going low", I, I),
        0x07: _ev("Upper Non-critical - going high", W, I),
        0x08: _ev("Upper Critical - going low", W, W),
        0x09: _ev("Upper Critical - going high", C, W),
        0x0a: _ev("Upper Non-recoverable - going low", C, C),
        0x0b: _ev("Upper Non-recoverable - going high", C, C),
    },
    0x02: {
        0x00: _ev("Transition to Idle", I),
        0x01: _ev("Transition to Active", I),
        0x02: _ev("Transition to Busy", I),
    },
    0x03: {
        0x00: _ev("State Deasserted", I, I, {0x0d: W}, {0x0d: W}),
        0x01: _ev("State Asserted", I, I, _STATE_ASSERTED_OVERRIDES, _STATE_ASSERTED_OVERRIDES),
    },
    0x04: {
        0x00: _ev("Predictive Failure deasserted", I),
        0x01: _ev("Predictive Failure asserted", C),
    },
    0x05: {
        0x00: _ev("Limit Not Exceeded", I),
        0x01: _ev("Limit Exceeded", C),
    },
    0x06: {
        0x00: _ev("Performance Met", I),
        0x01: _ev("Performance Lags", C),
    },
    0x07: {
        0x00: _ev("transition to OK", I),
        0x01: _ev("transition to Non-Critical from OK", W),
        0x02: _ev("transition to Critical from less severe", C),
        0x03: _ev("transition to Non-recoverable from less severe", C),
        0x04: _ev("transition to Non-Critical from more severe", W),
        0x05: _ev("transition to Critical from Non-recoverable", C),
        0x06: _ev("transition to Non-recoverable", C),
        0x07: _ev("Monitor", W),
        0x08: _ev("Informational", I),
    },
    0x08: {
        0x00: _ev("Device Removed / Device Absent", C),
        0x01: _ev("Device Inserted / Device Present", I),
    },
    0x09: {
        0x00: _ev("Device Disabled", C),
        0x01: _ev("Device Enabled", I),
    },
    0x0a: {
        0x00: _ev("transition to Running", I),
        0x01: _ev("transition to In Test", W),
        0x02: _ev("transition to Power Off", W),
        0x03: _ev("transition to On Line", W),
        0x04: _ev("transition to Off Line", W),
        0x05: _ev("transition to Off Duty", W),
        0x06: _ev("transition to Degraded", C),
        0x07: _ev("transition to Power Save", W),
        0x08: _ev("Install Error", C),
    },
    0x0b: {
        0x00: _ev("Fully Redundant", I, I),
        0x01: _ev("Redundancy Lost", C, W),
        0x02: _ev("Redundancy Degraded", W, W),
        0x03: _ev("Non-redundant (Sufficient Resources from Redundant)", C, W),
        0x04: _ev("Non-redundant (Sufficient Resources from Insufficient Resources)", C, W),
        0x05: _ev("Non-redundant (Insufficient Resources)", C, W),
        0x06: _ev("Redundancy Degraded from Fully Redundant", W, W),
        0x07: _ev("Redundancy Degraded from Non-redundant", W, W),
    },
    0x0c: {
        0x00: _ev("D0 Power State", I),
        0x01: _ev("D1 Power State", I),
        0x02: _ev("D2 Power State", I),
        0x03: _ev("D3 Power State", I),
    },
})


def _all(severity: EventSeverity, *names: str) -> dict:
    return {offset: _ev(name, severity) for offset, name in enumerate(names)}


SENSOR_SPECIFIC_EVENTS: Mapping[int, Mapping[int, EventDefinition]] = _freeze({
    0x05: _all(
        C,
        "General Chassis Intrusion",
        "Drive Bay intrusion",
        "I/O Card area intrusion",
        "Processor area intrusion",
        "LAN Leash Lost (system is unplugged from LAN)",
        "Unauthorized dock",
        "FAN area intrusion",
    ),
    0x06: _all(
        C,
        "Secure Mode (Front Panel Lockout) Violation attempt",
        "Pre-boot Password Violation - user password",
        "Pre-boot Password Violation attempt - setup password",
        "Pre-boot Password Violation - network boot password",
        "Other pre-boot Password Violation",
        "Out-of-band Access Password Violation",
    ),
    0x07: {
        0x00: _ev("IERR", C),
        0x01: _ev("Thermal Trip", C),
        0x02: _ev("FRB1/BIST failure", C),
        0x03: _ev("FRB2/Hang in POST failure", C),
        0x04: _ev("FRB3/Processor Startup/Initialization failure (CPU didn't start)", C),
        0x05: _ev("Configuration Error", C),
        0x06: _ev("SM BIOS 'Uncorrectable CPU-complex Error'", C),
        0x07: _ev("Processor Presence detected", I),
        0x08: _ev("Processor disabled", C),
        0x09: _ev("Terminator Presence Detected", C),
        0x0a: _ev("Processor Automatically Throttled", W),
        0x0b: _ev("Machine Check Exception (Uncorrectable)", C),
        0x0c: _ev("Correctable Machine Check Error", W),
    },
    0x08: {
        0x00: _ev("Presence detected", I, I),
        0x01: _ev("Power Supply Failure detected", C, C),
        0x02: _ev("Predictive Failure", C, C),
        0x03: _ev("Power Supply input lost (AC/DC)", C, W),
        0x04: _ev("Power Supply input lost or out-of-range", C, W),
        0x05: _ev("Power Supply input out-of-range, but present", C, W),
        0x06: _ev("Configuration error", C, C),
        0x07: _ev("Power Supply Inactive (in standby state)", W, W),
    },
    0x09: {
        0x00: _ev("Power Off / Power Down", I, I),
        0x01: _ev("Power Cycle", I, I),
        0x02: _ev("240VA Power Down", W, I),
        0x03: _ev("Interlock Power Down", W, W),
        0x04: _ev("AC lost / Power input lost", C, W),
        0x05: _ev("Soft Power Control Failure", C, C),
        0x06: _ev("Power Unit Failure detected", C, C),
        0x07: _ev("Predictive Failure", C, C),
    },
    0x0c: {
        0x00: _ev("Correctable ECC / other correctable memory error", W),
        0x01: _ev("Uncorrectable ECC / other uncorrectable memory error", C),
        0x02: _ev("Parity", C),
        0x03: _ev("Memory Scrub Failed (stuck bit)", C),
        0x04: _ev("Memory Device Disabled", C),
        0x05: _ev("Correctable ECC / other correctable memory error logging limit reached", W),
        0x06: _ev("Presence detected", I),
        0x07: _ev("Configuration error", C),
        0x08: _ev("Spare", I),
        0x09: _ev("Memory Automatically Throttled", W),
        0x0a: _ev("Critical Overtemperature", C),
    },
    0x0d: {
        0x00: _ev("Drive Presence", I),
        0x01: _ev("Drive Fault", C),
        0x02: _ev("Predictive Failure", C),
        0x03: _ev("Hot Spare", I),
        0x04: _ev("Consistency Check / Parity Check in progress", I),
        0x05: _ev("In Critical Array", C),
        0x06: _ev("In Failed Array", C),
        0x07: _ev("Rebuild/Remap in progress", I),
        0x08: _ev("Rebuild/Remap Aborted (was not completed normally)", C),
    },
    0x0f: {
        0x00: _ev("System Firmware Error (POST Error)", C),
        0x01: _ev("System Firmware Hang", C),
        0x02: _ev("System Firmware Progress", I),
    },
    0x10: {
        0x00: _ev("Correctable Memory Error Logging Disabled", C),
        0x01: _ev("Event 'Type' Logging Disabled", C),
        0x02: _ev("Log Area Reset/Cleared", I),
        0x03: _ev("All Event Logging Disabled", C),
        0x04: _ev("SEL Full", C),
        0x05: _ev("SEL Almost Full", W),
        0x06: _ev("Correctable Machine Check Error Logging Disabled", C),
    },
    0x11: _all(
        NA,
        "BIOS Watchdog Reset",
        "OS Watchdog Reset",
        "OS Watchdog Shut Down",
        "OS Watchdog Power Down",
        "OS Watchdog Power Cycle",
        "OS Watchdog NMI / Diagnostic Interrupt",
        "OS Watchdog Expired, status only",
        "OS Watchdog pre-timeout Interrupt, non-NMI",
    ),
    0x12: {
        0x00: _ev("System Reconfigured", W),
        0x01: _ev("OEM System Boot Event", I),
        0x02: _ev("Undetermined system hardware failure", C),
        0x03: _ev("Entry added to Auxiliary Log", I),
        0x04: _ev("PEF Action", I),
        0x05: _ev("Timestamp Clock Synch", W),
    },
    0x13: {
        0x00: _ev("Front Panel NMI / Diagnostic Interrupt", C),
        0x01: _ev("Bus Timeout", C),
        0x02: _ev("I/O channel check NMI", C),
        0x03: _ev("Software NMI", W),
        0x04: _ev("PCI PERR", C),
        0x05: _ev("PCI SERR", C),
        0x06: _ev("EISA Fail Safe Timeout", C),
        0x07: _ev("Bus Correctable Error", W),
        0x08: _ev("Bus Uncorrectable Error", C),
        0x09: _ev("Fatal NMI", C),
        0x0a: _ev("Bus Fatal Error", C),
        0x0b: _ev("Bus Degraded", W),
    },
    0x14: {
        0x00: _ev("Power Button pressed", I),
        0x01: _ev("Sleep Button pressed", I),
        0x02: _ev("Reset Button pressed", I),
        0x03: _ev("FRU latch open", W),
        0x04: _ev("FRU service request button", W),
    },
    0x19: {
        0x00: _ev("Soft Power Control Failure", C),
        0x01: _ev("Thermal Trip", C),
    },
    0x1b: {
        0x00: _ev("Cable/Interconnect is connected", I),
        0x01: _ev("Configuration Error - Incorrect cable connected / Incorrect interconnection", C),
    },
    0x1d: {
        0x00: _ev("Initiated by power up", I),
        0x01: _ev("Initiated by hard reset", I),
        0x02: _ev("Initiated by warm reset", I),
        0x03: _ev("User requested PXE boot", I),
        0x04: _ev("Automatic boot to diagnostic", I),
        0x05: _ev("OS / run-time software initiated hard reset", W),
        0x06: _ev("OS / run-time software initiated warm reset", W),
        0x07: _ev("System Restart", I),
    },
    0x1e: {
        0x00: _ev("No bootable media", C),
        0x01: _ev("Non-bootable diskette left in drive", C),
        0x02: _ev("PXE Server not found", C),
        0x03: _ev("Invalid boot sector", C),
        0x04: _ev("Timeout waiting for user selection of boot source", W),
    },
    0x1f: {
        0x00: _ev("A: boot completed", I),
        0x01: _ev("C: boot completed", I),
        0x02: _ev("PXE boot completed", I),
        0x03: _ev("Diagnostic boot completed", I),
        0x04: _ev("CD-ROM boot completed", I),
        0x05: _ev("ROM boot completed", I),
        0x06: _ev("boot completed - boot device not specified", I),
        0x07: _ev("Base OS/Hypervisor Installation started", I),
        0x08: _ev("Base OS/Hypervisor Installation completed", I),
        0x09: _ev("Base OS/Hypervisor Installation aborted", W),
        0x0a: _ev("Base OS/Hypervisor Installation failed", C),
    },
    0x20: {
        0x00: _ev("Critical stop during OS load / initialization", C),
        0x01: _ev("Run-time Critical Stop", C),
        0x02: _ev("OS Graceful Stop", W),
        0x03: _ev("OS Graceful Shutdown", W),
        0x04: _ev("Soft Shutdown initiated by PEF", W),
        0x05: _ev("Agent Not Responding", C),
    },
    0x21: {
        0x00: _ev("Fault Status asserted", C),
        0x01: _ev("Identify Status asserted", W),
        0x02: _ev("Slot / Connector Device installed/attached", I),
        0x03: _ev("Slot / Connector Ready for Device Installation", I),
        0x04: _ev("Slot/Connector Ready for Device Removal", I),
        0x05: _ev("Slot Power is Off", I),
        0x06: _ev("Slot / Connector Device Removal Request", W),
        0x07: _ev("Interlock asserted", W),
        0x08: _ev("Slot is Disabled", W),
        0x09: _ev("Slot holds spare device", I),
    },
    0x22: {
        0x00: _ev("S0 / G0 (working)", I),
        0x01: _ev("S1 (sleeping with system h/w & processor context maintained)", I),
        0x02: _ev("S2 (sleeping, processor context lost)", I),
        0x03: _ev("S3 (sleeping, processor & h/w context lost, memory retained)", I),
        0x04: _ev("S4 (non-volatile sleep / suspend-to disk)", I),
        0x05: _ev("S5 / G2 (soft-off)", I),
        0x06: _ev("S4 / S5 soft-off, particular S4 / S5 state cannot be determined", I),
        0x07: _ev("G3 / Mechanical Off", I),
        0x08: _ev("Sleeping in an S1, S2, or S3 states", I),
        0x09: _ev("G1 sleeping", I),
        0x0a: _ev("S5 entered by override", I),
        0x0b: _ev("Legacy ON state", I),
        0x0c: _ev("Legacy OFF state", I),
        0x0e: _ev("Unknown", C),
    },
    0x23: {
        0x00: _ev("Timer expired, status only (no action, no interrupt)", W),
        0x01: _ev("Hard Reset", C),
        0x02: _ev("Power Down", C),
        0x03: _ev("Power Cycle", C),
        0x08: _ev("Timer interrupt", W),
    },
    0x24: _all(
        I,
        "platform generated page",
        "platform generated LAN alert",
        "Platform Event Trap generated",
        "platform generated SNMP trap",
    ),
    0x25: {
        0x00: _ev("Entity Present", I),
        0x01: _ev("Entity Absent", C),
        0x02: _ev("Entity Disable", C),
    },
    0x27: {
        0x00: _ev("LAN Heartbeat Lost", W),
        0x01: _ev("LAN Heartbeat", I),
    },
    0x28: _all(
        C,
        "sensor access degraded or unavailable",
        "controller access degraded or unavailable",
        "management controller off-line",
        "management controller unavailable",
        "Sensor failure",
        "FRU failure",
    ),
    0x29: {
        0x00: _ev("battery low (predictive failure)", W),
        0x01: _ev("battery failed", C),
        0x02: _ev("battery presence detected", I),
    },
    0x2a: {
        0x00: _ev("Session Activated", I),
        0x01: _ev("Session Deactivated", I),
        0x02: _ev("Invalid Username or Password", W),
        0x03: _ev("Invalid password disable", C),
    },
    0x2b: {
        0x00: _ev("Hardware change detected with associated Entity", W),
        0x01: _ev("Firmware or software change detected with associated Entity", W),
        0x02: _ev("Hardware incompatibility detected with associated Entity", C),
        0x03: _ev("Firmware or software incompatibility detected with associated Entity", C),
        0x04: _ev("Entity is of an invalid or unsupported hardware version", C),
        0x05: _ev("Entity contains an invalid or unsupported firmware or software version", C),
        0x06: _ev("Hardware Change detected with associated Entity was successful", I),
        0x07: _ev("Software or F/W Change detected with associated Entity was successful", I),
    },
    0x2c: {
        0x00: _ev("FRU Not Installed", C),
        0x01: _ev("FRU Inactive (in standby or 'hot spare' state)", C),
        0x02: _ev("FRU Activation Requested", W),
        0x03: _ev("FRU Activation In Progress", W),
        0x04: _ev("FRU Active", I),
        0x05: _ev("FRU Deactivation Requested", W),
        0x06: _ev("FRU Deactivation In Progress", W),
        0x07: _ev("FRU Communication Lost", C),
    },
})

SENSOR_SPECIFIC = 0x6f
UNKNOWN_EVENT = _ev("unknown", NA)


@dataclass(frozen=True)
class Event:
    """A resolved event: what happened and how bad it is"""
    name: str
    severity: EventSeverity
    assertion: bool = True
    event_reading_type: int = 0
    sensor_type: int = 0
    offset: int = 0

    @property
    def sensor_class(self) -> SensorClass:
        return SensorClass.from_event_reading_type(self.event_reading_type)

    def __str__(self) -> str:
        direction = "Asserted" if self.assertion else "Deasserted"
        return f"{self.name} | {direction} | {self.severity}"


def event_definition(event_reading_type: int, sensor_type: int, offset: int) -> EventDefinition:
    """Table entry for an event, UNKNOWN_EVENT when there is none."""
    if event_reading_type == SENSOR_SPECIFIC:
        table = SENSOR_SPECIFIC_EVENTS.get(sensor_type, {})
    else:
        table = GENERIC_EVENTS.get(event_reading_type, {})
    return table.get(offset, UNKNOWN_EVENT)


def lookup_event(event_reading_type: int, sensor_type: int, offset: int, assertion: bool = True) -> Event:
    """Resolve an event offset to its name and severity.

    Args:
        event_reading_type: Event/reading type code (0x01-0x0C, 0x6F)
        sensor_type: Sensor type code, selects sensor-specific tables and
            generic severity overrides
        offset: Event offset (event data 1 bits 3:0)
        assertion: False for deassertion events

    Examples:
        >>> lookup_event(0x0b, 0x09, 3).severity
        <EventSeverity.CRITICAL: 'Critical'>
        >>> lookup_event(0x6f, 0x07, 0).name
        'IERR'
    """
    definition = event_definition(event_reading_type, sensor_type, offset)
    return Event(
        name=definition.name,
        severity=definition.severity(sensor_type, assertion),
        assertion=assertion,
        event_reading_type=event_reading_type,
        sensor_type=sensor_type,
        offset=offset,
    )
