"""
Static IPMI Lookup Tables

Read-only name tables for the enumerated codes found in SDR, FRU and SEL
records. Lookups never fail: codes outside the tables resolve to a
"reserved", "OEM" or "unknown" label because BMCs routinely report vendor
specific values.
"""

from types import MappingProxyType
from typing import Mapping

# IPMI 2.0 section 43.14, Entity ID codes
ENTITY_IDS: Mapping[int, str] = MappingProxyType({
    0x00: "unspecified",
    0x01: "other",
    0x02: "unknown",
    0x03: "processor",
    0x04: "disk or disk bay",
    0x05: "peripheral bay",
    0x06: "system management module",
    0x07: "system board",
    0x08: "memory module",
    0x09: "processor module",
    0x0a: "power supply",
    0x0b: "add-in card",
    0x0c: "front panel board",
    0x0d: "back panel board",
    0x0e: "power system board",
    0x0f: "drive backplane",
    0x10: "system internal expansion board",
    0x11: "other system board",
    0x12: "processor board",
    0x13: "power unit / power domain",
    0x14: "power module / DC-to-DC converter",
    0x15: "power management / power distribution board",
    0x16: "chassis back panel board",
    0x17: "system chassis",
    0x18: "sub-chassis",
    0x19: "other chassis board",
    0x1a: "disk drive bay",
    0x1b: "peripheral bay",
    0x1c: "device bay",
    0x1d: "fan / cooling device",
    0x1e: "cooling unit / cooling domain",
    0x1f: "cable / interconnect",
    0x20: "memory device",
    0x21: "system management software",
    0x22: "system firmware",
    0x23: "operating system",
    0x24: "system bus",
    0x25: "group",
    0x26: "remote (out of band) management communication device",
    0x27: "external environment",
    0x28: "battery",
    0x29: "processing blade",
    0x2a: "connectivity switch",
    0x2b: "processor/memory module",
    0x2c: "I/O module",
    0x2d: "processor / IO module",
    0x2e: "management controller firmware",
    0x2f: "IPMI channel",
    0x30: "PCI bus",
    0x31: "PCI Express bus",
    0x32: "SCSI bus (parallel)",
    0x33: "SATA / SAS bus",
    0x34: "processor / front-side bus",
    0x35: "real time clock (RTC)",
    0x37: "air inlet",
    # DCMI entity ids
    0x40: "air inlet",
    0x41: "processor",
    0x42: "system board",
})

# IPMI 2.0 table 42-3, Sensor Type codes
SENSOR_TYPES: Mapping[int, str] = MappingProxyType({
    0x00: "Reserved",
    0x01: "Temperature",
    0x02: "Voltage",
    0x03: "Current",
    0x04: "Fan",
    0x05: "Physical Security",
    0x06: "Platform Security",
    0x07: "Processor",
    0x08: "Power Supply",
    0x09: "Power Unit",
    0x0a: "Cooling Device",
    0x0b: "Other Units-based Sensor",
    0x0c: "Memory",
    0x0d: "Drive Slot / Bay",
    0x0e: "POST Memory Resize",
    0x0f: "System Firmware Progress",
    0x10: "Event Logging Disabled",
    0x11: "Watchdog 1",
    0x12: "System Event",
    0x13: "Critical Interrupt",
    0x14: "Button / Switch",
    0x15: "Module / Board",
    0x16: "Microcontroller / Coprocessor",
    0x17: "Add-in Card",
    0x18: "Chassis",
    0x19: "Chip Set",
    0x1a: "Other FRU",
    0x1b: "Cable / Interconnect",
    0x1c: "Terminator",
    0x1d: "System Boot / Restart Initiated",
    0x1e: "Boot Error",
    0x1f: "Base OS Boot / Installation Status",
    0x20: "OS Stop / Shutdown",
    0x21: "Slot / Connector",
    0x22: "System ACPI Power State",
    0x23: "Watchdog 2",
    0x24: "Platform Alert",
    0x25: "Entity Presence",
    0x26: "Monitor ASIC / IC",
    0x27: "LAN",
    0x28: "Management Subsystem Health",
    0x29: "Battery",
    0x2a: "Session Audit",
    0x2b: "Version Change",
    0x2c: "FRU State",
})

# IPMI 2.0 table 43-15, Sensor Unit Type codes, indexed by code
UNIT_TYPES = (
    "unspecified", "degrees C", "degrees F", "degrees K", "Volts",
    "Amps", "Watts", "Joules", "Coulombs", "VA",
    "Nits", "lumen", "lux", "Candela", "kPa",
    "PSI", "Newton", "CFM", "RPM", "Hz",
    "microsecond", "millisecond", "second", "minute", "hour",
    "day", "week", "mil", "inches", "feet",
    "cu in", "cu feet", "mm", "cm", "m",
    "cu cm", "cu m", "liters", "fluid ounce", "radians",
    "steradians", "revolutions", "cycles", "gravities", "ounce",
    "pound", "ft-lb", "oz-in", "gauss", "gilberts",
    "henry", "millihenry", "farad", "microfarad", "ohms",
    "siemens", "mole", "becquerel", "PPM", "reserved",
    "Decibels", "DbA", "DbC", "gray", "sievert",
    "color temp deg K", "bit", "kilobit", "megabit", "gigabit",
    "byte", "kilobyte", "megabyte", "gigabyte", "word",
    "dword", "qword", "line", "hit", "miss",
    "retry", "reset", "overflow", "underrun", "collision",
    "packets", "messages", "characters", "error", "correctable error",
    "uncorrectable error", "fatal error", "grams",
)

# IPMI 2.0 table 42-1, Event/Reading Type code ranges
EVENT_READING_TYPES: Mapping[int, str] = MappingProxyType({
    0x00: "Unspecified",
    0x01: "Threshold",
    0x02: "Generic (DMI-based usage state)",
    0x03: "Generic (digital state)",
    0x04: "Generic (predictive failure)",
    0x05: "Generic (limit)",
    0x06: "Generic (performance)",
    0x07: "Generic (severity)",
    0x08: "Generic (device presence)",
    0x09: "Generic (device enabled)",
    0x0a: "Generic (availability state)",
    0x0b: "Generic (redundancy)",
    0x0c: "Generic (ACPI device power state)",
    0x6f: "Sensor-specific",
})

# SMBIOS table 17, System Enclosure or Chassis Types
CHASSIS_TYPES: Mapping[int, str] = MappingProxyType({
    0x01: "Other",
    0x02: "Unknown",
    0x03: "Desktop",
    0x04: "Low Profile Desktop",
    0x05: "Pizza Box",
    0x06: "Mini Tower",
    0x07: "Tower",
    0x08: "Portable",
    0x09: "Laptop",
    0x0a: "Notebook",
    0x0b: "Hand Held",
    0x0c: "Docking Station",
    0x0d: "All in One",
    0x0e: "Sub Notebook",
    0x0f: "Space-saving",
    0x10: "Lunch Box",
    0x11: "Main Server Chassis",
    0x12: "Expansion Chassis",
    0x13: "SubChassis",
    0x14: "Bus Expansion Chassis",
    0x15: "Peripheral Chassis",
    0x16: "RAID Chassis",
    0x17: "Rack Mount Chassis",
    0x18: "Sealed-case PC",
    0x19: "Multi-system chassis",
    0x1a: "Compact PCI",
    0x1b: "Advanced TCA",
    0x1c: "Blade",
    0x1d: "Blade Enclosure",
    0x1e: "Tablet",
    0x1f: "Convertible",
    0x20: "Detachable",
    0x21: "IoT Gateway",
    0x22: "Embedded PC",
    0x23: "Mini PC",
    0x24: "Stick PC",
})

# MultiRecord type ids
MULTIRECORD_TYPES: Mapping[int, str] = MappingProxyType({
    0x00: "Power Supply",
    0x01: "DC Output",
    0x02: "DC Load",
    0x03: "Management Access",
    0x04: "Base Compatibility",
    0x05: "Extended Compatibility",
    0x06: "ASF Fixed SMBus Device",
    0x07: "ASF Legacy-Device Alerts",
    0x08: "ASF Remote Control",
    0x09: "Extended DC Output",
    0x0a: "Extended DC Load",
})


def entity_id_name(code: int) -> str:
    name = ENTITY_IDS.get(code)
    if name is not None:
        return name
    if 0x90 <= code <= 0xaf:
        return f"chassis-specific ({code:#04x})"
    if 0xb0 <= code <= 0xcf:
        return f"board-set specific ({code:#04x})"
    if 0xd0 <= code <= 0xff:
        return f"OEM system integrator defined ({code:#04x})"
    return f"reserved ({code:#04x})"


def sensor_type_name(code: int) -> str:
    name = SENSOR_TYPES.get(code)
    if name is not None:
        return name
    if 0xc0 <= code <= 0xff:
        return f"OEM reserved ({code:#04x})"
    return f"reserved ({code:#04x})"


def unit_name(code: int) -> str:
    if 0 <= code < len(UNIT_TYPES):
        return UNIT_TYPES[code]
    return "unknown"


def event_reading_type_name(code: int) -> str:
    name = EVENT_READING_TYPES.get(code)
    if name is not None:
        return name
    if 0x70 <= code <= 0x7f:
        return "OEM"
    return "Reserved"


def chassis_type_name(code: int) -> str:
    return CHASSIS_TYPES.get(code, "unknown")


def multirecord_type_name(code: int) -> str:
    name = MULTIRECORD_TYPES.get(code)
    if name is not None:
        return name
    if 0xc0 <= code <= 0xff:
        return "OEM"
    return "reserved"
