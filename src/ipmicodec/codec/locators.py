"""
Entity Association and Device Locator Records

Decoders for the SDR record types that describe topology rather than a
sensor: entity associations (0x08, 0x09), device locators (0x10, 0x11,
0x12), management controller confirmation (0x13), BMC message channel info
(0x14) and OEM records (0xC0). Each decoder receives the full record bytes,
5-byte header included, so field offsets match the IPMI tables.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .bits import is_bit_set, require_length, unpack_bytes, unpack_uint16l, unpack_uint24l
from .tables import entity_id_name
from .typelength import TypeLengthField, read_id_string

OEM_RECORD_MAX_SIZE = 64


@dataclass(frozen=True)
class EntityRef:
    """An (entity id, instance) pair

    Attributes:
        entity_id: Entity ID code
        instance: Entity instance, bits 6:0
        logical: Bit 7 of the instance byte (logical container entity)
    """
    entity_id: int
    instance: int
    logical: bool = False

    @classmethod
    def parse(cls, entity_id: int, instance: int) -> "EntityRef":
        return cls(entity_id, instance & 0x7f, bool(instance & 0x80))

    @property
    def name(self) -> str:
        return entity_id_name(self.entity_id)

    @property
    def is_unspecified(self) -> bool:
        return self.entity_id == 0

    def __str__(self) -> str:
        return f"{self.entity_id}.{self.instance}"


@dataclass(frozen=True)
class EntityAssociation:
    """Entity Association record (type 0x08)

    When ``contained_as_range`` is set, the first two and the last two
    contained entities each describe an inclusive instance range.
    """
    container: EntityRef
    contained_as_range: bool
    linked_records_exist: bool
    presence_sensor_always_accessible: bool
    contained: Tuple[EntityRef, ...]

    @property
    def contained_entities(self) -> List[EntityRef]:
        """Contained entities with unused (id 0) slots dropped."""
        return [e for e in self.contained if not e.is_unspecified]


def _association_flags(flags: int) -> Tuple[bool, bool, bool]:
    return is_bit_set(flags, 7), is_bit_set(flags, 6), is_bit_set(flags, 5)


def parse_entity_association(data: bytes) -> EntityAssociation:
    require_length(data, 16, "sdr (entity association)")
    as_range, linked, presence = _association_flags(data[7])
    return EntityAssociation(
        container=EntityRef.parse(data[5], data[6]),
        contained_as_range=as_range,
        linked_records_exist=linked,
        presence_sensor_always_accessible=presence,
        contained=tuple(EntityRef.parse(data[i], data[i + 1]) for i in range(8, 16, 2)),
    )


@dataclass(frozen=True)
class RelativeEntity:
    """A contained entity behind a specific controller address and channel"""
    address: int
    channel: int
    entity: EntityRef


@dataclass(frozen=True)
class DeviceRelativeEntityAssociation:
    """Device-relative Entity Association record (type 0x09)"""
    container: EntityRef
    container_address: int
    container_channel: int
    contained_as_range: bool
    linked_records_exist: bool
    presence_sensor_always_accessible: bool
    contained: Tuple[RelativeEntity, ...]

    @property
    def contained_entities(self) -> List[RelativeEntity]:
        return [e for e in self.contained if not e.entity.is_unspecified]


def parse_device_relative_association(data: bytes) -> DeviceRelativeEntityAssociation:
    require_length(data, 32, "sdr (device-relative entity association)")
    as_range, linked, presence = _association_flags(data[9])
    contained = tuple(
        RelativeEntity(
            address=data[i] >> 1,
            channel=data[i + 1] >> 4,
            entity=EntityRef.parse(data[i + 2], data[i + 3]),
        )
        for i in range(10, 26, 4)
    )
    # bytes 26-31 are reserved
    return DeviceRelativeEntityAssociation(
        container=EntityRef.parse(data[5], data[6]),
        container_address=data[7] >> 1,
        container_channel=data[8] >> 4,
        contained_as_range=as_range,
        linked_records_exist=linked,
        presence_sensor_always_accessible=presence,
        contained=contained,
    )


@dataclass(frozen=True)
class GenericLocator:
    """Generic Device Locator record (type 0x10)

    Attributes:
        access_address: Controller used to access the device (7-bit)
        slave_address: Device slave address (7-bit)
        channel: 4-bit channel number, MSB taken from byte 6 bit 0
        access_lun: LUN for Master Write-Read
        private_bus: Private bus id
        address_span: Number of additional consecutive addresses used
        device_type: Device type code (IPMI table 43-12)
        device_type_modifier: Device type modifier
        entity: Associated entity
        device_id: Device ID string
    """
    access_address: int
    slave_address: int
    channel: int
    access_lun: int
    private_bus: int
    address_span: int
    device_type: int
    device_type_modifier: int
    entity: EntityRef
    device_id: TypeLengthField

    @property
    def name(self) -> str:
        return self.device_id.text


def parse_generic_locator(data: bytes) -> GenericLocator:
    require_length(data, 16, "sdr (generic locator)")
    b6, b7 = data[6], data[7]
    return GenericLocator(
        access_address=data[5] >> 1,
        slave_address=b6 >> 1,
        channel=((b6 & 0x01) << 3) | (b7 >> 5),
        access_lun=(b7 >> 3) & 0x03,
        private_bus=b7 & 0x07,
        address_span=data[8] & 0x07,
        device_type=data[10],
        device_type_modifier=data[11],
        entity=EntityRef.parse(data[12], data[13]),
        device_id=read_id_string(data, 15, 16, "sdr (generic locator)"),
    )


class FRULocation(Enum):
    """Where a FRU device is reached"""
    IPMB = "ipmb"
    MANAGEMENT_CONTROLLER = "management controller"
    PRIVATE_BUS = "private bus"


@dataclass(frozen=True)
class FRUDeviceLocator:
    """FRU Device Locator record (type 0x11)

    For logical FRU devices ``device_id`` is the FRU device id used with
    Read FRU Data; otherwise it holds the 7-bit slave address in bits 7:1.
    """
    access_address: int
    device_id: int
    logical: bool
    access_lun: int
    private_bus: int
    channel: int
    device_type: int
    device_type_modifier: int
    entity: EntityRef
    device_id_string: TypeLengthField

    @property
    def name(self) -> str:
        return self.device_id_string.text

    @property
    def location(self) -> FRULocation:
        if self.access_address == 0x00:
            return FRULocation.IPMB
        if self.logical:
            return FRULocation.MANAGEMENT_CONTROLLER
        return FRULocation.PRIVATE_BUS


def parse_fru_locator(data: bytes) -> FRUDeviceLocator:
    require_length(data, 16, "sdr (fru device locator)")
    b7 = data[7]
    return FRUDeviceLocator(
        access_address=data[5] >> 1,
        device_id=data[6],
        logical=is_bit_set(b7, 7),
        access_lun=(b7 >> 3) & 0x03,
        private_bus=b7 & 0x07,
        channel=data[8] >> 4,
        device_type=data[10],
        device_type_modifier=data[11],
        entity=EntityRef.parse(data[12], data[13]),
        device_id_string=read_id_string(data, 15, 16, "sdr (fru device locator)"),
    )


MC_CAPABILITIES = (
    "chassis_device",
    "bridge",
    "ipmb_event_generator",
    "ipmb_event_receiver",
    "fru_inventory_device",
    "sel_device",
    "sdr_repository_device",
    "sensor_device",
)


@dataclass(frozen=True)
class MCDeviceLocator:
    """Management Controller Device Locator record (type 0x12)"""
    slave_address: int
    channel: int
    acpi_system_power_notification: bool
    acpi_device_power_notification: bool
    controller_logs_init_errors: bool
    log_init_errors: bool
    chassis_device: bool
    bridge: bool
    ipmb_event_generator: bool
    ipmb_event_receiver: bool
    fru_inventory_device: bool
    sel_device: bool
    sdr_repository_device: bool
    sensor_device: bool
    entity: EntityRef
    device_id: TypeLengthField

    @property
    def name(self) -> str:
        return self.device_id.text

    @property
    def capabilities(self) -> List[str]:
        return [cap for cap in MC_CAPABILITIES if getattr(self, cap)]


def parse_mc_locator(data: bytes) -> MCDeviceLocator:
    require_length(data, 16, "sdr (mgmt controller device locator)")
    flags, caps = data[7], data[8]
    capability_flags = {name: is_bit_set(caps, 7 - i) for i, name in enumerate(MC_CAPABILITIES)}
    return MCDeviceLocator(
        slave_address=data[5] >> 1,
        channel=data[6] & 0x0f,
        acpi_system_power_notification=is_bit_set(flags, 7),
        acpi_device_power_notification=is_bit_set(flags, 6),
        controller_logs_init_errors=is_bit_set(flags, 3),
        log_init_errors=is_bit_set(flags, 2),
        entity=EntityRef.parse(data[12], data[13]),
        device_id=read_id_string(data, 15, 16, "sdr (mgmt controller device locator)"),
        **capability_flags,
    )


@dataclass(frozen=True)
class MCConfirmation:
    """Management Controller Confirmation record (type 0x13)"""
    slave_address: int
    device_id: int
    channel: int
    device_revision: int
    firmware_major: int
    firmware_minor: int
    ipmi_major: int
    ipmi_minor: int
    manufacturer_id: int
    product_id: int
    guid: bytes

    @property
    def firmware_version(self) -> str:
        # minor revision is BCD encoded
        return f"{self.firmware_major}.{self.firmware_minor:02x}"

    @property
    def ipmi_version(self) -> str:
        return f"{self.ipmi_major}.{self.ipmi_minor}"


def parse_mc_confirmation(data: bytes) -> MCConfirmation:
    require_length(data, 32, "sdr (mgmt controller confirmation)")
    return MCConfirmation(
        slave_address=data[5] >> 1,
        device_id=data[6],
        channel=data[7] >> 4,
        device_revision=data[7] & 0x0f,
        firmware_major=data[8] & 0x7f,
        firmware_minor=data[9],
        ipmi_major=data[10] & 0x0f,
        ipmi_minor=data[10] >> 4,
        manufacturer_id=unpack_uint24l(data, 11),
        product_id=unpack_uint16l(data, 14),
        guid=unpack_bytes(data, 16, 16),
    )


@dataclass(frozen=True)
class ChannelInfo:
    """One BMC message channel descriptor byte"""
    transmit_supported: bool
    receive_lun: int
    protocol: int

    @classmethod
    def parse(cls, value: int) -> "ChannelInfo":
        return cls(is_bit_set(value, 7), (value >> 4) & 0x07, value & 0x0f)


@dataclass(frozen=True)
class BMCChannelInfo:
    """BMC Message Channel Info record (type 0x14)"""
    channels: Tuple[ChannelInfo, ...]
    messaging_interrupt_type: int
    event_buffer_interrupt_type: int


def parse_bmc_channel_info(data: bytes) -> BMCChannelInfo:
    require_length(data, 16, "sdr (bmc message channel info)")
    return BMCChannelInfo(
        channels=tuple(ChannelInfo.parse(b) for b in data[5:13]),
        messaging_interrupt_type=data[13],
        event_buffer_interrupt_type=data[14],
    )


@dataclass(frozen=True)
class OEMRecord:
    """OEM record (type 0xC0): manufacturer id plus opaque data"""
    manufacturer_id: int
    data: bytes


def parse_oem_record(data: bytes) -> OEMRecord:
    require_length(data, 8, "sdr (oem)")
    return OEMRecord(
        manufacturer_id=unpack_uint24l(data, 5),
        data=bytes(data[8:OEM_RECORD_MAX_SIZE]),
    )
