"""
SDR, FRU and SEL Storage Walkers

This module fetches raw records from the BMC through an IPMICommander and
hands them to the decoders in ``ipmicodec.codec``:

- SDRRepository follows the Get SDR next-record-id chain, reading each
  record in partial chunks under a repository reservation
- SensorReader takes live samples and converts them with the sensor's SDR
- FRUInventory reads a FRU device in chunks and decodes the inventory
- SELReader follows the Get SEL Entry chain

Decode errors are logged and skipped, or re-raised, per configuration.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..codec.bits import require_length
from ..codec.errors import InsufficientData, IPMIError
from ..codec.fru import FRU, parse_fru
from ..codec.mask import THRESHOLD_ORDER, ThresholdType
from ..codec.reading import ReadingFactors, parse_reading_factors
from ..codec.sdr import LAST_RECORD_ID, SDR, SDR_HEADER_SIZE, CompactSensor, FullSensor, parse_sdr
from ..codec.sel import SEL, SEL_ENTRY_SIZE, parse_sel
from .commander import (
    CC_CANNOT_RETURN_BYTES,
    CC_RESERVATION_CANCELLED,
    NETFN_SENSOR,
    NETFN_STORAGE,
    IPMICommander,
    IPMICommandError,
)

logger = logging.getLogger(__name__)

CMD_GET_SENSOR_READING_FACTORS = 0x23
CMD_GET_SENSOR_READING = 0x2d
CMD_GET_FRU_INVENTORY_AREA_INFO = 0x10
CMD_READ_FRU_DATA = 0x11
CMD_GET_SDR_REPOSITORY_INFO = 0x20
CMD_RESERVE_SDR_REPOSITORY = 0x22
CMD_GET_SDR = 0x23
CMD_GET_SEL_INFO = 0x40
CMD_GET_SEL_ENTRY = 0x43

# Re-reservations allowed per record before giving up
MAX_RESERVATION_ATTEMPTS = 5

# Critical and non-recoverable thresholds
CRITICAL_THRESHOLDS = {ThresholdType.LCR, ThresholdType.LNR, ThresholdType.UCR, ThresholdType.UNR}


@dataclass
class SDRRepositoryInfo:
    """Get SDR Repository Info response"""
    version: int
    record_count: int
    free_space: int


class SDRRepository:
    """Walks the BMC's SDR repository

    Examples:
        >>> repo = SDRRepository(IPMICommander("config.yaml"))
        >>> for sdr in repo.sensors():
        ...     print(sdr.name, sdr.record.sensor_type_name)
    """

    def __init__(self, commander: IPMICommander, chunk_size: Optional[int] = None,
                 skip_invalid: Optional[bool] = None):
        """Initialize the walker

        Args:
            commander: IPMICommander instance for IPMI communication
            chunk_size: Bytes per partial Get SDR read (config sdr.chunk_size)
            skip_invalid: Skip undecodable records (config sdr.skip_invalid)
        """
        config = commander.config.get("sdr", {})
        self.commander = commander
        self.chunk_size = int(chunk_size if chunk_size is not None else config.get("chunk_size", 16))
        self.skip_invalid = bool(skip_invalid if skip_invalid is not None else config.get("skip_invalid", True))
        if not 1 <= self.chunk_size <= 0xff:
            raise IPMIError(f"Invalid SDR chunk size {self.chunk_size}, must be 1-255")
        self._reservation: Optional[int] = None

    def info(self) -> SDRRepositoryInfo:
        data = self.commander.raw(NETFN_STORAGE, CMD_GET_SDR_REPOSITORY_INFO)
        require_length(data, 5, "get sdr repository info")
        return SDRRepositoryInfo(
            version=data[0],
            record_count=data[1] | (data[2] << 8),
            free_space=data[3] | (data[4] << 8),
        )

    def reserve(self) -> int:
        data = self.commander.raw(NETFN_STORAGE, CMD_RESERVE_SDR_REPOSITORY)
        require_length(data, 2, "reserve sdr repository")
        self._reservation = data[0] | (data[1] << 8)
        logger.debug(f"SDR reservation id {self._reservation:#06x}")
        return self._reservation

    def _get_sdr(self, record_id: int, offset: int, count: int) -> Tuple[int, bytes]:
        reservation = self._reservation if self._reservation is not None else self.reserve()
        data = self.commander.raw(NETFN_STORAGE, CMD_GET_SDR, [
            reservation & 0xff, reservation >> 8,
            record_id & 0xff, record_id >> 8,
            offset, count,
        ])
        require_length(data, 2, "get sdr")
        return data[0] | (data[1] << 8), data[2:]

    def _read_part(self, record_id: int, offset: int, count: int) -> Tuple[int, bytes]:
        """Get SDR with re-reservation when the reservation was cancelled."""
        for attempt in range(MAX_RESERVATION_ATTEMPTS):
            try:
                return self._get_sdr(record_id, offset, count)
            except IPMICommandError as e:
                if e.completion_code != CC_RESERVATION_CANCELLED:
                    raise
                logger.debug(f"SDR reservation cancelled, reserving again ({attempt + 1}/{MAX_RESERVATION_ATTEMPTS})")
                self.reserve()
        raise IPMIError(f"SDR record {record_id:#06x}: reservation cancelled {MAX_RESERVATION_ATTEMPTS} times")

    def read_record(self, record_id: int) -> Tuple[int, bytes]:
        """Read one raw record, header included.

        Args:
            record_id: Record id to read (0x0000 for the first record)

        Returns:
            Tuple of (next record id, raw record bytes)

        Raises:
            IPMICommandError: If the BMC rejects the read
            InsufficientData: If the BMC returns fewer bytes than requested
        """
        next_id, header = self._read_part(record_id, 0, SDR_HEADER_SIZE)
        require_length(header, SDR_HEADER_SIZE, f"sdr {record_id:#06x} header")
        header = header[:SDR_HEADER_SIZE]
        length = header[4]

        body = b""
        chunk = self.chunk_size
        while len(body) < length:
            count = min(chunk, length - len(body))
            try:
                _, part = self._read_part(record_id, SDR_HEADER_SIZE + len(body), count)
            except IPMICommandError as e:
                if e.completion_code == CC_CANNOT_RETURN_BYTES and chunk > 1:
                    chunk = max(1, chunk // 2)
                    logger.debug(f"BMC cannot return {count} bytes, reading {chunk} byte chunks")
                    continue
                raise
            if not part:
                raise InsufficientData(f"sdr {record_id:#06x}", SDR_HEADER_SIZE + len(body), SDR_HEADER_SIZE + length)
            body += part[:count]
        return next_id, header + body

    def records(self) -> Iterator[SDR]:
        """Yield every decodable record in repository order.

        Raises:
            IPMIError: If the next-record-id chain loops, or a record fails
                to decode and skip_invalid is off
        """
        record_id = 0x0000
        seen = set()
        count = skipped = 0
        self._reservation = None
        while record_id != LAST_RECORD_ID:
            if record_id in seen:
                raise IPMIError(f"SDR chain loops back to record {record_id:#06x}")
            seen.add(record_id)

            next_id, raw = self.read_record(record_id)
            logger.debug(f"Read SDR {record_id:#06x} ({len(raw)} bytes), next {next_id:#06x}")
            if next_id == record_id:
                raise IPMIError(f"SDR record {record_id:#06x} points to itself")

            try:
                sdr = parse_sdr(raw, next_id)
            except IPMIError as e:
                if not self.skip_invalid:
                    raise
                logger.warning(f"Skipping SDR {record_id:#06x}: {e}")
                skipped += 1
            else:
                count += 1
                yield sdr
            record_id = next_id

        logger.info(f"SDR walk complete: {count} records, {skipped} skipped")

    def sensors(self) -> List[SDR]:
        """Full and Compact sensor records only."""
        return [sdr for sdr in self.records() if sdr.is_sensor]


@dataclass
class SensorValue:
    """A live sensor sample, converted with its SDR

    Attributes:
        name: Sensor ID string
        sensor_number: Sensor number
        raw: Raw reading byte
        value: Converted reading, None for discrete sensors or when unavailable
        unit: Unit label
        timestamp: Unix timestamp when the sample was taken
        available: False when the BMC flags the reading as unavailable
        scanning_enabled: Sensor scanning bit
        event_messages_enabled: Event messages bit
        threshold_status: Thresholds the reading is at or beyond
        states: Asserted discrete states
    """
    name: str
    sensor_number: int
    raw: int
    value: Optional[float]
    unit: str
    timestamp: float
    available: bool = True
    scanning_enabled: bool = True
    event_messages_enabled: bool = True
    threshold_status: List[ThresholdType] = field(default_factory=list)
    states: List[int] = field(default_factory=list)

    @property
    def age(self) -> float:
        return time.time() - self.timestamp

    @property
    def is_valid(self) -> bool:
        return self.available and self.scanning_enabled

    @property
    def is_critical(self) -> bool:
        return any(t in CRITICAL_THRESHOLDS for t in self.threshold_status)


SensorRecord = Union[FullSensor, CompactSensor]


class SensorReader:
    """Reads and converts live sensor values"""

    def __init__(self, commander: IPMICommander):
        self.commander = commander

    def reading_factors(self, sensor_number: int, raw: int) -> ReadingFactors:
        """Get Sensor Reading Factors for one raw value of a non-linear sensor."""
        data = self.commander.raw(NETFN_SENSOR, CMD_GET_SENSOR_READING_FACTORS, [sensor_number, raw])
        require_length(data, 7, "get sensor reading factors")
        return parse_reading_factors(data[1:7])

    def read(self, record: Union[SDR, SensorRecord]) -> SensorValue:
        """Sample a sensor and convert the reading.

        Args:
            record: The sensor's SDR (or its Full/Compact body)

        Returns:
            SensorValue with the converted value and status flags

        Raises:
            IPMIError: If the record is not a sensor or the read fails
        """
        sensor = record.record if isinstance(record, SDR) else record
        if not isinstance(sensor, (FullSensor, CompactSensor)):
            raise IPMIError(f"Not a sensor record: {type(sensor).__name__}")

        data = self.commander.raw(NETFN_SENSOR, CMD_GET_SENSOR_READING, [sensor.sensor_number])
        require_length(data, 2, f"get sensor reading {sensor.sensor_number:#04x}")
        raw, flags = data[0], data[1]
        available = not (flags & 0x20)
        status = data[2] if len(data) > 2 else 0
        status_ext = data[3] if len(data) > 3 else 0

        threshold_status: List[ThresholdType] = []
        states: List[int] = []
        if sensor.is_threshold:
            threshold_status = [t for i, t in enumerate(THRESHOLD_ORDER) if status & (1 << i)]
        else:
            word = status | ((status_ext & 0x7f) << 8)
            states = [i for i in range(15) if word & (1 << i)]

        value = None
        if available and isinstance(sensor, FullSensor) and sensor.is_threshold:
            factors = None
            if sensor.is_non_linear:
                factors = self.reading_factors(sensor.sensor_number, raw)
            value = sensor.convert_reading(raw, factors)

        reading = SensorValue(
            name=sensor.name,
            sensor_number=sensor.sensor_number,
            raw=raw,
            value=value,
            unit=sensor.unit.label,
            timestamp=time.time(),
            available=available,
            scanning_enabled=bool(flags & 0x40),
            event_messages_enabled=bool(flags & 0x80),
            threshold_status=threshold_status,
            states=states,
        )
        logger.debug(f"Sensor {reading.name} ({reading.sensor_number:#04x}): {reading.value} {reading.unit}")
        return reading

    def read_all(self, sensors: List[SDR]) -> Dict[str, SensorValue]:
        """Sample every sensor; sensors that fail to read or decode are logged and left out."""
        readings = {}
        for sdr in sensors:
            try:
                readings[sdr.name] = self.read(sdr)
            except IPMIError as e:
                logger.warning(f"Failed to read sensor {sdr.name}: {e}")
        return readings


class FRUInventory:
    """Reads FRU inventory devices"""

    def __init__(self, commander: IPMICommander, chunk_size: Optional[int] = None,
                 strict_checksum: Optional[bool] = None):
        config = commander.config.get("fru", {})
        self.commander = commander
        self.default_device_id = int(config.get("device_id", 0))
        self.chunk_size = int(chunk_size if chunk_size is not None else config.get("chunk_size", 16))
        self.strict_checksum = bool(
            strict_checksum if strict_checksum is not None else config.get("strict_checksum", False)
        )
        if not 2 <= self.chunk_size <= 0xff:
            raise IPMIError(f"Invalid FRU chunk size {self.chunk_size}, must be 2-255")

    def area_info(self, device_id: int) -> Tuple[int, bool]:
        """Get FRU Inventory Area Info.

        Returns:
            Tuple of (area size in bytes, True if the device is word addressed)
        """
        data = self.commander.raw(NETFN_STORAGE, CMD_GET_FRU_INVENTORY_AREA_INFO, [device_id])
        require_length(data, 3, "get fru inventory area info")
        return data[0] | (data[1] << 8), bool(data[2] & 0x01)

    def read_bytes(self, device_id: int) -> bytes:
        size, word_access = self.area_info(device_id)
        logger.debug(f"FRU device {device_id}: {size} bytes, {'word' if word_access else 'byte'} access")

        content = b""
        chunk = self.chunk_size
        while len(content) < size:
            count = min(chunk, size - len(content))
            offset = len(content)
            if word_access:
                req_offset, req_count = offset >> 1, max(1, count >> 1)
            else:
                req_offset, req_count = offset, count
            try:
                data = self.commander.raw(NETFN_STORAGE, CMD_READ_FRU_DATA, [
                    device_id, req_offset & 0xff, req_offset >> 8, req_count,
                ])
            except IPMICommandError as e:
                if e.completion_code == CC_CANNOT_RETURN_BYTES and chunk > 2:
                    chunk = max(2, chunk // 2)
                    logger.debug(f"FRU device {device_id}: shrinking read size to {chunk}")
                    continue
                raise
            require_length(data, 1, "read fru data")
            returned = data[0] * 2 if word_access else data[0]
            part = data[1:1 + returned]
            if not part:
                raise InsufficientData(f"fru device {device_id}", len(content), size)
            content += part
        return content[:size]

    def read(self, device_id: Optional[int] = None) -> FRU:
        """Read and decode a FRU device.

        Args:
            device_id: FRU device id, default from config fru.device_id

        Raises:
            IPMIError: If the read fails, the data does not decode, or a
                checksum fails with strict_checksum set
        """
        if device_id is None:
            device_id = self.default_device_id
        fru = parse_fru(self.read_bytes(device_id))
        if not fru.checksums_valid:
            if self.strict_checksum:
                raise IPMIError(f"FRU device {device_id}: checksum mismatch")
            logger.warning(f"FRU device {device_id}: checksum mismatch, using data anyway")
        logger.info(f"Read FRU device {device_id}")
        return fru


class SELReader:
    """Reads the System Event Log"""

    def __init__(self, commander: IPMICommander, skip_invalid: Optional[bool] = None):
        config = commander.config.get("sel", {})
        self.commander = commander
        self.skip_invalid = bool(skip_invalid if skip_invalid is not None else config.get("skip_invalid", True))

    def entry_count(self) -> int:
        data = self.commander.raw(NETFN_STORAGE, CMD_GET_SEL_INFO)
        require_length(data, 3, "get sel info")
        return data[1] | (data[2] << 8)

    def read_entry(self, record_id: int) -> Tuple[int, bytes]:
        data = self.commander.raw(NETFN_STORAGE, CMD_GET_SEL_ENTRY, [
            0x00, 0x00, record_id & 0xff, record_id >> 8, 0x00, 0xff,
        ])
        require_length(data, 2 + SEL_ENTRY_SIZE, "get sel entry")
        return data[0] | (data[1] << 8), data[2:2 + SEL_ENTRY_SIZE]

    def entries(self) -> Iterator[SEL]:
        """Yield SEL entries from oldest to newest."""
        record_id = 0x0000
        seen = set()
        count = skipped = 0
        while record_id != LAST_RECORD_ID:
            if record_id in seen:
                raise IPMIError(f"SEL chain loops back to entry {record_id:#06x}")
            seen.add(record_id)
            next_id, raw = self.read_entry(record_id)
            try:
                entry = parse_sel(raw, next_id)
            except IPMIError as e:
                if not self.skip_invalid:
                    raise
                logger.warning(f"Skipping SEL entry {record_id:#06x}: {e}")
                skipped += 1
            else:
                count += 1
                yield entry
            record_id = next_id
        logger.info(f"SEL walk complete: {count} entries, {skipped} skipped")
