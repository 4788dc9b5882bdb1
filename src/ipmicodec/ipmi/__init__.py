"""
IPMI Transport Package for ipmicodec

This package fetches raw records from a BMC through ipmitool and decodes them
with ``ipmicodec.codec``.

Key Components:
- IPMICommander: Allow-listed raw request execution with retries
- SDRRepository: Sensor Data Record repository walker
- SensorReader: Live sensor samples converted with their SDR
- FRUInventory: FRU inventory reader
- SELReader: System Event Log reader

Features:
- Partial SDR reads with re-reservation and chunk shrinking
- Non-linear sensors re-read their conversion factors per sample
- Undecodable records are logged and skipped, or raised, per configuration
- Only read-only storage and sensor commands can be sent

Example Usage:
    >>> from ipmicodec.ipmi import IPMICommander, SDRRepository, SensorReader
    >>>
    >>> commander = IPMICommander("config.yaml")
    >>> sensors = SDRRepository(commander).sensors()
    >>> for name, value in SensorReader(commander).read_all(sensors).items():
    ...     print(name, value.value, value.unit)

Note:
    This package requires:
    - ipmitool for IPMI communication
    - Root/sudo access for the local interface
"""

from .commander import IPMICommander, IPMIConnectionError, IPMICommandError, load_config
from .repository import FRUInventory, SDRRepository, SELReader, SensorReader, SensorValue
from ..codec.errors import IPMIError

__all__ = [
    'IPMICommander',
    'IPMIError',
    'IPMIConnectionError',
    'IPMICommandError',
    'load_config',
    'SDRRepository',
    'SensorReader',
    'SensorValue',
    'FRUInventory',
    'SELReader'
]
