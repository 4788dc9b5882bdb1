"""
ipmicodec: IPMI SDR, FRU and SEL record decoding

- ipmicodec.codec holds the pure decoders and the reading conversion engine
- ipmicodec.ipmi fetches records from a BMC through ipmitool

Example Usage:
    >>> from ipmicodec import parse_sdr
    >>> sdr = parse_sdr(raw_record)
    >>> sdr.record.convert_reading(0x2d)
"""

import logging

# Configure root logger
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logging.getLogger('ipmicodec').setLevel(logging.INFO)

from .codec import FRU, SDR, SEL, IPMIError, parse_fru, parse_sdr, parse_sel  # noqa: E402

__version__ = "0.1.0"

__all__ = [
    'FRU',
    'SDR',
    'SEL',
    'IPMIError',
    'parse_fru',
    'parse_sdr',
    'parse_sel'
]
