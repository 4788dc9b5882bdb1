"""
IPMI Command Execution Module

This module provides a wrapper around ipmitool for sending raw IPMI requests
and returning the response bytes for the record decoders. Only read-only
storage and sensor commands are allowed through.
"""

import copy
import logging
import re
import subprocess
import time
from typing import Any, Dict, Iterable, Optional

import yaml

from ..codec.errors import IPMIError

logger = logging.getLogger(__name__)

# Network functions
NETFN_SENSOR = 0x04
NETFN_STORAGE = 0x0a

# Completion codes the repository walkers react to
CC_RESERVATION_CANCELLED = 0xc5
CC_CANNOT_RETURN_BYTES = 0xca

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "connection": {
        "host": "localhost",
        "username": "ADMIN",
        "password": "ADMIN",
        "interface": "lanplus",
        "retries": 3,
        "retry_delay": 1.0,
        "command_delay": 0.0,
    },
    "sdr": {
        "chunk_size": 16,
        "skip_invalid": True,
    },
    "fru": {
        "device_id": 0,
        "chunk_size": 16,
        "strict_checksum": False,
    },
    "sel": {
        "skip_invalid": True,
    },
}

_COMPLETION_CODE = re.compile(r"rsp=0x([0-9a-fA-F]{1,2})")


class IPMIConnectionError(IPMIError):
    """Raised when IPMI connection fails"""
    pass


class IPMICommandError(IPMIError):
    """Raised when an IPMI command fails

    Attributes:
        completion_code: IPMI completion code reported by the BMC, if any
    """

    def __init__(self, message: str, completion_code: Optional[int] = None):
        super().__init__(message)
        self.completion_code = completion_code


def load_config(config_path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """Load a YAML configuration file over the defaults.

    Args:
        config_path: Path to configuration file, None for defaults only

    Returns:
        Configuration dictionary with every section of DEFAULT_CONFIG

    Raises:
        IPMIError: If the file is not a mapping of sections
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if config_path is None:
        return config

    with open(config_path) as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise IPMIError(f"Invalid configuration in {config_path}: expected a mapping")

    for section, values in loaded.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise IPMIError(f"Invalid configuration section '{section}': expected a mapping")
        config.setdefault(section, {}).update(values)
    return config


def parse_completion_code(stderr: str) -> Optional[int]:
    """Extract the completion code from ipmitool's "rsp=0x.." diagnostic."""
    match = _COMPLETION_CODE.search(stderr or "")
    if match is None:
        return None
    return int(match.group(1), 16)


def parse_raw_output(output: str) -> bytes:
    """Convert ipmitool raw output (hex pairs, possibly wrapped) to bytes.

    Raises:
        IPMIError: If the output holds anything but hex bytes
    """
    try:
        return bytes(int(token, 16) for token in output.split())
    except ValueError as e:
        raise IPMIError(f"Invalid raw response: {e}")


class IPMICommander:
    """Handles raw IPMI command execution through ipmitool"""

    # Read-only commands needed to walk SDR, FRU and SEL storage
    ALLOWED_COMMANDS = {
        (NETFN_SENSOR, 0x23): "Get Sensor Reading Factors",
        (NETFN_SENSOR, 0x2d): "Get Sensor Reading",
        (NETFN_STORAGE, 0x10): "Get FRU Inventory Area Info",
        (NETFN_STORAGE, 0x11): "Read FRU Data",
        (NETFN_STORAGE, 0x20): "Get SDR Repository Info",
        (NETFN_STORAGE, 0x22): "Reserve SDR Repository",
        (NETFN_STORAGE, 0x23): "Get SDR",
        (NETFN_STORAGE, 0x40): "Get SEL Info",
        (NETFN_STORAGE, 0x42): "Reserve SEL",
        (NETFN_STORAGE, 0x43): "Get SEL Entry",
    }

    def __init__(self, config_path: Optional[str] = None, host: Optional[str] = None,
                 username: Optional[str] = None, password: Optional[str] = None,
                 interface: Optional[str] = None):
        """Initialize IPMI commander with connection details

        Args:
            config_path: Path to configuration file
            host: IPMI host address, "localhost" for the in-band interface
            username: IPMI username
            password: IPMI password
            interface: IPMI interface type

        Keyword arguments that are given override the configuration file.
        """
        self.config = load_config(config_path)
        connection = self.config["connection"]
        for key, value in (("host", host), ("username", username),
                           ("password", password), ("interface", interface)):
            if value is not None:
                connection[key] = value

        self.host = connection["host"]
        self.username = connection["username"]
        self.password = connection["password"]
        self.interface = connection["interface"]
        self.retries = int(connection["retries"])
        self.retry_delay = float(connection["retry_delay"])
        self.command_delay = float(connection["command_delay"])

        if self.retries < 1:
            raise IPMIError(f"Invalid retries {self.retries}, must be >= 1")

    def _validate_raw_command(self, command: str) -> None:
        """Validate a raw IPMI command for safety and format.

        Args:
            command: Raw IPMI command string (e.g., "raw 0x0a 0x23 0x00 0x00")

        Raises:
            IPMIError: If the command is malformed or not an allowed read-only
                command

        Examples:
            >>> commander._validate_raw_command("raw 0x0a 0x22")  # Reserve SDR Repository
            >>> commander._validate_raw_command("raw 0x0a 0x12")  # Raises IPMIError (Write FRU Data)
        """
        parts = command.split()
        if len(parts) < 3 or parts[0] != "raw":
            raise IPMIError(f"Invalid command format: {command}")

        for p in parts[1:]:
            hex_val = p[2:] if p.lower().startswith("0x") else p
            if not hex_val or not all(c in "0123456789abcdefABCDEF" for c in hex_val):
                raise IPMIError("Invalid command format: malformed hex value")

        netfn = int(parts[1], 16)
        cmd = int(parts[2], 16)
        if any(int(p, 16) > 0xff for p in parts[1:]):
            raise IPMIError("Invalid command format: byte value out of range")
        if (netfn, cmd) not in self.ALLOWED_COMMANDS:
            raise IPMIError(f"Command {hex(netfn)} {hex(cmd)} is not an allowed read-only command")

    def _base_command(self):
        # For local access, just use ipmitool
        if self.host == "localhost":
            return ["sudo", "ipmitool"]
        return [
            "ipmitool", "-I", self.interface,
            "-H", self.host,
            "-U", self.username,
            "-P", self.password
        ]

    def _execute_ipmi_command(self, command: str) -> str:
        """Execute an IPMI command and return its output

        Args:
            command: IPMI command to execute

        Returns:
            Command output as string

        Raises:
            IPMIConnectionError: If connection fails
            IPMICommandError: If command execution fails
            IPMIError: If command is invalid or unsafe
        """
        self._validate_raw_command(command)
        full_cmd = self._base_command() + command.split()

        last_error = None
        for attempt in range(self.retries):
            if attempt > 0:
                time.sleep(self.retry_delay)
                logger.debug(f"Retrying IPMI command (attempt {attempt + 1}/{self.retries})")

            try:
                result = subprocess.run(
                    full_cmd,
                    capture_output=True,
                    text=True,
                    check=True
                )
                if self.command_delay > 0:
                    time.sleep(self.command_delay)
                return result.stdout.strip()
            except subprocess.CalledProcessError as e:
                last_error = e
                stderr = e.stderr or ""
                if "Device or resource busy" in stderr:
                    logger.debug(f"IPMI device busy, retrying... ({attempt + 1}/{self.retries})")
                    continue
                if "Error in open session" in stderr or "Unable to establish" in stderr:
                    raise IPMIConnectionError(f"Failed to connect to IPMI: {stderr.strip()}")
                code = parse_completion_code(stderr)
                if code is not None:
                    # The BMC answered; repeating the request gives the same answer
                    raise IPMICommandError(f"{command} failed with completion code {code:#04x}", code)
                if attempt == self.retries - 1:
                    raise IPMICommandError(f"Command failed after {self.retries} attempts: {stderr.strip()}")
            except FileNotFoundError as e:
                raise IPMIConnectionError(f"ipmitool not available: {e}")

        raise IPMICommandError(f"Command failed after {self.retries} attempts: {last_error}")

    def raw(self, netfn: int, cmd: int, data: Iterable[int] = ()) -> bytes:
        """Send a raw request and return the response data bytes.

        Args:
            netfn: Network function code
            cmd: Command code
            data: Request data bytes

        Returns:
            Response data without the completion code

        Raises:
            IPMIError: If the command is not allowed or the output is garbled
            IPMICommandError: If the BMC returns a non-zero completion code

        Examples:
            >>> commander.raw(0x0a, 0x22)  # Reserve SDR Repository
            b'\\x01\\x00'
        """
        command = " ".join(["raw", f"0x{netfn:02x}", f"0x{cmd:02x}"] + [f"0x{b:02x}" for b in data])
        logger.debug(f"Sending {self.ALLOWED_COMMANDS.get((netfn, cmd), 'command')}: {command}")
        return parse_raw_output(self._execute_ipmi_command(command))
