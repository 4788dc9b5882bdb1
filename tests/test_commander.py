"""
Tests for the IPMI Commander module
"""

import subprocess
from unittest.mock import Mock, patch

import pytest
import yaml

from ipmicodec.ipmi.commander import (
    DEFAULT_CONFIG,
    IPMICommander,
    IPMICommandError,
    IPMIConnectionError,
    IPMIError,
    load_config,
    parse_completion_code,
    parse_raw_output,
)

# Test Data
RSP_RESERVATION_CANCELLED = (
    "Unable to send RAW command (channel=0x0 netfn=0xa lun=0x0 cmd=0x23 rsp=0xc5): "
    "Reservation Canceled or Invalid Reservation ID"
)
RSP_BUSY = "Device or resource busy"
RSP_NO_SESSION = "Error in open session response message : insufficient resources for session"


@pytest.fixture
def mock_config(tmp_path):
    """Create a temporary config file"""
    config_file = tmp_path / "config.yaml"
    config = {
        "connection": {
            "host": "192.168.1.100",
            "username": "operator",
            "password": "secret",
            "retries": 2,
            "retry_delay": 0,
        },
        "sdr": {"chunk_size": 24},
    }
    with open(config_file, "w") as f:
        yaml.dump(config, f)
    return str(config_file)


@pytest.fixture
def commander(mock_config):
    """Create IPMICommander instance"""
    return IPMICommander(mock_config)


def failure(stderr: str) -> subprocess.CalledProcessError:
    return subprocess.CalledProcessError(1, "ipmitool", stderr=stderr)


class TestConfiguration:
    """Test configuration loading"""

    def test_defaults(self):
        config = load_config()
        assert config == DEFAULT_CONFIG
        config["connection"]["host"] = "changed"
        assert DEFAULT_CONFIG["connection"]["host"] == "localhost"

    def test_file_merged_over_defaults(self, mock_config):
        config = load_config(mock_config)
        assert config["connection"]["host"] == "192.168.1.100"
        assert config["connection"]["interface"] == "lanplus"
        assert config["sdr"]["chunk_size"] == 24
        assert config["sdr"]["skip_invalid"] is True
        assert config["fru"]["device_id"] == 0

    def test_not_a_mapping(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(IPMIError, match="expected a mapping"):
            load_config(str(config_file))

    def test_bad_section(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("sdr: 16\n")
        with pytest.raises(IPMIError, match="section 'sdr'"):
            load_config(str(config_file))

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert load_config(str(config_file)) == DEFAULT_CONFIG

    def test_keyword_overrides(self, mock_config):
        commander = IPMICommander(mock_config, host="10.0.0.5", password="other")
        assert commander.host == "10.0.0.5"
        assert commander.username == "operator"
        assert commander.password == "other"
        assert commander.config["connection"]["host"] == "10.0.0.5"

    def test_invalid_retries(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("connection:\n  retries: 0\n")
        with pytest.raises(IPMIError, match="Invalid retries"):
            IPMICommander(str(config_file))


class TestCommandValidation:
    """Test IPMI command validation"""

    def test_allowed_commands(self, commander):
        commander._validate_raw_command("raw 0x0a 0x22")
        commander._validate_raw_command("raw 0x0a 0x23 0x01 0x00 0x00 0x00 0x00 0x05")
        commander._validate_raw_command("raw 0x04 0x2d 0x30")

    @pytest.mark.parametrize("command", [
        "raw 0x0a 0x12 0x00 0x00 0x00 0x01",  # Write FRU Data
        "raw 0x0a 0x47",                      # Clear SEL
        "raw 0x06 0x01",                      # Get Device ID
        "raw 0x30 0x45 0x01 0x01",            # OEM
    ])
    def test_rejected_commands(self, commander, command):
        with pytest.raises(IPMIError, match="not an allowed"):
            commander._validate_raw_command(command)

    def test_invalid_hex_format(self, commander):
        with pytest.raises(IPMIError, match="malformed hex"):
            commander._validate_raw_command("raw 0xZZ 0x01")

    def test_byte_out_of_range(self, commander):
        with pytest.raises(IPMIError, match="out of range"):
            commander._validate_raw_command("raw 0x0a 0x23 0x100")

    def test_not_raw(self, commander):
        with pytest.raises(IPMIError, match="Invalid command format"):
            commander._validate_raw_command("sdr list")

    def test_rejected_before_execution(self, commander):
        with patch("subprocess.run") as mock_run:
            with pytest.raises(IPMIError):
                commander.raw(0x0a, 0x12, [0x00])
            mock_run.assert_not_called()


class TestRawCommands:
    """Test raw request execution"""

    def test_remote_command_line(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout=" 01 00\n", returncode=0)
            assert commander.raw(0x0a, 0x22) == b"\x01\x00"
            assert mock_run.call_args[0][0] == [
                "ipmitool", "-I", "lanplus", "-H", "192.168.1.100",
                "-U", "operator", "-P", "secret", "raw", "0x0a", "0x22",
            ]

    def test_local_command_line(self):
        commander = IPMICommander()
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout="00", returncode=0)
            commander.raw(0x04, 0x2d, [0x30])
            assert mock_run.call_args[0][0] == ["sudo", "ipmitool", "raw", "0x04", "0x2d", "0x30"]

    def test_wrapped_output(self, commander):
        output = " ff ff 01 00 51 01 33\n 20 00\n"
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout=output, returncode=0)
            data = commander.raw(0x0a, 0x23, [0, 0, 0, 0, 0, 9])
            assert data == bytes([0xff, 0xff, 0x01, 0x00, 0x51, 0x01, 0x33, 0x20, 0x00])

    def test_empty_response(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout="", returncode=0)
            assert commander.raw(0x0a, 0x22) == b""

    def test_command_delay(self, mock_config):
        commander = IPMICommander(mock_config)
        commander.command_delay = 0.5
        with patch("subprocess.run") as mock_run, patch("time.sleep") as mock_sleep:
            mock_run.return_value = Mock(stdout="01 00", returncode=0)
            commander.raw(0x0a, 0x22)
            mock_sleep.assert_called_once_with(0.5)


class TestErrorHandling:
    """Test failure and retry behaviour"""

    def test_completion_code(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = failure(RSP_RESERVATION_CANCELLED)
            with pytest.raises(IPMICommandError) as excinfo:
                commander.raw(0x0a, 0x23, [0, 0, 0, 0, 0, 5])
            assert excinfo.value.completion_code == 0xc5
            # The BMC answered, so the request is not repeated
            assert mock_run.call_count == 1

    def test_busy_retry(self, commander):
        with patch("subprocess.run") as mock_run, patch("time.sleep"):
            mock_run.side_effect = [failure(RSP_BUSY), Mock(stdout="02 00", returncode=0)]
            assert commander.raw(0x0a, 0x22) == b"\x02\x00"
            assert mock_run.call_count == 2

    def test_busy_exhausts_retries(self, commander):
        with patch("subprocess.run") as mock_run, patch("time.sleep"):
            mock_run.side_effect = failure(RSP_BUSY)
            with pytest.raises(IPMICommandError) as excinfo:
                commander.raw(0x0a, 0x22)
            assert excinfo.value.completion_code is None
            assert mock_run.call_count == 2

    def test_generic_failure_retried(self, commander):
        with patch("subprocess.run") as mock_run, patch("time.sleep"):
            mock_run.side_effect = failure("Unknown error")
            with pytest.raises(IPMICommandError, match="after 2 attempts"):
                commander.raw(0x0a, 0x22)
            assert mock_run.call_count == 2

    def test_connection_error(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = failure(RSP_NO_SESSION)
            with pytest.raises(IPMIConnectionError):
                commander.raw(0x0a, 0x22)
            assert mock_run.call_count == 1

    def test_ipmitool_missing(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = FileNotFoundError("ipmitool")
            with pytest.raises(IPMIConnectionError, match="not available"):
                commander.raw(0x0a, 0x22)

    def test_garbled_output(self, commander):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout="Invalid response", returncode=0)
            with pytest.raises(IPMIError, match="Invalid raw response"):
                commander.raw(0x0a, 0x22)


class TestOutputParsing:
    """Test ipmitool output helpers"""

    def test_completion_code(self):
        assert parse_completion_code(RSP_RESERVATION_CANCELLED) == 0xc5
        assert parse_completion_code("rsp=0xCA): Cannot return number of requested data bytes") == 0xca
        assert parse_completion_code("timeout") is None
        assert parse_completion_code(None) is None

    def test_raw_output(self):
        assert parse_raw_output(" 51 0a 00\n ff ff") == bytes([0x51, 0x0a, 0x00, 0xff, 0xff])
        assert parse_raw_output("") == b""
        with pytest.raises(IPMIError):
            parse_raw_output("51 zz")
