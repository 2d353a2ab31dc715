"""Unit tests for ConfigLoader."""

from pathlib import Path

import pytest

from nmea_relay.core.config_loader import ConfigLoader


class TestConfigLoaderParsing:
    """Test key = value line parsing."""

    def test_basic_pairs(self):
        config = ConfigLoader.parse_lines(["serial_port = /dev/serial0", "baud_rate=9600"])
        assert config == {"serial_port": "/dev/serial0", "baud_rate": "9600"}

    def test_comments_and_blank_lines(self):
        config = ConfigLoader.parse_lines([
            "# full line comment",
            "",
            "   ",
            "parity = none  # trailing comment",
        ])
        assert config == {"parity": "none"}

    def test_quotes_are_stripped(self):
        config = ConfigLoader.parse_lines(['log_file = "relay.log"', "api_host = '0.0.0.0'"])
        assert config == {"log_file": "relay.log", "api_host": "0.0.0.0"}

    def test_line_without_equals_is_skipped(self):
        assert ConfigLoader.parse_lines(["not a setting", "a = 1"]) == {"a": "1"}

    def test_value_may_contain_equals(self):
        assert ConfigLoader.parse_lines(["url = a=b"]) == {"url": "a=b"}

    def test_later_value_wins(self):
        assert ConfigLoader.parse_lines(["a = 1", "a = 2"]) == {"a": "2"}


class TestConfigLoaderFiles:
    def test_load(self, tmp_path: Path):
        path = tmp_path / "config.txt"
        path.write_text("ntp_port = 123\nbroadcast_port = 10110\n", encoding="utf-8")
        assert ConfigLoader.load(path) == {"ntp_port": "123", "broadcast_port": "10110"}

    def test_missing_file(self, tmp_path: Path):
        assert ConfigLoader.load(tmp_path / "missing.txt") == {}

    @pytest.mark.asyncio
    async def test_load_async(self, tmp_path: Path):
        path = tmp_path / "config.txt"
        path.write_text("parity = even\n", encoding="utf-8")
        assert await ConfigLoader.load_async(path) == {"parity": "even"}
