"""
Tests for configuration parsing and the command line.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_proxy.app.cli import app
from shared.config import ProxyConfig, get_config, parse_duration, parse_listen_address


class TestParseDuration:
    """Test cases for parse_duration."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (30, 30.0),
            (1.5, 1.5),
            ("45", 45.0),
            ("90s", 90.0),
            ("15m", 900.0),
            ("24h", 86400.0),
            ("1h30m", 5400.0),
            ("1.5h", 5400.0),
            ("250ms", 0.25),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "value", ["", "abc", "10x", "h", "5m garbage", None, True, "nan", "inf", "-inf", float("nan"), float("inf")]
    )
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestParseListenAddress:
    """Test cases for parse_listen_address."""

    def test_port_only(self):
        assert parse_listen_address(":8000") == ("0.0.0.0", 8000)

    def test_host_and_port(self):
        assert parse_listen_address("127.0.0.1:9000") == ("127.0.0.1", 9000)

    def test_ipv6(self):
        assert parse_listen_address("[::1]:8000") == ("::1", 8000)

    @pytest.mark.parametrize("value", ["8000", "localhost:http", ":70000"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_listen_address(value)


class TestProxyConfig:
    """Test cases for ProxyConfig."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in list(os.environ):
            if name.upper().startswith("PROXY_"):
                monkeypatch.delenv(name)

        config = ProxyConfig()

        assert config.upstream_base_url == "http://localhost:8080"
        assert config.ttl == 86400.0
        assert config.listen_address == ":8000"
        assert (config.host, config.port) == ("0.0.0.0", 8000)
        assert config.snapshot_path == "./cache.json"
        assert config.save_timeout == 5.0
        assert config.upstream_timeout == 10.0
        assert config.single_flight is False
        assert config.sweep_interval is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PROXY_UPSTREAM_BASE_URL", "http://api.example.com/")
        monkeypatch.setenv("PROXY_TTL", "15m")
        monkeypatch.setenv("PROXY_SINGLE_FLIGHT", "true")

        config = ProxyConfig()

        assert config.upstream_base_url == "http://api.example.com"
        assert config.ttl == 900.0
        assert config.single_flight is True

    def test_get_config_ignores_none_overrides(self, monkeypatch):
        monkeypatch.setenv("PROXY_TTL", "2h")

        config = get_config(ttl=None, listen_address="127.0.0.1:9001")

        assert config.ttl == 7200.0
        assert config.port == 9001

    @pytest.mark.parametrize(
        "field,value",
        [
            ("ttl", "0s"),
            ("ttl", "-5"),
            ("ttl", "nan"),
            ("save_timeout", "inf"),
            ("listen_address", "nowhere"),
            ("sweep_interval", "0"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ProxyConfig(**{field: value})


class TestCli:
    """Test cases for the cache-proxy command."""

    @pytest.fixture
    def runner(self):
        return CliRunner()

    def test_flags_build_config_and_run(self, runner, tmp_path):
        snapshot = str(tmp_path / "cache.json")
        with patch("service_proxy.app.main.ProxyService.run") as mock_run:
            result = runner.invoke(
                app,
                ["--url", "http://origin.test/", "--ttl", "1h", "--addr", "127.0.0.1:8100",
                 "--snapshot", snapshot, "--single-flight"],
            )

        assert result.exit_code == 0, result.output
        mock_run.assert_called_once_with()

    def test_flags_reach_service_config(self, runner, tmp_path):
        snapshot = str(tmp_path / "cache.json")
        captured = {}

        def fake_run(self):
            captured["config"] = self.config

        with patch("service_proxy.app.main.ProxyService.run", fake_run):
            result = runner.invoke(
                app,
                ["--url", "http://origin.test/", "--ttl", "1h", "--addr", "127.0.0.1:8100",
                 "--snapshot", snapshot, "--single-flight"],
            )

        assert result.exit_code == 0, result.output
        config = captured["config"]
        assert config.upstream_base_url == "http://origin.test"
        assert config.ttl == 3600.0
        assert config.port == 8100
        assert config.snapshot_path == snapshot
        assert config.single_flight is True

    def test_invalid_ttl_exits_with_error(self, runner):
        with patch("service_proxy.app.main.ProxyService.run") as mock_run:
            result = runner.invoke(app, ["--ttl", "forever"])

        assert result.exit_code == 2
        mock_run.assert_not_called()
