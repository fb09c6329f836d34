"""Tests for the command line interface."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

import wizlan.cli.control as control_cmd
import wizlan.cli.discover as discover_cmd
from wizlan import __version__
from wizlan.cli.app import app
from wizlan.config import CONFIG_ENV_VAR, Settings, TransportSettings, write_settings
from wizlan.errors import RequestTimeoutError, RetriesExhaustedError
from wizlan.models import DeviceParams, DeviceRecord, MacAddress, ScanMode

runner = CliRunner()


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COLUMNS", "200")


def _record(mac: str, ip: str, **params: object) -> DeviceRecord:
    return DeviceRecord(
        mac=MacAddress.parse(mac), ip=ip, params=DeviceParams.model_validate(params)
    )


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"wizlan version {__version__}" in result.stdout


def test_version_short():
    result = runner.invoke(app, ["-v"])
    assert result.exit_code == 0
    assert f"wizlan version {__version__}" in result.stdout


def test_init_writes_config(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert path.exists()
    assert "[transport]" in path.read_text()

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 0
    assert "already exists" in again.stdout


def test_config_show_uses_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    write_settings(Settings(transport=TransportSettings(timeout=0.75)), path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert f"Config source: {path}" in result.stdout
    assert "timeout = 0.75" in result.stdout


def test_config_show_missing_env_file_fails(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 1


def test_discover_lists_devices(monkeypatch):
    calls: list[tuple[ScanMode | None, float | None]] = []

    async def _fake_discover(_settings, mode, timeout):
        calls.append((mode, timeout))
        return [
            _record("A8:BB:50:00:00:02", "192.168.1.21", state=False, moduleName="ESP01"),
            _record("A8:BB:50:00:00:01", "192.168.1.20", state=True, dimming=60),
        ]

    monkeypatch.setattr(discover_cmd, "discover_devices", _fake_discover)

    result = runner.invoke(app, ["discover", "--timeout", "1.5", "--mode", "getPilot"])
    assert result.exit_code == 0
    assert calls == [(ScanMode.GET_PILOT, 1.5)]
    assert "192.168.1.20" in result.stdout
    assert "A8:BB:50:00:00:01" in result.stdout
    assert "60%" in result.stdout
    assert "Found 2 device(s)" in result.stdout


def test_discover_redacts_addresses(monkeypatch):
    async def _fake_discover(_settings, mode, timeout):
        return [_record("A8:BB:50:12:34:56", "192.168.1.20", fwVersion="1.22.0")]

    monkeypatch.setattr(discover_cmd, "discover_devices", _fake_discover)

    result = runner.invoke(app, ["discover", "--redact"])
    assert result.exit_code == 0
    assert "192.168.1.20" not in result.stdout
    assert "x.x.x.20" in result.stdout
    assert "12:34:56" not in result.stdout
    assert "A8:BB:50:xx:xx:01" in result.stdout


def test_discover_nothing_found(monkeypatch):
    async def _fake_discover(_settings, mode, timeout):
        return []

    monkeypatch.setattr(discover_cmd, "discover_devices", _fake_discover)

    result = runner.invoke(app, ["discover"])
    assert result.exit_code == 0
    assert "No devices found." in result.stdout


def test_discover_reports_missing_local_address(monkeypatch):
    async def _fake_discover(_settings, mode, timeout):
        raise RuntimeError("Could not detect local IP address")

    monkeypatch.setattr(discover_cmd, "discover_devices", _fake_discover)

    result = runner.invoke(app, ["discover", "--mode", "registration"])
    assert result.exit_code == 1
    assert "Error: Could not detect local IP address" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_state_shows_device(monkeypatch):
    async def _fake_query(_settings, ip):
        return _record("AA:BB:CC:DD:EE:FF", ip, state=True, dimming=80)

    monkeypatch.setattr(control_cmd, "query_device", _fake_query)

    result = runner.invoke(app, ["state", "192.0.2.5"])
    assert result.exit_code == 0
    assert "192.0.2.5" in result.stdout
    assert "on" in result.stdout
    assert "80%" in result.stdout


def test_state_reports_transport_failure(monkeypatch):
    async def _fake_query(_settings, ip):
        raise RetriesExhaustedError(4, RequestTimeoutError(ip, 2.0))

    monkeypatch.setattr(control_cmd, "query_device", _fake_query)

    result = runner.invoke(app, ["state", "192.0.2.5"])
    assert result.exit_code == 1


def test_brightness_applies_action(monkeypatch):
    applied: list[str] = []

    async def _fake_apply(_settings, ip, action):
        applied.append(ip)
        return _record("AA:BB:CC:DD:EE:FF", ip, state=True, dimming=25)

    monkeypatch.setattr(control_cmd, "apply_to_device", _fake_apply)

    result = runner.invoke(app, ["brightness", "192.0.2.5", "25"])
    assert result.exit_code == 0
    assert applied == ["192.0.2.5"]
    assert "25%" in result.stdout


def test_brightness_rejects_out_of_range():
    result = runner.invoke(app, ["brightness", "192.0.2.5", "150"])
    assert result.exit_code != 0
