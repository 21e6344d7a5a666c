"""Tests for CLI commands."""

from __future__ import annotations

import os

import pytest
from typer.testing import CliRunner

from livescribe import cli, config
from livescribe.core.audio.devices import DeviceInfo
from livescribe.errors import DeviceError


runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("LIVESCRIBE_"):
            monkeypatch.delenv(key, raising=False)
    config.reset_settings()
    yield
    config.reset_settings()


def test_settings_command_masks_secrets(monkeypatch) -> None:
    monkeypatch.setenv("LIVESCRIBE_AUTH_TOKEN", "super-secret")
    monkeypatch.setenv("LIVESCRIBE_OVERLAP_MS", "250")

    result = runner.invoke(cli.app, ["settings"])

    assert result.exit_code == 0
    assert "super-secret" not in result.output
    assert "LIVESCRIBE_AUTH_TOKEN" in result.output
    overlap_line = next(line for line in result.output.splitlines() if line.startswith("LIVESCRIBE_OVERLAP_MS"))
    assert "250" in overlap_line
    assert "(overridden)" in overlap_line


def test_devices_command_prints_table(monkeypatch) -> None:
    microphone = DeviceInfo(
        id=1, name="USB Microphone", max_input_channels=1, default_samplerate=16_000.0, hostapi="ALSA"
    )
    monkeypatch.setattr("livescribe.core.audio.devices.list_input_devices", lambda: [microphone])

    result = runner.invoke(cli.app, ["devices"])

    assert result.exit_code == 0
    assert "USB Microphone" in result.output


def test_record_reports_missing_microphone(monkeypatch) -> None:
    def fake_create_microphone(device=None, settings=None):
        raise DeviceError("no input device")

    monkeypatch.setattr(cli, "create_microphone", fake_create_microphone)

    result = runner.invoke(cli.app, ["record", "--segment-backend", "dummy", "--mode", "segmented"])

    assert result.exit_code == 1
    assert "no input device" in result.output


def test_record_rejects_unknown_backend() -> None:
    result = runner.invoke(cli.app, ["record", "--segment-backend", "carrier-pigeon"])

    assert result.exit_code != 0
    assert "carrier-pigeon" in result.output


def test_record_reports_missing_openai_key(monkeypatch) -> None:
    import openai

    def refuse_client(**kwargs):
        raise openai.OpenAIError("The api_key client option must be set")

    monkeypatch.setattr(openai, "AsyncOpenAI", refuse_client)

    result = runner.invoke(cli.app, ["record", "--segment-backend", "openai"])

    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
