from __future__ import annotations

import importlib
import json
import sys
from datetime import timedelta

import pytest

from client import build_session_factory, load_credentials
from core.config import IrcConfig, build_irc_config, build_polling_config, parse_channel_map
from core.errors import ConfigError


def test_parse_channel_map_normalizes_channels() -> None:
    channels = parse_channel_map({"123": "#Alice", " 456 ": "bob"})
    assert dict(channels) == {"123": "alice", "456": "bob"}


def test_parse_channel_map_is_read_only() -> None:
    channels = parse_channel_map({"123": "alice"})
    with pytest.raises(TypeError):
        channels["456"] = "bob"  # type: ignore[index]


@pytest.mark.parametrize("raw", [None, {}, [], {"123": ""}, {"123": 5}, {"": "alice"}])
def test_parse_channel_map_rejects_malformed_input(raw) -> None:
    with pytest.raises(ConfigError):
        parse_channel_map(raw)


def test_polling_defaults() -> None:
    polling = build_polling_config({})
    assert polling.interval == timedelta(seconds=10)
    assert polling.stale_threshold == timedelta(seconds=60)
    assert polling.spoiler_delay == timedelta(seconds=15)
    assert polling.retry_backoff == timedelta(seconds=30)


def test_polling_rejects_negative_durations() -> None:
    with pytest.raises(ConfigError):
        build_polling_config({"interval_seconds": -1})


def test_polling_rejects_zero_interval() -> None:
    with pytest.raises(ConfigError):
        build_polling_config({"interval_seconds": 0})


def test_polling_allows_zero_spoiler_delay() -> None:
    assert build_polling_config({"spoiler_delay_seconds": 0}).spoiler_delay == timedelta(0)


def test_irc_rejects_invalid_port() -> None:
    with pytest.raises(ConfigError):
        build_irc_config({"port": "6667"})


def test_load_credentials_adds_oauth_prefix(monkeypatch) -> None:
    monkeypatch.setenv("LOGS_BOT_USERNAME", "LogsBot")
    monkeypatch.setenv("LOGS_BOT_OAUTH_KEY", "abc123")

    credentials = load_credentials()

    assert credentials.username == "logsbot"
    assert credentials.oauth_key == "oauth:abc123"


def test_load_credentials_requires_both_values(monkeypatch) -> None:
    monkeypatch.setenv("LOGS_BOT_USERNAME", "logsbot")
    monkeypatch.setenv("LOGS_BOT_OAUTH_KEY", "")

    with pytest.raises(ConfigError):
        load_credentials()


def test_session_factory_builds_fresh_sessions(monkeypatch) -> None:
    monkeypatch.setenv("LOGS_BOT_USERNAME", "logsbot")
    monkeypatch.setenv("LOGS_BOT_OAUTH_KEY", "oauth:abc123")
    factory = build_session_factory(IrcConfig(), load_credentials())
    assert factory() is not factory()


def _import_settings(monkeypatch, path):
    monkeypatch.setenv("LOGS_BOT_CONFIG", str(path))
    sys.modules.pop("settings", None)
    return importlib.import_module("settings")


def test_settings_load_from_json_file(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"channels": {"123": "alice"}, "polling": {"spoiler_delay_seconds": 0}}),
        encoding="utf-8",
    )

    settings = _import_settings(monkeypatch, path)

    assert dict(settings.CHANNELS) == {"123": "alice"}
    assert settings.POLLING.spoiler_delay == timedelta(0)
    assert settings.LOGS_API.base_url == "http://logs.tf"
    sys.modules.pop("settings", None)


def test_settings_missing_file_is_a_config_error(monkeypatch, tmp_path) -> None:
    with pytest.raises(ConfigError):
        _import_settings(monkeypatch, tmp_path / "missing.json")
    sys.modules.pop("settings", None)


def test_settings_invalid_json_is_a_config_error(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        _import_settings(monkeypatch, path)
    sys.modules.pop("settings", None)


def test_settings_default_to_config_in_working_directory(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("LOGS_BOT_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.json").write_text(json.dumps({"channels": {"123": "alice"}}), encoding="utf-8")
    sys.modules.pop("settings", None)

    settings = importlib.import_module("settings")

    assert dict(settings.CHANNELS) == {"123": "alice"}
    assert settings.CONFIG_PATH == str(tmp_path / "config.json")
    assert settings.CONFIG_DIR == str(tmp_path)
    sys.modules.pop("settings", None)
