"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Mapping

from core.errors import ConfigError


@dataclass(frozen=True)
class PollingConfig:
    """Timing settings for the polling loops and the reconnect cycle."""

    interval: timedelta = timedelta(seconds=10)
    stale_threshold: timedelta = timedelta(seconds=60)
    spoiler_delay: timedelta = timedelta(seconds=15)
    retry_backoff: timedelta = timedelta(seconds=30)


@dataclass(frozen=True)
class IrcConfig:
    """Chat network endpoint settings consumed by the session adapter."""

    host: str = "irc.chat.twitch.tv"
    port: int = 6667
    server_identity: str = "tmi.twitch.tv"
    read_timeout: float = 360.0
    connect_timeout: float = 10.0


@dataclass(frozen=True)
class LogsApiConfig:
    """Log service settings consumed by the query client and formatter."""

    base_url: str = "http://logs.tf"
    timeout: float = 10.0


def parse_channel_map(raw: Any) -> Mapping[str, str]:
    """Validate the identity -> channel mapping and freeze it.

    Channels may be written with or without the leading ``#`` and are
    lowercased because the chat network treats channel names that way.
    """

    if not isinstance(raw, dict) or not raw:
        raise ConfigError("channels must be a non-empty object of steamid -> channel")

    channels: dict[str, str] = {}
    for identity, channel in raw.items():
        if not isinstance(identity, str) or not identity.strip():
            raise ConfigError("channel map keys must be non-empty strings")
        if not isinstance(channel, str):
            raise ConfigError("channel must be a string", {"identity": identity})
        name = channel.strip().lstrip("#").lower()
        if not name:
            raise ConfigError("channel must not be empty", {"identity": identity})
        channels[identity.strip()] = name
    return MappingProxyType(channels)


def _seconds(section: dict, key: str, default: float, positive: bool = False) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError("expected a non-negative number of seconds", {"key": key})
    if positive and value == 0:
        raise ConfigError("expected a positive number of seconds", {"key": key})
    return float(value)


def build_polling_config(section: dict) -> PollingConfig:
    """Build PollingConfig from the ``polling`` block of config.json."""

    return PollingConfig(
        interval=timedelta(seconds=_seconds(section, "interval_seconds", 10, positive=True)),
        stale_threshold=timedelta(seconds=_seconds(section, "stale_threshold_seconds", 60)),
        spoiler_delay=timedelta(seconds=_seconds(section, "spoiler_delay_seconds", 15)),
        retry_backoff=timedelta(seconds=_seconds(section, "retry_seconds", 30)),
    )


def build_irc_config(section: dict) -> IrcConfig:
    """Build IrcConfig from the ``irc`` block of config.json."""

    port = section.get("port", 6667)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError("irc.port must be a valid TCP port")
    return IrcConfig(
        host=str(section.get("host", "irc.chat.twitch.tv")),
        port=port,
        server_identity=str(section.get("server_identity", "tmi.twitch.tv")),
        read_timeout=_seconds(section, "read_timeout_seconds", 360),
        connect_timeout=_seconds(section, "connect_timeout_seconds", 10),
    )


def build_logs_api_config(section: dict) -> LogsApiConfig:
    """Build LogsApiConfig from the ``logs_api`` block of config.json."""

    return LogsApiConfig(
        base_url=str(section.get("base_url", "http://logs.tf")).rstrip("/"),
        timeout=_seconds(section, "timeout_seconds", 10),
    )
