"""Static configuration for logsbot.

All user-editable settings (tracked players, timings, endpoints, logging)
live in a single JSON file for quick edits without touching Python.
"""

import json
import os

from core.config import (
    build_irc_config,
    build_logs_api_config,
    build_polling_config,
    parse_channel_map,
)
from core.errors import ConfigError

# config.json is looked up in the working directory, so an installed
# `logsbot` command works from wherever the deployment keeps its config.
# LOGS_BOT_CONFIG points at an alternative file, e.g. one per deployment.
CONFIG_PATH = os.path.abspath(os.getenv("LOGS_BOT_CONFIG") or "config.json")

# Relative paths inside the config (log files) resolve against its directory.
CONFIG_DIR = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise ConfigError(f"Config file not found: {CONFIG_PATH}")

    try:
        with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read {CONFIG_PATH}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_PATH} must contain a JSON object")
    return data


def _section(name: str) -> dict:
    value = _CONFIG.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object in {CONFIG_PATH}")
    return value


_CONFIG = _load_json_config()

# steamid -> channel, frozen for the lifetime of the process.
CHANNELS = parse_channel_map(_CONFIG.get("channels"))

# Poll interval, staleness, spoiler delay and reconnect backoff.
POLLING = build_polling_config(_section("polling"))

# Chat server endpoint and read/connect timeouts.
IRC = build_irc_config(_section("irc"))

# Log service endpoint; base_url is also used for the announced links.
LOGS_API = build_logs_api_config(_section("logs_api"))

# Logging configuration (optional).
LOGGING = _section("logging")
