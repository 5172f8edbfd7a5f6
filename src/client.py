"""Chat client factory for logsbot.

Credentials are read once at startup; every reconnect gets a brand new
IrcSession built from them so no state leaks from a dead connection.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable

from dotenv import load_dotenv

from adapters.irc_session import IrcSession
from core.config import IrcConfig
from core.errors import ConfigError

USERNAME_ENV = "LOGS_BOT_USERNAME"
OAUTH_KEY_ENV = "LOGS_BOT_OAUTH_KEY"


@dataclass(frozen=True)
class Credentials:
    username: str
    oauth_key: str


def load_credentials() -> Credentials:
    """Read the bot account from environment variables.

    We read LOGS_BOT_USERNAME/LOGS_BOT_OAUTH_KEY via python-dotenv to keep
    secrets out of the repo. Twitch expects the key with an ``oauth:`` prefix,
    which is added when missing.
    """

    load_dotenv()

    username = (os.getenv(USERNAME_ENV) or "").strip()
    oauth_key = (os.getenv(OAUTH_KEY_ENV) or "").strip()

    # Fail fast on missing credentials; the server would only drop us silently.
    if not username or not oauth_key:
        raise ConfigError(f"Environment variables {USERNAME_ENV} and {OAUTH_KEY_ENV} must be set")

    if not oauth_key.startswith("oauth:"):
        oauth_key = f"oauth:{oauth_key}"

    logging.getLogger(__name__).info("Loaded credentials for %s", username.lower())
    return Credentials(username=username.lower(), oauth_key=oauth_key)


def build_session_factory(config: IrcConfig, credentials: Credentials) -> Callable[[], IrcSession]:
    """Return a callable producing a fresh, unconnected session."""

    def factory() -> IrcSession:
        return IrcSession(config, credentials.username, credentials.oauth_key)

    return factory
