"""Error taxonomy shared by the core and adapters.

Every failure the bot can recover from maps to one of these classes so the
polling loops and the supervisor can decide between "skip this cycle" and
"tear the session down" without inspecting library-specific exceptions.
"""

from __future__ import annotations

from typing import Any, Optional


class LogsBotError(Exception):
    """Base class for all logsbot errors."""

    def __init__(self, message: str = "", context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{message} ({details})"


class ConfigError(LogsBotError):
    """Fatal misconfiguration detected before any loop starts."""


class ConnectError(LogsBotError):
    """The chat connection could not be established or was lost."""


class ConnectionLostError(ConnectError):
    """The read path of a live session observed EOF, a read error or a timeout."""


class QueryError(LogsBotError):
    """The log service could not be queried or returned an unusable response."""


class NoResultsError(QueryError):
    """The log service answered, but without a log for the identity."""

    def __init__(self, message: str, body: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, context)
        self.body = body


class DeliveryError(LogsBotError):
    """A chat line could not be written; the session is considered dead."""
