"""Shared chat line formatting helpers.

Keeping formatting here prevents drift between the delivery path and the
command line, and keeps every outgoing line CRLF-free until the session
adds the terminator.
"""

from __future__ import annotations

from core.models import LogResult


def _clean(value: str) -> str:
    # A stray CR or LF would split one chat line into two protocol lines.
    return value.replace("\r", " ").replace("\n", " ")


def format_channel(channel: str) -> str:
    """Return the channel in ``#name`` form."""

    return f"#{channel.lstrip('#').lower()}"


def format_log_message(channel: str, result: LogResult, base_url: str = "http://logs.tf") -> str:
    """Return the PRIVMSG line announcing ``result`` in ``channel``."""

    return f"PRIVMSG {format_channel(channel)} :{_clean(result.url(base_url))}"


def format_log_summary(identity: str, result: LogResult, base_url: str = "http://logs.tf") -> str:
    """Return a human-readable one-liner used by the ``query`` command."""

    timestamp = result.occurred_at.astimezone().strftime("%H:%M:%S %d-%m-%Y")
    return f"[{timestamp}] {identity}: {_clean(result.title)} -> {result.url(base_url)}"
