"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the log service and the chat session
so that the core can be tested with in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from core.models import LogResult


class LogQueryPort(Protocol):
    """Log service operations required by the polling loops."""

    async def fetch_latest(self, identity: str) -> LogResult:
        ...


class ChatSessionPort(Protocol):
    """Operations on one live chat connection."""

    async def connect(self) -> None:
        ...

    async def join(self, channel: str) -> None:
        ...

    async def send_line(self, line: str) -> None:
        ...

    async def read_loop(self) -> None:
        ...

    async def close(self) -> None:
        ...
