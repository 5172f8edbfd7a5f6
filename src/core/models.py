"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to aiohttp or socket-level types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class LogResult:
    """The newest log found for one tracked identity."""

    id: int
    occurred_at: datetime
    title: str

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{self.id}"


@dataclass(frozen=True)
class Destination:
    """A tracked identity paired with the channel its logs are announced in."""

    identity: str
    channel: str
