"""Deduplication gate (core domain).

The gate remembers, per tracked identity, the timestamp of the last log that
was let through. The decision and the bookkeeping happen in one critical
section so two polls racing for the same identity cannot both pass.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.models import LogResult


class NotificationGate:
    """Decides whether a freshly queried log is worth announcing."""

    def __init__(self, stale_threshold: timedelta) -> None:
        self._stale_threshold = stale_threshold
        self._last_delivered: dict[str, datetime] = {}
        # A single lock is enough for a handful of identities.
        self._lock = threading.Lock()

    def should_deliver(self, identity: str, result: LogResult, now: Optional[datetime] = None) -> bool:
        """Atomically check a result and record it when it is accepted.

        Policy, in order:
        - reject results older than the stale threshold
        - reject results not strictly newer than the last delivered one
        - otherwise accept and remember ``result.occurred_at``
        """

        now = now or datetime.now(timezone.utc)
        if now - result.occurred_at > self._stale_threshold:
            return False

        with self._lock:
            last = self._last_delivered.get(identity)
            if last is not None and result.occurred_at <= last:
                return False
            self._last_delivered[identity] = result.occurred_at
            return True

    def last_delivered(self, identity: str) -> Optional[datetime]:
        """Return the last accepted timestamp for an identity, if any."""

        with self._lock:
            return self._last_delivered.get(identity)
