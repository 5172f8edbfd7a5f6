"""Per-identity polling loop.

This module is integration-agnostic. It only relies on ports for the log
service and the chat session, enabling tests with in-memory fakes.

Each cycle enforces a strict order:
1) Wait the poll interval (returns early when told to stop)
2) Query the newest log for the identity
3) Ask the gate whether the log is new and fresh
4) Deliver it after the spoiler delay
"""

from __future__ import annotations

import asyncio
import logging

from core.dedup import NotificationGate
from core.delivery import Deliverer
from core.errors import DeliveryError, NoResultsError, QueryError
from core.models import Destination
from core.ports import ChatSessionPort, LogQueryPort

LOGGER = logging.getLogger(__name__)


class PlayerPoller:
    """Owns the polling loop for one tracked identity."""

    def __init__(
        self,
        destination: Destination,
        query: LogQueryPort,
        gate: NotificationGate,
        deliverer: Deliverer,
        interval: float,
    ) -> None:
        self._destination = destination
        self._query = query
        self._gate = gate
        self._deliverer = deliverer
        self._interval = interval

    @property
    def identity(self) -> str:
        return self._destination.identity

    @property
    def channel(self) -> str:
        return self._destination.channel

    async def run(
        self,
        session: ChatSessionPort,
        stop: asyncio.Event,
        session_dead: asyncio.Event,
    ) -> str:
        """Poll until ``stop`` is set; returns the identity as acknowledgement.

        A DeliveryError means the session can no longer be written to, so the
        loop ends early and raises ``session_dead`` for the supervisor.
        """

        try:
            await session.join(self.channel)
        except DeliveryError as exc:
            LOGGER.warning("Failed to join channel=%s: %s", self.channel, exc)
            session_dead.set()
            return self.identity
        LOGGER.info("Connected to channel: %s (player=%s)", self.channel, self.identity)

        while not stop.is_set():
            if await self._wait_interval(stop):
                break
            try:
                await self.poll_once(session, stop)
            except DeliveryError as exc:
                LOGGER.warning(
                    "Delivery failed for player=%s channel=%s stage=deliver: %s",
                    self.identity,
                    self.channel,
                    exc,
                )
                session_dead.set()
                break
            except Exception:
                # One identity's failure must never stop the other loops.
                LOGGER.exception("Unexpected error while polling player=%s channel=%s", self.identity, self.channel)

        LOGGER.info("Shutting down worker for channel: %s", self.channel)
        return self.identity

    async def poll_once(self, session: ChatSessionPort, stop: asyncio.Event) -> bool:
        """Run one query/gate/deliver cycle; returns True when a log was sent."""

        try:
            result = await self._query.fetch_latest(self.identity)
        except NoResultsError as exc:
            LOGGER.debug("No logs for player=%s stage=query: %s", self.identity, exc)
            return False
        except QueryError as exc:
            LOGGER.warning("Failed to get log for player=%s channel=%s stage=query: %s", self.identity, self.channel, exc)
            return False

        # Stop arrived while the request was in flight; leave the gate untouched.
        if stop.is_set():
            return False

        if not self._gate.should_deliver(self.identity, result):
            return False

        await self._deliverer.deliver(session, self.channel, result)
        return True

    async def _wait_interval(self, stop: asyncio.Event) -> bool:
        """Sleep for the poll interval; returns True if stopped meanwhile."""

        try:
            await asyncio.wait_for(stop.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True
