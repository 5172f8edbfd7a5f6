"""Connection lifecycle and polling supervision.

One outer cycle walks IDLE -> CONNECTING -> RUNNING -> DRAINING -> IDLE:
connect a fresh session, start one poller task per identity, wait for the
session to die, then stop and join every poller before the next attempt.
Pollers are only ever running while exactly one session is live.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from core.errors import ConnectError
from core.ports import ChatSessionPort
from core.processor import PlayerPoller


LOGGER = logging.getLogger(__name__)


class SupervisorState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RUNNING = "running"
    DRAINING = "draining"


@dataclass(frozen=True)
class CycleReport:
    """Outcome of one connect/run/drain cycle."""

    connected: bool
    acknowledgements: int = 0
    error: Optional[BaseException] = None


class PollingSupervisor:
    """Keeps a chat session alive and runs the pollers in lockstep with it."""

    def __init__(
        self,
        pollers: Iterable[PlayerPoller],
        session_factory: Callable[[], ChatSessionPort],
        retry_backoff: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._pollers = list(pollers)
        self._session_factory = session_factory
        self._retry_backoff = retry_backoff
        self._sleep = sleep
        self._shutdown = asyncio.Event()
        self.state = SupervisorState.IDLE

    @property
    def stopping(self) -> bool:
        return self._shutdown.is_set()

    async def serve(self) -> None:
        """Run connect/drain cycles until stop() is called."""

        while not self.stopping:
            report = await self.run_cycle()
            if self.stopping:
                break
            if report.connected:
                LOGGER.info("Session ended (%s), reconnecting in %ss", report.error, self._retry_backoff)
            else:
                LOGGER.info("Retrying connection in %ss", self._retry_backoff)
            await self._until_stopped(self._sleep(self._retry_backoff))
        LOGGER.info("Supervisor stopped")

    def stop(self) -> None:
        """Ask serve() to return; wakes the backoff, a pending connect or a live session."""

        if not self.stopping:
            LOGGER.info("Stop requested")
        self._shutdown.set()

    async def run_cycle(self) -> CycleReport:
        """Connect once, run every poller until the session dies, then drain."""

        self.state = SupervisorState.CONNECTING
        session = self._session_factory()
        try:
            stopped = await self._until_stopped(session.connect())
        except ConnectError as exc:
            LOGGER.warning("Failed to connect to chat server: %s", exc)
            await session.close()
            self.state = SupervisorState.IDLE
            return CycleReport(connected=False, error=exc)

        if stopped or self.stopping:
            # Never start pollers on a session we were told to give up on.
            await session.close()
            self.state = SupervisorState.IDLE
            return CycleReport(connected=False)

        LOGGER.info("Connected to chat server, starting %s pollers", len(self._pollers))
        self.state = SupervisorState.RUNNING

        session_dead = asyncio.Event()
        stops: list[asyncio.Event] = []
        tasks: list[asyncio.Task] = []
        for poller in self._pollers:
            stop = asyncio.Event()
            stops.append(stop)
            tasks.append(
                asyncio.create_task(
                    poller.run(session, stop, session_dead),
                    name=f"poller-{poller.identity}",
                )
            )

        reader = asyncio.create_task(session.read_loop(), name="chat-reader")
        waiters = {
            asyncio.create_task(session_dead.wait(), name="session-dead"),
            asyncio.create_task(self._shutdown.wait(), name="shutdown"),
        }
        try:
            await asyncio.wait({reader, *waiters}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.state = SupervisorState.DRAINING
            for waiter in waiters:
                waiter.cancel()
            error = await self._stop_reader(session, reader)
            acknowledgements = await self._drain(stops, tasks)
            self.state = SupervisorState.IDLE

        return CycleReport(connected=True, acknowledgements=acknowledgements, error=error)

    async def _until_stopped(self, awaitable: Awaitable[None]) -> bool:
        """Await ``awaitable`` unless stop() comes first; returns True if it did."""

        work = asyncio.ensure_future(awaitable)
        stopper = asyncio.create_task(self._shutdown.wait(), name="shutdown")
        try:
            await asyncio.wait({work, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not work.done():
                work.cancel()
                await asyncio.wait({work})
        if work.cancelled():
            return True
        # Re-raises whatever the work failed with.
        work.result()
        return False

    async def _stop_reader(self, session: ChatSessionPort, reader: asyncio.Task) -> Optional[BaseException]:
        # Closing first guarantees no poller can write to the old session.
        await session.close()
        if not reader.done():
            reader.cancel()
        await asyncio.wait({reader})
        if reader.cancelled():
            return None
        error = reader.exception()
        if error is not None and not isinstance(error, ConnectError):
            LOGGER.error("Chat reader failed unexpectedly", exc_info=error)
        elif error is not None:
            LOGGER.warning("Error in reading message from chat server: %s", error)
        return error

    async def _drain(self, stops: list[asyncio.Event], tasks: list[asyncio.Task]) -> int:
        for stop in stops:
            stop.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        acknowledgements = 0
        for result in results:
            if isinstance(result, BaseException):
                LOGGER.error("Poller ended with an error", exc_info=result)
            acknowledgements += 1
        LOGGER.info("Drained %s/%s pollers", acknowledgements, len(tasks))
        return acknowledgements
