"""Delivery of accepted logs to chat destinations."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from core.errors import DeliveryError
from core.models import LogResult
from core.ports import ChatSessionPort

LOGGER = logging.getLogger(__name__)

MessageFormatter = Callable[[str, LogResult], str]


class Deliverer:
    """Waits out the spoiler delay, then writes one line to the session."""

    def __init__(
        self,
        spoiler_delay: float,
        formatter: MessageFormatter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._spoiler_delay = spoiler_delay
        self._formatter = formatter
        self._sleep = sleep

    async def deliver(self, session: ChatSessionPort, channel: str, result: LogResult) -> None:
        """Announce ``result`` in ``channel``; raises DeliveryError on write failure."""

        # Stream delay: announcing right away would spoil the match for viewers.
        if self._spoiler_delay > 0:
            await self._sleep(self._spoiler_delay)

        line = self._formatter(channel, result)
        try:
            await session.send_line(line)
        except OSError as exc:
            raise DeliveryError("failed to write chat line", {"channel": channel, "log_id": result.id}) from exc

        age = datetime.now(timezone.utc) - result.occurred_at
        LOGGER.info("sent log id=%s channel=%s age=%ss", result.id, channel, int(age.total_seconds()))
