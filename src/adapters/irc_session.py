"""Twitch IRC session adapter.

Implements the core ChatSessionPort over a plain asyncio stream. Only the
handshake, keep-alive PINGs and outgoing lines are handled; everything
else the server sends is read and discarded.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Optional

from adapters.notification_formatting import format_channel
from core.config import IrcConfig
from core.errors import ConnectError, ConnectionLostError, DeliveryError

LOGGER = logging.getLogger(__name__)


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    LIVE = "live"
    CLOSED = "closed"


class IrcSession:
    """One connection to the chat server, from handshake to loss.

    Sessions are single-use: the supervisor builds a new one for every
    reconnect. All writes go through one lock so lines from different
    pollers and keep-alive answers never interleave.
    """

    def __init__(
        self,
        config: IrcConfig,
        username: str,
        oauth_key: str,
        open_connection=asyncio.open_connection,
    ) -> None:
        self._config = config
        self._username = username
        self._oauth_key = oauth_key
        self._open_connection = open_connection
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self.state = SessionState.DISCONNECTED

    @property
    def is_live(self) -> bool:
        return self.state is SessionState.LIVE

    async def connect(self) -> None:
        """Open the transport and send the two handshake lines.

        The server's answer is not awaited; a rejected login only shows up
        later as a closed stream in read_loop().
        """

        if self.state is not SessionState.DISCONNECTED:
            raise ConnectError("session objects cannot be reused", {"state": self.state.value})

        address = {"host": self._config.host, "port": self._config.port}
        self.state = SessionState.CONNECTING
        try:
            self._reader, self._writer = await asyncio.wait_for(
                self._open_connection(self._config.host, self._config.port),
                timeout=self._config.connect_timeout or None,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            self.state = SessionState.CLOSED
            raise ConnectError("failed to open chat connection", address) from exc

        self.state = SessionState.HANDSHAKING
        try:
            await self._write(f"PASS {self._oauth_key}", secret=True)
            await self._write(f"NICK {self._username}")
        except OSError as exc:
            await self.close()
            raise ConnectError("failed to send handshake", address) from exc

        self.state = SessionState.LIVE
        LOGGER.info("Logged in to %s:%s as %s", self._config.host, self._config.port, self._username)

    async def join(self, channel: str) -> None:
        await self.send_line(f"JOIN {format_channel(channel)}")

    async def send_line(self, line: str) -> None:
        """Write one protocol line; raises DeliveryError once the session is gone."""

        async with self._write_lock:
            if not self.is_live:
                raise DeliveryError("session is not live", {"state": self.state.value})
            try:
                await self._write_unlocked(line)
            except OSError as exc:
                raise DeliveryError("failed to write to chat server") from exc

    async def read_loop(self) -> None:
        """Read until the connection fails, answering keep-alive PINGs.

        Never returns normally: EOF, read errors and read timeouts all raise
        ConnectionLostError, which is the liveness signal for the supervisor.
        """

        if not self.is_live or self._reader is None:
            raise ConnectionLostError("session is not live", {"state": self.state.value})

        timeout = self._config.read_timeout or None
        try:
            while True:
                try:
                    raw = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
                except asyncio.TimeoutError as exc:
                    raise ConnectionLostError("no data from chat server", {"timeout": timeout}) from exc
                except (OSError, ValueError) as exc:
                    raise ConnectionLostError("failed to read from chat server") from exc

                if not raw:
                    raise ConnectionLostError("connection closed by chat server")

                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                await self._handle_line(line)
        finally:
            await self.close()

    async def close(self) -> None:
        """Mark the session closed and release the transport. Idempotent."""

        previous = self.state
        self.state = SessionState.CLOSED
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            LOGGER.debug("Transport closed with error: %s", exc)
        if previous is not SessionState.CLOSED:
            LOGGER.info("Chat session closed")

    async def _handle_line(self, line: str) -> None:
        if line.startswith("PING"):
            server = line[4:].strip().lstrip(":") or self._config.server_identity
            try:
                await self._write(f"PONG :{server}")
            except OSError as exc:
                raise ConnectionLostError("failed to answer keep-alive") from exc
            return
        LOGGER.debug("< %s", line)

    async def _write(self, line: str, secret: bool = False) -> None:
        async with self._write_lock:
            await self._write_unlocked(line, secret=secret)

    async def _write_unlocked(self, line: str, secret: bool = False) -> None:
        if self._writer is None:
            raise ConnectionResetError("transport is closed")
        self._writer.write(f"{line}\r\n".encode("utf-8"))
        await self._writer.drain()
        if not secret:
            LOGGER.debug("> %s", line)
