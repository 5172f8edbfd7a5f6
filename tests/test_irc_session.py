from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from adapters.irc_session import IrcSession, SessionState
from core.config import IrcConfig
from core.errors import ConnectError, ConnectionLostError, DeliveryError


class FakeWriter:
    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader
        self.data = bytearray()
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("closed")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.data.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)
        self.in_flight -= 1

    def close(self) -> None:
        self.closed = True
        if not self._reader.at_eof():
            self._reader.feed_eof()

    async def wait_closed(self) -> None:
        return None

    def lines(self) -> list[str]:
        return self.data.decode("utf-8").split("\r\n")[:-1]


def _session(read_timeout: float = 5.0) -> tuple[IrcSession, dict]:
    transport: dict = {}

    async def opener(host: str, port: int):
        reader = asyncio.StreamReader()
        writer = FakeWriter(reader)
        transport["reader"] = reader
        transport["writer"] = writer
        return reader, writer

    config = IrcConfig(host="irc.example", port=6667, read_timeout=read_timeout)
    session = IrcSession(config, "logsbot", "oauth:secret", open_connection=opener)
    return session, transport


def test_connect_sends_handshake_lines() -> None:
    async def scenario() -> list[str]:
        session, transport = _session()
        await session.connect()
        assert session.state is SessionState.LIVE
        return transport["writer"].lines()

    assert asyncio.run(scenario()) == ["PASS oauth:secret", "NICK logsbot"]


def test_connect_failure_raises_connect_error() -> None:
    async def refuse(host: str, port: int):
        raise ConnectionRefusedError("nope")

    session = IrcSession(IrcConfig(), "logsbot", "oauth:secret", open_connection=refuse)

    with pytest.raises(ConnectError):
        asyncio.run(session.connect())
    assert session.state is SessionState.CLOSED


def test_read_loop_answers_ping_and_reports_eof() -> None:
    async def scenario() -> tuple[list[str], Optional[BaseException], IrcSession]:
        session, transport = _session()
        await session.connect()
        reader = transport["reader"]
        reader.feed_data(b":tmi.twitch.tv 001 logsbot :Welcome, GLHF!\r\n")
        reader.feed_data(b":someone!someone@tmi PRIVMSG #alice :PING me\r\n")
        reader.feed_data(b"PING :tmi.twitch.tv\r\n")
        reader.feed_eof()
        error = None
        try:
            await session.read_loop()
        except ConnectionLostError as exc:
            error = exc
        return transport["writer"].lines(), error, session

    lines, error, session = asyncio.run(scenario())
    assert lines[2:] == ["PONG :tmi.twitch.tv"]
    assert isinstance(error, ConnectionLostError)
    assert session.state is SessionState.CLOSED


def test_read_loop_times_out_when_server_goes_quiet() -> None:
    async def scenario() -> None:
        session, _ = _session(read_timeout=0.01)
        await session.connect()
        await session.read_loop()

    with pytest.raises(ConnectionLostError):
        asyncio.run(scenario())


def test_no_writes_after_session_is_closed() -> None:
    async def scenario() -> tuple[list[str], bool]:
        session, transport = _session()
        await session.connect()
        await session.join("Alice")
        await session.close()
        refused = False
        try:
            await session.send_line("PRIVMSG #alice :http://logs.tf/55")
        except DeliveryError:
            refused = True
        return transport["writer"].lines(), refused

    lines, refused = asyncio.run(scenario())
    assert refused
    assert lines == ["PASS oauth:secret", "NICK logsbot", "JOIN #alice"]


def test_concurrent_writes_are_serialized() -> None:
    async def scenario() -> FakeWriter:
        session, transport = _session()
        await session.connect()
        await asyncio.gather(*(session.send_line(f"PRIVMSG #c{i} :http://logs.tf/{i}") for i in range(10)))
        return transport["writer"]

    writer = asyncio.run(scenario())
    assert writer.max_in_flight == 1
    assert len(writer.lines()) == 12


def test_session_cannot_be_reused() -> None:
    async def scenario() -> None:
        session, _ = _session()
        await session.connect()
        await session.close()
        await session.connect()

    with pytest.raises(ConnectError):
        asyncio.run(scenario())
