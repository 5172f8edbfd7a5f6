"""Application entry point for the logs relay bot."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import functools
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

from adapters.logs_tf_client import LogsTfClient
from adapters.notification_formatting import format_log_message, format_log_summary
from client import OAUTH_KEY_ENV, Credentials, build_session_factory, load_credentials
from core.dedup import NotificationGate
from core.delivery import Deliverer
from core.errors import ConfigError, QueryError
from core.models import Destination
from core.processor import PlayerPoller
from core.supervisor import PollingSupervisor

NAME = "LOGSBOT"
FONT = "tarty-1"
LOG_LEVEL_ENV = "LOGS_BOT_LOG_LEVEL"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks credentials; the oauth token may appear with or without its prefix."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so "oauth:abc" is masked whole before "abc" is.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    """Return secret values to mask: the bot's oauth key always, plus configured env names."""

    values: list[str] = []
    oauth_key = (os.getenv(OAUTH_KEY_ENV) or "").strip()
    if oauth_key:
        token = oauth_key.split("oauth:", 1)[-1]
        values.extend([token, f"oauth:{token}"])

    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", False):
        for name in redact_cfg.get("patterns", []):
            value = os.getenv(name)
            if value:
                values.append(value)
    return values


def _file_handler(file_cfg: dict, base_dir: str) -> logging.Handler:
    path = file_cfg.get("path", "logs/logsbot.log")
    if not os.path.isabs(path):
        path = os.path.join(base_dir, path)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging(config: dict, base_dir: str) -> None:
    """Set up console/file logging; relative log paths resolve next to config.json."""

    if not config.get("enabled", False):
        return

    load_dotenv()
    # LOGS_BOT_LOG_LEVEL wins over config.json for one-off debugging runs.
    level_name = (os.getenv(LOG_LEVEL_ENV) or str(config.get("level", "INFO"))).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = _RedactingFormatter(
        _collect_redaction_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_file_handler(file_cfg, base_dir))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # aiohttp logs every retry of its connector at DEBUG; keep ours readable.
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))


def build_supervisor(settings, credentials: Credentials, query: LogsTfClient) -> PollingSupervisor:
    """Wire the gate, delivery and one poller per tracked player."""

    gate = NotificationGate(settings.POLLING.stale_threshold)
    deliverer = Deliverer(
        spoiler_delay=settings.POLLING.spoiler_delay.total_seconds(),
        formatter=functools.partial(format_log_message, base_url=settings.LOGS_API.base_url),
    )
    pollers = [
        PlayerPoller(
            destination=Destination(identity=identity, channel=channel),
            query=query,
            gate=gate,
            deliverer=deliverer,
            interval=settings.POLLING.interval.total_seconds(),
        )
        for identity, channel in settings.CHANNELS.items()
    ]
    return PollingSupervisor(
        pollers=pollers,
        session_factory=build_session_factory(settings.IRC, credentials),
        retry_backoff=settings.POLLING.retry_backoff.total_seconds(),
    )


async def _serve(settings, credentials: Credentials) -> None:
    query = LogsTfClient(settings.LOGS_API)
    supervisor = build_supervisor(settings, credentials, query)

    loop = asyncio.get_running_loop()
    # add_signal_handler is unavailable on Windows event loops.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, supervisor.stop)

    try:
        await supervisor.serve()
    finally:
        await query.close()


def _run(settings) -> None:
    _print_banner()
    _configure_logging(settings.LOGGING, settings.CONFIG_DIR)
    logger = logging.getLogger(__name__)

    credentials = load_credentials()
    logger.info("Starting logsbot for %s players", len(settings.CHANNELS))

    try:
        asyncio.run(_serve(settings, credentials))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


async def _query_once(settings, identity: str) -> str:
    query = LogsTfClient(settings.LOGS_API)
    try:
        result = await query.fetch_latest(identity)
    finally:
        await query.close()
    return format_log_summary(identity, result, settings.LOGS_API.base_url)


def _query(settings, identity: str) -> None:
    try:
        print(asyncio.run(_query_once(settings, identity)))
    except QueryError as exc:
        print(f"Query failed: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="logsbot")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Connect to chat and relay new logs")
    query_parser = subparsers.add_parser(
        "query",
        help="Print the newest log for a player, to check a channel mapping.",
    )
    query_parser.add_argument("steamid")

    args = parser.parse_args(argv)

    # Config is loaded on import; failures there must exit before any loop starts.
    try:
        import settings

        if args.command == "query":
            _query(settings, args.steamid)
            return
        _run(settings)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
