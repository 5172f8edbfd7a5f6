"""logs.tf search adapter.

Implements the core LogQueryPort. One request per call, no retries: the
polling interval already is the retry policy.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from core.config import LogsApiConfig
from core.errors import NoResultsError, QueryError
from core.models import LogResult

LOGGER = logging.getLogger(__name__)

USER_AGENT = "logsbot/1.0 (+twitch relay)"


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_search_response(identity: str, body: str) -> LogResult:
    """Parse a json_search envelope into the newest LogResult.

    Raises NoResultsError when the service reports no match and QueryError
    when the body is not the expected shape.
    """

    context = {"player": identity}
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise QueryError("log service returned invalid JSON", context) from exc
    if not isinstance(payload, dict):
        raise QueryError("log service returned an unexpected payload", context)

    results = payload.get("results", 0)
    if _as_int(results) is None:
        raise QueryError("log service returned a non-integer result count", context)

    logs = payload.get("logs") or []
    if payload.get("success") is not True or results <= 0 or not logs:
        raise NoResultsError("no logs found", body, {**context, "results": results})
    if not isinstance(logs, list) or not isinstance(logs[0], dict):
        raise QueryError("log service returned malformed logs", context)

    entry = logs[0]
    log_id = _as_int(entry.get("id"))
    date = _as_int(entry.get("date"))
    if log_id is None or date is None:
        raise QueryError("log entry is missing id or date", context)

    try:
        occurred_at = datetime.fromtimestamp(date, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise QueryError("log entry has an invalid date", {**context, "date": date}) from exc

    return LogResult(id=log_id, occurred_at=occurred_at, title=str(entry.get("title") or ""))


class LogsTfClient:
    """Fetches the newest log for a player from the logs.tf search API."""

    def __init__(self, config: LogsApiConfig, session: Optional[aiohttp.ClientSession] = None) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None

    def _endpoint(self) -> str:
        return f"{self._config.base_url}/json_search"

    def _get_session(self) -> aiohttp.ClientSession:
        # Created lazily so the session binds to the running event loop.
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self._session

    async def fetch_latest(self, identity: str) -> LogResult:
        """Return the newest log for ``identity``."""

        params = {"player": identity, "limit": "1"}
        session = self._get_session()
        try:
            async with session.get(self._endpoint(), params=params) as response:
                body = await response.text()
                if response.status >= 400:
                    raise QueryError(
                        "log service returned an error status",
                        {"player": identity, "status": response.status},
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise QueryError("log service request failed", {"player": identity, "cause": repr(exc)}) from exc

        result = parse_search_response(identity, body)
        LOGGER.debug("Latest log for player=%s is id=%s", identity, result.id)
        return result

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
