"""
Source pollers.

Each source performs a single fetch attempt and always returns a
:class:`SourceResult`. Failures are classified into a :class:`Failure`
rather than raised; the next polling cycle is the retry.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Protocol

import httpx

from monitor.config import DEFAULT_TIMEOUT, MonitorConfig
from monitor.providers import (
    Failure,
    FailureKind,
    PayloadError,
    ServerHealth,
    SourceResult,
    daemon_stats_from_dict,
    health_from_dict,
    validation_stats_from_dict,
)

logger = logging.getLogger(__name__)

HEALTH = "health"
VALIDATION = "validation"
DAEMON = "daemon"

MAX_BODY_BYTES = 1024 * 1024


class Source(Protocol):
    """One independent origin of monitored data."""

    name: str

    async def poll(self, client: httpx.AsyncClient) -> SourceResult:
        ...


class _FetchError(Exception):
    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


def _classify_http_error(exc: httpx.HTTPError) -> Failure:
    if isinstance(exc, httpx.TimeoutException):
        return Failure(FailureKind.NETWORK_TIMEOUT, f"Timed out: {exc}" if str(exc) else "Timed out")
    if isinstance(exc, httpx.ConnectError):
        return Failure(FailureKind.NETWORK_REFUSED, f"Connection refused: {exc}")
    return Failure(FailureKind.NETWORK_ERROR, f"{type(exc).__name__}: {exc}")


class HttpSource:
    """GET a JSON document from an HTTP endpoint."""

    def __init__(
        self,
        name: str,
        url: str,
        decode: Callable[[Any], Any],
        headers: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.name = name
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._decode = decode

    async def _get(self, client: httpx.AsyncClient) -> bytes:
        try:
            response = await asyncio.wait_for(
                client.get(self.url, headers=self.headers, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise _FetchError(
                Failure(FailureKind.NETWORK_TIMEOUT, f"No response within {self.timeout:g}s")
            ) from None
        except httpx.HTTPError as exc:
            raise _FetchError(_classify_http_error(exc)) from exc

        if not response.is_success:
            raise _FetchError(
                Failure(
                    FailureKind.HTTP_STATUS,
                    f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                    status_code=response.status_code,
                )
            )
        body = response.content
        if len(body) > MAX_BODY_BYTES:
            raise _FetchError(
                Failure(FailureKind.DECODE_ERROR, f"Response too large: {len(body)} bytes")
            )
        return body

    def _parse(self, body: bytes) -> Any:
        try:
            return self._decode(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError, PayloadError) as exc:
            raise _FetchError(Failure(FailureKind.DECODE_ERROR, f"Invalid response: {exc}")) from exc

    async def poll(self, client: httpx.AsyncClient) -> SourceResult:
        try:
            payload = self._parse(await self._get(client))
        except _FetchError as exc:
            logger.debug("%s poll failed: %s", self.name, exc.failure.message)
            return SourceResult(self.name, failure=exc.failure)
        return SourceResult(self.name, payload=payload)


class HealthSource(HttpSource):
    """Health endpoint; tolerates a plain-text body such as ``ok``."""

    def __init__(self, url: str, headers: dict[str, str] | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__(HEALTH, url, health_from_dict, headers=headers, timeout=timeout)

    def _parse(self, body: bytes) -> ServerHealth:
        try:
            return health_from_dict(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError, PayloadError):
            pass
        try:
            text = body.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise _FetchError(Failure(FailureKind.DECODE_ERROR, f"Invalid response: {exc}")) from exc
        logger.debug("health returned plain text %r", text[:40])
        return ServerHealth(status=text)


class ValidationStatsSource(HttpSource):
    def __init__(self, url: str, headers: dict[str, str] | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__(VALIDATION, url, validation_stats_from_dict, headers=headers, timeout=timeout)


class FileSource:
    """Read a JSON document from a local file."""

    def __init__(self, name: str, path: Path, decode: Callable[[Any], Any]) -> None:
        self.name = name
        self.path = Path(path)
        self._decode = decode

    async def poll(self, client: httpx.AsyncClient | None = None) -> SourceResult:
        try:
            data = await asyncio.to_thread(self.path.read_bytes)
        except FileNotFoundError:
            return SourceResult(
                self.name, failure=Failure(FailureKind.FILE_NOT_FOUND, f"Not found: {self.path}")
            )
        except OSError as exc:
            return SourceResult(
                self.name, failure=Failure(FailureKind.FILE_READ_ERROR, f"{exc.strerror or exc}: {self.path}")
            )

        try:
            payload = self._decode(json.loads(data))
        except (json.JSONDecodeError, UnicodeDecodeError, PayloadError) as exc:
            return SourceResult(self.name, failure=Failure(FailureKind.DECODE_ERROR, f"Invalid stats file: {exc}"))
        return SourceResult(self.name, payload=payload)


class DaemonStatsFileSource(FileSource):
    def __init__(self, path: Path) -> None:
        super().__init__(DAEMON, path, daemon_stats_from_dict)


def build_sources(config: MonitorConfig) -> list[Source]:
    """The three standard sources, primary (health) first."""
    headers = config.auth_headers
    return [
        HealthSource(config.health_url, headers=headers, timeout=config.timeout),
        ValidationStatsSource(config.validation_stats_url, headers=headers, timeout=config.timeout),
        DaemonStatsFileSource(config.daemon_stats_file),
    ]


async def timed_poll(source: Source, client: httpx.AsyncClient, started: float) -> SourceResult:
    """Poll one source, stamping its completion time relative to ``started``.

    Never raises for ordinary exceptions; an unexpected error becomes a
    failed slot so one source cannot abort the cycle.
    """
    try:
        result = await source.poll(client)
    except Exception as exc:
        logger.exception("unexpected error polling %s", source.name)
        result = SourceResult(source.name, failure=Failure(FailureKind.NETWORK_ERROR, f"{type(exc).__name__}: {exc}"))
    elapsed_ms = (time.perf_counter() - started) * 1000
    return SourceResult(result.name, result.payload, result.failure, elapsed_ms)
