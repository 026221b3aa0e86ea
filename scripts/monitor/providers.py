"""
Data types for the monitor.

Payloads are immutable snapshots of what each source reported. The
``*_from_dict`` converters turn decoded JSON into those snapshots and raise
:class:`PayloadError` when a document does not match the expected shape.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable


class PayloadError(ValueError):
    """Raised when a decoded document does not match the expected schema."""


def _parse_datetime(s: str | None) -> datetime | None:
    """Parse ISO datetime string."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        raise PayloadError(f"invalid timestamp: {s!r}") from None


def _require(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise PayloadError(f"missing key: {key}")
    value = data[key]
    # bool is an int subclass; reject it where a count is expected
    if isinstance(value, bool) and kind is int:
        raise PayloadError(f"{key}: expected int, got bool")
    if not isinstance(value, kind):
        raise PayloadError(f"{key}: expected {_kind_name(kind)}, got {type(value).__name__}")
    return value


def _optional(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if data.get(key) is None:
        return None
    return _require(data, key, kind)


def _kind_name(kind: type | tuple[type, ...]) -> str:
    if isinstance(kind, tuple):
        return "/".join(k.__name__ for k in kind)
    return kind.__name__


def _expect_object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise PayloadError(f"expected JSON object, got {type(data).__name__}")
    return data


# Payloads


@dataclass(frozen=True)
class ServerHealth:
    """Health endpoint response."""

    status: str
    uptime: float | None = None
    version: str | None = None

    @property
    def is_online(self) -> bool:
        return self.status.lower() in ("ok", "healthy")


@dataclass(frozen=True)
class ValidationStats:
    """Validation queue counters."""

    queue_size: int
    processing: int
    pending: int
    approved: int
    flagged: int
    rejected: int
    worker_stats: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    enabled: bool
    questions_added: int | None = None


@dataclass(frozen=True)
class DaemonStats:
    """Generator daemon stats file contents."""

    state: str
    start_time: datetime | None
    total_fetched: int
    questions_added: int
    duplicates_skipped: int
    errors: int
    providers: tuple[ProviderStatus, ...] = ()

    @property
    def is_running(self) -> bool:
        return self.state.lower() == "running"

    @property
    def is_paused(self) -> bool:
        return self.state.lower() == "paused"


def health_from_dict(data: Any) -> ServerHealth:
    """Convert health JSON to ServerHealth."""
    data = _expect_object(data)
    return ServerHealth(
        status=_require(data, "status", str),
        uptime=_optional(data, "uptime", (int, float)),
        version=_optional(data, "version", str),
    )


def validation_stats_from_dict(data: Any) -> ValidationStats:
    """Convert validation stats JSON to ValidationStats."""
    data = _expect_object(data)
    workers = _require(data, "workerStats", dict)
    for name, count in workers.items():
        if isinstance(count, bool) or not isinstance(count, int):
            raise PayloadError(f"workerStats.{name}: expected int")
    return ValidationStats(
        queue_size=_require(data, "queueSize", int),
        processing=_require(data, "processing", int),
        pending=_require(data, "pending", int),
        approved=_require(data, "approved", int),
        flagged=_require(data, "flagged", int),
        rejected=_require(data, "rejected", int),
        worker_stats=dict(workers),
    )


def _provider_from_dict(data: Any) -> ProviderStatus:
    data = _expect_object(data)
    return ProviderStatus(
        name=_require(data, "name", str),
        enabled=_require(data, "enabled", bool),
        questions_added=_optional(data, "questionsAdded", int),
    )


def daemon_stats_from_dict(data: Any) -> DaemonStats:
    """Convert daemon stats JSON to DaemonStats."""
    data = _expect_object(data)
    return DaemonStats(
        state=_require(data, "state", str),
        start_time=_parse_datetime(_optional(data, "startTime", str)),
        total_fetched=_require(data, "totalFetched", int),
        questions_added=_require(data, "questionsAdded", int),
        duplicates_skipped=_require(data, "duplicatesSkipped", int),
        errors=_require(data, "errors", int),
        providers=tuple(
            _provider_from_dict(p) for p in _require(data, "providers", list)
        ),
    )


# Poll results


class FailureKind(Enum):
    NETWORK_TIMEOUT = "timeout"
    NETWORK_REFUSED = "connection refused"
    NETWORK_ERROR = "network error"
    HTTP_STATUS = "http status"
    DECODE_ERROR = "decode error"
    FILE_NOT_FOUND = "file not found"
    FILE_READ_ERROR = "file read error"


@dataclass(frozen=True)
class Failure:
    """Classified reason a source poll failed."""

    kind: FailureKind
    message: str
    status_code: int | None = None

    def short(self, limit: int = 55) -> str:
        """One-line message for inline display."""
        text = self.message.splitlines()[0] if self.message else self.kind.value
        if len(text) > limit:
            text = text[: limit - 1] + "…"
        return text


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one poll of one source."""

    name: str
    payload: Any = None
    failure: Failure | None = None
    elapsed_ms: float = 0.0

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.failure is None):
            raise ValueError("exactly one of payload or failure must be set")

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class Snapshot:
    """Results of one polling cycle, one slot per configured source."""

    taken_at: datetime
    results: tuple[SourceResult, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self.results)

    def get(self, name: str) -> SourceResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def payload(self, name: str) -> Any:
        return self.get(name).payload

    def failure(self, name: str) -> Failure | None:
        return self.get(name).failure

    def to_dict(self) -> dict:
        """JSON-friendly view used by ``--json``."""
        out: dict[str, Any] = {"taken_at": self.taken_at.isoformat(), "sources": {}}
        for r in self.results:
            entry: dict[str, Any] = {"ok": r.ok, "elapsed_ms": round(r.elapsed_ms, 1)}
            if r.ok:
                entry["payload"] = _jsonable(r.payload)
            else:
                entry["error"] = {
                    "kind": r.failure.kind.name,
                    "message": r.failure.message,
                    "status_code": r.failure.status_code,
                }
            out["sources"][r.name] = entry
        return out


def _jsonable(value: Any) -> Any:
    if hasattr(value, "__dataclass_fields__"):
        return {k: _jsonable(getattr(value, k)) for k in value.__dataclass_fields__}
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class PollStats:
    """Cumulative statistics for the primary source."""

    poll_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_latency_ms: float = 0.0
    last_latency_ms: float = 0.0
    started_at: float = field(default_factory=time.time)

    @property
    def avg_latency_ms(self) -> float:
        if self.success_count == 0:
            return 0.0
        return self.total_latency_ms / self.success_count

    @property
    def success_rate(self) -> float:
        total = self.success_count + self.failure_count
        return self.success_count / total * 100 if total > 0 else 0.0

    def uptime(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.started_at

    def record_success(self, latency_ms: float) -> PollStats:
        return replace(
            self,
            poll_count=self.poll_count + 1,
            success_count=self.success_count + 1,
            total_latency_ms=self.total_latency_ms + latency_ms,
            last_latency_ms=latency_ms,
        )

    def record_failure(self) -> PollStats:
        return replace(
            self,
            poll_count=self.poll_count + 1,
            failure_count=self.failure_count + 1,
        )

    def to_dict(self) -> dict:
        return {
            "poll_count": self.poll_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_latency_ms": round(self.last_latency_ms, 1),
            "avg_latency_ms": round(self.avg_latency_ms, 1),
            "success_rate": round(self.success_rate, 1),
        }


class StatusMessage:
    """Short-lived message shown in the header after a command."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._message: str | None = None
        self._expires_at = 0.0

    def set(self, message: str, duration: float = 5.0) -> None:
        self._message = message
        self._expires_at = self._clock() + duration

    def current(self) -> str | None:
        """Return the message, clearing it once expired."""
        if self._message is None:
            return None
        if self._clock() >= self._expires_at:
            self._message = None
            return None
        return self._message
