"""Records delivered by the Lambda Logs API and their subscriber plumbing."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Mapping, Union

logger = logging.getLogger(__name__)


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected an object for {what}")
    return value


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _as_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"`{name}` must be a string")
    return value


def _as_uint(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"`{name}` must be a non-negative integer")
    return value


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"`{name}` must be a number")
    return float(value)


def _as_str_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, list):
        raise ValueError(f"`{name}` must be a list of strings")
    return [_as_str(item, name) for item in value]


def _string(data: Mapping[str, Any], key: str) -> str:
    return _as_str(_field(data, key), key)


def _uint(data: Mapping[str, Any], key: str) -> int:
    return _as_uint(_field(data, key), key)


def _float(data: Mapping[str, Any], key: str) -> float:
    return _as_float(_field(data, key), key)


def _optional_float(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    return None if value is None else _as_float(value, key)


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    return _as_str_list(_field(data, key), key)


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if not isinstance(value, str):
        raise ValueError("timestamp must be a string")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"invalid timestamp `{value}`") from None
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp `{value}` has no offset")
    return parsed.astimezone(timezone.utc)


@dataclass
class LogPlatformReportMetrics:
    """Metrics carried by a platform report record."""

    duration_ms: float
    billed_duration_ms: int
    memory_size_mb: int
    max_memory_used_mb: int
    init_duration_ms: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LogPlatformReportMetrics:
        data = _mapping(data, "metrics")
        return cls(
            duration_ms=_float(data, "durationMs"),
            billed_duration_ms=_uint(data, "billedDurationMs"),
            memory_size_mb=_uint(data, "memorySizeMB"),
            max_memory_used_mb=_uint(data, "maxMemoryUsedMB"),
            init_duration_ms=_optional_float(data, "initDurationMs"),
        )


@dataclass
class FunctionLog:
    """A line written by the function."""

    record: str


@dataclass
class ExtensionLog:
    """A line written by an extension."""

    record: str


@dataclass
class PlatformStart:
    """Start of an invocation."""

    request_id: str


@dataclass
class PlatformEnd:
    """End of an invocation."""

    request_id: str


@dataclass
class PlatformReport:
    """Report of an invocation with its metrics."""

    request_id: str
    metrics: LogPlatformReportMetrics


@dataclass
class PlatformFault:
    """Runtime or execution environment error."""

    record: str


@dataclass
class PlatformExtension:
    """Extension-specific record."""

    name: str
    state: str
    events: list[str] = field(default_factory=list)


@dataclass
class PlatformLogsSubscription:
    """Log subscriber-specific record."""

    name: str
    state: str
    types: list[str] = field(default_factory=list)


@dataclass
class PlatformLogsDropped:
    """Emitted when the log subscriber falls behind."""

    reason: str
    dropped_records: int
    dropped_bytes: int


@dataclass
class PlatformRuntimeDone:
    """Completion of an invocation."""

    request_id: str
    status: str


LambdaLogRecord = Union[
    FunctionLog,
    ExtensionLog,
    PlatformStart,
    PlatformEnd,
    PlatformReport,
    PlatformFault,
    PlatformExtension,
    PlatformLogsSubscription,
    PlatformLogsDropped,
    PlatformRuntimeDone,
]


def _object(record: Any) -> Mapping[str, Any]:
    return _mapping(record, "record")


_RECORD_PARSERS: dict[str, Callable[[Any], LambdaLogRecord]] = {
    "function": lambda r: FunctionLog(_as_str(r, "record")),
    "extension": lambda r: ExtensionLog(_as_str(r, "record")),
    "platform.start": lambda r: PlatformStart(_string(_object(r), "requestId")),
    "platform.end": lambda r: PlatformEnd(_string(_object(r), "requestId")),
    "platform.report": lambda r: PlatformReport(
        request_id=_string(_object(r), "requestId"),
        metrics=LogPlatformReportMetrics.from_dict(_field(_object(r), "metrics")),
    ),
    "platform.fault": lambda r: PlatformFault(_as_str(r, "record")),
    "platform.extension": lambda r: PlatformExtension(
        name=_string(_object(r), "name"),
        state=_string(_object(r), "state"),
        events=_str_list(_object(r), "events"),
    ),
    "platform.logsSubscription": lambda r: PlatformLogsSubscription(
        name=_string(_object(r), "name"),
        state=_string(_object(r), "state"),
        types=_str_list(_object(r), "types"),
    ),
    "platform.logsDropped": lambda r: PlatformLogsDropped(
        reason=_string(_object(r), "reason"),
        dropped_records=_uint(_object(r), "droppedRecords"),
        dropped_bytes=_uint(_object(r), "droppedBytes"),
    ),
    "platform.runtimeDone": lambda r: PlatformRuntimeDone(
        request_id=_string(_object(r), "requestId"),
        status=_string(_object(r), "status"),
    ),
}


def parse_log_record(data: Mapping[str, Any]) -> LambdaLogRecord:
    """Build a log record from an object holding `type` and `record`."""
    data = _mapping(data, "log entry")
    record_type = _string(data, "type")
    try:
        parser = _RECORD_PARSERS[record_type]
    except KeyError:
        raise ValueError(f"unknown log record type `{record_type}`") from None
    return parser(_field(data, "record"))


@dataclass
class LogBuffering:
    """How Lambda buffers logs before delivering them to a subscriber."""

    timeout_ms: int = 1_000
    max_bytes: int = 262_144
    max_items: int = 10_000

    def to_dict(self) -> dict[str, int]:
        return {
            "timeoutMs": self.timeout_ms,
            "maxBytes": self.max_bytes,
            "maxItems": self.max_items,
        }


@dataclass
class LambdaLog:
    """One entry received from the Logs API."""

    time: datetime
    record: LambdaLogRecord

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LambdaLog:
        data = _mapping(data, "log entry")
        return cls(time=parse_timestamp(_field(data, "time")), record=parse_log_record(data))


def parse_logs(body: bytes | str) -> list[LambdaLog]:
    """Parse a Logs API request body holding a JSON array of entries."""
    entries = json.loads(body)
    if not isinstance(entries, list):
        raise ValueError("expected a JSON array of log entries")
    return [LambdaLog.from_dict(entry) for entry in entries]


LogsProcessor = Callable[[list[LambdaLog]], Union[None, Awaitable[None]]]


async def handle_logs_request(processor: LogsProcessor, body: bytes | str) -> HTTPStatus:
    """Hand a Logs API request body to the processor and return the HTTP status to answer with."""
    try:
        logs = parse_logs(body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.error("Error parsing logs: %s", exc)
        return HTTPStatus.BAD_REQUEST
    try:
        result = processor(logs)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:  # the processor's failure must not fail the request
        logger.error("Logs processor failed: %r", exc)
    return HTTPStatus.OK