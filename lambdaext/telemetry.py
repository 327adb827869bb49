"""Records delivered by the Lambda Telemetry API and their subscriber plumbing."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Mapping, TypeVar, Union

from .logs import parse_timestamp

logger = logging.getLogger(__name__)

_E = TypeVar("_E", bound=Enum)


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


def _string(data: Mapping[str, Any], key: str) -> str:
    return _as_str(_field(data, key), key)


def _optional_string(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    return None if value is None else _as_str(value, key)


def _uint(data: Mapping[str, Any], key: str) -> int:
    return _as_uint(_field(data, key), key)


def _optional_uint(data: Mapping[str, Any], key: str) -> int | None:
    value = data.get(key)
    return None if value is None else _as_uint(value, key)


def _float(data: Mapping[str, Any], key: str) -> float:
    return _as_float(_field(data, key), key)


def _optional_float(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    return None if value is None else _as_float(value, key)


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"`{key}` must be a list of strings")
    return [_as_str(item, key) for item in value]


def _enum(enum_cls: type[_E], value: Any, name: str) -> _E:
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"invalid value {value!r} for `{name}`") from None


def _enum_field(enum_cls: type[_E], data: Mapping[str, Any], key: str) -> _E:
    return _enum(enum_cls, _field(data, key), key)


def _optional_enum(enum_cls: type[_E], data: Mapping[str, Any], key: str) -> _E | None:
    value = data.get(key)
    return None if value is None else _enum(enum_cls, value, key)


class InitType(Enum):
    """Type of initialisation."""

    ON_DEMAND = "on-demand"
    PROVISIONED_CONCURRENCY = "provisioned-concurrency"
    SNAP_START = "snap-start"


class InitPhase(Enum):
    """Phase in which initialisation occurs."""

    INIT = "init"
    INVOKE = "invoke"


class Status(Enum):
    """Status of an invocation or initialisation."""

    SUCCESS = "success"
    ERROR = "error"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class TracingType(Enum):
    """Type of tracing."""

    AMZN_TRACE_ID = "X-Amzn-Trace-Id"


@dataclass
class Span:
    """A timed span within an invocation or initialisation."""

    duration_ms: float
    name: str
    start: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Span:
        data = _mapping(data, "span")
        return cls(
            duration_ms=_float(data, "durationMs"),
            name=_string(data, "name"),
            start=parse_timestamp(_field(data, "start")),
        )


def _spans(data: Mapping[str, Any]) -> list[Span]:
    if "spans" not in data:
        return []
    value = data["spans"]
    if not isinstance(value, list):
        raise ValueError("`spans` must be a list")
    return [Span.from_dict(item) for item in value]


@dataclass
class TraceContext:
    """Tracing context of a request."""

    type: TracingType
    value: str
    span_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TraceContext:
        data = _mapping(data, "tracing")
        return cls(
            type=_enum_field(TracingType, data, "type"),
            value=_string(data, "value"),
            span_id=_optional_string(data, "spanId"),
        )


def _optional_tracing(data: Mapping[str, Any]) -> TraceContext | None:
    value = data.get("tracing")
    return None if value is None else TraceContext.from_dict(value)


@dataclass
class InitReportMetrics:
    """Metrics of an initialisation report."""

    duration_ms: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InitReportMetrics:
        data = _mapping(data, "metrics")
        return cls(duration_ms=_float(data, "durationMs"))


@dataclass
class ReportMetrics:
    """Metrics of an invocation report."""

    duration_ms: float
    billed_duration_ms: int
    memory_size_mb: int
    max_memory_used_mb: int
    init_duration_ms: float | None = None
    restore_duration_ms: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReportMetrics:
        data = _mapping(data, "metrics")
        return cls(
            duration_ms=_float(data, "durationMs"),
            billed_duration_ms=_uint(data, "billedDurationMs"),
            memory_size_mb=_uint(data, "memorySizeMB"),
            max_memory_used_mb=_uint(data, "maxMemoryUsedMB"),
            init_duration_ms=_optional_float(data, "initDurationMs"),
            restore_duration_ms=_optional_float(data, "restoreDurationMs"),
        )


@dataclass
class RuntimeDoneMetrics:
    """Metrics of a completed invocation."""

    duration_ms: float
    produced_bytes: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RuntimeDoneMetrics:
        data = _mapping(data, "metrics")
        return cls(
            duration_ms=_float(data, "durationMs"),
            produced_bytes=_optional_uint(data, "producedBytes"),
        )


@dataclass
class TelemetryFunction:
    """A line written by the function."""

    record: str


@dataclass
class TelemetryExtension:
    """A line written by an extension."""

    record: str


@dataclass
class PlatformInitStart:
    """Start of initialisation."""

    initialization_type: InitType
    phase: InitPhase
    runtime_version: str | None = None
    runtime_version_arn: str | None = None


@dataclass
class PlatformInitRuntimeDone:
    """Completion of runtime initialisation."""

    initialization_type: InitType
    status: Status
    phase: InitPhase | None = None
    error_type: str | None = None
    spans: list[Span] = field(default_factory=list)


@dataclass
class PlatformInitReport:
    """Report of an initialisation."""

    initialization_type: InitType
    phase: InitPhase
    metrics: InitReportMetrics
    spans: list[Span] = field(default_factory=list)


@dataclass
class TelemetryPlatformStart:
    """Start of an invocation."""

    request_id: str
    version: str | None = None
    tracing: TraceContext | None = None


@dataclass
class TelemetryPlatformRuntimeDone:
    """Completion of an invocation."""

    request_id: str
    status: Status
    error_type: str | None = None
    metrics: RuntimeDoneMetrics | None = None
    spans: list[Span] = field(default_factory=list)
    tracing: TraceContext | None = None


@dataclass
class TelemetryPlatformReport:
    """Report of an invocation with its metrics."""

    request_id: str
    status: Status
    metrics: ReportMetrics
    error_type: str | None = None
    spans: list[Span] = field(default_factory=list)
    tracing: TraceContext | None = None


@dataclass
class TelemetryPlatformExtension:
    """Extension-specific record."""

    name: str
    state: str
    events: list[str] = field(default_factory=list)


@dataclass
class PlatformTelemetrySubscription:
    """Telemetry subscriber-specific record."""

    name: str
    state: str
    types: list[str] = field(default_factory=list)


@dataclass
class TelemetryLogsDropped:
    """Emitted when the telemetry subscriber falls behind."""

    reason: str
    dropped_records: int
    dropped_bytes: int


LambdaTelemetryRecord = Union[
    TelemetryFunction,
    TelemetryExtension,
    PlatformInitStart,
    PlatformInitRuntimeDone,
    PlatformInitReport,
    TelemetryPlatformStart,
    TelemetryPlatformRuntimeDone,
    TelemetryPlatformReport,
    TelemetryPlatformExtension,
    PlatformTelemetrySubscription,
    TelemetryLogsDropped,
]


def _init_start(r: Mapping[str, Any]) -> PlatformInitStart:
    return PlatformInitStart(
        initialization_type=_enum_field(InitType, r, "initializationType"),
        phase=_enum_field(InitPhase, r, "phase"),
        runtime_version=_optional_string(r, "runtimeVersion"),
        runtime_version_arn=_optional_string(r, "runtimeVersionArn"),
    )


def _init_runtime_done(r: Mapping[str, Any]) -> PlatformInitRuntimeDone:
    return PlatformInitRuntimeDone(
        initialization_type=_enum_field(InitType, r, "initializationType"),
        status=_enum_field(Status, r, "status"),
        phase=_optional_enum(InitPhase, r, "phase"),
        error_type=_optional_string(r, "errorType"),
        spans=_spans(r),
    )


def _init_report(r: Mapping[str, Any]) -> PlatformInitReport:
    return PlatformInitReport(
        initialization_type=_enum_field(InitType, r, "initializationType"),
        phase=_enum_field(InitPhase, r, "phase"),
        metrics=InitReportMetrics.from_dict(_field(r, "metrics")),
        spans=_spans(r),
    )


def _start(r: Mapping[str, Any]) -> TelemetryPlatformStart:
    return TelemetryPlatformStart(
        request_id=_string(r, "requestId"),
        version=_optional_string(r, "version"),
        tracing=_optional_tracing(r),
    )


def _runtime_done(r: Mapping[str, Any]) -> TelemetryPlatformRuntimeDone:
    metrics = r.get("metrics")
    return TelemetryPlatformRuntimeDone(
        request_id=_string(r, "requestId"),
        status=_enum_field(Status, r, "status"),
        error_type=_optional_string(r, "errorType"),
        metrics=None if metrics is None else RuntimeDoneMetrics.from_dict(metrics),
        spans=_spans(r),
        tracing=_optional_tracing(r),
    )


def _report(r: Mapping[str, Any]) -> TelemetryPlatformReport:
    return TelemetryPlatformReport(
        request_id=_string(r, "requestId"),
        status=_enum_field(Status, r, "status"),
        metrics=ReportMetrics.from_dict(_field(r, "metrics")),
        error_type=_optional_string(r, "errorType"),
        spans=_spans(r),
        tracing=_optional_tracing(r),
    )


def _extension(r: Mapping[str, Any]) -> TelemetryPlatformExtension:
    return TelemetryPlatformExtension(
        name=_string(r, "name"), state=_string(r, "state"), events=_str_list(r, "events")
    )


def _subscription(r: Mapping[str, Any]) -> PlatformTelemetrySubscription:
    return PlatformTelemetrySubscription(
        name=_string(r, "name"), state=_string(r, "state"), types=_str_list(r, "types")
    )


def _logs_dropped(r: Mapping[str, Any]) -> TelemetryLogsDropped:
    return TelemetryLogsDropped(
        reason=_string(r, "reason"),
        dropped_records=_uint(r, "droppedRecords"),
        dropped_bytes=_uint(r, "droppedBytes"),
    )


_OBJECT_PARSERS: dict[str, Callable[[Mapping[str, Any]], LambdaTelemetryRecord]] = {
    "platform.initStart": _init_start,
    "platform.initRuntimeDone": _init_runtime_done,
    "platform.initReport": _init_report,
    "platform.start": _start,
    "platform.runtimeDone": _runtime_done,
    "platform.report": _report,
    "platform.extension": _extension,
    "platform.telemetrySubscription": _subscription,
    "platform.logsDropped": _logs_dropped,
}

_TEXT_RECORDS: dict[str, Callable[[str], LambdaTelemetryRecord]] = {
    "function": TelemetryFunction,
    "extension": TelemetryExtension,
}


def parse_telemetry_record(data: Mapping[str, Any]) -> LambdaTelemetryRecord:
    """Build a telemetry record from an object holding `type` and `record`."""
    data = _mapping(data, "telemetry entry")
    record_type = _string(data, "type")
    record = _field(data, "record")
    if record_type in _TEXT_RECORDS:
        return _TEXT_RECORDS[record_type](_as_str(record, "record"))
    try:
        parser = _OBJECT_PARSERS[record_type]
    except KeyError:
        raise ValueError(f"unknown telemetry record type `{record_type}`") from None
    return parser(_mapping(record, "record"))


@dataclass
class LambdaTelemetry:
    """One entry received from the Telemetry API."""

    time: datetime
    record: LambdaTelemetryRecord

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LambdaTelemetry:
        data = _mapping(data, "telemetry entry")
        return cls(time=parse_timestamp(_field(data, "time")), record=parse_telemetry_record(data))


def parse_telemetry(body: bytes | str) -> list[LambdaTelemetry]:
    """Parse a Telemetry API request body holding a JSON array of entries."""
    entries = json.loads(body)
    if not isinstance(entries, list):
        raise ValueError("expected a JSON array of telemetry entries")
    return [LambdaTelemetry.from_dict(entry) for entry in entries]


TelemetryProcessor = Callable[[list[LambdaTelemetry]], Union[None, Awaitable[None]]]


async def handle_telemetry_request(processor: TelemetryProcessor, body: bytes | str) -> HTTPStatus:
    """Hand a Telemetry API request body to the processor and return the HTTP status to answer with."""
    try:
        telemetry = parse_telemetry(body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.error("Error parsing telemetry: %s", exc)
        return HTTPStatus.BAD_REQUEST
    try:
        result = processor(telemetry)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:  # the processor's failure must not fail the request
        logger.error("Telemetry processor failed: %r", exc)
    return HTTPStatus.OK