"""Events delivered to an extension by the Extensions API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected an object for {what}")
    return value


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _string(data: Mapping[str, Any], key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _uint(data: Mapping[str, Any], key: str) -> int:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field `{key}` must be a non-negative integer")
    return value


@dataclass
class Tracing:
    """Request tracing information."""

    type: str
    value: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Tracing:
        data = _mapping(data, "tracing")
        return cls(type=_string(data, "type"), value=_string(data, "value"))


@dataclass
class InvokeEvent:
    """Event received when there is a new Lambda invocation."""

    deadline_ms: int
    request_id: str
    invoked_function_arn: str
    tracing: Tracing

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvokeEvent:
        data = _mapping(data, "invoke event")
        return cls(
            deadline_ms=_uint(data, "deadlineMs"),
            request_id=_string(data, "requestId"),
            invoked_function_arn=_string(data, "invokedFunctionArn"),
            tracing=Tracing.from_dict(_field(data, "tracing")),
        )


@dataclass
class ShutdownEvent:
    """Event received when a Lambda function shuts down."""

    shutdown_reason: str
    deadline_ms: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ShutdownEvent:
        data = _mapping(data, "shutdown event")
        return cls(
            shutdown_reason=_string(data, "shutdownReason"),
            deadline_ms=_uint(data, "deadlineMs"),
        )


NextEvent = Union[InvokeEvent, ShutdownEvent]

_EVENT_TYPES = {
    "INVOKE": InvokeEvent,
    "SHUTDOWN": ShutdownEvent,
}


def parse_next_event(data: Mapping[str, Any]) -> NextEvent:
    """Build an invoke or shutdown event from its JSON object."""
    data = _mapping(data, "next event")
    event_type = _string(data, "eventType")
    try:
        event_cls = _EVENT_TYPES[event_type]
    except KeyError:
        raise ValueError(f"unknown event type `{event_type}`") from None
    return event_cls.from_dict(data)


@dataclass
class LambdaEvent:
    """The next event for an extension, with the extension's identifier."""

    extension_id: str
    next: NextEvent

    def is_invoke(self) -> bool:
        """Whether the event belongs to the INVOKE phase."""
        return isinstance(self.next, InvokeEvent)