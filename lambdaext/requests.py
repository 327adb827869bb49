"""Builders for requests sent to the Extensions, Logs and Telemetry APIs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .logs import LogBuffering

EXTENSION_NAME_HEADER = "Lambda-Extension-Name"
EXTENSION_ID_HEADER = "Lambda-Extension-Identifier"
EXTENSION_ERROR_TYPE_HEADER = "Lambda-Extension-Function-Error-Type"
CONTENT_TYPE_HEADER_NAME = "Content-Type"
CONTENT_TYPE_HEADER_VALUE = "application/json"

DEFAULT_EVENTS = ("INVOKE", "SHUTDOWN")
DEFAULT_SUBSCRIPTION_TYPES = ("platform", "function")


def _to_json(data: Any) -> bytes:
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def _header_value(value: str) -> str:
    if not isinstance(value, str) or any(ch in value for ch in "\r\n\0"):
        raise ValueError(f"invalid header value {value!r}")
    return value


@dataclass
class Request:
    """An HTTP request addressed to a path on the runtime API endpoint."""

    method: str
    uri: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        for value in self.headers.values():
            _header_value(value)


class Api(Enum):
    """Subscription APIs an extension can register with."""

    LOGS = "logs"
    TELEMETRY = "telemetry"

    def schema_version(self) -> str:
        return "2021-03-18" if self is Api.LOGS else "2022-07-01"

    def uri(self) -> str:
        return "/2020-08-15/logs" if self is Api.LOGS else "/2022-07-01/telemetry"


def next_event_request(extension_id: str) -> Request:
    """Request for the next INVOKE or SHUTDOWN event."""
    return Request(
        method="GET",
        uri="/2020-01-01/extension/event/next",
        headers={EXTENSION_ID_HEADER: extension_id},
    )


def register_request(extension_name: str, events: Iterable[str]) -> Request:
    """Request registering an extension for the given events."""
    return Request(
        method="POST",
        uri="/2020-01-01/extension/register",
        headers={
            EXTENSION_NAME_HEADER: extension_name,
            CONTENT_TYPE_HEADER_NAME: CONTENT_TYPE_HEADER_VALUE,
        },
        body=_to_json({"events": list(events)}),
    )


def subscribe_request(
    api: Api,
    extension_id: str,
    types: Iterable[str] | None,
    buffering: LogBuffering | None,
    port_number: int,
) -> Request:
    """Request subscribing a local HTTP listener to the logs or telemetry API."""
    if isinstance(port_number, bool) or not isinstance(port_number, int) or not 0 <= port_number <= 65535:
        raise ValueError(f"invalid port number {port_number!r}")
    data = {
        "schemaVersion": api.schema_version(),
        "types": list(DEFAULT_SUBSCRIPTION_TYPES if types is None else types),
        "buffering": (buffering or LogBuffering()).to_dict(),
        "destination": {
            "protocol": "HTTP",
            "URI": f"http://sandbox.localdomain:{port_number}",
        },
    }
    return Request(
        method="PUT",
        uri=api.uri(),
        headers={
            EXTENSION_ID_HEADER: extension_id,
            CONTENT_TYPE_HEADER_NAME: CONTENT_TYPE_HEADER_VALUE,
        },
        body=_to_json(data),
    )


@dataclass
class ErrorRequest:
    """Error details sent to the Extensions API."""

    error_message: str
    error_type: str
    stack_trace: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "errorMessage": self.error_message,
            "errorType": self.error_type,
            "stackTrace": list(self.stack_trace),
        }


def _error_request(
    phase: str, extension_id: str, error_type: str, request: ErrorRequest | None
) -> Request:
    return Request(
        method="POST",
        uri=f"/2020-01-01/extension/{phase}/error",
        headers={
            EXTENSION_ID_HEADER: extension_id,
            EXTENSION_ERROR_TYPE_HEADER: error_type,
        },
        body=b"" if request is None else _to_json(request.to_dict()),
    )


def init_error(extension_id: str, error_type: str, request: ErrorRequest | None = None) -> Request:
    """Request reporting an error during initialisation."""
    return _error_request("init", extension_id, error_type, request)


def exit_error(extension_id: str, error_type: str, request: ErrorRequest | None = None) -> Request:
    """Request reporting an error before exiting."""
    return _error_request("exit", extension_id, error_type, request)