# lambdaext

Building blocks for Lambda runtime extensions written in Python. The package
parses what the Extensions, Logs and Telemetry APIs send to an extension and
builds the requests an extension sends back to them.

## Installing

```
pip install .
```

## Modules

- `lambdaext.events`: the `INVOKE` and `SHUTDOWN` events of the Extensions API.
- `lambdaext.logs`: records from the Logs API and `LogBuffering` settings.
- `lambdaext.telemetry`: records from the Telemetry API.
- `lambdaext.requests`: request builders for registering, fetching the next
  event, subscribing to logs or telemetry, and reporting errors.

Malformed input raises `ValueError` throughout.

## Events

`parse_next_event` takes the decoded JSON object of a next-event response and
returns an `InvokeEvent` or a `ShutdownEvent`, chosen by its `eventType`:

```python
import json

from lambdaext.events import LambdaEvent, parse_next_event

body = b'{"eventType": "SHUTDOWN", "shutdownReason": "SPINDOWN", "deadlineMs": 1000}'
event = LambdaEvent(extension_id="ext-id", next=parse_next_event(json.loads(body)))
assert not event.is_invoke()
print(event.next.shutdown_reason)
```

## Logs and telemetry

`parse_logs` and `parse_telemetry` take a raw request body (bytes or text
holding a JSON array) and return lists of `LambdaLog` or `LambdaTelemetry`.
Each entry has a UTC `time` and a `record`, whose class tells its kind: for
logs `FunctionLog`, `ExtensionLog`, `PlatformStart`, `PlatformReport` and so
on; for telemetry `TelemetryFunction`, `PlatformInitStart`,
`TelemetryPlatformStart`, `TelemetryPlatformRuntimeDone`,
`TelemetryPlatformReport` and the rest.

```python
from lambdaext.logs import FunctionLog, parse_logs

body = b'[{"time": "2020-08-20T12:31:32.123Z", "type": "function", "record": "hello world"}]'
for log in parse_logs(body):
    if isinstance(log.record, FunctionLog):
        print(log.time, log.record.record)
```

`handle_logs_request(processor, body)` and
`handle_telemetry_request(processor, body)` are coroutines for use inside an
HTTP handler. They parse the body, call the processor with the list (awaiting
it if it returns an awaitable) and return the `HTTPStatus` to answer with:
`BAD_REQUEST` when the body cannot be parsed, otherwise `OK`. An exception
raised by the processor is logged and does not change the status.

## Requests

The builders in `lambdaext.requests` return a `Request` with `method`, `uri`
(a path on the runtime API endpoint), `headers` and a JSON `body`:

```python
from lambdaext.logs import LogBuffering
from lambdaext.requests import Api, ErrorRequest, exit_error, register_request, subscribe_request

register = register_request("my-extension", ["INVOKE", "SHUTDOWN"])
subscribe = subscribe_request(Api.LOGS, "ext-id", ["function"], LogBuffering(timeout_ms=500), 9002)
failure = exit_error("ext-id", "Extension.Failed", ErrorRequest("boom", "RuntimeError"))
```

`subscribe_request` defaults the types to `platform` and `function` when given
`None`, uses the default `LogBuffering` (1000 ms, 262144 bytes, 10000 items)
when given `None`, and points the destination at
`http://sandbox.localdomain:<port>`. `next_event_request` and `init_error`
complete the set.

## What the package does not do

It does not send requests or run an extension. There is no HTTP client, no
registration and event loop, and no HTTP listener for the Logs or Telemetry
API: the caller sends the built `Request` objects to the runtime API endpoint
and serves the subscription port itself, passing bodies to
`handle_logs_request` or `handle_telemetry_request`.

## Running the tests

```
pip install .[test]
pytest
```