import asyncio
import json
from datetime import datetime, timezone
from http import HTTPStatus

import pytest

from lambdaext.logs import (
    ExtensionLog,
    FunctionLog,
    LambdaLog,
    LogBuffering,
    LogPlatformReportMetrics,
    PlatformEnd,
    PlatformExtension,
    PlatformFault,
    PlatformLogsDropped,
    PlatformLogsSubscription,
    PlatformReport,
    PlatformRuntimeDone,
    PlatformStart,
    handle_logs_request,
    parse_log_record,
    parse_logs,
    parse_timestamp,
)


def parse(text):
    return LambdaLog.from_dict(json.loads(text))


def test_deserialize_full():
    data = '{"time": "2020-08-20T12:31:32.123Z","type": "function", "record": "hello world"}'
    expected = LambdaLog(
        time=datetime(2020, 8, 20, 12, 31, 32, 123000, tzinfo=timezone.utc),
        record=FunctionLog("hello world"),
    )
    assert parse(data) == expected


CASES = [
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "function", "record": "hello world"}',
        FunctionLog("hello world"),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "extension", "record": "hello world"}',
        ExtensionLog("hello world"),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.start","record": {"requestId": "6f7f0961f83442118a7af6fe80b88d56"}}',
        PlatformStart(request_id="6f7f0961f83442118a7af6fe80b88d56"),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.end","record": {"requestId": "6f7f0961f83442118a7af6fe80b88d56"}}',
        PlatformEnd(request_id="6f7f0961f83442118a7af6fe80b88d56"),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.report","record": {"requestId": "6f7f0961f83442118a7af6fe80b88d56","metrics": {"durationMs": 1.23,"billedDurationMs": 123,"memorySizeMB": 123,"maxMemoryUsedMB": 123,"initDurationMs": 1.23}}}',
        PlatformReport(
            request_id="6f7f0961f83442118a7af6fe80b88d56",
            metrics=LogPlatformReportMetrics(
                duration_ms=1.23,
                billed_duration_ms=123,
                memory_size_mb=123,
                max_memory_used_mb=123,
                init_duration_ms=1.23,
            ),
        ),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.fault","record": "RequestId: d783b35e-a91d-4251-af17-035953428a2c Process exited before completing request"}',
        PlatformFault(
            "RequestId: d783b35e-a91d-4251-af17-035953428a2c Process exited before completing request"
        ),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.extension","record": {"name": "Foo.bar","state": "Ready","events": ["INVOKE", "SHUTDOWN"]}}',
        PlatformExtension(name="Foo.bar", state="Ready", events=["INVOKE", "SHUTDOWN"]),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.logsSubscription","record": {"name": "test","state": "active","types": ["test"]}}',
        PlatformLogsSubscription(name="test", state="active", types=["test"]),
    ),
    (
        '{"time": "2020-08-20T12:31:32.123Z","type": "platform.logsDropped","record": {"reason": "Consumer seems to have fallen behind as it has not acknowledged receipt of logs.","droppedRecords": 123,"droppedBytes": 12345}}',
        PlatformLogsDropped(
            reason="Consumer seems to have fallen behind as it has not acknowledged receipt of logs.",
            dropped_records=123,
            dropped_bytes=12345,
        ),
    ),
    (
        '{"time": "2021-02-04T20:00:05.123Z","type": "platform.runtimeDone","record": {"requestId":"6f7f0961f83442118a7af6fe80b88d56","status": "success"}}',
        PlatformRuntimeDone(request_id="6f7f0961f83442118a7af6fe80b88d56", status="success"),
    ),
]


@pytest.mark.parametrize("text,expected", CASES)
def test_deserialize_records(text, expected):
    assert parse(text).record == expected


def test_report_without_init_duration():
    metrics = LogPlatformReportMetrics.from_dict(
        {"durationMs": 1.23, "billedDurationMs": 123, "memorySizeMB": 123, "maxMemoryUsedMB": 123}
    )
    assert metrics.init_duration_ms is None


def test_unknown_record_type_rejected():
    with pytest.raises(ValueError, match="unknown log record type"):
        parse_log_record({"type": "platform.unknown", "record": "x"})


def test_function_record_must_be_string():
    with pytest.raises(ValueError):
        parse_log_record({"type": "function", "record": {"text": "x"}})


def test_missing_record_rejected():
    with pytest.raises(ValueError, match="record"):
        parse_log_record({"type": "function"})


def test_timestamp_without_offset_rejected():
    with pytest.raises(ValueError):
        parse_timestamp("2020-08-20T12:31:32.123")


def test_timestamp_converted_to_utc():
    assert parse_timestamp("2020-08-20T14:31:32+02:00") == parse_timestamp("2020-08-20T12:31:32Z")


def test_log_buffering_defaults():
    assert LogBuffering().to_dict() == {"timeoutMs": 1_000, "maxBytes": 262_144, "maxItems": 10_000}


def test_parse_logs_array():
    body = "[" + ",".join(text for text, _ in CASES) + "]"
    logs = parse_logs(body.encode())
    assert [log.record for log in logs] == [expected for _, expected in CASES]


def test_parse_logs_requires_array():
    with pytest.raises(ValueError):
        parse_logs(CASES[0][0])


def test_handle_logs_request_calls_processor():
    received = []
    body = "[" + CASES[0][0] + "]"
    status = asyncio.run(handle_logs_request(received.extend, body.encode()))
    assert status == HTTPStatus.OK
    assert [log.record for log in received] == [FunctionLog("hello world")]


def test_handle_logs_request_async_processor():
    received = []

    async def processor(logs):
        received.append(len(logs))

    body = "[" + CASES[0][0] + "," + CASES[1][0] + "]"
    status = asyncio.run(handle_logs_request(processor, body))
    assert status == HTTPStatus.OK
    assert received == [2]


def test_handle_logs_request_bad_body():
    received = []
    status = asyncio.run(handle_logs_request(received.extend, b"not json"))
    assert status == HTTPStatus.BAD_REQUEST
    assert received == []


def test_handle_logs_request_processor_error_still_ok():
    def processor(logs):
        raise RuntimeError("processor failed")

    status = asyncio.run(handle_logs_request(processor, b"[]"))
    assert status == HTTPStatus.OK