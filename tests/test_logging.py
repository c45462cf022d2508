import json
import logging

import pytest

from alerta.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    build_logging_config,
    reset_request_id,
    set_request_id,
)

pytestmark = pytest.mark.no_db_cleanup


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("alerta.requests", logging.INFO, __file__, 1, "HTTP %s", ("GET",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_request_id_and_extras():
    token = set_request_id("req-123")
    try:
        record = _record(path="/api/students", duration_ms=3.5)
        RequestIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        reset_request_id(token)

    assert payload["message"] == "HTTP GET"
    assert payload["logger"] == "alerta.requests"
    assert payload["request_id"] == "req-123"
    assert payload["path"] == "/api/students"
    assert payload["duration_ms"] == 3.5
    assert "method" not in payload


def test_filter_uses_dash_outside_requests():
    record = _record()

    RequestIdFilter().filter(record)

    assert record.request_id == "-"


def test_file_handler_only_when_a_path_is_given(tmp_path):
    without_file = build_logging_config()
    with_file = build_logging_config(log_file=tmp_path / "app.log", json_console=True)

    assert without_file["root"]["handlers"] == ["console"]
    assert with_file["root"]["handlers"] == ["console", "file"]
    assert with_file["handlers"]["console"]["formatter"] == "json"
    assert with_file["handlers"]["file"]["filename"] == str(tmp_path / "app.log")
