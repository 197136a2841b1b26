import json
import logging
import sys

from academy.logging_context import (
    RequestContextFilter,
    bind_log_context,
    current_log_context,
    push_request_context,
    reset_log_context,
    set_user_context,
)
from academy.logging_utils import JSONFormatter


def _record(message="hello %s", args=("world",), **extra):
    record = logging.LogRecord("academy.test", logging.INFO, __file__, 10, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_message_and_extras():
    payload = json.loads(JSONFormatter().format(_record(duration_ms=12.5)))
    assert payload["level"] == "INFO"
    assert payload["message"] == "hello world"
    assert payload["logger"] == "academy.test"
    assert payload["context"] == {"duration_ms": 12.5}


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad drip value")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()
    payload = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad drip value" in payload["exc_info"]


def test_filter_copies_request_and_bound_context():
    token = push_request_context("req-1")
    try:
        set_user_context("user-9")
        inner = bind_log_context(batch_id="batch-3")
        try:
            record = _record()
            assert RequestContextFilter().filter(record) is True
            assert record.request_id == "req-1"
            assert record.user_id == "user-9"
            assert record.batch_id == "batch-3"
        finally:
            reset_log_context(inner)
        assert "batch_id" not in current_log_context()
    finally:
        reset_log_context(token)

