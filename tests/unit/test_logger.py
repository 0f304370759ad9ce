"""Tests for logging helpers"""
import json
import logging

from swapwatch.utils import logger as logger_module
from swapwatch.utils.logger import TraceIdFilter, set_trace_id, setup_json_logging


def test_trace_id_filter_uses_context():
    record = logging.LogRecord("x", logging.INFO, "", 0, "msg", (), None)

    set_trace_id("5hYgAbCdEfGh")
    TraceIdFilter().filter(record)
    set_trace_id(None)

    assert record.trace_id == "5hYgAbCdEfGh"


def test_trace_id_defaults_to_dash():
    record = logging.LogRecord("x", logging.INFO, "", 0, "msg", (), None)
    set_trace_id(None)

    TraceIdFilter().filter(record)

    assert record.trace_id == "-"


def test_json_logger_writes_structured_lines(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_module, "LOG_DIR", tmp_path)
    json_logger = setup_json_logging("events-test.jsonl", "swapwatch.test.events")

    record = json_logger.makeRecord(
        "swapwatch.test.events", logging.INFO, "", 0, "TRADE_DETECTED", (), None
    )
    record.event_type = "TRADE_DETECTED"
    record.venue = "JUPITER"
    json_logger.handle(record)
    for handler in json_logger.handlers:
        handler.flush()

    line = json.loads((tmp_path / "events-test.jsonl").read_text().strip())
    assert line["event_type"] == "TRADE_DETECTED"
    assert line["venue"] == "JUPITER"
    assert line["level"] == "INFO"
