"""Unit tests for structured logging setup."""

import json
import logging

import pytest

from sxiceberg.infra.logging_cfg import ThrottledFilter, build_logger, log_event


def _record(msg):
    return logging.LogRecord("x", logging.WARNING, __file__, 1, msg, None, None)


def test_throttled_filter_suppresses_repeats_per_market():
    f = ThrottledFilter(cooldown_sec=60.0)
    retry_a = json.dumps({"event": "active_orders_retry", "market": "A"})
    retry_b = json.dumps({"event": "active_orders_retry", "market": "B"})
    assert f.filter(_record(retry_a))
    assert not f.filter(_record(retry_a))
    assert f.filter(_record(retry_b))


def test_throttled_filter_passes_other_events_and_plain_text():
    f = ThrottledFilter(cooldown_sec=60.0)
    posted = json.dumps({"event": "order_posted", "market": "A"})
    assert f.filter(_record(posted))
    assert f.filter(_record(posted))
    assert f.filter(_record("plain text"))


def test_build_logger_writes_json_lines(tmp_path):
    path = tmp_path / "monitoring.log"
    logger = build_logger("sxiceberg.test.file", level="DEBUG", file_path=str(path), async_file=False)
    log_event(logger, "order_posted", market="0xab", odds=str(10 ** 20))
    for h in logger.handlers:
        h.flush()

    line = json.loads(path.read_text().strip().splitlines()[-1])
    assert line["level"] == "INFO"
    assert json.loads(line["msg"]) == {"event": "order_posted", "market": "0xab", "odds": str(10 ** 20)}


def test_build_logger_is_idempotent(tmp_path):
    name = "sxiceberg.test.idempotent"
    first = build_logger(name, file_path=None)
    count = len(first.handlers)
    second = build_logger(name, file_path=None)
    assert first is second
    assert len(second.handlers) == count


def test_unwritable_log_file_raises(tmp_path):
    missing_dir = tmp_path / "nope" / "monitoring.log"
    with pytest.raises(OSError):
        build_logger("sxiceberg.test.fatal", file_path=str(missing_dir))


def test_log_event_respects_level(caplog):
    logger = logging.getLogger("sxiceberg.test.level")
    logger.setLevel(logging.WARNING)
    with caplog.at_level(logging.WARNING, logger="sxiceberg.test.level"):
        log_event(logger, "quiet", logging.DEBUG)
        log_event(logger, "loud", logging.WARNING, market="m")
    assert "quiet" not in caplog.text
    assert '"event":"loud"' in caplog.text
