"""Logging setup and the JSON line formatter."""

import json
import logging
import sys

from taskboard.observability import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "taskboard.test", logging.WARNING, __file__, 1, "Replaced %s", ("tasks.assignees",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_one_object_with_extras():
    line = JSONFormatter().format(_record(event_kind="assigned", actor_id="u-a", unrelated="x"))
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "taskboard.test"
    assert payload["message"] == "Replaced tasks.assignees"
    assert payload["event_kind"] == "assigned"
    assert payload["actor_id"] == "u-a"
    assert "unrelated" not in payload


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    assert "RuntimeError: boom" in json.loads(JSONFormatter().format(record))["exception"]


def test_setup_logging_replaces_its_own_handler():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        setup_logging("DEBUG", "json")
        setup_logging("WARNING", "text")
        ours = [h for h in root.handlers if getattr(h, "_taskboard", False)]
        assert len(ours) == 1
        assert not isinstance(ours[0].formatter, JSONFormatter)
        assert root.level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
