"""
Tests for log context and formatters.
"""

import json
import logging

from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    collect_context,
    get_logger,
    request_id_var,
)


def make_record(message="Hole finalized", level=logging.INFO, **extra):
    record = logging.LogRecord("session", level, __file__, 10, message, None, None)
    for name, value in extra.items():
        setattr(record, name, value)
    return record


class TestCollectContext:

    def test_request_vars_and_record_extras(self):
        token = request_id_var.set("req-1")
        try:
            context = collect_context(make_record(game_id="g1", hole=3))
        finally:
            request_id_var.reset(token)

        assert context == {"request_id": "req-1", "game_id": "g1", "hole": 3}

    def test_record_value_wins_and_none_dropped(self):
        context = collect_context(make_record(user_id="user-9", game_id=None))
        assert context == {"user_id": "user-9"}


class TestFormatters:

    def test_json_line(self):
        line = JSONFormatter().format(make_record(game_id="g1", hole=0))
        data = json.loads(line)
        assert data["message"] == "Hole finalized"
        assert data["game_id"] == "g1"
        assert data["hole"] == 0
        assert "source" not in data

    def test_json_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))
        assert data["source"].endswith(":10 in None")

    def test_development_tag_shortens_ids(self):
        line = DevelopmentFormatter().format(
            make_record(game_id="0123456789abcdef", hole=12),
        )
        assert "[game=01234567, hole=12]" in line
        assert line.endswith("- Hole finalized")


class TestContextLogger:

    def test_bound_context_reaches_record(self, caplog):
        log = get_logger("scramble.test").with_context(game_id="g1").with_context(hole=2)

        with caplog.at_level(logging.INFO, logger="scramble.test"):
            log.info("Stroke recorded", extra={"player_id": "a"})

        record = caplog.records[-1]
        assert (record.game_id, record.hole, record.player_id) == ("g1", 2, "a")
