"""
Test suite for log formatting and room-tagged logging.

Run with: pytest test_logging_config.py -v
"""

import json
import logging

from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    RoomLogger,
    connection_id_var,
    room_code_var,
)


def make_record(msg="hello", level=logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "hello"
        assert "room_code" not in data

    def test_extras_included(self):
        data = json.loads(JSONFormatter().format(make_record(room_code="ABCD", player_id="p1")))
        assert data["room_code"] == "ABCD"
        assert data["player_id"] == "p1"

    def test_context_vars_included(self):
        room_token = room_code_var.set("WXYZ")
        conn_token = connection_id_var.set("conn-1")
        try:
            data = json.loads(JSONFormatter().format(make_record()))
        finally:
            room_code_var.reset(room_token)
            connection_id_var.reset(conn_token)
        assert data["room_code"] == "WXYZ"
        assert data["connection_id"] == "conn-1"

    def test_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))
        assert ":10" in data["source"]


class TestDevelopmentFormatter:

    def test_tags_shortened(self):
        line = DevelopmentFormatter().format(
            make_record(room_code="ABCD", player_id="0123456789abcdef")
        )
        assert "[room=ABCD, player=01234567]" in line
        assert line.endswith("- hello")


class TestRoomLogger:

    def test_room_code_and_player_merged(self, caplog):
        log = RoomLogger.for_room("test.room", "ABCD")
        with caplog.at_level(logging.INFO, logger="test.room"):
            log.info("dealt", extra={"player_id": "p0"})
        [record] = caplog.records
        assert record.room_code == "ABCD"
        assert record.player_id == "p0"
