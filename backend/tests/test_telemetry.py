"""emit_event / instrument — log-only telemetry, optional best-effort DB insert."""
import asyncio
import json
import logging
from unittest.mock import MagicMock

import pytest
from app.services import telemetry


def _events(caplog):
    return [
        json.loads(r.getMessage().split("telemetry=", 1)[1])
        for r in caplog.records
        if r.name == "lessoncraft.telemetry" and "telemetry=" in r.getMessage()
    ]


def test_emit_event_logs_single_line_json(caplog):
    caplog.set_level(logging.INFO, logger="lessoncraft.telemetry")
    telemetry.emit_event("document_assembled", route="content_assembler", sub_topic_id="L1_1_0_x",
                         ai_entries=7, fallback_entries=2)
    [event] = _events(caplog)
    assert event["event"] == "document_assembled"
    assert (event["ai_entries"], event["fallback_entries"]) == (7, 2)


def test_db_insert_failure_is_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setenv("ENABLE_TELEMETRY_DB", "1")
    broken = MagicMock(side_effect=RuntimeError("no supabase"))
    monkeypatch.setattr("app.core.deps.get_supabase_client", broken)
    telemetry.emit_event("x", route="r")
    assert any("no supabase" in r.getMessage() for r in caplog.records)


def test_instrument_records_ids_and_errors(caplog):
    caplog.set_level(logging.INFO, logger="lessoncraft.telemetry")

    @telemetry.instrument(route="/api/x")
    def handler(lesson_id: str):
        raise ValueError("nope")

    with pytest.raises(ValueError):
        handler(lesson_id="L1")
    [event] = _events(caplog)
    assert event["ok"] is False
    assert event["error_type"] == "ValueError"
    assert event["lesson_id"] == "L1"


def test_instrument_async(caplog):
    caplog.set_level(logging.INFO, logger="lessoncraft.telemetry")

    @telemetry.instrument(route="/api/y")
    async def handler(sub_topic_id: str):
        return sub_topic_id.upper()

    assert asyncio.run(handler(sub_topic_id="abc")) == "ABC"
    [event] = _events(caplog)
    assert event["ok"] is True
    assert event["sub_topic_id"] == "abc"
