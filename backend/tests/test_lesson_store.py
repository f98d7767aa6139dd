"""
Tests for the lesson stores: compare-and-swap batch replacement and targeted
status writes. In-memory store plus a MagicMock Supabase client. All tests run fully offline.
"""
from datetime import date
from unittest.mock import MagicMock

import pytest
from app.core.errors import IdentityCollision, InvalidLessonTransition, LessonNotFound
from app.models.lesson import Lesson, SubTopic
from app.services.lesson_store import InMemoryLessonStore, SupabaseLessonStore


# ── Helper builders ───────────────────────────────────────────────────────────

def _sub_topic(batch_ts: int, title: str = "x") -> SubTopic:
    return SubTopic(
        id=f"L1_{batch_ts}_0_{title}", title=title, category="Vocabulary",
        level="a1", batch_timestamp=batch_ts, index=0,
    )


def _lesson_row(status="upcoming", last_batch=2000, sub_topics=None) -> dict:
    return {
        "id": "L1",
        "learner_id": "s-1",
        "scheduled_date": "2026-03-01",
        "status": status,
        "sub_topics": sub_topics or [],
        "last_batch_timestamp": last_batch,
    }


def _supabase_with(update_rows, current_row):
    sb = MagicMock()
    table = sb.table.return_value
    update = table.update.return_value
    # update(...).eq(id).eq(status) then .is_/.eq on last_batch_timestamp
    update.eq.return_value.eq.return_value.is_.return_value.execute.return_value = MagicMock(data=update_rows)
    update.eq.return_value.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=update_rows)
    update.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=update_rows)
    table.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = MagicMock(
        data=current_row
    )
    return sb


@pytest.fixture
def stored(lesson_store):
    lesson_store.save(Lesson(id="L1", learner_id="s-1", scheduled_date=date(2026, 3, 1)))
    return lesson_store


# ── In-memory replace_sub_topics ─────────────────────────────────────────────

class TestInMemoryReplaceSubTopics:
    def test_first_batch_written(self, stored):
        updated = stored.replace_sub_topics("L1", [_sub_topic(1000)], 1000, None)
        assert updated.last_batch_timestamp == 1000
        assert stored.get("L1").sub_topic_ids() == ["L1_1000_0_x"]

    def test_moved_batch_rejected_and_previous_list_kept(self, stored):
        stored.replace_sub_topics("L1", [_sub_topic(1000)], 1000, None)
        # a writer that read the lesson before the 1000 batch landed
        with pytest.raises(IdentityCollision):
            stored.replace_sub_topics("L1", [_sub_topic(1500, "y")], 1500, None)
        lesson = stored.get("L1")
        assert lesson.sub_topic_ids() == ["L1_1000_0_x"]
        assert lesson.last_batch_timestamp == 1000

    def test_cancelled_lesson_gets_no_batch(self, stored):
        stored.set_status("L1", "cancelled")
        with pytest.raises(InvalidLessonTransition):
            stored.replace_sub_topics("L1", [_sub_topic(1000)], 1000, None)
        assert stored.get("L1").sub_topics == []

    def test_unknown_lesson(self, lesson_store):
        with pytest.raises(LessonNotFound):
            lesson_store.replace_sub_topics("nope", [], 1000, None)


# ── In-memory set_status ─────────────────────────────────────────────────────

class TestInMemorySetStatus:
    def test_status_change_keeps_batch_written_after_read(self, stored, monkeypatch):
        original_get = stored.get
        calls = []

        def get_then_replace(lesson_id):
            lesson = original_get(lesson_id)
            if not calls:
                calls.append(lesson_id)
                stored.replace_sub_topics("L1", [_sub_topic(2000)], 2000, None)
            return lesson

        monkeypatch.setattr(stored, "get", get_then_replace)
        stored.set_status("L1", "cancelled")

        lesson = original_get("L1")
        assert lesson.status == "cancelled"
        assert lesson.sub_topic_ids() == ["L1_2000_0_x"]
        assert lesson.last_batch_timestamp == 2000

    def test_status_moved_since_read_rejected(self, stored, monkeypatch):
        original_get = stored.get

        def get_then_complete(lesson_id):
            lesson = original_get(lesson_id)
            stored.update_status("L1", "upcoming", "completed")
            return lesson

        monkeypatch.setattr(stored, "get", get_then_complete)
        with pytest.raises(InvalidLessonTransition):
            stored.set_status("L1", "cancelled")
        assert original_get("L1").status == "completed"

    def test_terminal_status_is_final(self, stored):
        stored.set_status("L1", "completed")
        with pytest.raises(InvalidLessonTransition):
            stored.set_status("L1", "upcoming")


# ── Supabase store ───────────────────────────────────────────────────────────

class TestSupabaseLessonStore:
    def test_replace_is_conditional_on_batch_and_status(self):
        row = _lesson_row(last_batch=3000, sub_topics=[_sub_topic(3000).model_dump(mode="json")])
        sb = _supabase_with([row], row)
        store = SupabaseLessonStore(sb)
        updated = store.replace_sub_topics("L1", [_sub_topic(3000)], 3000, 2000)
        assert updated.last_batch_timestamp == 3000
        update = sb.table.return_value.update
        payload = update.call_args[0][0]
        assert payload["last_batch_timestamp"] == 3000
        assert set(payload) == {"sub_topics", "last_batch_timestamp"}
        update.return_value.eq.assert_called_with("id", "L1")
        update.return_value.eq.return_value.eq.assert_any_call("status", "upcoming")
        update.return_value.eq.return_value.eq.return_value.eq.assert_called_with("last_batch_timestamp", 2000)

    def test_moved_batch_raises_identity_collision(self):
        sb = _supabase_with([], _lesson_row(last_batch=2500))
        with pytest.raises(IdentityCollision):
            SupabaseLessonStore(sb).replace_sub_topics("L1", [_sub_topic(3000)], 3000, 2000)

    def test_first_batch_uses_null_filter(self):
        sb = _supabase_with([], _lesson_row(last_batch=1000))
        with pytest.raises(IdentityCollision):
            SupabaseLessonStore(sb).replace_sub_topics("L1", [_sub_topic(3000)], 3000, None)
        sb.table.return_value.update.return_value.eq.return_value.eq.return_value.is_.assert_called_with(
            "last_batch_timestamp", "null"
        )

    def test_cancelled_lesson_raises_invalid_transition(self):
        sb = _supabase_with([], _lesson_row(status="cancelled"))
        with pytest.raises(InvalidLessonTransition):
            SupabaseLessonStore(sb).replace_sub_topics("L1", [_sub_topic(3000)], 3000, 2000)

    def test_missing_lesson_raises_not_found(self):
        sb = _supabase_with([], None)
        with pytest.raises(LessonNotFound):
            SupabaseLessonStore(sb).replace_sub_topics("L1", [_sub_topic(3000)], 3000, 2000)

    def test_status_update_writes_only_status(self):
        sb = _supabase_with([_lesson_row(status="cancelled")], _lesson_row())
        updated = SupabaseLessonStore(sb).set_status("L1", "cancelled")
        assert updated.status == "cancelled"
        update = sb.table.return_value.update
        update.assert_called_once_with({"status": "cancelled"})
        update.return_value.eq.return_value.eq.assert_called_with("status", "upcoming")
        sb.table.return_value.upsert.assert_not_called()
