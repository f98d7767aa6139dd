"""
Tests for the Reconciler: exact-match completion reads, orphaned records,
and the operator-only legacy migration. All tests run fully offline.
"""
from datetime import date, datetime, timezone

import pytest
from app.models.lesson import Lesson, SubTopic
from app.services.completion_store import record_completion
from app.services.identity import mint_batch
from app.services.reconciler import COMPLETED, NOT_STARTED, Reconciler, regex_detector

WHEN = datetime(2026, 3, 1, tzinfo=timezone.utc)


# ── Helper builders ───────────────────────────────────────────────────────────

def _lesson(lesson_id: str, batch_ts: int, titles, learner="s-1", last=None) -> Lesson:
    ids = mint_batch(lesson_id, batch_ts, titles, last)
    return Lesson(
        id=lesson_id,
        learner_id=learner,
        scheduled_date=date(2026, 3, 1),
        sub_topics=[
            SubTopic(id=i, title=t, category="Vocabulary", level="a1", batch_timestamp=batch_ts, index=n)
            for n, (i, t) in enumerate(zip(ids, titles))
        ],
        last_batch_timestamp=batch_ts,
    )


def _complete(store, sub_topic_id, learner="s-1"):
    return record_completion(learner, sub_topic_id, "t", "Vocabulary", "a1", when=WHEN, store=store)


@pytest.fixture
def reconciler(completion_store, lesson_store):
    return Reconciler(completions=completion_store, lessons=lesson_store)


# ── Regeneration scenario ────────────────────────────────────────────────────

class TestRegeneration:
    def test_completion_does_not_follow_same_title_into_new_batch(self, reconciler, lesson_store, completion_store):
        """L1 @1000 → learner completes travel-vocab → L1 regenerated @2000 with same title."""
        first = _lesson("L1", 1000, ["Travel Vocab", "Past Tense"])
        lesson_store.save(first)
        assert first.sub_topic_ids() == ["L1_1000_0_travel-vocab", "L1_1000_1_past-tense"]

        _complete(completion_store, "L1_1000_0_travel-vocab")
        assert reconciler.is_complete("s-1", "L1_1000_0_travel-vocab")

        second = _lesson("L1", 2000, ["Travel Vocab", "Past Tense"], last=1000)
        lesson_store.save(second)
        retired = first.sub_topic_ids()
        orphaned_now = reconciler.record_regeneration(second, retired)

        assert reconciler.is_complete("s-1", "L1_2000_0_travel-vocab") is False
        assert reconciler.completion_status("s-1", "L1_2000_0_travel-vocab") == NOT_STARTED
        assert completion_store.get("s-1", "L1_1000_0_travel-vocab") is not None
        assert [r.sub_topic_id for r in orphaned_now] == ["L1_1000_0_travel-vocab"]
        assert [r.sub_topic_id for r in reconciler.orphaned_completions("s-1")] == ["L1_1000_0_travel-vocab"]

    def test_no_silent_reattribution(self, reconciler, lesson_store, completion_store):
        _complete(completion_store, "A")
        lesson = _lesson("L7", 5000, ["B", "C"])
        lesson_store.save(lesson)
        for st_id in lesson.sub_topic_ids():
            assert reconciler.is_complete("s-1", st_id) is False

    def test_completion_statuses_for_current_list(self, reconciler, lesson_store, completion_store):
        lesson = _lesson("L1", 1000, ["Greetings", "Numbers"])
        lesson_store.save(lesson)
        _complete(completion_store, lesson.sub_topics[1].id)
        statuses = reconciler.completion_statuses("s-1", lesson)
        assert statuses == {lesson.sub_topics[0].id: False, lesson.sub_topics[1].id: True}
        assert reconciler.completion_status("s-1", lesson.sub_topics[1].id) == COMPLETED

    def test_other_learners_are_isolated(self, reconciler, completion_store):
        _complete(completion_store, "L1_1000_0_x", learner="s-2")
        assert reconciler.is_complete("s-1", "L1_1000_0_x") is False


# ── Legacy migration ─────────────────────────────────────────────────────────

class TestMigrateLegacy:
    def test_unique_match_is_migrated(self, reconciler, lesson_store, completion_store):
        lesson = _lesson("L1", 1000, ["Travel Vocab"])
        lesson_store.save(lesson)
        # legacy id: lesson_id + "_" + legacy == current id
        legacy = "1000_0_travel-vocab"
        _complete(completion_store, legacy)

        report = reconciler.migrate_legacy("s-1")

        assert report.migrated == [(legacy, "L1_1000_0_travel-vocab")]
        assert completion_store.get("s-1", legacy) is None
        moved = completion_store.get("s-1", "L1_1000_0_travel-vocab")
        assert moved is not None
        assert moved.completed_at == WHEN

    def test_already_completed_target_is_reported_as_merged(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        current = _complete(completion_store, "L1_1000_0_travel-vocab")
        legacy = record_completion(
            "s-1", "1000_0_travel-vocab", "t", "Vocabulary", "a1",
            score=72, notes="old run", when=datetime(2025, 6, 1, tzinfo=timezone.utc), store=completion_store,
        )

        report = reconciler.migrate_legacy("s-1")

        assert report.migrated == []
        assert report.merged == [(legacy, "L1_1000_0_travel-vocab")]
        assert report.summary()["merged"] == 1
        assert completion_store.get("s-1", "1000_0_travel-vocab") is None
        assert completion_store.get("s-1", "L1_1000_0_travel-vocab") is current

    def test_merged_dry_run_keeps_legacy_record(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        _complete(completion_store, "L1_1000_0_travel-vocab")
        _complete(completion_store, "1000_0_travel-vocab")
        report = reconciler.migrate_legacy("s-1", dry_run=True)
        assert len(report.merged) == 1
        assert completion_store.get("s-1", "1000_0_travel-vocab") is not None

    def test_no_match_is_skipped_untouched(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        _complete(completion_store, "ancient-topic")
        report = reconciler.migrate_legacy("s-1")
        assert report.skipped == ["ancient-topic"]
        assert completion_store.get("s-1", "ancient-topic") is not None

    def test_multiple_matches_are_ambiguous_untouched(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        lesson_store.save(_lesson("L2", 1000, ["Travel Vocab"]))
        legacy = "1000_0_travel-vocab"
        _complete(completion_store, legacy)

        report = reconciler.migrate_legacy("s-1")

        assert report.migrated == []
        assert len(report.ambiguous) == 1
        assert report.ambiguous[0].legacy_id == legacy
        assert report.ambiguous[0].candidates == ["L1_1000_0_travel-vocab", "L2_1000_0_travel-vocab"]
        assert completion_store.get("s-1", legacy) is not None

    def test_current_records_are_not_touched(self, reconciler, lesson_store, completion_store):
        lesson = _lesson("L1", 1000, ["Travel Vocab"])
        lesson_store.save(lesson)
        _complete(completion_store, lesson.sub_topics[0].id)
        report = reconciler.migrate_legacy("s-1")
        assert report.summary()["migrated"] == 0
        assert report.skipped == []

    def test_dry_run_writes_nothing(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        legacy = "1000_0_travel-vocab"
        _complete(completion_store, legacy)

        report = reconciler.migrate_legacy("s-1", dry_run=True)

        assert report.dry_run is True
        assert len(report.migrated) == 1
        assert completion_store.get("s-1", legacy) is not None
        assert completion_store.get("s-1", "L1_1000_0_travel-vocab") is None

    def test_migration_is_idempotent(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        _complete(completion_store, "1000_0_travel-vocab")
        reconciler.migrate_legacy("s-1")
        again = reconciler.migrate_legacy("s-1")
        assert again.migrated == [] and again.skipped == [] and again.ambiguous == []

    def test_regex_detector_override(self, reconciler, lesson_store, completion_store):
        lesson_store.save(_lesson("L1", 1000, ["Travel Vocab"]))
        _complete(completion_store, "1000_0_travel-vocab")
        # everything matches the "current" pattern → nothing is legacy
        report = reconciler.migrate_legacy("s-1", detector=regex_detector(r"_\d+_"))
        assert report.migrated == [] and report.skipped == []
