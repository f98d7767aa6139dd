"""
Reconciler — answers "is this sub-topic complete?" and keeps completion
history honest across lesson regenerations.

Completion is an exact existence check on (learner_id, sub_topic_id). There is
no title or fuzzy matching: a completion recorded against a retired id never
lights up a regenerated sub-topic, even one with the same title, because the
content behind it may differ. Regeneration does not "uncomplete" anything; the
old record stays in the ledger as an orphaned completion.

Legacy records (ids minted before the lesson-prefixed scheme) are only moved by
``migrate_legacy``, an explicit operator action. How a legacy id is recognised
is a pluggable predicate: audit real ids in the target deployment before
supplying a stricter one.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from app.core.errors import AmbiguousMigration
from app.models.lesson import Lesson
from app.services.completion_store import CompletionRecord, CompletionStore, get_completion_store
from app.services.lesson_store import LessonStore, get_lesson_store
from app.services.telemetry import emit_event

logger = logging.getLogger("lessoncraft.reconciler")

NOT_STARTED = "not-started"
COMPLETED = "completed"

# (record, learner's lessons) -> True when the record predates lesson-prefixed ids
LegacyDetector = Callable[[CompletionRecord, list[Lesson]], bool]


def lesson_prefix_detector(record: CompletionRecord, lessons: list[Lesson]) -> bool:
    """Legacy when the id starts with none of the learner's lesson ids."""
    return not any(record.sub_topic_id.startswith(f"{lesson.id}_") for lesson in lessons)


def regex_detector(pattern: str) -> LegacyDetector:
    """Legacy when the id does NOT match ``pattern`` (the current-format regex)."""
    current = re.compile(pattern)

    def detect(record: CompletionRecord, lessons: list[Lesson]) -> bool:
        return current.search(record.sub_topic_id) is None

    return detect


@dataclass
class MigrationReport:
    learner_id: str
    migrated: list[tuple[str, str]] = field(default_factory=list)   # (legacy_id, new_id)
    skipped: list[str] = field(default_factory=list)
    # legacy record dropped because the learner already holds the current id
    merged: list[tuple[CompletionRecord, str]] = field(default_factory=list)
    ambiguous: list[AmbiguousMigration] = field(default_factory=list)
    dry_run: bool = False

    def summary(self) -> dict:
        return {
            "learner_id": self.learner_id,
            "migrated": len(self.migrated),
            "skipped": len(self.skipped),
            "merged": len(self.merged),
            "ambiguous": len(self.ambiguous),
            "dry_run": self.dry_run,
        }


class Reconciler:
    def __init__(
        self,
        completions: Optional[CompletionStore] = None,
        lessons: Optional[LessonStore] = None,
    ):
        self.completions = completions or get_completion_store()
        self.lessons = lessons or get_lesson_store()

    # ── reads ─────────────────────────────────────────────────────────────
    def is_complete(self, learner_id: str, sub_topic_id: str) -> bool:
        return self.completions.get(learner_id, sub_topic_id) is not None

    def completion_status(self, learner_id: str, sub_topic_id: str) -> str:
        return COMPLETED if self.is_complete(learner_id, sub_topic_id) else NOT_STARTED

    def completion_statuses(self, learner_id: str, lesson: Lesson) -> dict[str, bool]:
        done = {r.sub_topic_id for r in self.completions.list_learner(learner_id)}
        return {st.id: st.id in done for st in lesson.sub_topics}

    def orphaned_completions(self, learner_id: str) -> list[CompletionRecord]:
        """Records whose sub-topic is in none of the learner's current lesson lists."""
        current = {
            st.id
            for lesson in self.lessons.list_learner(learner_id)
            for st in lesson.sub_topics
        }
        return [r for r in self.completions.list_learner(learner_id) if r.sub_topic_id not in current]

    # ── regeneration hook ────────────────────────────────────────────────
    def record_regeneration(self, lesson: Lesson, retired_ids: list[str]) -> list[CompletionRecord]:
        """Called after a lesson's sub-topic list is replaced. Nothing is moved."""
        retired = set(retired_ids)
        orphaned = [
            r for r in self.completions.list_learner(lesson.learner_id)
            if r.sub_topic_id in retired
        ]
        if orphaned:
            logger.info(
                "[reconciler] lesson %s regenerated: %d completion(s) now orphaned",
                lesson.id, len(orphaned),
            )
        emit_event(
            "lesson_regenerated",
            route="reconciler",
            learner_id=lesson.learner_id,
            lesson_id=lesson.id,
            count=len(orphaned),
        )
        return orphaned

    # ── operator migration ───────────────────────────────────────────────
    def migrate_legacy(
        self,
        learner_id: str,
        *,
        detector: LegacyDetector = lesson_prefix_detector,
        dry_run: bool = False,
    ) -> MigrationReport:
        report = MigrationReport(learner_id=learner_id, dry_run=dry_run)
        lessons = self.lessons.list_learner(learner_id)
        current_ids = [(lesson.id, st.id) for lesson in lessons for st in lesson.sub_topics]

        for record in self.completions.list_learner(learner_id):
            if not detector(record, lessons):
                continue
            legacy_id = record.sub_topic_id
            candidates = sorted({
                st_id for lesson_id, st_id in current_ids
                if st_id != legacy_id
                and (st_id.endswith(f"_{legacy_id}") or st_id == f"{lesson_id}_{legacy_id}")
            })

            if not candidates:
                report.skipped.append(legacy_id)
                continue
            if len(candidates) > 1:
                report.ambiguous.append(AmbiguousMigration(legacy_id, candidates))
                logger.warning(
                    "[reconciler] ambiguous legacy id %s for %s: %s", legacy_id, learner_id, candidates
                )
                continue

            new_id = candidates[0]
            if self.completions.get(learner_id, new_id) is not None:
                logger.warning(
                    "[reconciler] %s: %s already completed as %s; dropping legacy record (completed_at=%s score=%s)",
                    learner_id, legacy_id, new_id, record.completed_at.isoformat(), record.score,
                )
                if not dry_run:
                    self.completions.delete(learner_id, legacy_id)
                report.merged.append((record, new_id))
                continue
            if not dry_run:
                # insert first so a crash mid-way never loses the completion
                self.completions.insert_if_absent(replace(record, sub_topic_id=new_id))
                self.completions.delete(learner_id, legacy_id)
            report.migrated.append((legacy_id, new_id))

        logger.info("[reconciler] legacy migration: %s", report.summary())
        return report


def get_reconciler() -> Reconciler:
    return Reconciler()
