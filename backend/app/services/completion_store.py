from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional
import logging
import os

logger = logging.getLogger("lessoncraft.completion_store")


@dataclass
class CompletionRecord:
    learner_id: str
    sub_topic_id: str
    sub_topic_title: str
    sub_topic_category: str
    sub_topic_level: str
    completed_at: datetime
    score: Optional[float] = None
    notes: Optional[str] = None

    def to_dict(self):
        d = asdict(self)
        d["completed_at"] = self.completed_at.isoformat()
        return d


def _record_from_row(d: dict) -> CompletionRecord:
    completed_at = d["completed_at"]
    if isinstance(completed_at, str):
        completed_at = datetime.fromisoformat(completed_at.replace("Z", "+00:00"))
    return CompletionRecord(
        learner_id=d["learner_id"],
        sub_topic_id=d["sub_topic_id"],
        sub_topic_title=d.get("sub_topic_title") or "",
        sub_topic_category=d.get("sub_topic_category") or "",
        sub_topic_level=d.get("sub_topic_level") or "",
        completed_at=completed_at,
        score=d.get("score"),
        notes=d.get("notes"),
    )


class CompletionStore:
    """Append-only ledger, unique on (learner_id, sub_topic_id)."""

    def get(self, learner_id: str, sub_topic_id: str) -> Optional[CompletionRecord]:
        raise NotImplementedError

    def insert_if_absent(self, record: CompletionRecord) -> CompletionRecord:
        """Insert, or return the existing record for the same pair untouched."""
        raise NotImplementedError

    def delete(self, learner_id: str, sub_topic_id: str) -> None:
        raise NotImplementedError

    def list_learner(self, learner_id: str) -> list[CompletionRecord]:
        raise NotImplementedError

    def list_learners(self) -> list[str]:
        raise NotImplementedError


class InMemoryCompletionStore(CompletionStore):
    def __init__(self):
        self._data: dict[str, CompletionRecord] = {}

    def _key(self, learner_id: str, sub_topic_id: str):
        return f"{learner_id}::{sub_topic_id}"

    def get(self, learner_id, sub_topic_id):
        return self._data.get(self._key(learner_id, sub_topic_id))

    def insert_if_absent(self, record):
        # setdefault is a single dict operation: concurrent duplicates collapse
        return self._data.setdefault(self._key(record.learner_id, record.sub_topic_id), record)

    def delete(self, learner_id, sub_topic_id):
        self._data.pop(self._key(learner_id, sub_topic_id), None)

    def list_learner(self, learner_id):
        return [r for r in self._data.values() if r.learner_id == learner_id]

    def list_learners(self):
        return sorted({r.learner_id for r in self._data.values()})


class SupabaseCompletionStore(CompletionStore):
    def __init__(self, supabase_client):
        self.sb = supabase_client

    def get(self, learner_id, sub_topic_id):
        r = (
            self.sb.table("student_progress")
            .select("*")
            .eq("learner_id", learner_id)
            .eq("sub_topic_id", sub_topic_id)
            .maybe_single()
            .execute()
        )
        data = getattr(r, "data", None)
        if not data:
            return None
        return _record_from_row(data)

    def insert_if_absent(self, record):
        (
            self.sb.table("student_progress")
            .upsert(record.to_dict(), on_conflict="learner_id,sub_topic_id", ignore_duplicates=True)
            .execute()
        )
        return self.get(record.learner_id, record.sub_topic_id) or record

    def delete(self, learner_id, sub_topic_id):
        (
            self.sb.table("student_progress")
            .delete()
            .eq("learner_id", learner_id)
            .eq("sub_topic_id", sub_topic_id)
            .execute()
        )

    def list_learner(self, learner_id):
        r = self.sb.table("student_progress").select("*").eq("learner_id", learner_id).execute()
        rows = getattr(r, "data", None) or []
        return [_record_from_row(d) for d in rows]

    def list_learners(self):
        r = self.sb.table("student_progress").select("learner_id").execute()
        rows = getattr(r, "data", None) or []
        return sorted({d["learner_id"] for d in rows})


COMPLETION_STORE = InMemoryCompletionStore()


def get_completion_store() -> CompletionStore:
    use_db = os.getenv("LESSONCRAFT_STORE", "memory").lower()
    if use_db != "supabase":
        return COMPLETION_STORE
    from app.core.deps import get_supabase_client
    return SupabaseCompletionStore(get_supabase_client())


def record_completion(
    learner_id: str,
    sub_topic_id: str,
    sub_topic_title: str,
    sub_topic_category: str,
    sub_topic_level: str,
    when: Optional[datetime] = None,
    score: Optional[float] = None,
    notes: Optional[str] = None,
    store: Optional[CompletionStore] = None,
) -> CompletionRecord:
    """Record that a learner finished a sub-topic. Repeating the call is a no-op.

    Title, category and level are copied onto the record so it still reads
    correctly after the sub-topic itself has been regenerated away.
    """
    if not learner_id or not sub_topic_id:
        raise ValueError("learner_id and sub_topic_id are required")
    if score is not None and not 0 <= score <= 100:
        raise ValueError(f"score must be within 0..100, got {score}")
    store = store or get_completion_store()

    record = CompletionRecord(
        learner_id=learner_id,
        sub_topic_id=sub_topic_id,
        sub_topic_title=sub_topic_title,
        sub_topic_category=sub_topic_category,
        sub_topic_level=sub_topic_level,
        completed_at=when or datetime.now(timezone.utc),
        score=score,
        notes=notes,
    )
    stored = store.insert_if_absent(record)
    if stored is not record:
        logger.debug("[completion_store] %s already completed %s", learner_id, sub_topic_id)
    return stored
