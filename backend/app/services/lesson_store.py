from typing import Optional
import logging
import os
import threading

from app.core.errors import IdentityCollision, InvalidLessonTransition, LessonNotFound
from app.models.lesson import LESSON_TRANSITIONS, InteractiveDocument, Lesson, SubTopic
from app.services.identity import parse_sub_topic_id

logger = logging.getLogger("lessoncraft.lesson_store")


class LessonStore:
    def get(self, lesson_id: str) -> Optional[Lesson]:
        raise NotImplementedError

    def save(self, lesson: Lesson) -> Lesson:
        raise NotImplementedError

    def list_learner(self, learner_id: str) -> list[Lesson]:
        raise NotImplementedError

    def replace_sub_topics(
        self,
        lesson_id: str,
        sub_topics: list[SubTopic],
        batch_timestamp: int,
        expected_last_batch: Optional[int],
    ) -> Lesson:
        """Swap the whole sub-topic list in one write.

        Compare-and-swap on last_batch_timestamp: if another batch landed since
        ``expected_last_batch`` was read, raise IdentityCollision.
        """
        raise NotImplementedError

    def update_status(self, lesson_id: str, expected: str, status: str) -> Optional[Lesson]:
        """Write only ``status``, and only while it still equals ``expected``.

        Returns None when the status moved since it was read.
        """
        raise NotImplementedError

    def require(self, lesson_id: str) -> Lesson:
        lesson = self.get(lesson_id)
        if lesson is None:
            raise LessonNotFound(f"lesson {lesson_id} not found")
        return lesson

    def set_status(self, lesson_id: str, status: str) -> Lesson:
        lesson = self.require(lesson_id)
        if lesson.status == status:
            return lesson
        if status not in LESSON_TRANSITIONS.get(lesson.status, set()):
            raise InvalidLessonTransition(f"lesson {lesson_id}: {lesson.status} → {status} not allowed")
        updated = self.update_status(lesson_id, lesson.status, status)
        if updated is None:
            raise InvalidLessonTransition(f"lesson {lesson_id} changed status while updating to {status}")
        return updated

    def find_sub_topic(self, sub_topic_id: str) -> Optional[tuple[Lesson, SubTopic]]:
        """Locate a sub-topic in its lesson's *current* list (None if retired or unknown)."""
        parts = parse_sub_topic_id(sub_topic_id)
        if parts is None:
            return None
        lesson = self.get(parts.lesson_id)
        if lesson is None:
            return None
        st = lesson.sub_topic(sub_topic_id)
        if st is None:
            return None
        return lesson, st


class InMemoryLessonStore(LessonStore):
    def __init__(self):
        self._data: dict[str, Lesson] = {}
        self._lock = threading.Lock()

    def get(self, lesson_id: str) -> Optional[Lesson]:
        lesson = self._data.get(lesson_id)
        return lesson.model_copy(deep=True) if lesson else None

    def save(self, lesson: Lesson) -> Lesson:
        with self._lock:
            self._data[lesson.id] = lesson.model_copy(deep=True)
        return lesson

    def list_learner(self, learner_id: str) -> list[Lesson]:
        return [l.model_copy(deep=True) for l in self._data.values() if l.learner_id == learner_id]

    def update_status(self, lesson_id, expected, status):
        with self._lock:
            current = self._data.get(lesson_id)
            if current is None:
                raise LessonNotFound(f"lesson {lesson_id} not found")
            if current.status != expected:
                return None
            current.status = status
            return current.model_copy(deep=True)

    def replace_sub_topics(self, lesson_id, sub_topics, batch_timestamp, expected_last_batch):
        with self._lock:
            current = self._data.get(lesson_id)
            if current is None:
                raise LessonNotFound(f"lesson {lesson_id} not found")
            if current.status != "upcoming":
                raise InvalidLessonTransition(f"lesson {lesson_id} is {current.status}; batch not written")
            if current.last_batch_timestamp != expected_last_batch:
                raise IdentityCollision(
                    f"lesson {lesson_id} batch moved from {expected_last_batch} to {current.last_batch_timestamp}"
                )
            updated = current.model_copy(deep=True)
            updated.sub_topics = [st.model_copy() for st in sub_topics]
            updated.last_batch_timestamp = batch_timestamp
            self._data[lesson_id] = updated
            return updated.model_copy(deep=True)


def _lesson_from_row(d: dict) -> Lesson:
    return Lesson(
        id=d["id"],
        learner_id=d["learner_id"],
        scheduled_date=d["scheduled_date"],
        status=d.get("status", "upcoming"),
        sub_topics=[SubTopic(**st) for st in d.get("sub_topics") or []],
        last_batch_timestamp=d.get("last_batch_timestamp"),
    )


class SupabaseLessonStore(LessonStore):
    def __init__(self, supabase_client):
        self.sb = supabase_client

    def get(self, lesson_id: str) -> Optional[Lesson]:
        r = self.sb.table("lessons").select("*").eq("id", lesson_id).maybe_single().execute()
        data = getattr(r, "data", None)
        if not data:
            return None
        return _lesson_from_row(data)

    def save(self, lesson: Lesson) -> Lesson:
        payload = lesson.model_dump(mode="json")
        self.sb.table("lessons").upsert(payload, on_conflict="id").execute()
        return lesson

    def update_status(self, lesson_id, expected, status):
        r = (
            self.sb.table("lessons")
            .update({"status": status})
            .eq("id", lesson_id)
            .eq("status", expected)
            .execute()
        )
        rows = getattr(r, "data", None) or []
        if not rows:
            if self.get(lesson_id) is None:
                raise LessonNotFound(f"lesson {lesson_id} not found")
            return None
        return _lesson_from_row(rows[0])

    def list_learner(self, learner_id: str) -> list[Lesson]:
        r = self.sb.table("lessons").select("*").eq("learner_id", learner_id).execute()
        rows = getattr(r, "data", None) or []
        return [_lesson_from_row(d) for d in rows]

    def replace_sub_topics(self, lesson_id, sub_topics, batch_timestamp, expected_last_batch):
        q = (
            self.sb.table("lessons")
            .update({
                "sub_topics": [st.model_dump(mode="json") for st in sub_topics],
                "last_batch_timestamp": batch_timestamp,
            })
            .eq("id", lesson_id)
            .eq("status", "upcoming")
        )
        if expected_last_batch is None:
            q = q.is_("last_batch_timestamp", "null")
        else:
            q = q.eq("last_batch_timestamp", expected_last_batch)
        r = q.execute()
        rows = getattr(r, "data", None) or []
        if not rows:
            current = self.get(lesson_id)
            if current is None:
                raise LessonNotFound(f"lesson {lesson_id} not found")
            if current.status != "upcoming":
                raise InvalidLessonTransition(f"lesson {lesson_id} is {current.status}; batch not written")
            raise IdentityCollision(f"lesson {lesson_id} batch moved since {expected_last_batch}")
        return _lesson_from_row(rows[0])


class DocumentStore:
    def get(self, sub_topic_id: str) -> Optional[InteractiveDocument]:
        raise NotImplementedError

    def save(self, document: InteractiveDocument) -> InteractiveDocument:
        """Idempotent replace keyed by sub_topic_id."""
        raise NotImplementedError

    def delete(self, sub_topic_id: str) -> None:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._data: dict[str, InteractiveDocument] = {}

    def get(self, sub_topic_id):
        doc = self._data.get(sub_topic_id)
        return doc.model_copy(deep=True) if doc else None

    def save(self, document):
        self._data[document.sub_topic_id] = document.model_copy(deep=True)
        return document

    def delete(self, sub_topic_id):
        self._data.pop(sub_topic_id, None)


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, supabase_client):
        self.sb = supabase_client

    def get(self, sub_topic_id):
        r = (
            self.sb.table("interactive_documents")
            .select("*")
            .eq("sub_topic_id", sub_topic_id)
            .maybe_single()
            .execute()
        )
        data = getattr(r, "data", None)
        if not data:
            return None
        return InteractiveDocument(**data["document"])

    def save(self, document):
        payload = {
            "sub_topic_id": document.sub_topic_id,
            "lesson_id": document.lesson_id,
            "batch_timestamp": document.batch_timestamp,
            "version": document.version,
            "document": document.model_dump(mode="json"),
        }
        self.sb.table("interactive_documents").upsert(payload, on_conflict="sub_topic_id").execute()
        return document

    def delete(self, sub_topic_id):
        self.sb.table("interactive_documents").delete().eq("sub_topic_id", sub_topic_id).execute()


LESSON_STORE = InMemoryLessonStore()
DOCUMENT_STORE = InMemoryDocumentStore()


def _use_supabase() -> bool:
    return os.getenv("LESSONCRAFT_STORE", "memory").lower() == "supabase"


def get_lesson_store() -> LessonStore:
    if not _use_supabase():
        return LESSON_STORE
    from app.core.deps import get_supabase_client
    return SupabaseLessonStore(get_supabase_client())


def get_document_store() -> DocumentStore:
    if not _use_supabase():
        return DOCUMENT_STORE
    from app.core.deps import get_supabase_client
    return SupabaseDocumentStore(get_supabase_client())
