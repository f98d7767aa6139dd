from pydantic import BaseModel, Field
from typing import Any, Literal, Optional
from datetime import date


LessonStatus = Literal["upcoming", "completed", "cancelled"]

# upcoming → completed | cancelled; terminal states never move again
LESSON_TRANSITIONS: dict[str, set[str]] = {
    "upcoming": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class SubTopic(BaseModel):
    id: str
    title: str
    category: str
    level: str
    batch_timestamp: int
    index: int
    description: str | None = None


class Lesson(BaseModel):
    id: str
    learner_id: str
    scheduled_date: date
    status: LessonStatus = "upcoming"
    sub_topics: list[SubTopic] = []
    last_batch_timestamp: Optional[int] = None

    def sub_topic(self, sub_topic_id: str) -> SubTopic | None:
        for st in self.sub_topics:
            if st.id == sub_topic_id:
                return st
        return None

    def sub_topic_ids(self) -> list[str]:
        return [st.id for st in self.sub_topics]


class InteractiveDocument(BaseModel):
    sub_topic_id: str
    lesson_id: str
    batch_timestamp: int
    title: str
    level: str
    sections: list[dict[str, Any]]
    version: int = 1
    degraded: bool = False
    ai_entry_count: int = 0
    fallback_entry_count: int = 0

    @property
    def fallback_ratio(self) -> float:
        total = self.ai_entry_count + self.fallback_entry_count
        return (self.fallback_entry_count / total) if total else 0.0


class LearnerProfile(BaseModel):
    """Learner fields forwarded to the AI collaborator."""

    level: str
    target_language: str = "en"
    native_language: str | None = None
    end_goals: str | None = None
    grammar_weaknesses: str | None = None
    vocabulary_gaps: str | None = None
    learning_styles: list[str] = Field(default_factory=list)
    notes: str | None = None
