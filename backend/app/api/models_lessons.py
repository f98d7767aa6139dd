from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import date, datetime

from app.models.lesson import LearnerProfile, LessonStatus


class ScheduleLessonRequest(BaseModel):
    id: Optional[str] = None
    learner_id: str = Field(min_length=1)
    scheduled_date: date


class LessonStatusRequest(BaseModel):
    status: LessonStatus


class GenerateSubTopicsRequest(BaseModel):
    profile: LearnerProfile
    count: int = Field(default=3, ge=1, le=10)


class GenerateDocumentRequest(BaseModel):
    profile: LearnerProfile
    regenerate: bool = False


class SubTopicStatusDTO(BaseModel):
    id: str
    title: str
    category: str
    level: str
    batch_timestamp: int
    index: int
    description: Optional[str] = None
    is_complete: bool = False


class SubTopicListResponse(BaseModel):
    lesson_id: str
    learner_id: str
    last_batch_timestamp: Optional[int] = None
    sub_topics: list[SubTopicStatusDTO]


class DocumentResponse(BaseModel):
    sub_topic_id: str
    lesson_id: str
    batch_timestamp: int
    title: str
    level: str
    version: int
    degraded: bool = False
    ai_entry_count: int = 0
    fallback_entry_count: int = 0
    sections: list[dict[str, Any]]


class CompleteRequest(BaseModel):
    learner_id: str = Field(min_length=1)
    sub_topic_id: str = Field(min_length=1)
    score: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class CompletionDTO(BaseModel):
    learner_id: str
    sub_topic_id: str
    sub_topic_title: str
    sub_topic_category: str
    sub_topic_level: str
    completed_at: datetime
    score: Optional[float] = None
    notes: Optional[str] = None


class CompletionStatusResponse(BaseModel):
    learner_id: str
    sub_topic_id: str
    status: str
    is_complete: bool


class OrphanedCompletionsResponse(BaseModel):
    learner_id: str
    count: int
    records: list[CompletionDTO]
