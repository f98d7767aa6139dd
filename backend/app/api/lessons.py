import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.errors import to_http_exception
from app.api.models_lessons import (
    DocumentResponse,
    GenerateDocumentRequest,
    GenerateSubTopicsRequest,
    LessonStatusRequest,
    ScheduleLessonRequest,
    SubTopicListResponse,
    SubTopicStatusDTO,
)
from app.core.errors import LessonCraftError, SubTopicNotFound
from app.models.lesson import Lesson
from app.services.lesson_generation import LessonGenerationService, get_generation_service
from app.services.lesson_store import DocumentStore, LessonStore, get_document_store, get_lesson_store
from app.services.reconciler import Reconciler, get_reconciler
from app.services.telemetry import instrument

logger = logging.getLogger("lessoncraft.api.lessons")
router = APIRouter(prefix="/api", tags=["lessons"])


def _sub_topic_list(lesson: Lesson, learner_id: str, reconciler: Reconciler) -> SubTopicListResponse:
    statuses = reconciler.completion_statuses(learner_id, lesson)
    return SubTopicListResponse(
        lesson_id=lesson.id,
        learner_id=learner_id,
        last_batch_timestamp=lesson.last_batch_timestamp,
        sub_topics=[
            SubTopicStatusDTO(**st.model_dump(), is_complete=statuses.get(st.id, False))
            for st in lesson.sub_topics
        ],
    )


@router.post("/lessons", response_model=Lesson, status_code=201)
@instrument(route="/api/lessons", version="v1")
def schedule_lesson(req: ScheduleLessonRequest, lessons: LessonStore = Depends(get_lesson_store)):
    lesson_id = req.id or uuid.uuid4().hex
    if lessons.get(lesson_id) is not None:
        raise HTTPException(status_code=409, detail=f"lesson {lesson_id} already exists")
    lesson = Lesson(id=lesson_id, learner_id=req.learner_id, scheduled_date=req.scheduled_date)
    return lessons.save(lesson)


@router.get("/lessons/{lesson_id}", response_model=Lesson)
@instrument(route="/api/lessons/{id}", version="v1")
def get_lesson(lesson_id: str, lessons: LessonStore = Depends(get_lesson_store)):
    try:
        return lessons.require(lesson_id)
    except LessonCraftError as e:
        raise to_http_exception(e)


@router.post("/lessons/{lesson_id}/status", response_model=Lesson)
@instrument(route="/api/lessons/{id}/status", version="v1")
def set_lesson_status(
    lesson_id: str,
    req: LessonStatusRequest,
    lessons: LessonStore = Depends(get_lesson_store),
):
    try:
        return lessons.set_status(lesson_id, req.status)
    except LessonCraftError as e:
        raise to_http_exception(e)


@router.post("/lessons/{lesson_id}/sub-topics", response_model=SubTopicListResponse)
@instrument(route="/api/lessons/{id}/sub-topics", version="v1")
async def generate_sub_topics(
    lesson_id: str,
    req: GenerateSubTopicsRequest,
    service: LessonGenerationService = Depends(get_generation_service),
    reconciler: Reconciler = Depends(get_reconciler),
):
    try:
        lesson = await service.generate_sub_topics(lesson_id, req.profile, req.count)
    except LessonCraftError as e:
        raise to_http_exception(e)
    return _sub_topic_list(lesson, lesson.learner_id, reconciler)


@router.get("/lessons/{lesson_id}/sub-topics", response_model=SubTopicListResponse)
@instrument(route="/api/lessons/{id}/sub-topics:list", version="v1")
def list_sub_topics(
    lesson_id: str,
    learner_id: Optional[str] = Query(default=None),
    lessons: LessonStore = Depends(get_lesson_store),
    reconciler: Reconciler = Depends(get_reconciler),
):
    try:
        lesson = lessons.require(lesson_id)
    except LessonCraftError as e:
        raise to_http_exception(e)
    return _sub_topic_list(lesson, learner_id or lesson.learner_id, reconciler)


@router.post("/sub-topics/{sub_topic_id}/document", response_model=DocumentResponse)
@instrument(route="/api/sub-topics/{id}/document", version="v1")
async def generate_document(
    sub_topic_id: str,
    req: GenerateDocumentRequest,
    service: LessonGenerationService = Depends(get_generation_service),
):
    try:
        document = await service.generate_document(sub_topic_id, req.profile, regenerate=req.regenerate)
    except LessonCraftError as e:
        raise to_http_exception(e)
    if document.degraded:
        logger.warning("serving degraded document for %s", sub_topic_id)
    return DocumentResponse(**document.model_dump())


@router.get("/sub-topics/{sub_topic_id}/document", response_model=DocumentResponse)
@instrument(route="/api/sub-topics/{id}/document:get", version="v1")
def get_document(
    sub_topic_id: str,
    lessons: LessonStore = Depends(get_lesson_store),
    documents: DocumentStore = Depends(get_document_store),
):
    try:
        if lessons.find_sub_topic(sub_topic_id) is None:
            raise SubTopicNotFound(f"sub-topic {sub_topic_id} is unknown or retired")
        document = documents.get(sub_topic_id)
        if document is None:
            raise SubTopicNotFound(f"no document generated yet for {sub_topic_id}")
    except LessonCraftError as e:
        raise to_http_exception(e)
    return DocumentResponse(**document.model_dump())
