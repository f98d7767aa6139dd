import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.errors import to_http_exception
from app.api.models_lessons import (
    CompleteRequest,
    CompletionDTO,
    CompletionStatusResponse,
    OrphanedCompletionsResponse,
)
from app.core.errors import LessonCraftError, SubTopicNotFound
from app.services.completion_store import CompletionStore, get_completion_store, record_completion
from app.services.lesson_store import LessonStore, get_lesson_store
from app.services.reconciler import Reconciler, get_reconciler
from app.services.telemetry import emit_event, instrument

logger = logging.getLogger("lessoncraft.api.progress")
router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.post("/complete", response_model=CompletionDTO)
@instrument(route="/api/progress/complete", version="v1")
def complete_sub_topic(
    req: CompleteRequest,
    lessons: LessonStore = Depends(get_lesson_store),
    completions: CompletionStore = Depends(get_completion_store),
):
    try:
        found = lessons.find_sub_topic(req.sub_topic_id)
        if found is None:
            raise SubTopicNotFound(f"sub-topic {req.sub_topic_id} is unknown or retired")
        lesson, sub_topic = found
        if lesson.learner_id != req.learner_id:
            raise HTTPException(status_code=403, detail="sub-topic belongs to another learner")
        record = record_completion(
            req.learner_id,
            sub_topic.id,
            sub_topic.title,
            sub_topic.category,
            sub_topic.level,
            score=req.score,
            notes=req.notes,
            store=completions,
        )
    except LessonCraftError as e:
        raise to_http_exception(e)

    emit_event(
        "sub_topic_completed",
        route="/api/progress/complete",
        learner_id=req.learner_id,
        lesson_id=lesson.id,
        sub_topic_id=sub_topic.id,
        ok=True,
    )
    return CompletionDTO(**record.to_dict())


@router.get("/{learner_id}/sub-topics/{sub_topic_id}", response_model=CompletionStatusResponse)
@instrument(route="/api/progress/{learner}/sub-topics/{id}", version="v1")
def get_completion_status(
    learner_id: str,
    sub_topic_id: str,
    reconciler: Reconciler = Depends(get_reconciler),
):
    status = reconciler.completion_status(learner_id, sub_topic_id)
    return CompletionStatusResponse(
        learner_id=learner_id,
        sub_topic_id=sub_topic_id,
        status=status,
        is_complete=reconciler.is_complete(learner_id, sub_topic_id),
    )


@router.get("/{learner_id}/orphaned", response_model=OrphanedCompletionsResponse)
@instrument(route="/api/progress/{learner}/orphaned", version="v1")
def get_orphaned_completions(learner_id: str, reconciler: Reconciler = Depends(get_reconciler)):
    records = reconciler.orphaned_completions(learner_id)
    return OrphanedCompletionsResponse(
        learner_id=learner_id,
        count=len(records),
        records=[CompletionDTO(**r.to_dict()) for r in records],
    )
