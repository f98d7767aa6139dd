import logging

from fastapi import HTTPException

from app.core.errors import (
    GenerationInFlight,
    GenerationTimeout,
    GenerationUnavailable,
    IdentityCollision,
    InvalidLessonTransition,
    LessonCraftError,
    LessonNotFound,
    MalformedPayload,
    MalformedSection,
    SubTopicNotFound,
)

logger = logging.getLogger("lessoncraft.api")

# most specific first: InvalidBatchTimestamp is an IdentityCollision
_STATUS_BY_ERROR: list[tuple[type, int]] = [
    (LessonNotFound, 404),
    (SubTopicNotFound, 404),
    (GenerationInFlight, 409),
    (InvalidLessonTransition, 409),
    (GenerationTimeout, 504),
    (GenerationUnavailable, 503),
    (MalformedPayload, 502),
    (MalformedSection, 502),
    (IdentityCollision, 500),
]


def to_http_exception(exc: LessonCraftError) -> HTTPException:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status = 500
    if status >= 500:
        logger.error("%s: %s", exc.__class__.__name__, exc)
    detail = {"error": exc.__class__.__name__, "detail": str(exc), "retryable": exc.retryable}
    if isinstance(exc, MalformedSection):
        detail["sections"] = exc.indices
    return HTTPException(status_code=status, detail=detail)
