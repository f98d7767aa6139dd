"""Error taxonomy for sub-topic generation, assembly and completion tracking.

Services raise these; the API layer maps them to HTTP status codes.

  GenerationTimeout      upstream AI too slow            (retryable)
  GenerationUnavailable  upstream AI unreachable         (retryable)
  MalformedPayload       AI response is not usable JSON
  MalformedSection       section failed its contract     (regenerate that section)
  UnderfilledSection     below minimum, nothing to pad   (regenerate that section)
  IdentityCollision      clock / single-flight violation (abort the batch)
  AmbiguousMigration     legacy record has >1 candidate  (report, never guess)
"""
from __future__ import annotations


class LessonCraftError(Exception):
    """Base class for every domain error raised by the services."""

    retryable: bool = False


class GenerationError(LessonCraftError):
    pass


class GenerationTimeout(GenerationError):
    retryable = True


class GenerationUnavailable(GenerationError):
    retryable = True


class GenerationInFlight(GenerationError):
    """A lesson-plan generation for this lesson is already running."""

    retryable = True

    def __init__(self, lesson_id: str):
        super().__init__(f"generation already in flight for lesson {lesson_id}")
        self.lesson_id = lesson_id


class MalformedPayload(GenerationError):
    """The AI response could not be parsed into the expected JSON shape."""


class MalformedSection(LessonCraftError):
    """One or more sections failed structural validation.

    ``failures`` is a list of ``(section_index, reason)`` pairs so the caller
    can request regeneration for exactly those sections.
    """

    def __init__(self, failures: list[tuple[int, str]]):
        self.failures = list(failures)
        detail = "; ".join(f"section {i}: {reason}" for i, reason in self.failures)
        super().__init__(f"malformed sections: {detail}")

    @property
    def indices(self) -> list[int]:
        return [i for i, _ in self.failures]


class UnderfilledSection(MalformedSection):
    """Below the level minimum with nothing fallback templates can build on.

    Handled like any malformed section: that section is re-requested.
    """

    def __init__(self, content_type: str, missing_count: int, index: int = 0):
        self.content_type = content_type
        self.missing_count = missing_count
        super().__init__([(index, f"{content_type} is missing {missing_count} entries and cannot be padded")])


class IdentityCollision(LessonCraftError):
    """Two distinct sub-topics would share an id. Fatal for the batch."""


class InvalidBatchTimestamp(IdentityCollision):
    """Batch timestamp missing or not newer than the lesson's last batch."""


class AmbiguousMigration(LessonCraftError):
    def __init__(self, legacy_id: str, candidates: list[str]):
        super().__init__(
            f"legacy id {legacy_id!r} matches {len(candidates)} current sub-topics"
        )
        self.legacy_id = legacy_id
        self.candidates = list(candidates)


class LessonNotFound(LessonCraftError):
    pass


class SubTopicNotFound(LessonCraftError):
    pass


class InvalidLessonTransition(LessonCraftError):
    pass
