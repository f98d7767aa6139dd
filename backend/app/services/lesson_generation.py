"""
Lesson generation — drives the AI collaborator through the identity and
assembly pipeline.

Sub-topic batches:
  - single-flight per lesson (a second concurrent call gets GenerationInFlight)
  - the batch timestamp is captured once, before the AI call
  - ids are minted for the whole batch before anything is written; the lesson's
    list is swapped in one compare-and-swap store call

Interactive documents:
  - generated lazily, regenerated in place under the same sub-topic id
  - malformed sections are re-requested one by one, up to max_section_retries
  - an unreachable or slow AI, or output still unusable after retries, yields
    a degraded placeholder, never stored
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from app.core.config import get_settings
from app.core.errors import (
    GenerationInFlight,
    GenerationTimeout,
    GenerationUnavailable,
    InvalidLessonTransition,
    MalformedPayload,
    MalformedSection,
    SubTopicNotFound,
)
from app.models.lesson import InteractiveDocument, LearnerProfile, Lesson, SubTopic
from app.prompts.lesson_generation import (
    INTERACTIVE_MATERIAL_PROMPT,
    LESSON_SYSTEM_PROMPT,
    SECTION_REGENERATION_PROMPT,
    SUB_TOPICS_PROMPT,
)
from app.sections.base import min_examples_for_level
from app.services.classifiers import ClassificationCache, sub_topic_category
from app.services.content_assembler import assemble, build_degraded_document
from app.services.identity import mint_batch, now_ms
from app.services.lesson_store import DocumentStore, LessonStore, get_document_store, get_lesson_store
from app.services.reconciler import Reconciler

logger = logging.getLogger("lessoncraft.lesson_generation")

DEFAULT_SUB_TOPIC_COUNT = 3


def _profile_fields(profile: LearnerProfile) -> dict:
    return {
        "target_language": profile.target_language,
        "native_language": profile.native_language or "not specified",
        "level": profile.level,
        "level_upper": profile.level.upper(),
        "end_goals": profile.end_goals or "general communication",
        "grammar_weaknesses": profile.grammar_weaknesses or "none noted",
        "vocabulary_gaps": profile.vocabulary_gaps or "none noted",
        "learning_styles": ", ".join(profile.learning_styles) or "not specified",
        "notes": profile.notes or "none",
    }


def _raw_sub_topics(data: dict) -> list[dict]:
    raw = data.get("sub_topics")
    if not isinstance(raw, list) or not raw:
        raise MalformedPayload("response has no sub_topics list")
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not str(item.get("title") or "").strip():
            raise MalformedPayload(f"sub_topics[{i}] has no title")
    return raw


class LessonGenerationService:
    def __init__(
        self,
        ai=None,
        lessons: Optional[LessonStore] = None,
        documents: Optional[DocumentStore] = None,
        reconciler: Optional[Reconciler] = None,
        clock: Callable[[], int] = now_ms,
        settings=None,
        role_cache: Optional[ClassificationCache] = None,
        category_cache: Optional[ClassificationCache] = None,
    ):
        self.settings = settings or get_settings()
        if ai is None:
            from app.services.ai import get_ai_service
            ai = get_ai_service()
        self.ai = ai
        self.lessons = lessons or get_lesson_store()
        self.documents = documents or get_document_store()
        self.reconciler = reconciler or Reconciler(lessons=self.lessons)
        self.clock = clock
        self.role_cache = role_cache if role_cache is not None else ClassificationCache()
        self.category_cache = category_cache if category_cache is not None else ClassificationCache()
        self._in_flight: set[str] = set()

    # ── sub-topic batches ────────────────────────────────────────────────
    async def generate_sub_topics(
        self,
        lesson_id: str,
        profile: LearnerProfile,
        count: int = DEFAULT_SUB_TOPIC_COUNT,
    ) -> Lesson:
        lesson = self.lessons.require(lesson_id)
        if lesson.status != "upcoming":
            raise InvalidLessonTransition(f"lesson {lesson_id} is {lesson.status}; cannot regenerate")
        if lesson_id in self._in_flight:
            raise GenerationInFlight(lesson_id)

        self._in_flight.add(lesson_id)
        try:
            batch_timestamp = self.clock()
            prompt = SUB_TOPICS_PROMPT.format(count=count, **_profile_fields(profile))
            data = await self.ai.generate_json(prompt, LESSON_SYSTEM_PROMPT)
            raw = _raw_sub_topics(data)

            expected_last = lesson.last_batch_timestamp
            titles = [str(item["title"]).strip() for item in raw]
            ids = mint_batch(lesson_id, batch_timestamp, titles, expected_last)

            sub_topics = []
            for i, (st_id, title, item) in enumerate(zip(ids, titles, raw)):
                description = item.get("description") or None
                category = item.get("category") or sub_topic_category(
                    title, description or "", self.category_cache
                )
                sub_topics.append(SubTopic(
                    id=st_id,
                    title=title,
                    category=category,
                    level=item.get("level") or profile.level,
                    batch_timestamp=batch_timestamp,
                    index=i,
                    description=description,
                ))

            retired = [sid for sid in lesson.sub_topic_ids() if sid not in set(ids)]
            updated = self.lessons.replace_sub_topics(lesson_id, sub_topics, batch_timestamp, expected_last)
            logger.info(
                "[lesson_generation] lesson %s batch %s: %d sub-topics, %d retired",
                lesson_id, batch_timestamp, len(sub_topics), len(retired),
            )
            self.reconciler.record_regeneration(updated, retired)
            return updated
        finally:
            self._in_flight.discard(lesson_id)

    # ── interactive documents ────────────────────────────────────────────
    def _require_sub_topic(self, sub_topic_id: str) -> tuple[Lesson, SubTopic]:
        found = self.lessons.find_sub_topic(sub_topic_id)
        if found is None:
            raise SubTopicNotFound(f"sub-topic {sub_topic_id} is unknown or retired")
        return found

    async def _regenerate_sections(
        self,
        sub_topic: SubTopic,
        sections: list[Any],
        failure: MalformedSection,
    ) -> list[Any]:
        sections = list(sections)
        for idx, reason in failure.failures:
            if idx >= len(sections):
                continue
            prompt = SECTION_REGENERATION_PROMPT.format(
                title=sub_topic.title,
                level_upper=sub_topic.level.upper(),
                reason=reason,
                section_json=json.dumps(sections[idx], ensure_ascii=False, default=str),
            )
            data = await self.ai.generate_json(prompt, LESSON_SYSTEM_PROMPT)
            section = data.get("section")
            if not isinstance(section, dict):
                raise MalformedPayload("section regeneration response has no section object")
            sections[idx] = section
        return sections

    async def _build_document(self, lesson: Lesson, sub_topic: SubTopic, profile: LearnerProfile) -> InteractiveDocument:
        fields = _profile_fields(profile)
        fields.update(
            title=sub_topic.title,
            category=sub_topic.category,
            level_upper=sub_topic.level.upper(),
            min_examples=min_examples_for_level(sub_topic.level),
        )
        data = await self.ai.generate_json(INTERACTIVE_MATERIAL_PROMPT.format(**fields), LESSON_SYSTEM_PROMPT)
        sections = data.get("sections")

        attempt = 0
        while True:
            try:
                return assemble(
                    sub_topic,
                    lesson.id,
                    sections,
                    store=self.documents,
                    role_cache=self.role_cache,
                    fallback_ratio_warn=self.settings.fallback_ratio_warn,
                )
            except MalformedSection as exc:
                if attempt >= self.settings.max_section_retries or not isinstance(sections, list):
                    raise
                attempt += 1
                logger.warning(
                    "[lesson_generation] %s: regenerating sections %s (attempt %d)",
                    sub_topic.id, exc.indices, attempt,
                )
                sections = await self._regenerate_sections(sub_topic, sections, exc)

    async def generate_document(
        self,
        sub_topic_id: str,
        profile: LearnerProfile,
        regenerate: bool = False,
    ) -> InteractiveDocument:
        lesson, sub_topic = self._require_sub_topic(sub_topic_id)
        if not regenerate:
            existing = self.documents.get(sub_topic_id)
            if existing is not None:
                return existing
        try:
            return await self._build_document(lesson, sub_topic, profile)
        except (GenerationTimeout, GenerationUnavailable) as exc:
            logger.warning("[lesson_generation] %s degraded: %s", sub_topic_id, exc)
            return build_degraded_document(sub_topic, lesson.id, exc.__class__.__name__)
        except (MalformedPayload, MalformedSection) as exc:
            logger.error("[lesson_generation] %s degraded, unusable AI output: %s", sub_topic_id, exc)
            return build_degraded_document(sub_topic, lesson.id, exc.__class__.__name__)

    async def generate_documents(
        self,
        sub_topic_ids: list[str],
        profile: LearnerProfile,
    ) -> tuple[list[InteractiveDocument], list[dict]]:
        """Generate documents concurrently. Returns (documents, failed)."""
        results = await asyncio.gather(
            *(self.generate_document(sid, profile) for sid in sub_topic_ids),
            return_exceptions=True,
        )
        documents: list[InteractiveDocument] = []
        failed: list[dict] = []
        for sub_topic_id, result in zip(sub_topic_ids, results):
            if isinstance(result, BaseException):
                logger.error(
                    "[lesson_generation] document failed for %s: %s", sub_topic_id, result, exc_info=result
                )
                failed.append({"sub_topic_id": sub_topic_id, "error": result.__class__.__name__})
            else:
                documents.append(result)
        return documents, failed


_SERVICE: Optional[LessonGenerationService] = None


def get_generation_service() -> LessonGenerationService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = LessonGenerationService()
    return _SERVICE
