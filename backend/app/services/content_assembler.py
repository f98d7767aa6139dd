"""
Content assembler — raw AI sections → stored InteractiveDocument.

  1. every section goes through the section validator
  2. underfilled sections are padded by the fallback synthesizer
  3. malformed sections are collected and raised together (MalformedSection)
  4. the document is stamped with the sub-topic id and the sub-topic's own
     batch timestamp, then stored as an idempotent replace

A stored document for the same id but a different batch timestamp means two
sub-topics were minted with one id: IdentityCollision, never overwritten.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from app.core.errors import IdentityCollision, MalformedSection, UnderfilledSection
from app.models.lesson import InteractiveDocument, SubTopic
from app.services import fallback_synthesizer
from app.services.classifiers import ClassificationCache
from app.services.lesson_store import DocumentStore, get_document_store
from app.services.section_validator import normalize_and_validate
from app.services.telemetry import emit_event
from app.utils.quality_gate import DEFAULT_FALLBACK_RATIO_WARN, run_document_quality_gate

logger = logging.getLogger("lessoncraft.content_assembler")


def build_sections(
    raw_sections: Any,
    level: str,
    role_cache: Optional[ClassificationCache] = None,
) -> tuple[list[dict], int, int]:
    """Validate and pad every section. Returns (sections, ai_entries, fallback_entries)."""
    if not isinstance(raw_sections, list) or not raw_sections:
        raise MalformedSection([(0, "document has no sections")])

    sections: list[dict] = []
    failures: list[tuple[int, str]] = []
    ai_total = fb_total = 0

    for i, raw in enumerate(raw_sections):
        normalized, report = normalize_and_validate(raw, level, role_cache)
        if report.malformed:
            failures.append((i, f"{report.content_type}: {report.reason}"))
            continue
        if report.underfilled:
            logger.info(
                "[content_assembler] section %d (%s) underfilled by %d, padding to %s",
                i, report.content_type, report.missing_count, report.target_count,
            )
            try:
                normalized = fallback_synthesizer.fill(
                    normalized, report.missing_count, report.target_count, index=i
                )
            except UnderfilledSection as exc:
                logger.warning(
                    "[content_assembler] section %d (%s) cannot be padded, requesting regeneration",
                    i, exc.content_type,
                )
                failures.extend(exc.failures)
                continue
            except MalformedSection as exc:
                failures.extend(exc.failures)
                continue
        ai, fb = fallback_synthesizer.entry_counts(normalized)
        ai_total += ai
        fb_total += fb
        sections.append(normalized)

    if failures:
        raise MalformedSection(failures)
    return sections, ai_total, fb_total


def assemble(
    sub_topic: SubTopic,
    lesson_id: str,
    raw_sections: Any,
    *,
    store: Optional[DocumentStore] = None,
    role_cache: Optional[ClassificationCache] = None,
    fallback_ratio_warn: float = DEFAULT_FALLBACK_RATIO_WARN,
) -> InteractiveDocument:
    store = store or get_document_store()
    sections, ai_entries, fb_entries = build_sections(raw_sections, sub_topic.level, role_cache)

    previous = store.get(sub_topic.id)
    if previous is not None and previous.batch_timestamp != sub_topic.batch_timestamp:
        raise IdentityCollision(
            f"document {sub_topic.id} belongs to batch {previous.batch_timestamp}, "
            f"not {sub_topic.batch_timestamp}"
        )

    document = InteractiveDocument(
        sub_topic_id=sub_topic.id,
        lesson_id=lesson_id,
        batch_timestamp=sub_topic.batch_timestamp,
        title=sub_topic.title,
        level=sub_topic.level,
        sections=sections,
        version=(previous.version + 1) if previous else 1,
        ai_entry_count=ai_entries,
        fallback_entry_count=fb_entries,
    )

    passed, failures = run_document_quality_gate(document.model_dump(), fallback_ratio_warn)
    if not passed:
        logger.warning("[content_assembler] quality gate for %s: %s", sub_topic.id, failures)

    store.save(document)
    emit_event(
        "document_assembled",
        route="content_assembler",
        lesson_id=lesson_id,
        sub_topic_id=sub_topic.id,
        ai_entries=ai_entries,
        fallback_entries=fb_entries,
        ok=passed,
    )
    return document


def build_degraded_document(sub_topic: SubTopic, lesson_id: str, reason: str) -> InteractiveDocument:
    """Clearly-labelled placeholder for when the AI collaborator is unavailable.

    Structurally valid (it passes the section validator) and never stored.
    """
    sections = [
        {"id": "title", "type": "title", "content_type": "title", "title": sub_topic.title},
        {
            "id": "content_unavailable",
            "type": "info_card",
            "title": "Lesson material is on its way",
            "content_type": "text",
            "content": (
                "The interactive material for this topic could not be generated right now. "
                "Please try again in a few minutes."
            ),
            "_degraded_reason": reason,
        },
    ]
    return InteractiveDocument(
        sub_topic_id=sub_topic.id,
        lesson_id=lesson_id,
        batch_timestamp=sub_topic.batch_timestamp,
        title=sub_topic.title,
        level=sub_topic.level,
        sections=sections,
        version=0,
        degraded=True,
    )
