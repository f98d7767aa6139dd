"""
Section validator — judges one AI-generated section against its content_type contract.

    validate(section, level) -> ValidationReport(ok | underfilled | malformed)

AI output is treated as untrusted and untyped: anything that is not a dict,
has no known content_type, or whose payload has the wrong shape is malformed.
Dispatch is always through SECTION_REGISTRY, never ad hoc field probing.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from app.sections.base import SectionShapeError, ValidationReport
from app.sections.registry import get_contract, resolve_content_type
from app.services.classifiers import ClassificationCache

logger = logging.getLogger("lessoncraft.section_validator")


def _malformed(content_type: Any, reason: str) -> ValidationReport:
    return ValidationReport(status="malformed", content_type=str(content_type or "unknown"), reason=reason)


def normalize_and_validate(
    section: Any,
    level: str | None,
    role_cache: Optional[ClassificationCache] = None,
) -> tuple[dict | None, ValidationReport]:
    """Return (normalised copy, report). The copy is None when malformed."""
    if not isinstance(section, dict):
        return None, _malformed(None, f"section must be an object, got {type(section).__name__}")

    contract = get_contract(section)
    if contract is None:
        ct = section.get("content_type")
        return None, _malformed(ct, f"unknown content_type {ct!r}")

    try:
        normalized = contract.normalize(section, role_cache)
    except SectionShapeError as exc:
        return None, _malformed(contract.content_type, str(exc))
    normalized["content_type"] = resolve_content_type(section)

    report = contract.validate(normalized, level)
    if report.malformed:
        logger.info("[section_validator] %s malformed: %s", contract.content_type, report.reason)
        return None, report
    return normalized, report


def validate(section: Any, level: str | None, role_cache: Optional[ClassificationCache] = None) -> ValidationReport:
    return normalize_and_validate(section, level, role_cache)[1]
