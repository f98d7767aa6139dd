"""
Fallback synthesizer — pads underfilled countable sections with templated entries.

    fill(section, missing_count) -> section'

Deterministic: the template rotation is seeded from the section's own text
(character sum), never from time or randomness, so byte-identical input gives
byte-identical output. Every synthesized entry is listed under
``_fallback_entries`` on the returned section. Structural types (dialogues,
translation pairs, ...) are never fabricated: asking to fill one, or a
countable section with no AI-authored entry left to template from, raises
UnderfilledSection (a MalformedSection, so the section is re-requested).
"""
from __future__ import annotations

from app.core.errors import MalformedSection, UnderfilledSection
from app.sections.base import FALLBACK_ENTRIES_KEY, NothingToTemplate, SectionShapeError
from app.sections.registry import get_contract


def fill(section: dict, missing_count: int, target_count: int | None = None, *, index: int = 0) -> dict:
    contract = get_contract(section)
    if contract is None or not contract.countable:
        ct = section.get("content_type") if isinstance(section, dict) else None
        raise UnderfilledSection(ct or "unknown", missing_count, index=index)
    try:
        return contract.synthesize(section, missing_count, target_count)
    except NothingToTemplate as exc:
        raise UnderfilledSection(contract.content_type, missing_count, index=index) from exc
    except SectionShapeError as exc:
        raise MalformedSection([(index, str(exc))]) from exc


def entry_counts(section: dict) -> tuple[int, int]:
    """Return (ai_authored, fallback_origin) entry counts for one section."""
    contract = get_contract(section)
    if contract is None:
        return 0, 0
    total = contract.count_entries(section)
    fallback = len(section.get(FALLBACK_ENTRIES_KEY) or [])
    return max(0, total - fallback), fallback
