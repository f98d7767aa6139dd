"""Base section contract for AI-generated interactive lesson sections.

Every content_type (vocabulary_matching, full_dialogue, ...) is backed by one
SectionContract subclass registered in ``registry.SECTION_REGISTRY``. The
contract knows where the payload lives, how to normalise it, how to judge it
(ok / underfilled / malformed) and, for countable types only, how to pad it
with templated fallback entries.
"""

import copy
import json
from dataclasses import dataclass, asdict
from typing import Any, Optional

# Key on a section listing the entries added by the fallback synthesizer,
# as paths relative to the section ("items/4", "vocabulary_items/0/examples/3").
FALLBACK_ENTRIES_KEY = "_fallback_entries"

# Minimum worked examples per CEFR level: fewer as proficiency rises
LEVEL_MINIMUMS: dict[str, int] = {
    "a1": 5, "a2": 5, "beginner": 5, "elementary": 5, "pre-intermediate": 5,
    "b1": 4, "b2": 4, "intermediate": 4, "upper-intermediate": 4,
    "c1": 3, "c2": 3, "advanced": 3, "proficient": 3,
}
DEFAULT_MINIMUM = 4


def min_examples_for_level(level: str | None) -> int:
    return LEVEL_MINIMUMS.get((level or "").strip().lower(), DEFAULT_MINIMUM)


class SectionShapeError(ValueError):
    """Raised inside contracts when a payload has the wrong type or shape."""


class NothingToTemplate(SectionShapeError):
    """No AI-authored entry a fallback template could build on."""


@dataclass
class ValidationReport:
    status: str                      # ok | underfilled | malformed
    content_type: str
    missing_count: int = 0
    target_count: Optional[int] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def underfilled(self) -> bool:
        return self.status == "underfilled"

    @property
    def malformed(self) -> bool:
        return self.status == "malformed"

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def char_sum(text: str) -> int:
    """Seed for template rotation: stable across runs, derived from content only."""
    return sum(ord(c) for c in text or "")


def non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class SectionContract:
    content_type: str = ""
    field: str = ""
    countable: bool = False

    # ── payload access ────────────────────────────────────────────────────
    def read_payload(self, section: dict) -> Any:
        """Return the raw payload from the canonical field or the ai_placeholder field."""
        value = section.get(self.field)
        if value is None or value == [] or value == "":
            placeholder = section.get("ai_placeholder")
            if isinstance(placeholder, str) and placeholder != self.field and placeholder in section:
                value = section.get(placeholder)
        return value

    def coerce_list(self, value: Any) -> list:
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise SectionShapeError(f"'{self.field}' is an unparsable string") from exc
        if not isinstance(value, list):
            raise SectionShapeError(f"'{self.field}' must be a list, got {type(value).__name__}")
        return value

    # ── hooks ─────────────────────────────────────────────────────────────
    def normalize(self, section: dict, role_cache=None) -> dict:
        """Return a copy with the payload at the canonical field."""
        out = copy.deepcopy(section)
        out[self.field] = self.normalize_payload(self.read_payload(section), role_cache)
        return out

    def normalize_payload(self, payload: Any, role_cache=None) -> Any:
        return payload

    def validate(self, section: dict, level: str | None) -> ValidationReport:
        return ValidationReport(status="ok", content_type=self.content_type)

    def synthesize(self, section: dict, missing_count: int, target_count: int | None = None) -> dict:
        raise NothingToTemplate(f"{self.content_type} cannot be filled with fallback content")

    def count_entries(self, section: dict) -> int:
        payload = section.get(self.field)
        if isinstance(payload, list):
            return len(payload)
        return 1 if payload else 0

    # ── helpers ───────────────────────────────────────────────────────────
    def malformed(self, reason: str) -> ValidationReport:
        return ValidationReport(status="malformed", content_type=self.content_type, reason=reason)
