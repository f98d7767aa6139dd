"""Structural section contracts: required sub-keys, no minimum count.

These are never padded with fallback content; an empty or broken payload is
malformed and goes back to the AI for regeneration.
"""

import re
from typing import Any

from .base import SectionContract, SectionShapeError, ValidationReport, non_empty_str
from app.services.classifiers import speaker_role

# "Tutor: Hello!" / "A - Hi" / "Maria：Hola"
_DIALOGUE_LINE_RE = re.compile(r"^\s*([^:：\-–]{1,40}?)\s*[:：\-–]\s*(.+)$", re.DOTALL)


def parse_dialogue_line(line: str) -> dict:
    m = _DIALOGUE_LINE_RE.match(line or "")
    if not m:
        return {"character": "", "text": (line or "").strip()}
    return {"character": m.group(1).strip(), "text": m.group(2).strip()}


class StructuralContract(SectionContract):
    def entry_problem(self, entry: Any) -> str | None:
        return None

    def normalize_entry(self, entry: Any, role_cache=None) -> Any:
        return entry

    def normalize_payload(self, payload, role_cache=None):
        return [self.normalize_entry(e, role_cache) for e in self.coerce_list(payload)]

    def validate(self, section: dict, level: str | None) -> ValidationReport:
        try:
            entries = self.coerce_list(section.get(self.field))
        except SectionShapeError as exc:
            return self.malformed(str(exc))
        if not entries:
            return self.malformed(f"'{self.field}' is empty and cannot be synthesized")
        for i, entry in enumerate(entries):
            problem = self.entry_problem(entry)
            if problem:
                return self.malformed(f"{self.field}[{i}]: {problem}")
        return ValidationReport(status="ok", content_type=self.content_type)


class FullDialogueContract(StructuralContract):
    content_type = "full_dialogue"
    field = "dialogue_lines"

    def normalize_entry(self, entry, role_cache=None):
        if isinstance(entry, str):
            entry = parse_dialogue_line(entry)
        elif isinstance(entry, dict):
            entry = dict(entry)
            if not entry.get("character") and entry.get("speaker"):
                entry["character"] = entry.pop("speaker")
            if not entry.get("text") and entry.get("line"):
                entry["text"] = entry.pop("line")
        else:
            return entry
        if non_empty_str(entry.get("character")):
            entry["role"] = speaker_role(entry["character"], role_cache)
        return entry

    def entry_problem(self, entry):
        if not isinstance(entry, dict):
            return "turn must be an object or 'Speaker: text' string"
        if not non_empty_str(entry.get("character")):
            return "turn is missing a speaker"
        if not non_empty_str(entry.get("text")):
            return "turn is missing text"
        return None


class FillInTheBlanksDialogueContract(StructuralContract):
    content_type = "fill_in_the_blanks_dialogue"
    field = "dialogue_elements"

    def normalize_entry(self, entry, role_cache=None):
        if isinstance(entry, str):
            entry = parse_dialogue_line(entry)
        if isinstance(entry, dict) and non_empty_str(entry.get("character")):
            entry = dict(entry)
            entry["role"] = speaker_role(entry["character"], role_cache)
        return entry

    def entry_problem(self, entry):
        if not isinstance(entry, dict):
            return "element must be an object"
        if non_empty_str(entry.get("text")):
            return None
        options = entry.get("options")
        if non_empty_str(entry.get("question")) and isinstance(options, list) and options:
            return None
        return "element needs 'text' or a 'question' with 'options'"


class TranslationMatchContract(StructuralContract):
    content_type = "translation_match"
    field = "items"

    def normalize_entry(self, entry, role_cache=None):
        if not isinstance(entry, dict):
            return entry
        entry = dict(entry)
        for alias in ("english", "source", "term"):
            if not entry.get("word") and entry.get(alias):
                entry["word"] = entry[alias]
        for alias in ("native", "target", "meaning"):
            if not entry.get("translation") and entry.get(alias):
                entry["translation"] = entry[alias]
        return entry

    def entry_problem(self, entry):
        if not isinstance(entry, dict):
            return "pair must be an object"
        if not non_empty_str(entry.get("word")):
            return "pair is missing 'word'"
        if not non_empty_str(entry.get("translation")):
            return "pair is missing 'translation'"
        return None


class ListenRepeatContract(StructuralContract):
    content_type = "listen_repeat"
    field = "items"

    def normalize_entry(self, entry, role_cache=None):
        if isinstance(entry, dict) and "text" in entry:
            return entry["text"]
        return entry

    def entry_problem(self, entry):
        if not non_empty_str(entry):
            return "sentence must be non-empty text"
        return None


class CompleteSentenceContract(StructuralContract):
    content_type = "complete_sentence"
    field = "items"

    def entry_problem(self, entry):
        if not isinstance(entry, dict):
            return "item must be an object"
        if not non_empty_str(entry.get("sentence")):
            return "item is missing 'sentence'"
        options = entry.get("options")
        if not isinstance(options, list) or not options:
            return "item needs a non-empty 'options' list"
        answer = entry.get("answer")
        if answer is not None and answer not in options:
            return f"answer {answer!r} is not among the options"
        return None
