"""Countable section contracts: minimum entry count depends on learner level.

An underfilled countable section is padded by ``synthesize`` with templated
entries built from the section's own AI-authored entries; the same input always
produces the same padding.
"""

import copy
from typing import Any

from .base import (
    FALLBACK_ENTRIES_KEY,
    SectionContract,
    NothingToTemplate,
    SectionShapeError,
    ValidationReport,
    char_sum,
    min_examples_for_level,
    non_empty_str,
)
from .templates import (
    EXAMPLE_SENTENCE_TEMPLATES,
    LIST_ITEM_TEMPLATES,
    MATCHING_QUESTION_TEMPLATES,
    VOCABULARY_EXAMPLE_TEMPLATES,
)


def _fallback_paths(section: dict) -> list[str]:
    return list(section.get(FALLBACK_ENTRIES_KEY) or [])


def _rotate(sources: list, templates: list[str], seed: int, count: int, existing: set, render) -> list:
    """Produce ``count`` new entries cycling sources × templates from ``seed``.

    Skips renders already present in ``existing`` until every combination has
    been tried once; after that repeats are accepted.
    """
    produced = []
    n_src, n_tpl = len(sources), len(templates)
    limit = n_src * n_tpl
    step = 0
    while len(produced) < count:
        src = sources[(seed + step) % n_src]
        tpl = templates[((seed + step) // n_src) % n_tpl]
        entry, key = render(src, tpl)
        step += 1
        if key in existing and step <= limit:
            continue
        existing.add(key)
        produced.append(entry)
    return produced


class CountableContract(SectionContract):
    countable = True
    templates: list[str] = []

    def entry_problem(self, entry: Any) -> str | None:
        return None

    def entry_key(self, entry: Any) -> str:
        return str(entry)

    def render(self, source: Any, template: str) -> tuple[Any, str]:
        raise NotImplementedError

    def normalize_payload(self, payload, role_cache=None):
        return self.coerce_list(payload)

    def validate(self, section: dict, level: str | None) -> ValidationReport:
        try:
            entries = self.coerce_list(section.get(self.field))
        except SectionShapeError as exc:
            return self.malformed(str(exc))
        if not entries:
            return self.malformed(f"'{self.field}' has no entries to build on")
        for i, entry in enumerate(entries):
            problem = self.entry_problem(entry)
            if problem:
                return self.malformed(f"{self.field}[{i}]: {problem}")

        target = min_examples_for_level(level)
        missing = max(0, target - len(entries))
        return ValidationReport(
            status="underfilled" if missing else "ok",
            content_type=self.content_type,
            missing_count=missing,
            target_count=target,
        )

    def synthesize(self, section: dict, missing_count: int, target_count: int | None = None) -> dict:
        out = copy.deepcopy(section)
        if missing_count <= 0:
            return out
        entries = self.coerce_list(out.get(self.field))
        paths = _fallback_paths(out)
        synthesized = {
            int(p.split("/")[1]) for p in paths
            if p.startswith(f"{self.field}/") and p.count("/") == 1
        }
        sources = [e for i, e in enumerate(entries) if i not in synthesized]
        if not sources:
            raise NothingToTemplate(f"'{self.field}' has no AI-authored entries to template from")

        seed = char_sum("".join(self.entry_key(s) for s in sources))
        existing = {self.entry_key(e) for e in entries}
        new_entries = _rotate(sources, self.templates, seed, missing_count, existing, self.render)

        start = len(entries)
        entries.extend(new_entries)
        out[self.field] = entries
        out[FALLBACK_ENTRIES_KEY] = paths + [f"{self.field}/{start + k}" for k in range(len(new_entries))]
        return out


class ListContract(CountableContract):
    content_type = "list"
    field = "items"
    templates = LIST_ITEM_TEMPLATES

    def normalize_payload(self, payload, role_cache=None):
        items = self.coerce_list(payload)
        # {"text": "..."} items are flattened to plain strings
        return [i.get("text") if isinstance(i, dict) and "text" in i else i for i in items]

    def entry_problem(self, entry):
        if not non_empty_str(entry):
            return "item must be non-empty text"
        return None

    def render(self, source, template):
        text = template.format(item=source)
        return text, text


class ExampleSentencesContract(ListContract):
    content_type = "example_sentences"
    field = "sentences"
    templates = EXAMPLE_SENTENCE_TEMPLATES


class MatchingContract(CountableContract):
    content_type = "matching"
    field = "matching_pairs"
    templates = MATCHING_QUESTION_TEMPLATES

    def entry_problem(self, entry):
        if not isinstance(entry, dict):
            return "pair must be an object"
        if not non_empty_str(entry.get("question")):
            return "pair is missing 'question'"
        if not non_empty_str(entry.get("answer")):
            return "pair is missing 'answer'"
        return None

    def entry_key(self, entry):
        return entry.get("question", "") if isinstance(entry, dict) else str(entry)

    def render(self, source, template):
        question = template.format(item=source["question"])
        return {"question": question, "answer": source["answer"]}, question


class VocabularyMatchingContract(SectionContract):
    """Vocabulary items; the level minimum applies to each item's examples."""

    content_type = "vocabulary_matching"
    field = "vocabulary_items"
    countable = True
    templates = VOCABULARY_EXAMPLE_TEMPLATES

    def normalize_payload(self, payload, role_cache=None):
        items = self.coerce_list(payload)
        out = []
        for item in items:
            if isinstance(item, dict):
                item = dict(item)
                if not item.get("word") and item.get("name"):
                    item["word"] = item["name"]
                if not item.get("definition") and item.get("prompt"):
                    item["definition"] = item["prompt"]
                examples = item.get("examples")
                if isinstance(examples, str):
                    item["examples"] = [examples] if examples.strip() else []
                elif examples is None:
                    item["examples"] = []
            out.append(item)
        return out

    def validate(self, section: dict, level: str | None) -> ValidationReport:
        try:
            items = self.coerce_list(section.get(self.field))
        except SectionShapeError as exc:
            return self.malformed(str(exc))
        if not items:
            return self.malformed("'vocabulary_items' has no entries to build on")

        target = min_examples_for_level(level)
        missing = 0
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                return self.malformed(f"vocabulary_items[{i}]: item must be an object")
            if not non_empty_str(item.get("word")):
                return self.malformed(f"vocabulary_items[{i}]: item is missing 'word'")
            if not non_empty_str(item.get("definition")):
                return self.malformed(f"vocabulary_items[{i}]: item is missing 'definition'")
            examples = item.get("examples", [])
            if not isinstance(examples, list) or not all(non_empty_str(e) for e in examples):
                return self.malformed(f"vocabulary_items[{i}]: 'examples' must be a list of sentences")
            missing += max(0, target - len(examples))

        return ValidationReport(
            status="underfilled" if missing else "ok",
            content_type=self.content_type,
            missing_count=missing,
            target_count=target,
        )

    def synthesize(self, section: dict, missing_count: int, target_count: int | None = None) -> dict:
        if target_count is None:
            target_count = min_examples_for_level(section.get("level"))
        out = copy.deepcopy(section)
        items = self.coerce_list(out.get(self.field))
        paths = _fallback_paths(out)
        budget = missing_count

        for i, item in enumerate(items):
            if budget <= 0:
                break
            examples = list(item.get("examples") or [])
            need = min(budget, max(0, target_count - len(examples)))
            if not need:
                continue
            word = item.get("word", "")
            existing = set(examples)
            new = _rotate(
                [word],
                self.templates,
                char_sum(word),
                need,
                existing,
                lambda src, tpl: (tpl.format(word=src),) * 2,
            )
            start = len(examples)
            examples.extend(new)
            item["examples"] = examples
            paths.extend(f"{self.field}/{i}/examples/{start + k}" for k in range(len(new)))
            budget -= len(new)

        out[self.field] = items
        out[FALLBACK_ENTRIES_KEY] = paths
        return out

    def count_entries(self, section: dict) -> int:
        items = section.get(self.field) or []
        return sum(len(i.get("examples") or []) for i in items if isinstance(i, dict))
