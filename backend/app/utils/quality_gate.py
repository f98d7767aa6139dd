"""quality_gate.py — post-assembly interactive document quality checks.

Runs after sections are validated and padded, before the document is stored.
Operates in log-only mode: failures are recorded but never block assembly.

Field conventions understood:
  sections          → doc["sections"]            (list of normalised section dicts)
  content type      → section["content_type"]
  fallback entries  → section["_fallback_entries"] (paths of synthesized entries)
  counts            → doc["ai_entry_count"], doc["fallback_entry_count"]
  degraded flag     → doc["degraded"]            (AI unavailable, placeholder content)
"""
from typing import List, Tuple

DEFAULT_FALLBACK_RATIO_WARN = 0.5
DUPLICATE_JACCARD = 0.80


def jaccard(a: str, b: str) -> float:
    a_words = set(a.lower().split())
    b_words = set(b.lower().split())
    if not a_words or not b_words:
        return 0.0
    return len(a_words & b_words) / len(a_words | b_words)


def _entry_texts(section: dict) -> list[str]:
    ct = section.get("content_type")
    if ct in ("list", "listen_repeat"):
        return [str(i) for i in section.get("items") or []]
    if ct == "example_sentences":
        return [str(s) for s in section.get("sentences") or []]
    if ct == "matching":
        return [str(p.get("question", "")) for p in section.get("matching_pairs") or [] if isinstance(p, dict)]
    return []


def _label(section: dict, i: int) -> str:
    return str(section.get("id") or section.get("title") or f"S{i + 1}")


def run_document_quality_gate(document: dict, fallback_ratio_warn: float = DEFAULT_FALLBACK_RATIO_WARN) -> Tuple[bool, List[str]]:
    """Run all quality checks on an assembled document dict.

    Returns (passed: bool, failures: list[str]).
    Always returns both values; callers decide whether to block or log.
    """
    failures = []
    sections = document.get("sections") or []

    # ── Check 1: Empty document ───────────────────────────────────────────
    if not sections:
        failures.append("EMPTY: document has no sections")

    # ── Check 2: Degraded placeholder document ────────────────────────────
    if document.get("degraded"):
        failures.append("DEGRADED: document is a placeholder (AI unavailable)")

    # ── Check 3: Fallback-origin ratio ────────────────────────────────────
    ai = int(document.get("ai_entry_count") or 0)
    fb = int(document.get("fallback_entry_count") or 0)
    if ai + fb and fb / (ai + fb) > fallback_ratio_warn:
        failures.append(
            f"FALLBACK_RATIO: {fb}/{ai + fb} entries are synthesized "
            f"({int(fb / (ai + fb) * 100)}% > {int(fallback_ratio_warn * 100)}%)"
        )

    for i, section in enumerate(sections):
        label = _label(section, i)

        # ── Check 4: Near-duplicate entries inside one section ────────────
        texts = _entry_texts(section)
        for a in range(len(texts)):
            for b in range(a + 1, len(texts)):
                if jaccard(texts[a], texts[b]) >= DUPLICATE_JACCARD:
                    failures.append(f"DUPLICATE: {label} entries {a + 1} and {b + 1}")

        ct = section.get("content_type")

        # ── Check 5: Repeated vocabulary words ───────────────────────────
        if ct == "vocabulary_matching":
            seen = set()
            for item in section.get("vocabulary_items") or []:
                word = str(item.get("word", "")).strip().lower()
                if word in seen:
                    failures.append(f"VOCAB_REPEAT: {label} repeats '{word}'")
                seen.add(word)

        # ── Check 6: One-sided dialogue ──────────────────────────────────
        if ct == "full_dialogue":
            speakers = {
                str(line.get("character", "")).strip().lower()
                for line in section.get("dialogue_lines") or []
                if isinstance(line, dict)
            }
            if len(speakers) < 2:
                failures.append(f"ONE_SPEAKER: {label} dialogue has a single speaker")

    return len(failures) == 0, failures
