"""
Speaker-role and sub-topic category classification.

Both classifiers are pure functions. Callers that classify the same names
repeatedly (dialogue speakers across sections, categories across a batch)
pass a ClassificationCache; it is populate-on-miss, safe to serve stale, and
is cleared explicitly by whoever owns it.
"""
from __future__ import annotations

from typing import Callable, Optional

_TUTOR_MARKERS = ("teacher", "tutor", "instructor", "professor")
_NARRATOR_MARKERS = ("narrator", "voice over", "announcer")

# Keyword → category, scored title×3 + description×1 (highest wins)
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Grammar": ["grammar", "tense", "verb", "noun", "adjective", "sentence", "structure"],
    "Conversation": ["conversation", "speaking", "dialogue", "discussion", "talk", "chat"],
    "Business English": ["business", "professional", "work", "office", "meeting", "presentation", "networking"],
    "English for Kids": ["kids", "children", "young", "fun", "game", "story", "play"],
    "English for Travel": ["travel", "airport", "hotel", "restaurant", "directions", "vacation"],
    "Picture Description": ["picture", "image", "describe", "visual", "photo"],
    "Vocabulary": ["vocabulary", "words", "vocab", "meaning", "definition"],
    "Pronunciation": ["pronunciation", "sound", "phonics", "accent", "intonation"],
}
DEFAULT_CATEGORY = "Conversation"


def classify_speaker(name: str) -> str:
    """Return 'tutor', 'narrator' or 'student' for a dialogue speaker label."""
    lowered = (name or "").strip().lower()
    if any(m in lowered for m in _TUTOR_MARKERS):
        return "tutor"
    if any(m in lowered for m in _NARRATOR_MARKERS):
        return "narrator"
    return "student"


def classify_category(title: str, description: str = "") -> str:
    title_l = (title or "").lower()
    desc_l = (description or "").lower()
    best, best_score = DEFAULT_CATEGORY, 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        score = 0
        for kw in keywords:
            if kw in title_l:
                score += 3
            if kw in desc_l:
                score += 1
        if score > best_score:
            best, best_score = category, score
    return best


class ClassificationCache:
    """Memo for classifier results keyed by (kind, normalised input)."""

    def __init__(self, max_entries: int = 2048):
        self._data: dict[tuple[str, str], str] = {}
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, kind: str, key: str, compute: Callable[[], str]) -> str:
        cache_key = (kind, key.strip().lower())
        if cache_key in self._data:
            self.hits += 1
            return self._data[cache_key]
        self.misses += 1
        value = compute()
        if len(self._data) >= self.max_entries:
            self._data.clear()
        self._data[cache_key] = value
        return value

    def clear(self) -> None:
        self._data.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)


def speaker_role(name: str, cache: Optional[ClassificationCache] = None) -> str:
    if cache is None:
        return classify_speaker(name)
    return cache.get_or_compute("speaker", name or "", lambda: classify_speaker(name))


def sub_topic_category(title: str, description: str = "", cache: Optional[ClassificationCache] = None) -> str:
    if cache is None:
        return classify_category(title, description)
    key = f"{title}\x00{description}"
    return cache.get_or_compute("category", key, lambda: classify_category(title, description))
