"""Read-only section registry — maps content_type to contract instance."""

from .countable import ExampleSentencesContract, ListContract, MatchingContract, VocabularyMatchingContract
from .structural import (
    CompleteSentenceContract,
    FillInTheBlanksDialogueContract,
    FullDialogueContract,
    ListenRepeatContract,
    TranslationMatchContract,
)
from .text import GrammarExplanationContract, TextContract, TitleContract

SECTION_REGISTRY = {
    "vocabulary_matching": VocabularyMatchingContract(),
    "matching": MatchingContract(),
    "list": ListContract(),
    "example_sentences": ExampleSentencesContract(),
    "full_dialogue": FullDialogueContract(),
    "fill_in_the_blanks_dialogue": FillInTheBlanksDialogueContract(),
    "translation_match": TranslationMatchContract(),
    "listen_repeat": ListenRepeatContract(),
    "complete_sentence": CompleteSentenceContract(),
    "text": TextContract(),
    "grammar_explanation": GrammarExplanationContract(),
    "title": TitleContract(),
}

CONTENT_TYPE_ALIASES = {
    "vocabulary_translation_match": "translation_match",
    "info_card": "text",
}


def resolve_content_type(section: dict) -> str | None:
    raw = section.get("content_type")
    if not raw and section.get("type") == "title":
        raw = "title"
    if not isinstance(raw, str):
        return None
    raw = raw.strip().lower()
    return CONTENT_TYPE_ALIASES.get(raw, raw)


def get_contract(section: dict):
    content_type = resolve_content_type(section)
    if content_type is None:
        return None
    return SECTION_REGISTRY.get(content_type)
