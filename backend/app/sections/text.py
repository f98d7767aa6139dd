"""Free-text section contracts (info cards, grammar explanations, titles)."""

from .base import SectionContract, ValidationReport, non_empty_str


class TextContract(SectionContract):
    content_type = "text"
    field = "content"

    def normalize_payload(self, payload, role_cache=None):
        if isinstance(payload, list) and all(isinstance(p, str) for p in payload):
            return "\n".join(p.strip() for p in payload if p.strip())
        return payload

    def validate(self, section, level):
        payload = section.get(self.field)
        if not isinstance(payload, str):
            return self.malformed(f"'{self.field}' must be text, got {type(payload).__name__}")
        if not payload.strip():
            return self.malformed(f"'{self.field}' is empty")
        return ValidationReport(status="ok", content_type=self.content_type)


class GrammarExplanationContract(TextContract):
    content_type = "grammar_explanation"
    field = "explanation_content"

    def read_payload(self, section):
        value = super().read_payload(section)
        if not non_empty_str(value) and non_empty_str(section.get("content")):
            return section["content"]
        return value


class TitleContract(TextContract):
    content_type = "title"
    field = "title"
