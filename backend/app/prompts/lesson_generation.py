"""Prompt templates for sub-topic and interactive material generation."""

LESSON_SYSTEM_PROMPT = """You are an expert language tutor designing personalised lessons.
You must respond ONLY with valid JSON - no explanations, no additional text,
no markdown formatting."""

SUB_TOPICS_PROMPT = """Propose {count} sub-topics for the next lesson of this learner.

Learner Profile:
- Target Language: {target_language}
- Native Language: {native_language}
- Proficiency Level: {level}
- End Goals: {end_goals}
- Grammar Weaknesses: {grammar_weaknesses}
- Vocabulary Gaps: {vocabulary_gaps}
- Learning Styles: {learning_styles}
- Additional Notes: {notes}

Respond in the following JSON format:
{{
  "sub_topics": [
    {{
      "title": "Short sub-topic title",
      "category": "Grammar|Conversation|Business English|English for Kids|English for Travel|Picture Description|Vocabulary|Pronunciation",
      "level": "{level}",
      "description": "One sentence on what the learner will practise"
    }}
  ]
}}"""

INTERACTIVE_MATERIAL_PROMPT = """Create interactive lesson material for the sub-topic "{title}"
({category}, level {level_upper}).

Learner Profile:
- Target Language: {target_language}
- Native Language: {native_language}
- End Goals: {end_goals}
- Grammar Weaknesses: {grammar_weaknesses}
- Vocabulary Gaps: {vocabulary_gaps}

Respond with {{"sections": [...]}} where each section has "id", "title",
"content_type" and the payload field for that content type:
- vocabulary_matching → "vocabulary_items": [{{"word", "definition", "part_of_speech", "examples": [{min_examples} sentences]}}]
- matching            → "matching_pairs": [{{"question", "answer"}}] (at least {min_examples})
- list                → "items": [at least {min_examples} strings]
- full_dialogue       → "dialogue_lines": [{{"character", "text"}}]
- translation_match   → "items": [{{"word", "translation"}}]
- complete_sentence   → "items": [{{"sentence", "options", "answer"}}]
- text / grammar_explanation → "content" / "explanation_content" (markdown text)

RESPOND ONLY WITH THE JSON OBJECT - NO OTHER TEXT."""

SECTION_REGENERATION_PROMPT = """The following section of the lesson "{title}" (level {level_upper})
was rejected: {reason}

Section to regenerate:
{section_json}

Return {{"section": {{...}}}} with the same "id", "title" and "content_type",
and a complete, valid payload. RESPOND ONLY WITH THE JSON OBJECT."""
