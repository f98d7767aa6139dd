"""Word-substitution templates used for fallback-origin entries.

Kept deliberately generic and recognisable so diagnostics (and tutors) can
tell synthesized filler from AI-authored content.
"""

VOCABULARY_EXAMPLE_TEMPLATES = [
    'The word "{word}" is used often in everyday conversation.',
    'Understanding different types of "{word}" helps you speak more naturally.',
    'Every use of "{word}" has its own meaning in context.',
    'Can you make your own sentence with "{word}"?',
    'The concept of "{word}" is important in this lesson.',
    'Try to use "{word}" when you describe your day.',
    'Listen for "{word}" the next time you hear a conversation.',
]

MATCHING_QUESTION_TEMPLATES = [
    "Review: {item}",
    "Answer again in your own words: {item}",
    "Quick check: {item}",
]

LIST_ITEM_TEMPLATES = [
    "Practice: {item}",
    "Give your own example for: {item}",
    "Discuss with your tutor: {item}",
]

EXAMPLE_SENTENCE_TEMPLATES = [
    "Read aloud: {item}",
    "Repeat slowly: {item}",
    "Write it down and underline the key word: {item}",
]
