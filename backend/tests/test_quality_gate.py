"""Tests for quality_gate.run_document_quality_gate() — all 6 checks."""
import pytest
from app.utils.quality_gate import jaccard, run_document_quality_gate


# ── Helper builders ───────────────────────────────────────────────────────────

def _doc(sections, ai=10, fb=0, degraded=False) -> dict:
    return {
        "sections": sections,
        "ai_entry_count": ai,
        "fallback_entry_count": fb,
        "degraded": degraded,
    }


def _dialogue(*speakers) -> dict:
    return {
        "id": "dlg",
        "content_type": "full_dialogue",
        "dialogue_lines": [{"character": s, "text": f"line {i}"} for i, s in enumerate(speakers)],
    }


# ── jaccard ──────────────────────────────────────────────────────────────────

class TestJaccard:
    def test_identical(self):
        assert jaccard("book a room", "Book a room") == 1.0

    def test_disjoint(self):
        assert jaccard("hello there", "goodbye now") == 0.0

    def test_empty(self):
        assert jaccard("", "anything") == 0.0


# ── Checks ───────────────────────────────────────────────────────────────────

class TestDocumentGate:
    def test_clean_document_passes(self):
        sections = [
            {"id": "warmup", "content_type": "list",
             "items": ["Where did you travel last year?", "What do you pack first?", "Do you like airports?"]},
            _dialogue("Tutor", "Student"),
        ]
        passed, failures = run_document_quality_gate(_doc(sections))
        assert passed is True, failures
        assert failures == []

    def test_empty_document(self):
        passed, failures = run_document_quality_gate(_doc([]))
        assert passed is False
        assert any(f.startswith("EMPTY") for f in failures)

    def test_degraded_document(self):
        _, failures = run_document_quality_gate(_doc([_dialogue("A", "B")], degraded=True))
        assert any(f.startswith("DEGRADED") for f in failures)

    @pytest.mark.parametrize("ai,fb,flagged", [(10, 0, False), (5, 5, False), (4, 6, True)])
    def test_fallback_ratio(self, ai, fb, flagged):
        _, failures = run_document_quality_gate(_doc([_dialogue("A", "B")], ai=ai, fb=fb))
        assert any(f.startswith("FALLBACK_RATIO") for f in failures) is flagged

    def test_fallback_ratio_threshold_is_configurable(self):
        _, failures = run_document_quality_gate(_doc([_dialogue("A", "B")], ai=8, fb=2), fallback_ratio_warn=0.1)
        assert any(f.startswith("FALLBACK_RATIO") for f in failures)

    def test_near_duplicate_entries(self):
        section = {"id": "warmup", "content_type": "list",
                   "items": ["I go to the airport by bus", "I go to the airport by bus today"]}
        _, failures = run_document_quality_gate(_doc([section]))
        assert any("DUPLICATE" in f and "warmup" in f for f in failures)

    def test_repeated_vocabulary_word(self):
        section = {"id": "vocab", "content_type": "vocabulary_matching", "vocabulary_items": [
            {"word": "Gate", "definition": "d", "examples": []},
            {"word": "gate", "definition": "d", "examples": []},
        ]}
        _, failures = run_document_quality_gate(_doc([section]))
        assert any(f.startswith("VOCAB_REPEAT") for f in failures)

    def test_one_speaker_dialogue(self):
        _, failures = run_document_quality_gate(_doc([_dialogue("Tutor", "tutor")]))
        assert any(f.startswith("ONE_SPEAKER") for f in failures)
