"""Tests for content_assembler — validate, pad, stamp, store."""
import pytest
from app.core.errors import IdentityCollision, MalformedSection
from app.models.lesson import SubTopic
from app.sections.base import FALLBACK_ENTRIES_KEY
from app.services.content_assembler import assemble, build_degraded_document, build_sections
from app.services.section_validator import validate


# ── Helper builders ───────────────────────────────────────────────────────────

def _sub_topic(batch_ts=1000, level="a1", title="Travel Vocab", index=0) -> SubTopic:
    return SubTopic(
        id=f"L1_{batch_ts}_{index}_travel-vocab",
        title=title,
        category="Vocabulary",
        level=level,
        batch_timestamp=batch_ts,
        index=index,
    )


def _raw_sections(examples=3):
    return [
        {"id": "title", "type": "title", "title": "Travel Vocab"},
        {"id": "intro", "content_type": "info_card", "content": "Words for your next trip."},
        {
            "id": "vocab",
            "content_type": "vocabulary_matching",
            "vocabulary_items": [
                {"word": "passport", "definition": "travel document",
                 "examples": [f"My passport is blue {k}." for k in range(examples)]},
            ],
        },
        {
            "id": "dialogue",
            "content_type": "full_dialogue",
            "dialogue_lines": ["Tutor: Do you have your passport?", "Student: Yes, here it is."],
        },
    ]


# ── build_sections ────────────────────────────────────────────────────────────

class TestBuildSections:
    def test_underfilled_section_is_padded(self):
        sections, ai, fb = build_sections(_raw_sections(3), "a1")
        vocab = sections[2]
        assert len(vocab["vocabulary_items"][0]["examples"]) == 5
        assert len(vocab[FALLBACK_ENTRIES_KEY]) == 2
        assert fb == 2

    def test_every_output_section_validates_ok(self):
        sections, _, _ = build_sections(_raw_sections(1), "a1")
        for section in sections:
            assert validate(section, "a1").ok, section

    def test_malformed_sections_collected_together(self):
        raw = _raw_sections(3)
        raw[1] = {"id": "intro", "content_type": "text", "content": ""}
        raw[3] = {"id": "dialogue", "content_type": "full_dialogue", "dialogue_lines": []}
        with pytest.raises(MalformedSection) as exc:
            build_sections(raw, "a1")
        assert exc.value.indices == [1, 3]

    def test_section_with_nothing_to_pad_is_requested_again(self):
        raw = _raw_sections(5)
        raw.append({"id": "phrases", "content_type": "list", "items": ["Say hi"], FALLBACK_ENTRIES_KEY: ["items/0"]})
        with pytest.raises(MalformedSection) as exc:
            build_sections(raw, "a1")
        assert exc.value.indices == [4]
        assert "cannot be padded" in exc.value.failures[0][1]

    def test_no_sections_is_malformed(self):
        with pytest.raises(MalformedSection):
            build_sections([], "a1")
        with pytest.raises(MalformedSection):
            build_sections({"sections": "oops"}, "a1")


# ── assemble ─────────────────────────────────────────────────────────────────

class TestAssemble:
    def test_document_stamped_with_parent_batch(self, document_store):
        st = _sub_topic(batch_ts=1000)
        doc = assemble(st, "L1", _raw_sections(), store=document_store)
        assert doc.sub_topic_id == st.id
        assert doc.batch_timestamp == 1000
        assert doc.lesson_id == "L1"
        assert doc.version == 1
        assert doc.degraded is False
        assert document_store.get(st.id).sub_topic_id == st.id

    def test_regeneration_in_place_bumps_version(self, document_store):
        st = _sub_topic()
        first = assemble(st, "L1", _raw_sections(), store=document_store)
        second = assemble(st, "L1", _raw_sections(5), store=document_store)
        assert second.sub_topic_id == first.sub_topic_id
        assert second.batch_timestamp == first.batch_timestamp
        assert second.version == 2
        assert document_store.get(st.id).version == 2

    def test_conflicting_batch_is_identity_collision(self, document_store):
        assemble(_sub_topic(batch_ts=1000), "L1", _raw_sections(), store=document_store)
        clash = _sub_topic(batch_ts=1000).model_copy(update={"batch_timestamp": 2000})
        with pytest.raises(IdentityCollision):
            assemble(clash, "L1", _raw_sections(), store=document_store)
        assert document_store.get(clash.id).batch_timestamp == 1000

    def test_malformed_document_not_stored(self, document_store):
        st = _sub_topic()
        raw = _raw_sections()
        raw[2]["content_type"] = "hologram"
        with pytest.raises(MalformedSection):
            assemble(st, "L1", raw, store=document_store)
        assert document_store.get(st.id) is None

    def test_entry_counts_recorded(self, document_store):
        doc = assemble(_sub_topic(level="a1"), "L1", _raw_sections(3), store=document_store)
        assert doc.fallback_entry_count == 2
        assert doc.ai_entry_count > 0
        assert 0 < doc.fallback_ratio < 1

    def test_dialogue_roles_tagged(self, document_store):
        doc = assemble(_sub_topic(), "L1", _raw_sections(), store=document_store)
        roles = [line["role"] for line in doc.sections[3]["dialogue_lines"]]
        assert roles == ["tutor", "student"]


# ── degraded documents ───────────────────────────────────────────────────────

class TestDegraded:
    def test_degraded_document_is_labelled_and_valid(self):
        st = _sub_topic()
        doc = build_degraded_document(st, "L1", "GenerationTimeout")
        assert doc.degraded is True
        assert doc.version == 0
        assert doc.sub_topic_id == st.id
        for section in doc.sections:
            assert validate(section, st.level).ok
