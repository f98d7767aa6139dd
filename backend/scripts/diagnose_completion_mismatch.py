#!/usr/bin/env python3
"""
Completion mismatch diagnostics (read-only).

For each learner:
  - completions whose sub-topic is in a current lesson list
  - orphaned completions (retired or legacy ids), split into lesson-prefixed
    ids from an earlier batch and ids in no recognised format
  - AI-authored vs fallback-origin entry counts of the stored documents

Usage:
    cd backend && LESSONCRAFT_STORE=supabase python scripts/diagnose_completion_mismatch.py --learner-id s-123
    cd backend && python scripts/diagnose_completion_mismatch.py --all
"""
import argparse
import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from app.services.identity import parse_sub_topic_id  # noqa: E402
from app.services.lesson_store import DocumentStore, get_document_store  # noqa: E402
from app.services.reconciler import Reconciler  # noqa: E402


def diagnose_learner(learner_id: str, reconciler: Reconciler, documents: DocumentStore) -> dict:
    lessons = reconciler.lessons.list_learner(learner_id)
    records = reconciler.completions.list_learner(learner_id)
    orphaned = reconciler.orphaned_completions(learner_id)

    retired, unrecognised = [], []
    for record in orphaned:
        (retired if parse_sub_topic_id(record.sub_topic_id) else unrecognised).append(record.sub_topic_id)

    ai_total = fb_total = degraded = 0
    for lesson in lessons:
        for st in lesson.sub_topics:
            doc = documents.get(st.id)
            if doc is None:
                continue
            ai_total += doc.ai_entry_count
            fb_total += doc.fallback_entry_count
            degraded += int(doc.degraded)

    entries = ai_total + fb_total
    return {
        "learner_id": learner_id,
        "lessons": len(lessons),
        "completions": len(records),
        "current_completions": len(records) - len(orphaned),
        "orphaned_retired": retired,
        "orphaned_unrecognised": unrecognised,
        "ai_entries": ai_total,
        "fallback_entries": fb_total,
        "fallback_ratio": round(fb_total / entries, 3) if entries else 0.0,
        "degraded_documents": degraded,
    }


def run(argv=None, reconciler: Reconciler | None = None, documents: DocumentStore | None = None) -> list[dict]:
    parser = argparse.ArgumentParser(description="Report orphaned completions and fallback ratios")
    who = parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--learner-id", action="append", dest="learner_ids")
    who.add_argument("--all", action="store_true")
    args = parser.parse_args(argv)

    reconciler = reconciler or Reconciler()
    documents = documents or get_document_store()
    learner_ids = args.learner_ids or reconciler.completions.list_learners()
    return [diagnose_learner(lid, reconciler, documents) for lid in learner_ids]


def main():
    reports = run()
    print(json.dumps(reports, indent=2))
    flagged = [r["learner_id"] for r in reports if r["orphaned_unrecognised"]]
    if flagged:
        print(f"\n⚠️  {len(flagged)} learner(s) hold ids in no recognised format: {', '.join(flagged)}")
        print("   audit them before running migrate_legacy_completions.py")


if __name__ == "__main__":
    main()
