#!/usr/bin/env python3
"""
Move legacy completion records onto current sub-topic ids.

A completion is "legacy" when its sub_topic_id predates the lesson-prefixed
scheme. For each one the current sub-topics are searched for an id ending in
"_<legacy id>":

  exactly one match  → migrated (new record inserted, legacy record removed)
  no match           → skipped, left untouched
  match already done → merged (legacy record removed, reported with its fields)
  several matches    → reported as ambiguous, left untouched

Audit real ids first (scripts/diagnose_completion_mismatch.py) and pass
--current-id-pattern when the default detector does not fit the deployment.

Usage:
    cd backend && LESSONCRAFT_STORE=supabase python scripts/migrate_legacy_completions.py --all --dry-run
    cd backend && python scripts/migrate_legacy_completions.py --learner-id s-123 --learner-id s-456
"""
import argparse
import json
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from app.services.reconciler import Reconciler, lesson_prefix_detector, regex_detector  # noqa: E402

logger = logging.getLogger("lessoncraft.scripts.migrate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migrate legacy completion records to current sub-topic ids")
    who = parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--learner-id", action="append", dest="learner_ids", help="learner to migrate (repeatable)")
    who.add_argument("--all", action="store_true", help="every learner with completion records")
    parser.add_argument("--dry-run", action="store_true", help="report what would move without writing")
    parser.add_argument(
        "--current-id-pattern",
        help="regex matching CURRENT-format ids; anything else is treated as legacy",
    )
    return parser


def run(argv=None, reconciler: Reconciler | None = None) -> list[dict]:
    args = build_parser().parse_args(argv)
    reconciler = reconciler or Reconciler()
    detector = regex_detector(args.current_id_pattern) if args.current_id_pattern else lesson_prefix_detector

    learner_ids = args.learner_ids or reconciler.completions.list_learners()
    summaries = []
    for learner_id in learner_ids:
        report = reconciler.migrate_legacy(learner_id, detector=detector, dry_run=args.dry_run)
        summary = report.summary()
        summary["moves"] = [{"from": old, "to": new} for old, new in report.migrated]
        summary["merges"] = [
            {"from": record.sub_topic_id, "to": new, "dropped": record.to_dict()} for record, new in report.merged
        ]
        summary["ambiguous_ids"] = {a.legacy_id: a.candidates for a in report.ambiguous}
        summaries.append(summary)
    return summaries


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    summaries = run()
    print(json.dumps(summaries, indent=2))

    totals = {k: sum(s[k] for s in summaries) for k in ("migrated", "skipped", "merged", "ambiguous")}
    print(f"\nlearners={len(summaries)} migrated={totals['migrated']} "
          f"skipped={totals['skipped']} merged={totals['merged']} ambiguous={totals['ambiguous']}")
    if totals["merged"]:
        print("⚠️  merged legacy records were dropped in favour of an existing completion; see \"merges\"")
    if totals["ambiguous"]:
        print("⚠️  ambiguous records were left untouched; resolve them by hand")


if __name__ == "__main__":
    main()
