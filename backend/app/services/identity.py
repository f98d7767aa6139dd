"""
Sub-topic identity — mints collision-free ids for AI-proposed sub-topics.

    sub_topic_id = f"{lesson_id}_{batch_timestamp}_{index}_{slug(title)}"

  lesson_id        traceability back to the parent lesson
  batch_timestamp  integer milliseconds, captured once per generation call;
                   two regenerations of one lesson never share it
  index            position in the batch; separates titles that slug alike

Slugs never contain "_", so an id can always be split from the right.
"""
from __future__ import annotations

import hashlib
import re
import time
import unicodedata
from dataclasses import dataclass
from typing import Optional

from app.core.errors import IdentityCollision, InvalidBatchTimestamp

MAX_SLUG_LENGTH = 48
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def now_ms() -> int:
    return int(time.time() * 1000)


def slugify(title: str) -> str:
    """Fold a human title to a lowercase ASCII slug of [a-z0-9-]."""
    folded = unicodedata.normalize("NFKD", title or "")
    folded = folded.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_ALNUM_RE.sub("-", folded).strip("-")
    if len(slug) > MAX_SLUG_LENGTH:
        slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    if slug:
        return slug
    # Non-Latin or empty titles: stay deterministic with a content hash
    digest = hashlib.md5((title or "").strip().encode("utf-8")).hexdigest()[:8]
    return f"t-{digest}"


def check_batch_timestamp(batch_timestamp: Optional[int], last_batch_timestamp: Optional[int]) -> int:
    """Fail closed on a missing or non-monotonic batch timestamp."""
    if batch_timestamp is None or isinstance(batch_timestamp, bool):
        raise InvalidBatchTimestamp("batch timestamp is missing")
    if not isinstance(batch_timestamp, int) or batch_timestamp <= 0:
        raise InvalidBatchTimestamp(f"batch timestamp {batch_timestamp!r} is not a positive integer")
    if last_batch_timestamp is not None and batch_timestamp <= last_batch_timestamp:
        raise InvalidBatchTimestamp(
            f"batch timestamp {batch_timestamp} is not newer than last batch {last_batch_timestamp}"
        )
    return batch_timestamp


def mint(lesson_id: str, batch_timestamp: int, index: int, title: str) -> str:
    if not lesson_id:
        raise ValueError("lesson_id is required")
    if index < 0:
        raise ValueError(f"index must be >= 0, got {index}")
    check_batch_timestamp(batch_timestamp, None)
    return f"{lesson_id}_{batch_timestamp}_{index}_{slugify(title)}"


def mint_batch(
    lesson_id: str,
    batch_timestamp: Optional[int],
    titles: list[str],
    last_batch_timestamp: Optional[int] = None,
) -> list[str]:
    """Mint ids for a whole batch. Raises rather than dedupes on any collision."""
    check_batch_timestamp(batch_timestamp, last_batch_timestamp)
    ids = [mint(lesson_id, batch_timestamp, i, title) for i, title in enumerate(titles)]
    if len(set(ids)) != len(ids):
        raise IdentityCollision(f"duplicate sub-topic ids minted for lesson {lesson_id}")
    return ids


@dataclass(frozen=True)
class SubTopicIdParts:
    lesson_id: str
    batch_timestamp: int
    index: int
    slug: str


def parse_sub_topic_id(sub_topic_id: str) -> SubTopicIdParts | None:
    """Split an id minted by ``mint``. Returns None for any other format."""
    parts = (sub_topic_id or "").rsplit("_", 3)
    if len(parts) != 4:
        return None
    lesson_id, ts, index, slug = parts
    if not lesson_id or not ts.isdigit() or not index.isdigit() or not slug:
        return None
    return SubTopicIdParts(lesson_id=lesson_id, batch_timestamp=int(ts), index=int(index), slug=slug)
