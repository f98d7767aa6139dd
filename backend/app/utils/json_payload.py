"""json_payload.py — turn raw model output into a JSON object, or fail typed.

Models wrap JSON in markdown fences, add preamble text, leave trailing commas
and occasionally drop commas between objects. Repairs are applied in two
passes; anything still unparsable raises MalformedPayload.
"""
import json
import logging
import re

from app.core.errors import MalformedPayload

logger = logging.getLogger("lessoncraft.json_payload")

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_json_response(content: str) -> str:
    """Strip markdown fences and any text outside the outermost object."""
    content = (content or "").strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    content = content.strip()

    first, last = content.find("{"), content.rfind("}")
    if first != -1 and last > first:
        content = content[first:last + 1]
    return content


def _repair(content: str) -> str:
    fixed = _CONTROL_CHARS_RE.sub("", content)
    fixed = _TRAILING_COMMA_RE.sub(r"\1", fixed)
    fixed = re.sub(r"}(\s*){", r"},\1{", fixed)
    fixed = re.sub(r"](\s*)\[", r"],\1[", fixed)
    return fixed


def parse_json_payload(content: str) -> dict:
    cleaned = clean_json_response(content)
    if not cleaned:
        raise MalformedPayload("empty response from model")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.info("[json_payload] initial parse failed, attempting repair")
        try:
            data = json.loads(_repair(cleaned))
        except json.JSONDecodeError as exc:
            # model text stays in the server log, never in the error message
            logger.warning("[json_payload] unparsable model output: %r", cleaned[:200])
            raise MalformedPayload("model response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedPayload(f"expected a JSON object, got {type(data).__name__}")
    return data
