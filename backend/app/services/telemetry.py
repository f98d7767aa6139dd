import time
import json
import logging
import asyncio
import os
from contextlib import contextmanager
from typing import Optional
from functools import wraps

logger = logging.getLogger("lessoncraft.telemetry")

# path / body parameters copied onto route events when present
_ID_PARAMS = ("learner_id", "lesson_id", "sub_topic_id")


def emit_event(event: str, *, route: str, version: str = "v1", learner_id: Optional[str] = None,
               lesson_id: Optional[str] = None, sub_topic_id: Optional[str] = None,
               error_type: Optional[str] = None, latency_ms: Optional[int] = None,
               ok: Optional[bool] = None, ai_entries: Optional[int] = None,
               fallback_entries: Optional[int] = None, count: Optional[int] = None):
    payload = {
        "event": event,
        "route": route,
        "version": version,
        "learner_id": learner_id,
        "lesson_id": lesson_id,
        "sub_topic_id": sub_topic_id,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        "ai_entries": ai_entries,
        "fallback_entries": fallback_entries,
        "count": count,
        "ts": time.time(),
    }
    # log as single-line JSON for easy parsing in prod
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))

    # persist to Supabase (best-effort, never block the request)
    if os.getenv("ENABLE_TELEMETRY_DB", "0") != "1":
        return

    try:
        from app.core.deps import get_supabase_client
        sb = get_supabase_client()
        sb.table("telemetry_events").insert({k: v for k, v in payload.items() if k != "ts"}).execute()
    except Exception as e:
        logger.error("[telemetry.emit_event] %s", e, exc_info=True)


@contextmanager
def _timed_call(route: str, version: str, kwargs: dict):
    ids = {k: kwargs[k] for k in _ID_PARAMS if isinstance(kwargs.get(k), str)}
    t0 = time.perf_counter()
    outcome = {"ok": True, "error_type": None}
    try:
        yield
    except Exception as e:
        outcome = {"ok": False, "error_type": e.__class__.__name__}
        raise
    finally:
        latency = int((time.perf_counter() - t0) * 1000)
        emit_event("api_call", route=route, version=version, latency_ms=latency, **outcome, **ids)


def instrument(route: str, version: str = "v1"):
    """Emit an ``api_call`` event (latency, outcome, ids) around a route handler."""
    def deco(fn):
        if asyncio.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                with _timed_call(route, version, kwargs):
                    return await fn(*args, **kwargs)
            return wrapped_async

        @wraps(fn)
        def wrapped(*args, **kwargs):
            with _timed_call(route, version, kwargs):
                return fn(*args, **kwargs)
        return wrapped
    return deco
