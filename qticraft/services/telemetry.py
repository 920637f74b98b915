import time
import json
import logging
import inspect
from typing import Optional
from functools import wraps

from qticraft.core.config import get_settings

logger = logging.getLogger("qticraft.telemetry")


def emit_event(event: str, *, stage: str, identifier: Optional[str] = None,
               kind: Optional[str] = None, count: Optional[int] = None,
               error_type: Optional[str] = None, latency_ms: Optional[int] = None,
               ok: Optional[bool] = None):
    if not get_settings().enable_telemetry_log:
        return
    payload = {
        "event": event,
        "stage": stage,
        "identifier": identifier,
        "kind": kind,
        "count": count,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        "ts": time.time(),
    }
    # single-line JSON so log shippers can parse it
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))


def _record_call(stage: str, started: float, error: Optional[BaseException]):
    emit_event(
        "pipeline_call",
        stage=stage,
        latency_ms=int((time.monotonic() - started) * 1000),
        ok=error is None,
        error_type=type(error).__name__ if error is not None else None,
    )


def instrument(stage: str):
    """Emit one ``pipeline_call`` event per call with latency and outcome."""
    def deco(fn):
        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                started = time.monotonic()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    _record_call(stage, started, e)
                    raise
                _record_call(stage, started, None)
                return result
            return wrapped_async

        @wraps(fn)
        def wrapped(*args, **kwargs):
            started = time.monotonic()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _record_call(stage, started, e)
                raise
            _record_call(stage, started, None)
            return result
        return wrapped
    return deco
