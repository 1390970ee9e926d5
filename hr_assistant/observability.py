"""
Latency tracing for collaborator calls.

Every call that leaves the process (record store, LLM classify/respond)
runs inside ``trace_span`` so a slow or failing backend shows up in the
logs as one line per call, even when the chat turn itself recovers with a
fallback reply.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("hr_assistant.trace")

# Spans slower than this are logged at WARNING
SLOW_SPAN_MS = 1000.0


@contextmanager
def trace_span(name: str, slow_ms: float = SLOW_SPAN_MS, **metadata):
    """
    Log how long the wrapped block took and whether it raised.

    Example log:
    [TRACE] record_store.check_overlap status=ok duration_ms=4.21 session=abc

    Metadata with a None value is left out. The exception, if any, is
    re-raised unchanged.
    """
    start = time.perf_counter()
    status = "ok"
    try:
        yield
    except BaseException as e:
        status = f"error:{type(e).__name__}"
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        meta = " ".join(f"{k}={v}" for k, v in metadata.items() if v is not None)
        level = logging.WARNING if duration_ms >= slow_ms else logging.INFO
        logger.log(level, "[TRACE] %s status=%s duration_ms=%.2f %s", name, status, duration_ms, meta)
