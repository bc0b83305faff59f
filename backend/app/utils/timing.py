"""Millisecond timers for the DEBUG-only phase logs in services and routers."""
import time
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Current high-resolution time in milliseconds."""
    return time.perf_counter() * 1000


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log the time since start_ms under label and return a fresh start time,
    so phases can be chained:

        t = now_ms()
        snapshot = store.load_snapshot()
        t = log_elapsed(t, "phase=load_catalog")
        results = score_catalog(snapshot, index, query)
        t = log_elapsed(t, "phase=score")
    """
    elapsed = now_ms() - start_ms
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")
    return now_ms()
