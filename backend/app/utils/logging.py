"""
PdfDrop — Logger, request ids and per-stage duration tracking.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Generator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("pdfdrop")


def new_request_id() -> str:
    """Short id used to correlate every log line of one request."""
    return uuid.uuid4().hex[:12]


@contextmanager
def step_timer(step_name: str, request_id: str = "-") -> Generator[None, None, None]:
    """Log the start, duration and outcome of one conversion stage."""
    logger.info("[%s] ▶ %s — started", request_id, step_name)
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000
        code = getattr(exc, "code", type(exc).__name__)
        logger.warning("[%s] ✗ %s — failed after %.0f ms (%s)", request_id, step_name, elapsed_ms, code)
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] ✔ %s — completed in %.0f ms", request_id, step_name, elapsed_ms)
