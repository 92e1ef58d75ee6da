from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict

from chatrelay.app.observability.contracts import RelayTrace


def elapsed_ms(started_at: float) -> int:
    return max(int((time.perf_counter() - started_at) * 1000), 0)


def emit_relay_event(
    trace: RelayTrace,
    logger: logging.Logger | None = None,
) -> None:
    active_logger = logger or logging.getLogger(__name__)
    active_logger.info("relay_event %s", json.dumps(asdict(trace), sort_keys=True))
