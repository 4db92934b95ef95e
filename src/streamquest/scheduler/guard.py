"""Per-job overlap guard for scheduled tasks."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class JobGuard:
    """Runs named jobs, skipping a trigger while the same job is still running.

    Different job names never block each other. Failures are logged and
    swallowed so the next tick runs normally.
    """

    def __init__(self) -> None:
        self._running: set[str] = set()

    def is_running(self, name: str) -> bool:
        return name in self._running

    async def run(self, name: str, job: Callable[[], Awaitable[Any]]) -> Any:
        if name in self._running:
            logger.warning("Skipping job %s: previous run still in progress", name)
            return None

        self._running.add(name)
        started = time.monotonic()
        logger.info("Job %s started", name)
        try:
            result = await job()
        except Exception:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.exception("Job %s failed after %d ms", name, duration_ms)
            return None
        finally:
            self._running.discard(name)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Job %s completed in %d ms: %s", name, duration_ms, result)
        return result
