import asyncio
import logging
from typing import Optional

from mailtriage.services.email.pipeline import PassReport, TriagePipeline

logger = logging.getLogger(__name__)


class TriageScheduler:
    """
    Runs one pass immediately, then one every `interval_seconds` until stopped.

    Passes run in a worker thread and are awaited, and a lock serializes
    scheduled passes with manually triggered ones, so two passes never
    overlap within this process.
    """

    def __init__(self, pipeline: TriagePipeline, interval_seconds: float = 120):
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.is_running = False
        self.pass_count = 0
        self.last_report: Optional[PassReport] = None
        self._stop = asyncio.Event()
        self._lock = asyncio.Lock()

    async def run_pass(self) -> Optional[PassReport]:
        async with self._lock:
            self.pass_count += 1
            try:
                report = await asyncio.to_thread(self.pipeline.run_pass)
            except Exception:
                logger.exception("Error in triage pass")
                return None
            self.last_report = report
            return report

    async def start_monitoring(self, max_passes: Optional[int] = None):
        """Starts the polling loop. Returns once stop() is called (or after max_passes)."""
        self.is_running = True
        self._stop.clear()
        logger.info("Worker started, checking for new emails every %s seconds", self.interval_seconds)

        try:
            while not self._stop.is_set():
                logger.info("--- Checking for new emails ---")
                await self.run_pass()
                if max_passes is not None and self.pass_count >= max_passes:
                    break
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.is_running = False
            logger.info("Worker stopped after %d passes.", self.pass_count)

    def stop(self):
        self._stop.set()
