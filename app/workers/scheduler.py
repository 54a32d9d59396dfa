"""
Worker Scheduler

Runs the Shopify order sync on a fixed interval (every 2 minutes by default).
Each due run is started as its own task, so a slow run does not delay the next
tick and two runs may overlap; the upserts make that safe.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Interval scheduler for the polling order sync."""

    def __init__(
        self,
        run_sync: Callable[[], Awaitable[Dict[str, Any]]],
        interval: float = 120,
        first_delay: float = 0,
        tick: Optional[float] = None,
    ):
        self.run_sync = run_sync
        self.interval = interval
        self.first_delay = first_delay
        self.tick = tick if tick is not None else min(60, interval)
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[Dict[str, Any]] = None
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._runs: set = set()

    async def run_once(self) -> Dict[str, Any]:
        """Run one sync and log the outcome. Never raises."""
        self.last_run = datetime.now(timezone.utc)
        try:
            logger.info("Starting scheduled order sync")
            result = await self.run_sync()
            self.last_result = result
            if result.get("failed"):
                logger.warning("Order sync: %s of %s store(s) failed", result.get("failed"), result.get("stores"))
            return result
        except Exception as e:
            logger.exception("Order sync crashed: %s", e)
            self.last_result = {
                "success": False,
                "message": f"Sync crashed: {str(e)}",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            return self.last_result

    async def _loop(self) -> None:
        if self.first_delay:
            await asyncio.sleep(self.first_delay)
        logger.info("Order sync scheduler started (interval=%ss)", self.interval)
        next_due = time.monotonic()
        while self.running:
            now = time.monotonic()
            if now >= next_due:
                next_due = now + self.interval
                task = asyncio.create_task(self.run_once())
                self._runs.add(task)
                task.add_done_callback(self._runs.discard)
            await asyncio.sleep(max(0, min(self.tick, next_due - time.monotonic())))

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("✅ Background order sync scheduled")

    async def stop(self) -> None:
        """Stop the loop and cancel in-flight runs."""
        self.running = False
        tasks = [t for t in [self._task, *self._runs] if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("⏹️ Order sync scheduler stopped")

    def get_status(self) -> Dict[str, Any]:
        next_run = self.last_run + timedelta(seconds=self.interval) if self.last_run else None
        return {
            "running": self.running,
            "intervalSeconds": self.interval,
            "lastRun": self.last_run.isoformat() if self.last_run else None,
            "nextRun": next_run.isoformat() if next_run else None,
            "lastResult": self.last_result,
        }
