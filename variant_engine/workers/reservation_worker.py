"""
Reservation Worker - periodic release of expired stock holds
"""
import asyncio
from typing import Optional

from variant_engine.core.config import config
from variant_engine.core.logger import logger
from variant_engine.models.inventory import ReservationSweepResult
from variant_engine.services.inventory_ledger import InventoryLedger


class ReservationWorker:
    """Runs the ledger's expiry sweep every ``interval_seconds``"""

    def __init__(self, ledger: InventoryLedger, interval_seconds: Optional[int] = None):
        self.ledger = ledger
        self.interval_seconds = interval_seconds or config.reservation_sweep_interval_seconds
        self.is_running = False
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def run_once(self) -> Optional[ReservationSweepResult]:
        """One sweep; returns None when the previous one is still running."""
        if self._lock.locked():
            logger.warning("Reservation sweep still running, skipping this run")
            return None
        async with self._lock:
            return await self.ledger.expire_reservations()

    async def _loop(self):
        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                # A failed run is retried on the next tick
                logger.error(f"Reservation sweep failed: {str(e)}", error=e)
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        """Start the worker loop on the running event loop"""
        if self._task is not None:
            return
        logger.info(
            "Reservation worker starting...",
            metadata={"interval_seconds": self.interval_seconds},
        )
        self.is_running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        """Gracefully stop the worker"""
        logger.info("Stopping reservation worker...")
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reservation worker stopped")
