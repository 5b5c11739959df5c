import asyncio
import logging
import signal
from typing import Optional

from focus_drift.config.settings import settings
from focus_drift.services.database import DatabaseManager
from focus_drift.services.errors import RunnerError
from focus_drift.services.sampler import ActivitySampler

logger = logging.getLogger(__name__)

class ServiceRunner:
    """Background sampling loop with graceful shutdown handling

    Errors from a scheduled sample are logged and swallowed; only a run of
    consecutive failures stops the service.
    """

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        sampler: Optional[ActivitySampler] = None,
        interval_seconds: Optional[float] = None,
        max_errors: Optional[int] = None,
    ):
        self.running = False
        # Created inside run() so it belongs to the running loop
        self.shutdown_event: Optional[asyncio.Event] = None

        self.db = db or DatabaseManager()
        self.sampler = sampler or ActivitySampler(self.db)
        self.interval_seconds = interval_seconds or settings.SAMPLE_INTERVAL_SECONDS
        self.max_errors = max_errors or settings.MAX_ERRORS

        self.error_count = 0
        self.samples_taken = 0

    def _setup_signal_handlers(self):
        """Set up handlers for system signals"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(
                    sig,
                    lambda s=sig: asyncio.create_task(self.shutdown(s))
                )
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

    async def shutdown(self, sig: Optional[signal.Signals] = None):
        """Gracefully shutdown the service"""
        if sig:
            logger.info(f"Received exit signal {sig.name}...")
        logger.info("Initiating graceful shutdown...")
        self.running = False
        if self.shutdown_event is not None:
            self.shutdown_event.set()

    async def run_once(self) -> bool:
        """Take one sample, returning False if it failed"""
        try:
            outcome = await self.sampler.sample_once()
            self.samples_taken += 1
            self.error_count = 0
            logger.debug(
                f"Sample {self.samples_taken}: {outcome.sample.app} "
                f"({'new' if outcome.created else 'extended'})"
            )
            return True
        except Exception as e:
            self.error_count += 1
            logger.error(f"Sampling failed ({self.error_count}/{self.max_errors}): {e}", exc_info=True)
            return False

    async def run(self):
        """Run the service"""
        logger.info(f"Starting background sampling every {self.interval_seconds}s...")
        self.shutdown_event = asyncio.Event()
        self._setup_signal_handlers()
        self.running = True

        try:
            while self.running:
                await self.run_once()

                if self.error_count >= self.max_errors:
                    logger.critical(f"Too many errors ({self.error_count}), initiating shutdown...")
                    await self.shutdown()
                    raise RunnerError(f"Stopped after {self.error_count} consecutive sampling errors")

                # Wait for next interval or shutdown
                try:
                    await asyncio.wait_for(
                        self.shutdown_event.wait(),
                        timeout=self.interval_seconds
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            if self.running:
                await self.shutdown()
            logger.info(f"Background sampling stopped after {self.samples_taken} samples")
