"""Worker service entry point for frame sampling and drowning detection."""

import asyncio
import signal
from typing import Optional

import structlog

from ..shared.db.database import close_db, init_db
from ..shared.logging_config import configure_logging
from ..shared.redis.client import close_redis
from .camera_manager import CameraManager, get_camera_manager
from .config import config

logger = structlog.get_logger(__name__)


class WorkerService:
    """
    Main worker service that manages camera sampling.

    Features:
    - Graceful startup and shutdown
    - Signal handling (SIGTERM, SIGINT)
    - Stats reporting
    """

    def __init__(self, stats_interval: float = 60):
        self.camera_manager: Optional[CameraManager] = None
        self.stats_interval = stats_interval
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the worker service."""
        logger.info(
            "worker_starting",
            log_level=config.LOG_LEVEL,
            max_cameras=config.MAX_CONCURRENT_CAMERAS,
            classifier_configured=config.classifier_configured(),
        )

        self._running = True
        await init_db()

        self.camera_manager = get_camera_manager()
        await self.camera_manager.start()

        logger.info("worker_started")

        stats_task = asyncio.create_task(self._stats_loop())

        await self._shutdown_event.wait()

        stats_task.cancel()
        try:
            await stats_task
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Stop the worker service."""
        if not self._running:
            return

        logger.info("worker_stopping")
        self._running = False

        if self.camera_manager:
            await self.camera_manager.stop()

        await close_redis()
        await close_db()

        self._shutdown_event.set()
        logger.info("worker_stopped")

    async def _stats_loop(self) -> None:
        """Periodically log stats."""
        while self._running:
            try:
                await asyncio.sleep(self.stats_interval)

                if self.camera_manager:
                    stats = self.camera_manager.get_camera_stats()
                    logger.info(
                        "worker_stats",
                        total=stats["total"],
                        sampling=stats["sampling"],
                        paused=stats["paused"],
                        alerts=stats["alerts"],
                    )

            except asyncio.CancelledError:
                break

    def handle_signal(self, signum: int) -> None:
        """Handle shutdown signals."""
        logger.info("worker_signal_received", signal=signum)
        asyncio.create_task(self.stop())


async def main() -> None:
    """Main entry point."""
    configure_logging(config.LOG_LEVEL, json_logs=config.is_production())
    logger.info("worker_mode", production=config.is_production())

    worker = WorkerService()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: worker.handle_signal(s))

    try:
        await worker.start()
    except Exception as exc:
        logger.exception("worker_fatal_error", error=str(exc))
        raise
    finally:
        await worker.stop()

    logger.info("worker_shutdown_complete")


def run() -> None:
    """Run the worker service."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
