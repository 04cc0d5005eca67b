"""Per-camera frame sampling loop."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol
from uuid import UUID

import structlog

from ..shared.constants import DEFAULT_SENSITIVITY, interval_ms_for
from ..shared.dispatcher import AlertDispatcher
from ..shared.errors import SafePoolError
from ..shared.schemas.alert import AlertResponse
from .analysis import AnalysisClient
from .detection import DetectionStateMachine

logger = structlog.get_logger(__name__)


class FrameSource(Protocol):
    """Anything that can hand out the current frame as base64 JPEG."""

    async def capture(self) -> Optional[str]:
        ...

    def close(self) -> None:
        ...


@dataclass
class SamplerStats:
    """Counters for one sampler."""
    ticks: int = 0
    analyzed: int = 0
    skipped: int = 0
    dropped: int = 0
    alerts: int = 0
    errors: int = 0


class FrameSampler:
    """
    Samples one camera on a sensitivity-driven timer.

    Features:
    - One tick per interval (low 2s, medium 1s, high 0.5s)
    - Ticks are skipped while the source is not ready or analysis is paused
    - Single flight: a tick that fires while a classification is still
      outstanding is dropped
    - Owns the camera's DetectionStateMachine and dispatches its intents
    - Never stops on analysis or dispatch failures
    """

    def __init__(
        self,
        camera_id: UUID,
        facility_id: UUID,
        source: FrameSource,
        analysis_client: AnalysisClient,
        dispatcher: AlertDispatcher,
        sensitivity: str = DEFAULT_SENSITIVITY,
        underwater_threshold_seconds: float = 10,
        analysis_enabled: bool = True,
        create_incident: bool = True,
        name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.camera_id = camera_id
        self.facility_id = facility_id
        self.source = source
        self.analysis_client = analysis_client
        self.dispatcher = dispatcher
        self.sensitivity = sensitivity
        self.analysis_enabled = analysis_enabled
        self.create_incident = create_incident
        self.name = name or str(camera_id)
        self.clock = clock

        self.state = DetectionStateMachine(
            underwater_threshold_seconds=underwater_threshold_seconds
        )
        self.stats = SamplerStats()
        self.paused = False
        self.busy = False

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def interval_seconds(self) -> float:
        return interval_ms_for(self.sensitivity) / 1000

    @property
    def underwater_threshold_seconds(self) -> float:
        return self.state.underwater_threshold_seconds

    @underwater_threshold_seconds.setter
    def underwater_threshold_seconds(self, value: float) -> None:
        self.state.underwater_threshold_seconds = value

    @property
    def running(self) -> bool:
        return self._running

    def pause(self) -> None:
        """Pause the source; ticks are skipped until resume()."""
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def _now_ms(self) -> float:
        return self.clock() * 1000

    async def tick(self) -> Optional[AlertResponse]:
        """
        Run one sampling step.

        Returns:
            The persisted alert when this step raised one
        """
        self.stats.ticks += 1

        if self.paused or not self.analysis_enabled:
            self.stats.skipped += 1
            return None

        if self.busy:
            self.stats.dropped += 1
            logger.debug("sampler_tick_dropped", camera_id=str(self.camera_id))
            return None

        self.busy = True
        try:
            frame = await self.source.capture()
            if frame is None:
                self.stats.skipped += 1
                return None

            result = await self.analysis_client.analyze(frame)
            self.stats.analyzed += 1

            intent = self.state.observe(result, self._now_ms())
            if intent is None:
                return None

            logger.info(
                "alert_intent_raised",
                camera_id=str(self.camera_id),
                facility_id=str(self.facility_id),
                trigger_type=intent.trigger_type,
                severity=intent.severity,
                confidence=result.confidence,
            )
            try:
                alert = await self.dispatcher.dispatch(
                    intent,
                    facility_id=self.facility_id,
                    camera_id=self.camera_id,
                    create_incident=self.create_incident,
                )
            except SafePoolError as exc:
                self.stats.errors += 1
                logger.error(
                    "alert_dispatch_failed",
                    camera_id=str(self.camera_id),
                    error_type=type(exc).__name__,
                    error=exc.message,
                )
                return None

            self.stats.alerts += 1
            return alert
        finally:
            self.busy = False

    async def _run_tick(self) -> None:
        """Background tick; unexpected errors are logged, never raised."""
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.stats.errors += 1
            logger.exception("sampler_tick_error", camera_id=str(self.camera_id), error=str(exc))

    async def run(self) -> None:
        """Fire a tick every interval until stopped."""
        self._running = True
        logger.info(
            "sampler_started",
            camera_id=str(self.camera_id),
            name=self.name,
            interval_ms=int(self.interval_seconds * 1000),
        )

        try:
            while self._running:
                started = self.clock()

                if self.busy:
                    self.stats.ticks += 1
                    self.stats.dropped += 1
                else:
                    self._tick_task = asyncio.create_task(self._run_tick())

                elapsed = self.clock() - started
                await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
        except asyncio.CancelledError:
            logger.info("sampler_cancelled", camera_id=str(self.camera_id))
        finally:
            self._running = False

    def start(self) -> asyncio.Task:
        """Start the sampling loop as a task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop sampling, cancel any outstanding tick and release the source."""
        self._running = False

        for task in (self._task, self._tick_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._task = None
        self._tick_task = None
        self.busy = False
        await asyncio.to_thread(self.source.close)
        logger.info("sampler_stopped", camera_id=str(self.camera_id), **vars(self.stats))
