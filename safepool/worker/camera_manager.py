"""Multi-camera orchestration with database-backed configuration."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..shared.db.database import get_db
from ..shared.db.models import SourceType
from ..shared.db.repositories.cameras import GlobalCameraRepository, MonitoredCamera
from ..shared.dispatcher import AlertDispatcher
from .analysis import AnalysisClient, get_analysis_client
from .capture import VideoSource
from .config import config
from .sampler import FrameSampler, FrameSource

logger = structlog.get_logger(__name__)

SourceFactory = Callable[[MonitoredCamera], FrameSource]


def default_source_factory(monitored: MonitoredCamera) -> FrameSource:
    """Open the camera's stream URL; file sources loop."""
    camera = monitored.camera
    return VideoSource(
        camera.stream_url,
        loop_file=camera.source_type in (SourceType.FILE, SourceType.UPLOAD),
    )


@dataclass
class CameraContext:
    """Runtime context for a camera."""
    camera_id: UUID
    facility_id: UUID
    name: str
    source_type: SourceType
    stream_url: Optional[str]
    sampler: FrameSampler


class CameraManager:
    """
    Manages one FrameSampler per active camera.

    Features:
    - Loads camera configurations and facility sensitivity from the database
    - Refreshes the camera list periodically
    - Updates interval, threshold and analysis pause in place
    - Restarts a camera's sampler when its source changes
    - Handles graceful shutdown
    """

    def __init__(
        self,
        analysis_client: Optional[AnalysisClient] = None,
        dispatcher: Optional[AlertDispatcher] = None,
        session_scope=get_db,
        source_factory: SourceFactory = default_source_factory,
        refresh_interval: float = config.CAMERA_REFRESH_INTERVAL,
        max_cameras: int = config.MAX_CONCURRENT_CAMERAS,
    ):
        self.analysis_client = analysis_client or get_analysis_client()
        self.dispatcher = dispatcher or AlertDispatcher(session_scope=session_scope)
        self.session_scope = session_scope
        self.source_factory = source_factory
        self.refresh_interval = refresh_interval
        self.max_cameras = max_cameras

        self.cameras: Dict[UUID, CameraContext] = {}
        self._running = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Start the camera manager."""
        if self._running:
            return

        self._running = True
        logger.info("camera_manager_starting", refresh_interval=self.refresh_interval)

        await self.refresh_cameras()
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop the camera manager."""
        if not self._running:
            return

        self._running = False

        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass

        async with self._lock:
            for camera_id in list(self.cameras.keys()):
                await self._stop_camera(camera_id)

        await self.analysis_client.close()
        logger.info("camera_manager_stopped")

    async def _load_cameras(self) -> List[MonitoredCamera]:
        async with self.session_scope() as session:
            return await GlobalCameraRepository(session).get_active_cameras()

    async def refresh_cameras(self) -> None:
        """Refresh camera list from database."""
        try:
            monitored = await self._load_cameras()
        except SQLAlchemyError as exc:
            logger.error("camera_refresh_failed", error=str(exc))
            return

        if len(monitored) > self.max_cameras:
            logger.warning(
                "camera_limit_reached",
                active=len(monitored),
                limit=self.max_cameras,
            )
            monitored = monitored[: self.max_cameras]

        async with self._lock:
            current_ids = set(self.cameras.keys())
            new_ids = {m.camera.id for m in monitored}

            for camera_id in current_ids - new_ids:
                logger.info("camera_removed", camera_id=str(camera_id))
                await self._stop_camera(camera_id)

            for item in monitored:
                if item.camera.id in current_ids:
                    await self._update_camera(item)
                else:
                    logger.info("camera_added", camera_id=str(item.camera.id), name=item.camera.name)
                    await self._add_camera(item)

        logger.info("cameras_refreshed", managed=len(self.cameras))

    async def _add_camera(self, monitored: MonitoredCamera) -> None:
        """Add a new camera to management."""
        camera = monitored.camera
        sampler = FrameSampler(
            camera_id=camera.id,
            facility_id=camera.facility_id,
            source=self.source_factory(monitored),
            analysis_client=self.analysis_client,
            dispatcher=self.dispatcher,
            sensitivity=monitored.sensitivity,
            underwater_threshold_seconds=camera.underwater_threshold_seconds,
            analysis_enabled=camera.analysis_enabled,
            create_incident=config.CREATE_INCIDENTS,
            name=camera.name,
        )
        self.cameras[camera.id] = CameraContext(
            camera_id=camera.id,
            facility_id=camera.facility_id,
            name=camera.name,
            source_type=camera.source_type,
            stream_url=camera.stream_url,
            sampler=sampler,
        )
        sampler.start()
        await self._update_camera_status(camera.id, "online")

    async def _update_camera(self, monitored: MonitoredCamera) -> None:
        """Update camera configuration if changed."""
        camera = monitored.camera
        context = self.cameras.get(camera.id)
        if not context:
            return

        source_changed = (
            context.stream_url != camera.stream_url
            or context.source_type != camera.source_type
            or context.facility_id != camera.facility_id
        )

        if source_changed:
            logger.info("camera_source_changed", camera_id=str(camera.id))
            await self._stop_camera(camera.id)
            await self._add_camera(monitored)
            return

        sampler = context.sampler
        sampler.sensitivity = monitored.sensitivity
        sampler.underwater_threshold_seconds = camera.underwater_threshold_seconds
        sampler.analysis_enabled = camera.analysis_enabled
        context.name = camera.name

    async def _stop_camera(self, camera_id: UUID) -> None:
        """Stop a camera's sampler."""
        context = self.cameras.pop(camera_id, None)
        if not context:
            return

        await context.sampler.stop()
        await self._update_camera_status(camera_id, "offline")

    async def _update_camera_status(self, camera_id: UUID, status: str) -> None:
        """Update camera status in database."""
        try:
            async with self.session_scope() as session:
                await GlobalCameraRepository(session).update_status(camera_id, status)
        except SQLAlchemyError as exc:
            logger.warning("camera_status_update_failed", camera_id=str(camera_id), error=str(exc))

    async def _refresh_loop(self) -> None:
        """Periodically refresh camera list."""
        while self._running:
            try:
                await asyncio.sleep(self.refresh_interval)
                await self.refresh_cameras()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("camera_refresh_error", error=str(exc))

    def get_camera_stats(self) -> Dict[str, Any]:
        """Get statistics for all cameras."""
        stats: Dict[str, Any] = {
            "total": len(self.cameras),
            "sampling": 0,
            "paused": 0,
            "alerts": 0,
            "cameras": [],
        }

        for context in self.cameras.values():
            sampler = context.sampler
            if sampler.paused or not sampler.analysis_enabled:
                stats["paused"] += 1
            elif sampler.running:
                stats["sampling"] += 1
            stats["alerts"] += sampler.stats.alerts

            stats["cameras"].append({
                "id": str(context.camera_id),
                "name": context.name,
                "sensitivity": sampler.sensitivity,
                "phase": sampler.state.phase.value,
                **vars(sampler.stats),
            })

        return stats


# Global manager instance
_camera_manager: Optional[CameraManager] = None


def get_camera_manager() -> CameraManager:
    """Get or create the camera manager."""
    global _camera_manager
    if _camera_manager is None:
        _camera_manager = CameraManager()
    return _camera_manager
