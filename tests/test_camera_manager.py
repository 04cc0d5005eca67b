"""Camera manager tests: database-driven add, update and removal of samplers."""

import asyncio

from sqlalchemy import update

from safepool.shared.db.models import AlertSetting, Camera, Sensitivity, SourceType
from safepool.shared.db.repositories import GlobalCameraRepository
from safepool.shared.schemas.analysis import AnalysisResult
from safepool.worker.camera_manager import CameraManager, default_source_factory
from safepool.worker.capture import VideoSource


class StubSource:
    def __init__(self, monitored):
        self.url = monitored.camera.stream_url
        self.closed = False

    async def capture(self):
        return None

    def close(self) -> None:
        self.closed = True


class StubClassifier:
    def __init__(self):
        self.closed = False

    async def analyze(self, image_base64):
        return AnalysisResult(distress=False, confidence=0.0)

    async def close(self) -> None:
        self.closed = True


class StubDispatcher:
    async def dispatch(self, *args, **kwargs):
        raise AssertionError("no alerts expected")


def _manager(database, sources, max_cameras=20) -> CameraManager:
    def factory(monitored):
        source = StubSource(monitored)
        sources.append(source)
        return source

    return CameraManager(
        analysis_client=StubClassifier(),
        dispatcher=StubDispatcher(),
        session_scope=database.scope,
        source_factory=factory,
        refresh_interval=3600,
        max_cameras=max_cameras,
    )


async def _camera(database, camera_id) -> Camera:
    async with database.scope() as session:
        return await session.get(Camera, camera_id)


async def _change(database, model, where, **values) -> None:
    async with database.scope() as session:
        await session.execute(update(model).where(where).values(**values))


def test_refresh_tracks_database_changes(database) -> None:
    facility_id = asyncio.run(database.add_facility())
    deep = asyncio.run(database.add_camera(
        facility_id, name="Deep end", stream_url="https://cdn.example.com/pool/deep.m3u8", sensitivity=Sensitivity.LOW
    ))
    shallow = asyncio.run(database.add_camera(
        facility_id, name="Shallow end", stream_url="https://cdn.example.com/pool/shallow.m3u8"
    ))

    async def run():
        sources = []
        manager = _manager(database, sources)
        await manager.start()

        assert set(manager.cameras) == {deep, shallow}
        assert manager.cameras[deep].sampler.interval_seconds == 2.0
        assert (await _camera(database, deep)).status == "online"

        # Sensitivity and pause apply in place without a restart
        await _change(database, AlertSetting, AlertSetting.facility_id == facility_id, sensitivity=Sensitivity.HIGH)
        await _change(database, Camera, Camera.id == shallow, analysis_enabled=False, underwater_threshold_seconds=4)
        sampler = manager.cameras[shallow].sampler
        await manager.refresh_cameras()
        assert manager.cameras[shallow].sampler is sampler
        assert sampler.interval_seconds == 0.5
        assert sampler.analysis_enabled is False
        assert sampler.underwater_threshold_seconds == 4
        assert manager.get_camera_stats()["paused"] == 1

        # A new stream URL restarts the sampler with a fresh source
        old_source = manager.cameras[deep].sampler.source
        await _change(database, Camera, Camera.id == deep, stream_url="https://cdn.example.com/pool/deep-v2.m3u8")
        await manager.refresh_cameras()
        assert old_source.closed is True
        assert manager.cameras[deep].sampler.source.url.endswith("deep-v2.m3u8")

        # Deactivated cameras are stopped and marked offline
        await _change(database, Camera, Camera.id == shallow, is_active=False)
        await manager.refresh_cameras()
        assert set(manager.cameras) == {deep}
        assert (await _camera(database, shallow)).status == "offline"

        classifier = manager.analysis_client
        await manager.stop()
        return manager, classifier, sources

    manager, classifier, sources = asyncio.run(run())
    assert manager.cameras == {}
    assert classifier.closed is True
    assert all(source.closed for source in sources)


def test_camera_limit_is_enforced(database) -> None:
    facility_id = asyncio.run(database.add_facility())
    for index in range(3):
        asyncio.run(database.add_camera(facility_id, name=f"Lane {index}"))

    async def run():
        manager = _manager(database, [], max_cameras=2)
        await manager.refresh_cameras()
        count = len(manager.cameras)
        for context in list(manager.cameras.values()):
            await context.sampler.stop()
        return count

    assert asyncio.run(run()) == 2


def test_default_source_factory_loops_file_sources(database) -> None:
    facility_id = asyncio.run(database.add_facility())
    asyncio.run(database.add_camera(facility_id, stream_url="/srv/clips/pool.mp4", source_type=SourceType.FILE))

    async def run():
        async with database.scope() as session:
            return await GlobalCameraRepository(session).get_active_cameras()

    [monitored] = asyncio.run(run())
    source = default_source_factory(monitored)

    assert isinstance(source, VideoSource)
    assert source.loop_file is True
    assert source.url == "/srv/clips/pool.mp4"
    assert source.ready is False
