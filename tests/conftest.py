"""Shared fixtures: a throwaway SQLite database and recording fakes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from safepool.shared.db.models import AlertSetting, Base, Camera, Facility, Sensitivity
from safepool.shared.schemas.alert import AlertChange, AlertResponse


class TestDatabase:
    """File-backed SQLite database usable from any event loop."""

    __test__ = False

    def __init__(self, url: str):
        self.engine = create_async_engine(url, poolclass=NullPool)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def scope(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.scope() as session:
            yield session

    async def add_facility(self, name: str = "Riverside Aquatic Center") -> UUID:
        async with self.scope() as session:
            facility = Facility(name=name)
            session.add(facility)
            await session.flush()
            return facility.id

    async def add_camera(
        self,
        facility_id: UUID,
        name: str = "Deep end",
        stream_url: str = "https://cdn.example.com/pool/deep.m3u8",
        sensitivity: Sensitivity = None,
        **fields,
    ) -> UUID:
        async with self.scope() as session:
            camera = Camera(facility_id=facility_id, name=name, stream_url=stream_url, **fields)
            session.add(camera)
            if sensitivity is not None:
                session.add(AlertSetting(facility_id=facility_id, sensitivity=sensitivity))
            await session.flush()
            return camera.id


@pytest.fixture
def database(tmp_path) -> TestDatabase:
    db = TestDatabase(f"sqlite+aiosqlite:///{tmp_path / 'safepool.db'}")
    asyncio.run(db.create_schema())
    yield db
    asyncio.run(db.engine.dispose())


class RecordingPublisher:
    """Stands in for AlertFeedPublisher and keeps every change."""

    def __init__(self):
        self.changes: List[AlertChange] = []

    async def publish_insert(self, alert: AlertResponse) -> int:
        self.changes.append(AlertChange(event="insert", alert=alert))
        return 1

    async def publish_update(self, alert: AlertResponse) -> int:
        self.changes.append(AlertChange(event="update", alert=alert))
        return 1


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
