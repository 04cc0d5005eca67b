"""Camera and facility lookups used by the worker and dispatcher."""

from dataclasses import dataclass
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Camera, Facility, AlertSetting, Sensitivity


@dataclass
class MonitoredCamera:
    """Active camera joined with its facility's sampling sensitivity."""
    camera: Camera
    sensitivity: str


class GlobalCameraRepository:
    """Repository for cross-facility camera lookups (worker only)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_cameras(self) -> List[MonitoredCamera]:
        """Get all active cameras with the sensitivity of their facility."""
        query = (
            select(Camera, AlertSetting.sensitivity)
            .outerjoin(AlertSetting, AlertSetting.facility_id == Camera.facility_id)
            .where(Camera.is_active == True)  # noqa: E712
            .order_by(Camera.facility_id)
        )
        result = await self.session.execute(query)
        return [
            MonitoredCamera(
                camera=camera,
                sensitivity=(sensitivity or Sensitivity.MEDIUM).value,
            )
            for camera, sensitivity in result.all()
        ]

    async def get_by_id(self, camera_id: UUID) -> Optional[Camera]:
        """Get camera by ID."""
        result = await self.session.execute(select(Camera).where(Camera.id == camera_id))
        return result.scalar_one_or_none()

    async def update_status(self, camera_id: UUID, status: str) -> bool:
        """Update camera status (worker use)."""
        camera = await self.get_by_id(camera_id)
        if camera:
            camera.status = status
            await self.session.flush()
            return True
        return False


class FacilityRepository:
    """Facility existence checks for referential validity."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, facility_id: UUID) -> bool:
        """Check if a facility exists."""
        query = (
            select(func.count())
            .select_from(Facility)
            .where(Facility.id == facility_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one() > 0
