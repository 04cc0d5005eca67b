"""Incident repository."""

from typing import Optional, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Incident, utcnow


class IncidentRepository:
    """Repository for operator review incidents."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, incident: Incident) -> Incident:
        """Insert an incident."""
        self.session.add(incident)
        await self.session.flush()
        await self.session.refresh(incident)
        return incident

    async def get(self, incident_id: UUID) -> Optional[Incident]:
        """Get an incident by ID."""
        result = await self.session.execute(
            select(Incident).where(Incident.id == incident_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        facility_id: Optional[UUID] = None,
        status: str = "all",
        limit: int = 100,
    ) -> List[Incident]:
        """
        List incidents newest first.

        Args:
            facility_id: Restrict to one facility
            status: "all", "open" (unresolved) or "resolved"
            limit: Maximum rows returned
        """
        query = select(Incident)
        if facility_id:
            query = query.where(Incident.facility_id == facility_id)
        if status == "open":
            query = query.where(Incident.resolved_at.is_(None))
        elif status == "resolved":
            query = query.where(Incident.resolved_at.is_not(None))

        query = query.order_by(Incident.detected_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def resolve(self, incident_id: UUID) -> Optional[Incident]:
        """Mark an incident resolved; an already resolved one is left as is."""
        incident = await self.get(incident_id)
        if incident is None:
            return None
        if incident.resolved_at is None:
            incident.resolved_at = utcnow()
            await self.session.flush()
        return incident
