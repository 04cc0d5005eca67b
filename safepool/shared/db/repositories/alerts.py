"""Alert repository."""

from datetime import datetime
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Alert, Severity, utcnow


class AlertRepository:
    """Repository for alert rows. Alerts are never deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, alert: Alert) -> Alert:
        """Insert an alert and return it with server defaults applied."""
        self.session.add(alert)
        await self.session.flush()
        await self.session.refresh(alert)
        return alert

    async def get(self, alert_id: UUID) -> Optional[Alert]:
        """Get an alert by ID."""
        result = await self.session.execute(select(Alert).where(Alert.id == alert_id))
        return result.scalar_one_or_none()

    async def list_recent(
        self,
        facility_id: Optional[UUID] = None,
        include_dismissed: bool = True,
        severity: Optional[Severity] = None,
        limit: int = 50,
    ) -> List[Alert]:
        """Get alerts newest-created-first, optionally scoped to a facility."""
        conditions = []
        if facility_id:
            conditions.append(Alert.facility_id == facility_id)
        if not include_dismissed:
            conditions.append(Alert.dismissed_at.is_(None))
        if severity:
            conditions.append(Alert.severity == severity)

        query = select(Alert)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(Alert.created_at.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def dismiss(
        self,
        alert_id: UUID,
        dismissed_at: Optional[datetime] = None,
    ) -> Optional[Alert]:
        """
        Stamp dismissed_at on an alert.

        Dismissal is monotone: an alert that is already dismissed keeps its
        original timestamp. The conditional UPDATE makes concurrent
        dismissals settle on the first committed timestamp.

        Returns:
            The alert, or None if it does not exist
        """
        await self.session.execute(
            update(Alert)
            .where(Alert.id == alert_id, Alert.dismissed_at.is_(None))
            .values(dismissed_at=dismissed_at or utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            select(Alert).where(Alert.id == alert_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
