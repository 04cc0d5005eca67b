"""Alerts API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...shared.constants import ALERT_LIST_LIMIT
from ...shared.db.database import get_db_session
from ...shared.db.models import Severity
from ...shared.db.repositories.alerts import AlertRepository
from ...shared.schemas.alert import (
    AlertCreate,
    AlertDismiss,
    AlertListResponse,
    AlertResponse,
)
from ..dependencies import Dispatcher

router = APIRouter()


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    db: AsyncSession = Depends(get_db_session),
    facility_id: Optional[UUID] = None,
    include_dismissed: bool = True,
    severity: Optional[str] = Query(default=None, pattern="^(medium|high)$"),
    limit: int = Query(default=ALERT_LIST_LIMIT, ge=1, le=200),
):
    """
    List alerts newest-created-first.

    Omitting facility_id lists alerts across all facilities.
    """
    alerts = await AlertRepository(db).list_recent(
        facility_id=facility_id,
        include_dismissed=include_dismissed,
        severity=Severity(severity) if severity else None,
        limit=limit,
    )
    return AlertListResponse(
        alerts=[AlertResponse.model_validate(a) for a in alerts],
        total=len(alerts),
    )


@router.post("", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(request: AlertCreate, dispatcher: Dispatcher):
    """
    Persist an alert (and, unless create_incident is false, an incident).
    """
    return await dispatcher.create_alert(request)


@router.patch("/{alert_id}", response_model=AlertResponse)
async def dismiss_alert(
    alert_id: UUID,
    dispatcher: Dispatcher,
    request: Optional[AlertDismiss] = Body(default=None),
):
    """
    Dismiss an alert.

    Without dismissed_at the server stamps the current time. An alert that
    is already dismissed keeps its original timestamp.
    """
    dismissed_at = request.dismissed_at if request else None
    return await dispatcher.dismiss(alert_id, dismissed_at)
