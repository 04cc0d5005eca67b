"""Incidents API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...shared.db.database import get_db_session
from ...shared.db.repositories.incidents import IncidentRepository
from ...shared.schemas.incident import (
    IncidentCreate,
    IncidentListResponse,
    IncidentResponse,
)
from ..dependencies import Dispatcher

router = APIRouter()


@router.get("", response_model=IncidentListResponse)
async def list_incidents(
    db: AsyncSession = Depends(get_db_session),
    facility_id: Optional[UUID] = None,
    incident_status: str = Query(default="all", alias="status", pattern="^(all|open|resolved)$"),
    limit: int = Query(default=100, ge=1, le=500),
):
    """List incidents for operator review, newest first."""
    incidents = await IncidentRepository(db).list(
        facility_id=facility_id,
        status=incident_status,
        limit=limit,
    )
    return IncidentListResponse(
        incidents=[IncidentResponse.model_validate(i) for i in incidents],
        total=len(incidents),
    )


@router.post("", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def create_incident(request: IncidentCreate, dispatcher: Dispatcher):
    """Create an incident directly, without an alert."""
    return await dispatcher.create_incident(request)


@router.post("/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(incident_id: UUID, dispatcher: Dispatcher):
    """Resolve an incident. Does not touch any alert."""
    return await dispatcher.resolve_incident(incident_id)
