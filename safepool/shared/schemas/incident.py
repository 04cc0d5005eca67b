"""Incident schemas."""

from datetime import datetime
from typing import Any, Dict, Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class IncidentCreate(BaseModel):
    """Create incident request schema."""
    facility_id: Optional[UUID] = None
    camera_id: Optional[UUID] = None
    severity: str = Field(default="medium", pattern="^(medium|high)$")
    frame_data: Optional[Dict[str, Any]] = None


class IncidentResponse(BaseModel):
    """Incident response schema."""
    id: UUID
    facility_id: UUID
    camera_id: Optional[UUID] = None
    severity: str
    frame_data: Optional[Dict[str, Any]] = None
    detected_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("severity", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


class IncidentListResponse(BaseModel):
    """Incident list response schema."""
    incidents: List[IncidentResponse]
    total: int
