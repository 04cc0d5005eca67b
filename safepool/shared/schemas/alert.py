"""Alert schemas."""

from datetime import datetime
from typing import Any, Dict, Literal, Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AlertCreate(BaseModel):
    """Create alert request schema.

    facility_id is optional here so a missing value is reported as a
    ValidationError (400) by the dispatcher rather than a schema error.
    """
    facility_id: Optional[UUID] = None
    camera_id: Optional[UUID] = None
    severity: str = Field(default="medium", pattern="^(medium|high)$")
    trigger_type: str = Field(default="distress", pattern="^(distress|underwater_time)$")
    description: Optional[str] = None
    frame_data: Optional[Dict[str, Any]] = None
    thumbnail_url: Optional[str] = None
    create_incident: bool = True


class AlertDismiss(BaseModel):
    """Dismiss alert request schema. Omitted or null means "now"."""
    dismissed_at: Optional[datetime] = None


class AlertResponse(BaseModel):
    """Alert response schema."""
    id: UUID
    facility_id: UUID
    camera_id: Optional[UUID] = None
    severity: str
    trigger_type: str
    description: Optional[str] = None
    frame_data: Optional[Dict[str, Any]] = None
    thumbnail_url: Optional[str] = None
    created_at: datetime
    dismissed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("severity", "trigger_type", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


class AlertListResponse(BaseModel):
    """Alert list response schema."""
    alerts: List[AlertResponse]
    total: int


class AlertChange(BaseModel):
    """One change feed message about an alert row."""
    event: Literal["insert", "update"]
    alert: AlertResponse


class AlertIntent(BaseModel):
    """Alert a detection state machine decided to raise, before persistence."""
    trigger_type: Literal["distress", "underwater_time"]
    severity: Literal["medium", "high"]
    description: str
    frame_data: Dict[str, Any]
