"""SQLAlchemy ORM models for facilities, cameras, alerts and incidents."""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional, List

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Enum,
    JSON,
    Index,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Enums

class Severity(str, PyEnum):
    """Alert urgency derived from classifier confidence."""
    MEDIUM = "medium"
    HIGH = "high"


class TriggerType(str, PyEnum):
    """Detection path that produced an alert."""
    DISTRESS = "distress"
    UNDERWATER_TIME = "underwater_time"


class Sensitivity(str, PyEnum):
    """Sampling cadence tier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourceType(str, PyEnum):
    """Camera video source type."""
    BROWSER = "browser"
    HLS = "hls"
    FILE = "file"
    UPLOAD = "upload"


def _enum(enum_cls: type) -> Enum:
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x])


# Models

class Facility(Base):
    """Physical site containing one or more cameras."""
    __tablename__ = "facilities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    cameras: Mapped[List["Camera"]] = relationship(
        "Camera", back_populates="facility", cascade="all, delete-orphan"
    )


class Camera(Base):
    """Monitored video source belonging to a facility."""
    __tablename__ = "cameras"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    facility_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_type: Mapped[SourceType] = mapped_column(
        _enum(SourceType), default=SourceType.HLS, nullable=False
    )
    stream_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    underwater_threshold_seconds: Mapped[int] = mapped_column(
        Integer, default=10, nullable=False
    )
    analysis_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="offline", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    facility: Mapped["Facility"] = relationship("Facility", back_populates="cameras")

    __table_args__ = (
        Index("ix_cameras_facility_id", "facility_id"),
    )


class AlertSetting(Base):
    """Per-facility alerting preferences."""
    __tablename__ = "alert_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    facility_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    sensitivity: Mapped[Sensitivity] = mapped_column(
        _enum(Sensitivity), default=Sensitivity.MEDIUM, nullable=False
    )
    # Stored for the settings screen; the detection cooldown is fixed
    cooldown_seconds: Mapped[int] = mapped_column(Integer, default=30, nullable=False)


class Alert(Base):
    """Alert raised by a camera's detection state machine.

    Created once; the only permitted mutation is stamping dismissed_at.
    """
    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    facility_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("facilities.id", ondelete="RESTRICT"), nullable=False
    )
    camera_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("cameras.id", ondelete="SET NULL"), nullable=True
    )
    severity: Mapped[Severity] = mapped_column(
        _enum(Severity), default=Severity.MEDIUM, nullable=False
    )
    trigger_type: Mapped[TriggerType] = mapped_column(
        _enum(TriggerType), default=TriggerType.DISTRESS, nullable=False
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    frame_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_alerts_facility_created", "facility_id", "created_at"),
    )


class Incident(Base):
    """Operator review record, resolved independently of alert dismissal."""
    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    facility_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    camera_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("cameras.id", ondelete="SET NULL"), nullable=True
    )
    severity: Mapped[Severity] = mapped_column(
        _enum(Severity), default=Severity.MEDIUM, nullable=False
    )
    frame_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_incidents_facility_detected", "facility_id", "detected_at"),
    )
