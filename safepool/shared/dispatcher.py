"""Alert persistence: turns alert intents and API requests into stored rows."""

from datetime import datetime, timezone
from typing import AsyncContextManager, Callable, Optional
from uuid import UUID

import structlog
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .db.database import get_db
from .db.models import Alert, Incident, Severity, TriggerType
from .db.repositories.alerts import AlertRepository
from .db.repositories.cameras import FacilityRepository
from .db.repositories.incidents import IncidentRepository
from .errors import NotFoundError, PersistenceError, ValidationError
from .redis.feed import AlertFeedPublisher, get_alert_publisher
from .schemas.alert import AlertCreate, AlertIntent, AlertResponse
from .schemas.incident import IncidentCreate, IncidentResponse

logger = structlog.get_logger(__name__)

SessionScope = Callable[[], AsyncContextManager[AsyncSession]]


def _to_storage_time(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware timestamp to the naive-UTC storage convention."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _require_facility(session: AsyncSession, facility_id: UUID) -> None:
    if not await FacilityRepository(session).exists(facility_id):
        raise ValidationError("unknown facility_id")


class AlertDispatcher:
    """
    Persists alerts and incidents and announces them on the change feed.

    Features:
    - Validates facility_id before any write
    - Alert and companion incident are written in separate sessions, so a
      failed incident write never rolls back the alert
    - No deduplication beyond what the caller's cooldown already enforces
    - Storage failures surface as PersistenceError and are not retried
    - Feed publishing is best effort; the stored row is the source of truth
    """

    def __init__(
        self,
        session_scope: SessionScope = get_db,
        publisher: Optional[AlertFeedPublisher] = None,
    ):
        self.session_scope = session_scope
        self.publisher = publisher

    async def dispatch(
        self,
        intent: AlertIntent,
        facility_id: Optional[UUID],
        camera_id: Optional[UUID] = None,
        thumbnail_url: Optional[str] = None,
        create_incident: bool = True,
    ) -> AlertResponse:
        """Persist an alert raised by a camera's state machine."""
        return await self.create_alert(
            AlertCreate(
                facility_id=facility_id,
                camera_id=camera_id,
                severity=intent.severity,
                trigger_type=intent.trigger_type,
                description=intent.description,
                frame_data=intent.frame_data,
                thumbnail_url=thumbnail_url,
                create_incident=create_incident,
            )
        )

    async def create_alert(self, request: AlertCreate) -> AlertResponse:
        """
        Persist an alert and, unless suppressed, a companion incident.

        Raises:
            ValidationError: facility_id missing or unknown
            PersistenceError: the alert write failed
        """
        if request.facility_id is None:
            raise ValidationError("facility_id required")

        try:
            async with self.session_scope() as session:
                await _require_facility(session, request.facility_id)
                alert = await AlertRepository(session).create(
                    Alert(
                        facility_id=request.facility_id,
                        camera_id=request.camera_id,
                        severity=Severity(request.severity),
                        trigger_type=TriggerType(request.trigger_type),
                        description=request.description,
                        frame_data=request.frame_data,
                        thumbnail_url=request.thumbnail_url,
                    )
                )
                created = AlertResponse.model_validate(alert)
        except IntegrityError as exc:
            logger.warning("alert_rejected", facility_id=str(request.facility_id), error=str(exc))
            raise ValidationError("unknown facility_id or camera_id") from exc
        except SQLAlchemyError as exc:
            logger.error("alert_write_failed", facility_id=str(request.facility_id), error=str(exc))
            raise PersistenceError(f"failed to store alert: {exc}") from exc

        logger.info(
            "alert_created",
            alert_id=str(created.id),
            facility_id=str(created.facility_id),
            camera_id=str(created.camera_id) if created.camera_id else None,
            trigger_type=created.trigger_type,
            severity=created.severity,
        )

        if request.create_incident:
            await self._write_companion_incident(request, created)

        await self._publish("insert", created)
        return created

    async def _write_companion_incident(
        self,
        request: AlertCreate,
        alert: AlertResponse,
    ) -> None:
        """Write the review incident for an alert; failures are logged only."""
        frame_data = request.frame_data or {
            "description": request.description,
            "trigger_type": request.trigger_type,
        }
        try:
            async with self.session_scope() as session:
                await IncidentRepository(session).create(
                    Incident(
                        facility_id=alert.facility_id,
                        camera_id=alert.camera_id,
                        severity=Severity(alert.severity),
                        frame_data=frame_data,
                    )
                )
        except SQLAlchemyError as exc:
            logger.error(
                "companion_incident_write_failed",
                alert_id=str(alert.id),
                error=str(exc),
            )

    async def dismiss(
        self,
        alert_id: UUID,
        dismissed_at: Optional[datetime] = None,
    ) -> AlertResponse:
        """
        Dismiss an alert. Already dismissed alerts keep their timestamp.

        Raises:
            NotFoundError: no such alert
            PersistenceError: the update failed
        """
        try:
            async with self.session_scope() as session:
                alert = await AlertRepository(session).dismiss(
                    alert_id, _to_storage_time(dismissed_at)
                )
                if alert is None:
                    raise NotFoundError("Alert not found")
                updated = AlertResponse.model_validate(alert)
        except SQLAlchemyError as exc:
            logger.error("alert_dismiss_failed", alert_id=str(alert_id), error=str(exc))
            raise PersistenceError(f"failed to dismiss alert: {exc}") from exc

        logger.info("alert_dismissed", alert_id=str(alert_id))
        await self._publish("update", updated)
        return updated

    async def create_incident(self, request: IncidentCreate) -> IncidentResponse:
        """Persist an incident directly, without an alert."""
        if request.facility_id is None:
            raise ValidationError("facility_id required")

        try:
            async with self.session_scope() as session:
                await _require_facility(session, request.facility_id)
                incident = await IncidentRepository(session).create(
                    Incident(
                        facility_id=request.facility_id,
                        camera_id=request.camera_id,
                        severity=Severity(request.severity),
                        frame_data=request.frame_data,
                    )
                )
                created = IncidentResponse.model_validate(incident)
        except IntegrityError as exc:
            raise ValidationError("unknown facility_id or camera_id") from exc
        except SQLAlchemyError as exc:
            logger.error("incident_write_failed", facility_id=str(request.facility_id), error=str(exc))
            raise PersistenceError(f"failed to store incident: {exc}") from exc

        logger.info("incident_created", incident_id=str(created.id))
        return created

    async def resolve_incident(self, incident_id: UUID) -> IncidentResponse:
        """Operator resolution of an incident; independent of alert dismissal."""
        try:
            async with self.session_scope() as session:
                incident = await IncidentRepository(session).resolve(incident_id)
                if incident is None:
                    raise NotFoundError("Incident not found")
                resolved = IncidentResponse.model_validate(incident)
        except SQLAlchemyError as exc:
            logger.error("incident_resolve_failed", incident_id=str(incident_id), error=str(exc))
            raise PersistenceError(f"failed to resolve incident: {exc}") from exc

        logger.info("incident_resolved", incident_id=str(incident_id))
        return resolved

    async def _publish(self, event: str, alert: AlertResponse) -> None:
        """Announce a change; the write already succeeded, so errors are logged."""
        try:
            if self.publisher is None:
                self.publisher = await get_alert_publisher()
            if event == "insert":
                await self.publisher.publish_insert(alert)
            else:
                await self.publisher.publish_update(alert)
        except (RedisError, OSError) as exc:
            logger.warning(
                "alert_feed_publish_failed",
                alert_id=str(alert.id),
                change=event,
                error=str(exc),
            )
