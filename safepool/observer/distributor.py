"""Observer-side live view of open alerts."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID

import structlog

from ..shared.errors import SafePoolError, ValidationError
from ..shared.schemas.alert import AlertChange, AlertResponse
from .config import config
from .gateway import AlertGateway
from .preferences import SEVERITY_FILTERS, ObserverPreferences, PreferencesStore
from .sound import AlertSound, TerminalBell

logger = structlog.get_logger(__name__)


def _merge(current: AlertResponse, incoming: AlertResponse) -> AlertResponse:
    """Newer row state wins, but a dismissal is never undone."""
    if current.dismissed_at is not None and incoming.dismissed_at is None:
        return incoming.model_copy(update={"dismissed_at": current.dismissed_at})
    return incoming


class AlertDistributor:
    """
    Maintains one observer's view of alerts for the selected facility.

    Features:
    - Initial load newest-created-first, capped at the list limit
    - Applies insert/update changes; repeated inserts are de-duplicated by id
    - Severity filter and open count for presentation
    - Audible cue on new alerts, gated by its own cooldown, silent when muted
    - Optimistic dismissal, reverted if the remote dismissal still fails
      after the configured retries
    - Mute, facility and severity filter are persisted through the
      preferences store and never touch alert state on the server
    """

    def __init__(
        self,
        gateway: AlertGateway,
        preferences: PreferencesStore,
        sound: Optional[AlertSound] = None,
        sound_cooldown_ms: int = config.SOUND_COOLDOWN_MS,
        limit: int = config.ALERT_LIST_LIMIT,
        dismiss_retries: int = config.DISMISS_RETRIES,
        retry_delay: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.preferences_store = preferences
        self.sound = sound or TerminalBell()
        self.sound_cooldown_ms = sound_cooldown_ms
        self.limit = limit
        self.dismiss_retries = dismiss_retries
        self.retry_delay = retry_delay
        self.clock = clock

        self.preferences: ObserverPreferences = preferences.load()
        self.alerts: List[AlertResponse] = []
        self._last_sound_at: Optional[float] = None
        self._optimistic: Dict[UUID, datetime] = {}

    # Preferences

    @property
    def facility_id(self) -> Optional[str]:
        return self.preferences.selected_facility_id

    @property
    def muted(self) -> bool:
        return self.preferences.muted

    @property
    def severity_filter(self) -> str:
        return self.preferences.severity_filter

    def set_muted(self, muted: bool) -> None:
        self.preferences.muted = muted
        self.preferences_store.save(self.preferences)

    def set_severity_filter(self, severity: str) -> None:
        if severity not in SEVERITY_FILTERS:
            raise ValidationError(f"severity filter must be one of {', '.join(SEVERITY_FILTERS)}")
        self.preferences.severity_filter = severity
        self.preferences_store.save(self.preferences)

    async def select_facility(self, facility_id: Optional[str], reload: bool = True) -> None:
        """Switch facility (None for all) and reload the list."""
        self.preferences.selected_facility_id = facility_id or None
        self.preferences_store.save(self.preferences)
        self.alerts = []
        self._optimistic.clear()
        if reload:
            await self.load()

    # View

    async def load(self) -> None:
        """Replace the list with the server's newest alerts."""
        alerts = await self.gateway.list_alerts(self.facility_id)
        alerts = [a for a in alerts if self._in_scope(a)]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        self.alerts = alerts[: self.limit]
        logger.debug("alerts_loaded", facility_id=self.facility_id, count=len(self.alerts))

    def _in_scope(self, alert: AlertResponse) -> bool:
        return self.facility_id is None or str(alert.facility_id) == self.facility_id

    def _passes_filter(self, alert: AlertResponse) -> bool:
        return self.severity_filter == "all" or alert.severity == self.severity_filter

    def visible_alerts(self) -> List[AlertResponse]:
        """Open alerts passing the severity filter, newest first."""
        return [
            a for a in self.alerts
            if a.dismissed_at is None and self._passes_filter(a)
        ]

    @property
    def open_count(self) -> int:
        return sum(1 for a in self.alerts if a.dismissed_at is None)

    def get(self, alert_id: UUID) -> Optional[AlertResponse]:
        for alert in self.alerts:
            if alert.id == alert_id:
                return alert
        return None

    def _replace(self, alert: AlertResponse) -> bool:
        for index, current in enumerate(self.alerts):
            if current.id == alert.id:
                self.alerts[index] = _merge(current, alert)
                return True
        return False

    def _insert_sorted(self, alert: AlertResponse) -> None:
        index = 0
        while index < len(self.alerts) and self.alerts[index].created_at > alert.created_at:
            index += 1
        self.alerts.insert(index, alert)
        del self.alerts[self.limit:]

    # Change feed

    def apply(self, change: AlertChange) -> bool:
        """
        Apply one change feed event.

        Returns:
            True if the view changed
        """
        alert = change.alert
        if not self._in_scope(alert):
            return False

        if alert.dismissed_at is not None:
            self._optimistic.pop(alert.id, None)

        if change.event == "update":
            return self._replace(alert)

        if self._replace(alert):
            return True

        self._insert_sorted(alert)
        if alert.dismissed_at is None and self._passes_filter(alert):
            self._notify(alert)
        return True

    def _notify(self, alert: AlertResponse) -> bool:
        """Play the cue unless muted or still cooling down."""
        if self.muted:
            return False

        now_ms = self.clock() * 1000
        if self._last_sound_at is not None and now_ms - self._last_sound_at <= self.sound_cooldown_ms:
            return False

        self._last_sound_at = now_ms
        try:
            self.sound.play()
        except OSError as exc:
            logger.warning("alert_sound_failed", error=str(exc))
        logger.debug("alert_sound_played", alert_id=str(alert.id))
        return True

    # Dismissal

    async def dismiss(self, alert_id: UUID) -> bool:
        """
        Dismiss an alert optimistically.

        Returns:
            True once the server confirmed the dismissal, False if it was
            reverted (or the alert is not in the view)
        """
        alert = self.get(alert_id)
        if alert is None:
            return False
        if alert.dismissed_at is not None and alert_id not in self._optimistic:
            return True

        stamp = datetime.now(timezone.utc).replace(tzinfo=None)
        self._optimistic[alert_id] = stamp
        self._replace(alert.model_copy(update={"dismissed_at": stamp}))

        try:
            confirmed = await self._dismiss_remote(alert_id)
        except BaseException:
            self._revert(alert_id)
            raise

        if confirmed is not None:
            self._optimistic.pop(alert_id, None)
            self._replace(confirmed)
            return True

        # A feed update may have confirmed the dismissal while retrying
        return not self._revert(alert_id)

    async def _dismiss_remote(self, alert_id: UUID) -> Optional[AlertResponse]:
        """Dismiss on the server with retries; None once they are exhausted."""
        attempts = 1 + max(0, self.dismiss_retries)
        for attempt in range(1, attempts + 1):
            try:
                return await self.gateway.dismiss(alert_id)
            except SafePoolError as exc:
                logger.warning(
                    "alert_dismiss_failed",
                    alert_id=str(alert_id),
                    attempt=attempt,
                    error=exc.message,
                )
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay)
        return None

    def _revert(self, alert_id: UUID) -> bool:
        """Undo a still-pending optimistic dismissal. Returns True if reverted."""
        if self._optimistic.pop(alert_id, None) is None:
            return False
        for index, current in enumerate(self.alerts):
            if current.id == alert_id:
                self.alerts[index] = current.model_copy(update={"dismissed_at": None})
        logger.warning("alert_dismiss_reverted", alert_id=str(alert_id))
        return True
