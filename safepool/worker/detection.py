"""Per-camera detection state machine."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..shared.constants import (
    ALERT_COOLDOWN_MS,
    DEFAULT_UNDERWATER_THRESHOLD_SECONDS,
    MIN_CONFIDENCE,
    severity_for,
)
from ..shared.schemas.alert import AlertIntent
from ..shared.schemas.analysis import AnalysisResult

UNDERWATER_DESCRIPTION = "Person submerged too long"
DISTRESS_DESCRIPTION = "Distress detected"


class DetectionPhase(Enum):
    """Detection state."""
    IDLE = "idle"
    SUBMERGED = "submerged"


@dataclass
class DetectionStateMachine:
    """
    Turns a camera's sequence of analysis results into alert intents.

    Times are milliseconds on a monotonic clock owned by the caller.
    A submerged streak is only kept while consecutive results are
    submerged with confidence >= 0.5; anything else resets it. At most
    one intent is emitted per result, and never two within the cooldown.
    """
    underwater_threshold_seconds: float = DEFAULT_UNDERWATER_THRESHOLD_SECONDS
    cooldown_ms: int = ALERT_COOLDOWN_MS
    submerged_since: Optional[float] = None
    last_alert_at: Optional[float] = None

    @property
    def phase(self) -> DetectionPhase:
        if self.submerged_since is None:
            return DetectionPhase.IDLE
        return DetectionPhase.SUBMERGED

    def cooldown_elapsed(self, now_ms: float) -> bool:
        """True when no alert was emitted in the last cooldown window."""
        if self.last_alert_at is None:
            return True
        return now_ms - self.last_alert_at > self.cooldown_ms

    def observe(self, result: AnalysisResult, now_ms: float) -> Optional[AlertIntent]:
        """
        Feed one analysis result.

        Returns:
            The alert intent to dispatch, or None
        """
        if result.submerged and result.confidence >= MIN_CONFIDENCE:
            if self.submerged_since is None:
                self.submerged_since = now_ms

            threshold_ms = self.underwater_threshold_seconds * 1000
            if now_ms - self.submerged_since >= threshold_ms and self.cooldown_elapsed(now_ms):
                self.submerged_since = None
                self.last_alert_at = now_ms
                return self._intent("underwater_time", result, UNDERWATER_DESCRIPTION)
            return None

        self.submerged_since = None

        if result.distress and result.confidence >= MIN_CONFIDENCE and self.cooldown_elapsed(now_ms):
            self.last_alert_at = now_ms
            return self._intent("distress", result, DISTRESS_DESCRIPTION)
        return None

    @staticmethod
    def _intent(trigger_type: str, result: AnalysisResult, fallback: str) -> AlertIntent:
        return AlertIntent(
            trigger_type=trigger_type,
            severity=severity_for(result.confidence),
            description=result.description or fallback,
            frame_data={
                "description": result.description,
                "confidence": result.confidence,
                "trigger": trigger_type,
            },
        )
