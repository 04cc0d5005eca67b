"""Detection and alerting constants shared across services."""

# Sampling cadence per sensitivity tier
SENSITIVITY_INTERVAL_MS = {
    "low": 2000,
    "medium": 1000,
    "high": 500,
}
DEFAULT_SENSITIVITY = "medium"

# Fixed cooldowns (milliseconds)
ALERT_COOLDOWN_MS = 15000
SOUND_COOLDOWN_MS = 15000

# Classifier thresholds
MIN_CONFIDENCE = 0.5
HIGH_SEVERITY_CONFIDENCE = 0.8

# Default per-camera underwater duration before alerting
DEFAULT_UNDERWATER_THRESHOLD_SECONDS = 10

# Frame payload ceiling (decoded bytes)
MAX_PAYLOAD_BYTES = 4 * 1024 * 1024

# Observer alert list size
ALERT_LIST_LIMIT = 50


def interval_ms_for(sensitivity: str) -> int:
    """Sampling interval for a sensitivity tier, medium when unknown."""
    return SENSITIVITY_INTERVAL_MS.get(
        sensitivity, SENSITIVITY_INTERVAL_MS[DEFAULT_SENSITIVITY]
    )


def severity_for(confidence: float) -> str:
    """Alert severity derived from classifier confidence."""
    return "high" if confidence >= HIGH_SEVERITY_CONFIDENCE else "medium"
