"""Observer configuration from environment variables."""

import os
from pathlib import Path

from ..shared.constants import ALERT_LIST_LIMIT, SOUND_COOLDOWN_MS


class ObserverConfig:
    """Configuration for the console observer."""

    # Web API the observer talks to
    API_BASE_URL: str = os.getenv("SAFEPOOL_API_URL", "http://localhost:8123")
    REQUEST_TIMEOUT: float = float(os.getenv("OBSERVER_REQUEST_TIMEOUT", "10"))

    # Preferences file (mute, facility selection, severity filter)
    PREFERENCES_PATH: Path = Path(os.getenv(
        "OBSERVER_PREFERENCES_PATH",
        str(Path.home() / ".config" / "safepool" / "observer.json"),
    ))

    # Defaults used when no preference is stored
    DEFAULT_FACILITY_ID: str = os.getenv("OBSERVER_FACILITY_ID", "")
    DEFAULT_SEVERITY_FILTER: str = os.getenv("OBSERVER_SEVERITY_FILTER", "all")

    # Live view
    ALERT_LIST_LIMIT: int = int(os.getenv("OBSERVER_ALERT_LIMIT", str(ALERT_LIST_LIMIT)))
    SOUND_COOLDOWN_MS: int = SOUND_COOLDOWN_MS
    DISMISS_RETRIES: int = int(os.getenv("OBSERVER_DISMISS_RETRIES", "1"))
    RECONNECT_DELAY: float = float(os.getenv("OBSERVER_RECONNECT_DELAY", "5"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production."""
        return os.getenv("RAILWAY_ENVIRONMENT") is not None or \
               os.getenv("ENVIRONMENT", "").lower() == "production"


config = ObserverConfig()
