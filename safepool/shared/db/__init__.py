"""Database module with PostgreSQL async support."""

from .database import (
    get_db,
    get_db_session,
    init_db,
    close_db,
    get_session_factory,
)
from .models import (
    Base,
    Facility,
    Camera,
    AlertSetting,
    Alert,
    Incident,
    Severity,
    TriggerType,
    Sensitivity,
    SourceType,
)

__all__ = [
    # Database functions
    "get_db",
    "get_db_session",
    "init_db",
    "close_db",
    "get_session_factory",
    # Models
    "Base",
    "Facility",
    "Camera",
    "AlertSetting",
    "Alert",
    "Incident",
    # Enums
    "Severity",
    "TriggerType",
    "Sensitivity",
    "SourceType",
]
