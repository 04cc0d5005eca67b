"""Database repositories."""

from .alerts import AlertRepository
from .incidents import IncidentRepository
from .cameras import GlobalCameraRepository, FacilityRepository, MonitoredCamera

__all__ = [
    "AlertRepository",
    "IncidentRepository",
    "GlobalCameraRepository",
    "FacilityRepository",
    "MonitoredCamera",
]
