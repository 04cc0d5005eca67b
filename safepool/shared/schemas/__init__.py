"""Pydantic schemas for API requests, responses and the change feed."""

from .analysis import AnalysisResult
from .alert import (
    AlertCreate,
    AlertDismiss,
    AlertResponse,
    AlertListResponse,
    AlertChange,
    AlertIntent,
)
from .incident import (
    IncidentCreate,
    IncidentResponse,
    IncidentListResponse,
)

__all__ = [
    # Analysis
    "AnalysisResult",
    # Alert
    "AlertCreate",
    "AlertDismiss",
    "AlertResponse",
    "AlertListResponse",
    "AlertChange",
    "AlertIntent",
    # Incident
    "IncidentCreate",
    "IncidentResponse",
    "IncidentListResponse",
]
