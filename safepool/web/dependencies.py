"""FastAPI service dependencies."""

from typing import Annotated

from fastapi import Depends

from ..shared.dispatcher import AlertDispatcher
from ..worker.analysis import AnalysisClient, get_analysis_client


def get_dispatcher() -> AlertDispatcher:
    """Alert dispatcher bound to the application database and Redis feed."""
    return AlertDispatcher()


def get_classifier() -> AnalysisClient:
    """Shared classifier client."""
    return get_analysis_client()


Dispatcher = Annotated[AlertDispatcher, Depends(get_dispatcher)]
Classifier = Annotated[AnalysisClient, Depends(get_classifier)]
