"""Frame classification endpoint."""

import json

import structlog
from fastapi import APIRouter, Request

from ...shared.errors import PayloadTooLarge, ValidationError
from ...shared.schemas.analysis import AnalysisResult
from ..config import config
from ..dependencies import Classifier

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/analyze-frame", response_model=AnalysisResult)
async def analyze_frame(request: Request, classifier: Classifier):
    """
    Classify one frame.

    Body: {"imageBase64": "<base64 JPEG>"}

    Returns a mock result when no classifier is configured; 400 on a
    missing, malformed or oversized image (checked before any upstream
    call); {"error": ...} when the classifier fails.
    """
    body = await request.body()
    if len(body) > config.MAX_REQUEST_BYTES:
        raise PayloadTooLarge("Image too large (max 4MB)")

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body")

    image_base64 = payload.get("imageBase64") if isinstance(payload, dict) else None
    if not isinstance(image_base64, str):
        raise ValidationError("Missing imageBase64")

    result = await classifier.classify(image_base64)
    logger.debug(
        "frame_analyzed",
        distress=result.distress,
        submerged=result.submerged,
        confidence=result.confidence,
        mock=result.mock,
    )
    return result
