"""Frame analysis schemas."""

from pydantic import BaseModel, Field


class AnalysisResult(BaseModel):
    """Normalized classifier verdict for one sampled frame."""
    distress: bool
    confidence: float = Field(ge=0.0, le=1.0)
    description: str = ""
    submerged: bool = False
    mock: bool = False
