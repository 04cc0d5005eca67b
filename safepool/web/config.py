"""Web service configuration from environment variables."""

import os

from ..shared.constants import MAX_PAYLOAD_BYTES


class WebConfig:
    """Configuration for web service."""

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8123"))

    # CORS (for browser observers)
    CORS_ORIGINS: list = os.getenv("CORS_ORIGINS", "").split(",") if os.getenv("CORS_ORIGINS") else []

    # Server-Sent Events
    SSE_HEARTBEAT_SECONDS: float = float(os.getenv("SSE_HEARTBEAT_SECONDS", "30"))

    # Request body ceiling for /api/analyze-frame (base64 inflates by 4/3)
    MAX_REQUEST_BYTES: int = int(os.getenv("MAX_REQUEST_BYTES", str(MAX_PAYLOAD_BYTES * 2)))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production."""
        return os.getenv("RAILWAY_ENVIRONMENT") is not None or \
               os.getenv("ENVIRONMENT", "").lower() == "production"

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of warnings."""
        warnings = []

        if not (os.getenv("CLASSIFIER_API_KEY") or os.getenv("OPENAI_API_KEY")):
            warnings.append("No classifier API key set - frame analysis runs in mock mode")
        if cls.is_production() and "*" in cls.CORS_ORIGINS:
            warnings.append("CORS_ORIGINS allows any origin in production")

        return warnings


config = WebConfig()
