"""Worker service configuration."""

import os


def _first_env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


class WorkerConfig:
    """Configuration for the worker service."""

    # Classifier settings (an empty key means "not configured", mock mode)
    CLASSIFIER_API_KEY: str = _first_env("CLASSIFIER_API_KEY", "OPENAI_API_KEY")
    CLASSIFIER_BASE_URL: str = os.getenv("CLASSIFIER_BASE_URL", "https://api.openai.com/v1")
    CLASSIFIER_MODEL: str = os.getenv("CLASSIFIER_MODEL", "gpt-4o-mini")
    CLASSIFIER_MAX_TOKENS: int = int(os.getenv("CLASSIFIER_MAX_TOKENS", "200"))
    CLASSIFIER_TIMEOUT: float = float(os.getenv("CLASSIFIER_TIMEOUT", "20.0"))

    # Frame capture (frames are downscaled before encoding)
    CAPTURE_MAX_WIDTH: int = int(os.getenv("CAPTURE_MAX_WIDTH", "640"))
    CAPTURE_MAX_HEIGHT: int = int(os.getenv("CAPTURE_MAX_HEIGHT", "480"))
    CAPTURE_JPEG_QUALITY: int = int(os.getenv("CAPTURE_JPEG_QUALITY", "70"))

    # Camera management
    CAMERA_REFRESH_INTERVAL: float = float(os.getenv("CAMERA_REFRESH_INTERVAL", "60"))
    MAX_CONCURRENT_CAMERAS: int = int(os.getenv("MAX_CONCURRENT_CAMERAS", "20"))

    # Alert persistence
    CREATE_INCIDENTS: bool = os.getenv("CREATE_INCIDENTS", "true").lower() == "true"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production."""
        return os.getenv("RAILWAY_ENVIRONMENT") is not None or \
               os.getenv("ENVIRONMENT", "").lower() == "production"

    @classmethod
    def classifier_configured(cls) -> bool:
        """Check if a classifier key is available."""
        return bool(cls.CLASSIFIER_API_KEY)


config = WorkerConfig()
