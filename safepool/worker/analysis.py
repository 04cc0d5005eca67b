"""Client for the external frame classifier."""

import asyncio
import base64
import binascii
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog
from pydantic import ValidationError as SchemaError

from ..shared.constants import MAX_PAYLOAD_BYTES
from ..shared.errors import (
    NetworkError,
    ParseError,
    PayloadTooLarge,
    SafePoolError,
    UpstreamUnavailable,
    ValidationError,
)
from ..shared.schemas.analysis import AnalysisResult
from .config import config

logger = structlog.get_logger(__name__)

CLASSIFIER_PROMPT = """You analyze pool/swimming footage. Detect signs of drowning or distress:
- Vertical posture (person upright, unable to swim)
- Inability to keep head above water
- Lack of coordinated arm movement, struggling
- Person not moving or sinking
- Person fully submerged (underwater, not visible at surface)

Respond ONLY with valid JSON in this exact format, no other text:
{"distress": true or false, "confidence": 0-1, "description": "brief explanation", "submerged": true or false}

Use "submerged": true only when a person is fully underwater (not at surface). \
Focus on pose and motion only. No facial identification. \
Be cautious, false negatives are serious."""

MOCK_DESCRIPTION = "Classifier not configured. Running in mock mode."


def strip_data_url(image_base64: Optional[str]) -> Optional[str]:
    """Drop a "data:image/...;base64," prefix if present."""
    if image_base64 and image_base64.startswith("data:") and "," in image_base64:
        return image_base64.split(",", 1)[1]
    return image_base64


def decode_frame(image_base64: Optional[str]) -> bytes:
    """
    Decode a base64 frame and enforce the payload ceiling.

    Raises:
        ValidationError: missing or not valid base64
        PayloadTooLarge: decoded frame exceeds the payload ceiling
    """
    if not image_base64 or not isinstance(image_base64, str):
        raise ValidationError("Missing imageBase64")

    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Invalid imageBase64") from exc

    if len(data) > MAX_PAYLOAD_BYTES:
        raise PayloadTooLarge(f"Image too large (max {MAX_PAYLOAD_BYTES // (1024 * 1024)}MB)")
    return data


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} substring of text, if any."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def message_text(content: Any) -> Optional[str]:
    """
    Flatten a chat message's content to text.

    Content is either a string or a list of parts, of which only the
    {"type": "text"} parts carry text.

    Raises:
        ParseError: content is neither a string nor a list of parts
    """
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"] for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        )
    raise ParseError(f"Classifier message content has unexpected type {type(content).__name__}")


def parse_classifier_reply(text: Optional[str]) -> AnalysisResult:
    """
    Parse the classifier's reply into an AnalysisResult.

    Strict JSON is tried first, then the first balanced object embedded in
    the text (models sometimes wrap the answer in prose or code fences).

    Raises:
        ParseError: no usable JSON object with the expected fields
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("No response from model")

    text = text.strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        candidate = extract_json_object(text)
        if candidate is None:
            raise ParseError("Classifier reply contained no JSON object")
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Classifier reply was not valid JSON: {exc}") from exc

    if not isinstance(payload, dict) or "distress" not in payload or "confidence" not in payload:
        raise ParseError("Classifier reply is missing distress or confidence")

    try:
        return AnalysisResult(
            distress=payload["distress"],
            confidence=payload["confidence"],
            description=payload.get("description") or "",
            submerged=payload.get("submerged") or False,
        )
    except SchemaError as exc:
        raise ParseError(f"Classifier reply has invalid fields: {exc}") from exc


class AnalysisClient:
    """
    Submits frames to an OpenAI-compatible vision chat endpoint.

    Features:
    - Mock results when no API key is configured
    - Payload ceiling enforced before any upstream call
    - Tolerant JSON extraction from the model reply
    - analyze() never raises; failures become negative results
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = config.CLASSIFIER_BASE_URL,
        model: str = config.CLASSIFIER_MODEL,
        max_tokens: int = config.CLASSIFIER_MAX_TOKENS,
        timeout_seconds: float = config.CLASSIFIER_TIMEOUT,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("analysis_client_session_closed")

    def _build_request(self, image_base64: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": CLASSIFIER_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"},
                        }
                    ],
                },
            ],
        }

    async def _request_completion(self, image_base64: str) -> Optional[str]:
        """
        Send one chat completion request and return the reply text.

        Raises:
            UpstreamUnavailable: no API key configured
            NetworkError: connection failure, timeout or error status
            ParseError: response body is not a chat completion
        """
        if not self.configured:
            raise UpstreamUnavailable("Classifier not configured")

        session = await self._ensure_session()
        url = f"{self.base_url}/chat/completions"

        try:
            async with session.post(url, json=self._build_request(image_base64)) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise NetworkError(
                        f"Classifier request failed with status {response.status}: {error_text[:200]}"
                    )
                body = await response.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Classifier request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise NetworkError(
                f"Classifier request timeout after {self.timeout_seconds}s"
            ) from exc
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError
            raise ParseError(f"Classifier response was not JSON: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ParseError("Classifier response had no message content") from exc
        return message_text(content)

    async def classify(self, image_base64: Optional[str]) -> AnalysisResult:
        """
        Classify one frame.

        Returns:
            A mock result when no API key is configured

        Raises:
            ValidationError: missing or malformed image
            PayloadTooLarge: decoded image exceeds 4MB
            NetworkError: classifier unreachable or returned an error
            ParseError: classifier reply could not be parsed
        """
        image_base64 = strip_data_url(image_base64)
        decode_frame(image_base64)

        try:
            text = await self._request_completion(image_base64)
        except UpstreamUnavailable:
            return AnalysisResult(
                distress=False,
                confidence=0.0,
                description=MOCK_DESCRIPTION,
                submerged=False,
                mock=True,
            )
        return parse_classifier_reply(text)

    async def analyze(self, image_base64: Optional[str]) -> AnalysisResult:
        """Classify one frame; any failure becomes a non-distress result."""
        try:
            return await self.classify(image_base64)
        except SafePoolError as exc:
            logger.warning(
                "frame_analysis_failed",
                error_type=type(exc).__name__,
                error=exc.message,
            )
            return self._negative(exc.message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("frame_analysis_error", error_type=type(exc).__name__)
            return self._negative(f"Analysis failed: {type(exc).__name__}")

    @staticmethod
    def _negative(description: str) -> AnalysisResult:
        return AnalysisResult(
            distress=False,
            confidence=0.0,
            description=description,
            submerged=False,
        )


# Global client instance
_analysis_client: Optional[AnalysisClient] = None


def get_analysis_client() -> AnalysisClient:
    """Get or create the analysis client."""
    global _analysis_client
    if _analysis_client is None:
        _analysis_client = AnalysisClient(api_key=config.CLASSIFIER_API_KEY)
        logger.info(
            "analysis_client_initialized",
            model=_analysis_client.model,
            mock=not _analysis_client.configured,
        )
    return _analysis_client
