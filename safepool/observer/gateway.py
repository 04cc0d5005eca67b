"""HTTP gateway from the observer to the safepool web API."""

import asyncio
from typing import AsyncGenerator, Dict, List, Optional, Protocol, Type, TypeVar
from uuid import UUID

import aiohttp
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from ..shared.errors import NetworkError, NotFoundError
from ..shared.schemas.alert import AlertChange, AlertListResponse, AlertResponse
from .config import config

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class AlertGateway(Protocol):
    """Remote alert operations the distributor depends on."""

    async def list_alerts(self, facility_id: Optional[str] = None) -> List[AlertResponse]:
        ...

    async def dismiss(self, alert_id: UUID) -> AlertResponse:
        ...


def parse_sse_event(lines: List[str]) -> Optional[Dict[str, str]]:
    """Fold one SSE block (lines between blank lines) into {event, data}."""
    event = "message"
    data: List[str] = []
    for line in lines:
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if not data:
        return None
    return {"event": event, "data": "\n".join(data)}


def _validated(model: Type[T], body: object, what: str) -> T:
    """Validate a response body, reporting a malformed one as a network failure."""
    try:
        return model.model_validate(body)
    except SchemaError as exc:
        raise NetworkError(f"{what} returned an unexpected body: {exc.error_count()} validation error(s)") from exc


class HttpAlertGateway:
    """
    aiohttp client for the alerts API and the SSE alert feed.

    Features:
    - List alerts newest first, scoped to a facility or all facilities
    - Dismiss alerts (server stamps dismissed_at)
    - Stream insert/update changes from /api/sse/alerts
    """

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        timeout_seconds: float = config.REQUEST_TIMEOUT,
        limit: int = config.ALERT_LIST_LIMIT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.limit = limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with session.request(method, url, timeout=timeout, **kwargs) as response:
                body = await response.json(content_type=None)
                if response.status == 404:
                    raise NotFoundError(body.get("error", "not found") if isinstance(body, dict) else "not found")
                if response.status >= 400:
                    error = body.get("error") if isinstance(body, dict) else None
                    raise NetworkError(f"{method} {path} failed with status {response.status}: {error}")
                return body
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"{method} {path} timeout after {self.timeout_seconds}s") from exc
        except ValueError as exc:
            raise NetworkError(f"{method} {path} returned invalid JSON") from exc

    async def list_alerts(self, facility_id: Optional[str] = None) -> List[AlertResponse]:
        """Fetch the newest alerts for a facility (or all facilities)."""
        params = {"limit": str(self.limit)}
        if facility_id:
            params["facility_id"] = facility_id
        body = await self._request("GET", "/api/alerts", params=params)
        return _validated(AlertListResponse, body, "GET /api/alerts").alerts

    async def dismiss(self, alert_id: UUID) -> AlertResponse:
        """Dismiss an alert, letting the server stamp the time."""
        path = f"/api/alerts/{alert_id}"
        body = await self._request("PATCH", path, json={})
        return _validated(AlertResponse, body, f"PATCH {path}")

    async def changes(
        self,
        facility_id: Optional[str] = None,
    ) -> AsyncGenerator[AlertChange, None]:
        """
        Stream alert changes from the SSE feed.

        Raises:
            NetworkError: the stream could not be opened or broke
        """
        session = await self._ensure_session()
        params = {"facility_id": facility_id} if facility_id else {}
        url = f"{self.base_url}/api/sse/alerts"
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.timeout_seconds)

        try:
            async with session.get(url, params=params, timeout=timeout) as response:
                if response.status >= 400:
                    raise NetworkError(f"alert feed failed with status {response.status}")

                block: List[str] = []
                async for raw in response.content:
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    if line:
                        block.append(line)
                        continue

                    event = parse_sse_event(block)
                    block = []
                    if event is None or event["event"] not in ("insert", "update"):
                        continue
                    try:
                        yield AlertChange.model_validate_json(event["data"])
                    except SchemaError as exc:
                        logger.warning("alert_feed_bad_event", error=str(exc))
        except aiohttp.ClientError as exc:
            raise NetworkError(f"alert feed failed: {exc}") from exc
