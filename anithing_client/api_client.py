"""HTTP client for the backend API."""

import logging
from typing import Any

import httpx

from anithing_client.config import Config
from anithing_client.errors import (
    REJECTION_CLASSES,
    AuthenticationError,
    NetworkError,
    RateLimitedError,
    RemoteRejectedError,
    RemoteTimeoutError,
)
from anithing_client.schemas import ENDPOINTS, ActionType

logger = logging.getLogger(__name__)


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds from a Retry-After header, or None if absent or an HTTP date."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        logger.warning(f"Ignoring unparseable Retry-After header: {value!r}")
        return None


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient that maps failures onto sync errors.

    Connection problems, timeouts, 408, 429 and 5xx responses raise
    NetworkError (retryable). 401 raises AuthenticationError. Any other
    4xx raises RemoteRejectedError carrying the server's error code.
    """

    def __init__(self, config: Config, transport: httpx.AsyncBaseTransport | None = None):
        headers = {"Accept": "application/json"}
        if config.API_TOKEN:
            headers["Authorization"] = f"Bearer {config.API_TOKEN}"

        self._client = httpx.AsyncClient(
            base_url=config.API_URL,
            headers=headers,
            timeout=config.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 500:
            raise NetworkError(f"{method} {path} returned {response.status_code}")
        if response.status_code == 408:
            raise RemoteTimeoutError(f"{method} {path} returned 408")
        if response.status_code == 429:
            raise RateLimitedError(
                f"{method} {path} was rate limited",
                retry_after=_retry_after(response),
            )
        if response.status_code == 401:
            raise AuthenticationError(f"{method} {path} needs a valid API token")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            error = body.get("error") or {}
            code = error.get("code")
            exc_class = REJECTION_CLASSES.get(code, RemoteRejectedError)
            raise exc_class(
                error.get("message") or f"{method} {path} returned {response.status_code}",
                code=code,
                status_code=response.status_code,
                details=error.get("details"),
            )

        return body.get("data")

    async def replay(self, action_type: ActionType | str, payload: dict) -> Any:
        """Send one queued library mutation."""
        path = ENDPOINTS[ActionType(action_type)]
        return await self._request("POST", path, json=payload)

    async def get_title(self, title_id: int) -> dict:
        data = await self._request("GET", f"/titles/{title_id}")
        return data["title"]

    async def search_titles(self, query: str, media_type: str | None = None) -> list[dict]:
        params = {"q": query}
        if media_type:
            params["type"] = media_type
        data = await self._request("GET", "/titles", params=params)
        return data["results"]

    async def get_odds(self) -> dict:
        """Per-tier odds for every box type, as published by the backend."""
        data = await self._request("GET", "/loot-boxes/odds")
        return data["odds"]
