"""Israel Railways API client for fetching timetable data."""

import asyncio
import time
from datetime import datetime
from typing import Any

import httpx

from .config import Settings, get_settings

USER_AGENT = "gettrain-mcp/0.1.0"


class RateLimiter:
    """Simple rate limiter to keep the rail API happy."""

    def __init__(self, requests_per_second: float):
        self.delay = 1.0 / requests_per_second
        self.last_request = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_request
            if elapsed < self.delay:
                await asyncio.sleep(self.delay - elapsed)
            self.last_request = time.monotonic()


class RailClient:
    """Client for the Israel Railways journey planner API."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.client: httpx.AsyncClient | None = None
        self.rate_limiter = RateLimiter(self.settings.requests_per_second)
        self._transport = transport

    async def __aenter__(self):
        """Async context manager entry."""
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if self.settings.rail_api_key:
            headers["ocp-apim-subscription-key"] = self.settings.rail_api_key

        self.client = httpx.AsyncClient(
            base_url=self.settings.rail_api_base,
            timeout=self.settings.request_timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        """Make a rate-limited request to the rail API."""
        if not self.client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        await self.rate_limiter.wait()

        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise ValueError("Rate limit exceeded by the rail API.")
            elif e.response.status_code == 404:
                raise ValueError("Station or timetable not found.")
            elif e.response.status_code >= 500:
                raise ValueError(
                    f"Rail API server error ({e.response.status_code}). Please try again later."
                )
            raise

    async def search_train_luz(
        self,
        from_station_id: int,
        to_station_id: int,
        datetime_obj: datetime,
    ) -> dict[str, Any]:
        """Get the timetable between two stations.

        Args:
            from_station_id: Rail API id of the origin station
            to_station_id: Rail API id of the destination station
            datetime_obj: Travel date; the hour is sent as the search start

        Returns:
            Raw timetable payload, usually with routes under result.travels.
        """
        params = {
            "fromStation": str(from_station_id),
            "toStation": str(to_station_id),
            "date": datetime_obj.strftime("%Y-%m-%d"),
            "hour": datetime_obj.strftime("%H:%M"),
            "scheduleType": "1",
            "systemType": "2",
            "languageId": "English",
        }

        return await self._request(
            "GET", "/timetable/searchTrainLuzForDateTime", params=params
        )
