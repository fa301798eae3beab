"""
Travel Time Lookup
==================

Driving time between two addresses from the Google Distance Matrix API.

Features:
- In-memory TTL cache keyed by normalized origin/destination
- Expired entries purged on every lookup
- Provider failures come back as data (``duration_minutes`` None plus
  an ``error``), never as exceptions

The API key stays server side; clients only ever see minutes.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
from httpx import HTTPError, TimeoutException

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger

# Initialize logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class TravelTimeResult:
    duration_minutes: Optional[int]
    cached: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"duration_minutes": self.duration_minutes, "cached": self.cached}
        if self.error:
            data["error"] = self.error
        return data


def cache_key(origin: str, destination: str) -> str:
    return f"{origin.strip().lower()}|{destination.strip().lower()}"


def _first_dict(value) -> dict:
    """First item of a provider list when it is an object, else an empty dict."""
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


class TravelTimeCache:
    """
    Minutes per origin/destination pair with a fixed time to live.

    Single-process only; each worker keeps its own entries.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[int]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        minutes, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return minutes

    def set(self, key: str, minutes: int) -> None:
        self._entries[key] = (minutes, self._clock())

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, stored_at) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()


class TravelTimeService:
    """
    Distance Matrix client with caching.

    Usage:
        service = TravelTimeService()
        result = await service.lookup("1 George St, Sydney", "10 Pitt St, Sydney")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache: Optional[TravelTimeCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = (settings.GOOGLE_MAPS_SERVER_KEY if api_key is None else api_key).strip()
        self.cache = cache if cache is not None else TravelTimeCache(settings.TRAVEL_TIME_CACHE_TTL_SECONDS)
        self.transport = transport
        self.base_url = base_url or settings.DISTANCE_MATRIX_URL
        self.timeout = timeout if timeout is not None else settings.TRAVEL_TIME_TIMEOUT_SECONDS

    async def lookup(self, origin: Optional[str], destination: Optional[str]) -> TravelTimeResult:
        """
        Raises:
            ValidationError: origin or destination missing or blank
        """
        if not isinstance(origin, str) or not origin.strip():
            raise ValidationError("Invalid origin")
        if not isinstance(destination, str) or not destination.strip():
            raise ValidationError("Invalid destination")

        self.cache.purge_expired()
        key = cache_key(origin, destination)
        cached = self.cache.get(key)
        if cached is not None:
            return TravelTimeResult(duration_minutes=cached, cached=True)

        if not self.api_key:
            logger.warning("Distance matrix key not configured")
            return TravelTimeResult(duration_minutes=None, error="API key not configured")

        result = await self._fetch(origin, destination)
        if result.duration_minutes is not None:
            self.cache.set(key, result.duration_minutes)
        return result

    async def _fetch(self, origin: str, destination: str) -> TravelTimeResult:
        params = {
            "origins": origin,
            "destinations": destination,
            "mode": "driving",
            "key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.base_url, params=params)
        except TimeoutException:
            logger.warning("Distance matrix timeout")
            return TravelTimeResult(duration_minutes=None, error="Request timeout")
        except HTTPError as e:
            logger.error("Distance matrix HTTP error", extra={"error": str(e)})
            return TravelTimeResult(duration_minutes=None, error="Travel time request failed")

        if response.status_code != 200:
            logger.error("Distance matrix request failed", extra={"status_code": response.status_code})
            return TravelTimeResult(duration_minutes=None, error="Travel time request failed")

        try:
            data = response.json()
        except ValueError:
            return TravelTimeResult(duration_minutes=None, error="Invalid provider response")

        if not isinstance(data, dict):
            return TravelTimeResult(duration_minutes=None, error="Invalid provider response")

        if data.get("status") != "OK":
            logger.error(
                "Distance matrix status error",
                extra={"status": data.get("status"), "error_message": data.get("error_message")},
            )
            return TravelTimeResult(duration_minutes=None, error=f"Provider status: {data.get('status')}")

        row = _first_dict(data.get("rows"))
        element = _first_dict(row.get("elements"))
        if element.get("status") != "OK":
            return TravelTimeResult(
                duration_minutes=None, error=f"Route not found: {element.get('status') or 'unknown'}"
            )

        duration = element.get("duration")
        seconds = duration.get("value") if isinstance(duration, dict) else None
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return TravelTimeResult(duration_minutes=None, error="Invalid duration in response")

        return TravelTimeResult(duration_minutes=int(math.ceil(seconds / 60)), cached=False)


# -----------------------------
# Singleton getter
# -----------------------------
_travel_time_service: Optional[TravelTimeService] = None


def get_travel_time_service() -> TravelTimeService:
    global _travel_time_service
    if _travel_time_service is None:
        _travel_time_service = TravelTimeService()
    return _travel_time_service
