"""
Travel Time Service Tests
=========================

Distance Matrix responses are served by ``httpx.MockTransport``.
"""

import httpx
import pytest

from app.core.exceptions import ValidationError
from app.services.travel_time import TravelTimeCache, TravelTimeResult, TravelTimeService, cache_key


pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _ok_payload(seconds):
    return {
        "status": "OK",
        "rows": [{"elements": [{"status": "OK", "duration": {"value": seconds}}]}],
    }


def _service(handler, clock=None, api_key="test-key"):
    calls = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    service = TravelTimeService(
        api_key=api_key,
        cache=TravelTimeCache(ttl_seconds=600, clock=clock or FakeClock()),
        transport=httpx.MockTransport(recording_handler),
        base_url="https://maps.example.com/distancematrix/json",
        timeout=1.0,
    )
    return service, calls


class TestTravelTimeCache:
    """Tests for the TTL cache."""

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = TravelTimeCache(ttl_seconds=60, clock=clock)
        cache.set("a|b", 12)

        clock.advance(59)
        assert cache.get("a|b") == 12

        clock.advance(1)
        assert cache.get("a|b") is None
        assert len(cache) == 0

    def test_purge_removes_only_expired(self):
        clock = FakeClock()
        cache = TravelTimeCache(ttl_seconds=60, clock=clock)
        cache.set("old", 1)
        clock.advance(30)
        cache.set("new", 2)
        clock.advance(30)

        assert cache.purge_expired() == 1
        assert cache.get("new") == 2

    def test_cache_key_is_normalized(self):
        assert cache_key("  1 George St ", "PITT ST") == "1 george st|pitt st"


class TestTravelTimeLookup:
    """Tests for TravelTimeService.lookup."""

    @pytest.mark.asyncio
    async def test_rounds_seconds_up_to_minutes(self):
        service, calls = _service(lambda request: httpx.Response(200, json=_ok_payload(601)))

        result = await service.lookup("1 George St", "10 Pitt St")

        assert result == TravelTimeResult(duration_minutes=11, cached=False)
        params = calls[0].url.params
        assert params["mode"] == "driving"
        assert params["key"] == "test-key"
        assert params["origins"] == "1 George St"

    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_cache(self):
        service, calls = _service(lambda request: httpx.Response(200, json=_ok_payload(300)))

        await service.lookup("1 George St", "10 Pitt St")
        result = await service.lookup(" 1 george st", "10 PITT ST ")

        assert result.cached is True
        assert result.duration_minutes == 5
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_fetched_again(self):
        clock = FakeClock()
        service, calls = _service(lambda request: httpx.Response(200, json=_ok_payload(300)), clock=clock)

        await service.lookup("A", "B")
        clock.advance(600)
        result = await service.lookup("A", "B")

        assert result.cached is False
        assert len(calls) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("origin, destination, message", [
        ("", "B", "Invalid origin"),
        ("   ", "B", "Invalid origin"),
        (None, "B", "Invalid origin"),
        ("A", "", "Invalid destination"),
    ])
    async def test_blank_addresses_are_rejected(self, origin, destination, message):
        service, calls = _service(lambda request: httpx.Response(200, json=_ok_payload(60)))

        with pytest.raises(ValidationError) as exc_info:
            await service.lookup(origin, destination)

        assert exc_info.value.message == message
        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_api_key_returns_error_data(self):
        service, calls = _service(lambda request: httpx.Response(200, json=_ok_payload(60)), api_key="")

        result = await service.lookup("A", "B")

        assert result.duration_minutes is None
        assert result.error == "API key not configured"
        assert calls == []

    @pytest.mark.asyncio
    async def test_provider_status_error(self):
        payload = {"status": "REQUEST_DENIED", "error_message": "bad key"}
        service, _ = _service(lambda request: httpx.Response(200, json=payload))

        result = await service.lookup("A", "B")

        assert result.error == "Provider status: REQUEST_DENIED"

    @pytest.mark.asyncio
    async def test_route_not_found_is_not_cached(self):
        payload = {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}
        service, calls = _service(lambda request: httpx.Response(200, json=payload))

        first = await service.lookup("A", "B")
        await service.lookup("A", "B")

        assert first.error == "Route not found: ZERO_RESULTS"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_http_failure_status(self):
        service, _ = _service(lambda request: httpx.Response(503))

        result = await service.lookup("A", "B")

        assert result.error == "Travel time request failed"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        service, _ = _service(handler)

        result = await service.lookup("A", "B")

        assert result.error == "Request timeout"

    @pytest.mark.asyncio
    async def test_non_numeric_duration(self):
        service, _ = _service(lambda request: httpx.Response(200, json=_ok_payload("ten")))

        result = await service.lookup("A", "B")

        assert result.error == "Invalid duration in response"
        assert result.to_dict() == {
            "duration_minutes": None,
            "cached": False,
            "error": "Invalid duration in response",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"status": "OK", "rows": [None]},
            {"status": "OK", "rows": "x"},
            {"status": "OK", "rows": [{"elements": ["x"]}]},
            {"status": "OK", "rows": [{"elements": None}]},
        ],
    )
    async def test_malformed_rows_report_route_not_found(self, payload):
        """Test that unexpected shapes in rows or elements come back as error data."""
        service, _ = _service(lambda request: httpx.Response(200, json=payload))

        result = await service.lookup("A", "B")

        assert result.duration_minutes is None
        assert result.error == "Route not found: unknown"

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        service, _ = _service(lambda request: httpx.Response(200, json=["OK"]))

        result = await service.lookup("A", "B")

        assert result.error == "Invalid provider response"

    @pytest.mark.asyncio
    async def test_non_object_duration(self):
        payload = {"status": "OK", "rows": [{"elements": [{"status": "OK", "duration": 600}]}]}
        service, _ = _service(lambda request: httpx.Response(200, json=payload))

        result = await service.lookup("A", "B")

        assert result.error == "Invalid duration in response"
