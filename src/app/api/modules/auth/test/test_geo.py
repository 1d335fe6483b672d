import httpx
import pytest

from app.api.modules.auth.services.network import (
    UNKNOWN_LOCATION,
    GeoLocation,
    GeoLocationClient,
    format_location,
)


def make_client(config, handler) -> tuple[GeoLocationClient, list[httpx.Request]]:
    calls: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    return GeoLocationClient(http_client, config), calls


class TestGeoLocationClient:
    @pytest.mark.asyncio
    async def test_primary_lookup(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "ipapi.co"
            assert request.url.path == "/8.8.8.8/json/"
            return httpx.Response(
                200,
                json={
                    "city": "Mountain View",
                    "region": "California",
                    "country_name": "United States",
                },
            )

        client, _ = make_client(config, handler)

        location = await client.lookup("8.8.8.8")

        assert location == GeoLocation("Mountain View", "California", "United States")
        assert format_location(location) == "Mountain View, California, United States"

    @pytest.mark.asyncio
    async def test_falls_back_when_primary_fails(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "ipapi.co":
                return httpx.Response(429, json={"error": True, "reason": "RateLimited"})
            assert request.url.path == "/json/1.1.1.1"
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "city": "Sydney",
                    "regionName": "New South Wales",
                    "country": "Australia",
                },
            )

        client, calls = make_client(config, handler)

        location = await client.lookup("1.1.1.1")

        assert location == GeoLocation("Sydney", "New South Wales", "Australia")
        assert [c.url.host for c in calls] == ["ipapi.co", "ip-api.com"]

    @pytest.mark.asyncio
    async def test_error_payload_triggers_fallback(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "ipapi.co":
                return httpx.Response(200, json={"error": True, "reason": "Reserved IP"})
            return httpx.Response(200, json={"status": "fail", "message": "reserved"})

        client, calls = make_client(config, handler)

        assert await client.lookup("10.0.0.1") is None
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_network_errors_resolve_to_none(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client, _ = make_client(config, handler)

        location = await client.lookup("8.8.8.8")

        assert location is None
        assert format_location(location) == UNKNOWN_LOCATION

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ip", [None, "", "Unknown"])
    async def test_unknown_ip_is_not_looked_up(self, config, ip):
        client, calls = make_client(config, lambda request: httpx.Response(500))

        assert await client.lookup(ip) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_results_are_cached(self, config):
        client, calls = make_client(
            config,
            lambda request: httpx.Response(200, json={"country_name": "Germany"}),
        )

        first = await client.lookup("5.5.5.5")
        second = await client.lookup("5.5.5.5")

        assert first == second == GeoLocation(None, None, "Germany")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_disabled_client_makes_no_requests(self, config):
        config.geo.enabled = False
        client, calls = make_client(config, lambda request: httpx.Response(500))

        assert await client.lookup("8.8.8.8") is None
        assert calls == []


def test_format_location_skips_missing_parts():
    assert format_location(GeoLocation("Berlin", None, "Germany")) == "Berlin, Germany"
    assert format_location(GeoLocation(None, None, None)) == UNKNOWN_LOCATION
