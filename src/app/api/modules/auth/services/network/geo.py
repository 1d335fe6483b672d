import logging
from dataclasses import dataclass
from time import monotonic

import httpx

from app.api.modules.auth.exceptions import EnrichmentUnavailable
from app.api.modules.auth.services.network.common import is_known_ip
from app.settings import Config

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"
LOCATION_PENDING = "Loading..."

_GEO_CACHE_MAX_SIZE = 4096


@dataclass(frozen=True, slots=True)
class GeoLocation:
    city: str | None
    region: str | None
    country: str | None


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def format_location(location: GeoLocation | None) -> str:
    if location is None:
        return UNKNOWN_LOCATION
    parts = [
        part for part in (location.city, location.region, location.country) if part
    ]
    return ", ".join(parts) if parts else UNKNOWN_LOCATION


class GeoLocationClient:
    """Best-effort city/region/country lookup for an IP address.

    Tries ipapi.co first and falls back to ip-api.com. Any failure resolves to
    ``None``; callers render ``UNKNOWN_LOCATION`` instead.
    """

    def __init__(self, client: httpx.AsyncClient, config: Config):
        self._enabled = config.geo.enabled
        self._client = client
        self._base_url = config.geo.base_url.rstrip("/")
        self._fallback_base_url = config.geo.fallback_base_url.rstrip("/")
        self._timeout = config.geo.timeout_seconds
        self._cache_ttl_seconds = config.geo.cache_ttl_seconds
        self._cache: dict[str, tuple[float, GeoLocation | None]] = {}

    async def lookup(self, ip: str | None) -> GeoLocation | None:
        if not self._enabled or not is_known_ip(ip):
            return None

        now = monotonic()
        if self._cache_ttl_seconds > 0:
            cached = self._cache.get(ip)
            if cached and cached[0] > now:
                return cached[1]

        try:
            result = await self._lookup_primary(ip)
        except EnrichmentUnavailable:
            try:
                result = await self._lookup_fallback(ip)
            except EnrichmentUnavailable:
                logger.warning("Failed to resolve IP geolocation", extra={"ip": ip})
                return None

        self._remember(ip, result, now)
        return result

    async def _get_json(self, url: str) -> dict:
        try:
            response = await self._client.get(
                url,
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
            data = response.json()
        except Exception as exc:  # noqa: BLE001
            logger.debug("IP geolocation lookup failed: %s", exc)
            raise EnrichmentUnavailable(url) from exc

        if not isinstance(data, dict):
            raise EnrichmentUnavailable(url)
        return data

    async def _lookup_primary(self, ip: str) -> GeoLocation:
        data = await self._get_json(f"{self._base_url}/{ip}/json/")
        if data.get("error"):
            raise EnrichmentUnavailable(str(data.get("reason") or "error"))
        return GeoLocation(
            city=_text(data.get("city")),
            region=_text(data.get("region")),
            country=_text(data.get("country_name")),
        )

    async def _lookup_fallback(self, ip: str) -> GeoLocation:
        data = await self._get_json(f"{self._fallback_base_url}/json/{ip}")
        if data.get("status") != "success":
            raise EnrichmentUnavailable(str(data.get("message") or "fail"))
        return GeoLocation(
            city=_text(data.get("city")),
            region=_text(data.get("regionName")),
            country=_text(data.get("country")),
        )

    def _remember(self, ip: str, result: GeoLocation | None, now: float) -> None:
        if self._cache_ttl_seconds <= 0:
            return
        if len(self._cache) >= _GEO_CACHE_MAX_SIZE:
            stale = [k for k, (exp, _) in self._cache.items() if exp <= now]
            for k in stale:
                del self._cache[k]
            if len(self._cache) >= _GEO_CACHE_MAX_SIZE:
                oldest = min(self._cache, key=lambda k: self._cache[k][0])
                del self._cache[oldest]
        self._cache[ip] = (now + self._cache_ttl_seconds, result)


__all__ = (
    "LOCATION_PENDING",
    "UNKNOWN_LOCATION",
    "GeoLocation",
    "GeoLocationClient",
    "format_location",
)
