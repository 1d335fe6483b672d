from app.api.modules.auth.services.network.common import (
    UNKNOWN_IP,
    RequestIpResolver,
    get_request_fingerprint,
    is_known_ip,
    normalize_ip,
)
from app.api.modules.auth.services.network.geo import (
    LOCATION_PENDING,
    UNKNOWN_LOCATION,
    GeoLocation,
    GeoLocationClient,
    format_location,
)

__all__ = (
    "LOCATION_PENDING",
    "UNKNOWN_IP",
    "UNKNOWN_LOCATION",
    "GeoLocation",
    "GeoLocationClient",
    "RequestIpResolver",
    "format_location",
    "get_request_fingerprint",
    "is_known_ip",
    "normalize_ip",
)
