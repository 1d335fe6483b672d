from ipaddress import ip_address

from fastapi import Request

from app.settings import Config

UNKNOWN_IP = "Unknown"


def normalize_ip(value: str | None) -> str | None:
    if not value:
        return None

    candidate = value.split(",", 1)[0].strip()
    try:
        return str(ip_address(candidate))
    except ValueError:
        return None


def is_known_ip(value: str | None) -> bool:
    return bool(value) and value != UNKNOWN_IP


class RequestIpResolver:
    def __init__(self, config: Config):
        self._trust_forwarded_ip = config.auth.trust_forwarded_ip

    def get_request_ip(self, request: Request) -> str | None:
        if self._trust_forwarded_ip:
            for header in ("cf-connecting-ip", "x-forwarded-for", "x-real-ip"):
                ip = normalize_ip(request.headers.get(header))
                if ip:
                    return ip

        if request.client and request.client.host:
            return normalize_ip(request.client.host)

        return None


def get_request_fingerprint(request: Request) -> str:
    return request.headers.get("user-agent", "").strip()


__all__ = (
    "UNKNOWN_IP",
    "RequestIpResolver",
    "get_request_fingerprint",
    "is_known_ip",
    "normalize_ip",
)
