from fastapi import Request
from fastapi.responses import JSONResponse


class AuthServiceError(Exception):
    status_code: int = 400
    detail: str = "bad_request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.detail)


class AuthFailed(AuthServiceError):
    status_code = 401
    detail = "invalid_credentials"


class NotAuthenticated(AuthServiceError):
    status_code = 401
    detail = "not_authenticated"


class Forbidden(AuthServiceError):
    status_code = 403
    detail = "forbidden"


class NotFound(AuthServiceError):
    status_code = 404
    detail = "not_found"


class InvalidOrExpired(AuthServiceError):
    """OTP rejection. The reason is intentionally not part of the response."""

    status_code = 400
    detail = "invalid_or_expired_code"


class StorageUnavailable(AuthServiceError):
    status_code = 503
    detail = "storage_unavailable"


class IdentityProviderUnavailable(AuthServiceError):
    status_code = 503
    detail = "identity_provider_unavailable"


class EnrichmentUnavailable(Exception):
    """Geolocation lookup failure. Never leaves the geolocation client."""


async def auth_service_error_handler(
    request: Request, exc: AuthServiceError
) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        {"detail": exc.detail},
        status_code=exc.status_code,
        headers=headers,
    )


__all__ = (
    "AuthFailed",
    "AuthServiceError",
    "EnrichmentUnavailable",
    "Forbidden",
    "IdentityProviderUnavailable",
    "InvalidOrExpired",
    "NotAuthenticated",
    "NotFound",
    "StorageUnavailable",
    "auth_service_error_handler",
)
