import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from app.api.modules.auth.exceptions import AuthFailed, IdentityProviderUnavailable
from app.settings import Config

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthenticatedIdentity:
    account_id: str
    email: str
    mfa_enabled: bool = False
    roles: list[str] = field(default_factory=list)


class IdentityProvider(Protocol):
    async def authenticate(self, email: str, password: str) -> AuthenticatedIdentity:
        """Raise ``AuthFailed`` on bad credentials."""
        ...


class HttpIdentityProvider:
    """Credential check delegated to the external identity service."""

    def __init__(self, client: httpx.AsyncClient, config: Config):
        self._client = client
        self._url = f"{config.identity.base_url.rstrip('/')}/authenticate"
        self._timeout = config.identity.timeout_seconds

    async def authenticate(self, email: str, password: str) -> AuthenticatedIdentity:
        try:
            response = await self._client.post(
                self._url,
                json={"email": email, "password": password},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider request failed")
            logger.debug("Identity provider network error: %s", exc)
            raise IdentityProviderUnavailable() from exc

        if response.status_code in (400, 401, 403, 404):
            raise AuthFailed()
        if response.status_code >= 300:
            logger.warning(
                "Identity provider returned an error",
                extra={"status_code": response.status_code},
            )
            raise IdentityProviderUnavailable()

        try:
            data = response.json()
            account_id = str(data["account_id"])
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Identity provider returned an unexpected payload")
            raise IdentityProviderUnavailable() from exc

        roles = data.get("roles") or []
        return AuthenticatedIdentity(
            account_id=account_id,
            email=str(data.get("email") or email),
            mfa_enabled=bool(data.get("mfa_enabled")),
            roles=[str(role) for role in roles] if isinstance(roles, list) else [],
        )


__all__ = ("AuthenticatedIdentity", "HttpIdentityProvider", "IdentityProvider")
