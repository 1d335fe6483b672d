from app.api.modules.auth.services.identity.provider import (
    AuthenticatedIdentity,
    HttpIdentityProvider,
    IdentityProvider,
)
from app.api.modules.auth.services.identity.tokens import (
    AccessTokenService,
    CurrentAccount,
)

__all__ = (
    "AccessTokenService",
    "AuthenticatedIdentity",
    "CurrentAccount",
    "HttpIdentityProvider",
    "IdentityProvider",
)
