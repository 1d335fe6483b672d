"""HTTP clients provider for dependency injection."""

from collections.abc import AsyncIterator

import httpx
from dishka import Provider, Scope, provide

from app.api.modules.auth.services.identity import HttpIdentityProvider, IdentityProvider
from app.api.modules.auth.services.network import GeoLocationClient
from app.api.modules.auth.services.otp import (
    ChallengeDelivery,
    LoggingChallengeDelivery,
    WebhookChallengeDelivery,
)
from app.settings import Config


class HttpClientsProvider(Provider):
    """Outbound collaborators: identity service, geolocation, OTP delivery.

    All of them share one pooled ``httpx.AsyncClient`` that lives for the
    whole application and is closed on container shutdown.
    """

    @provide(scope=Scope.APP)
    async def get_httpx_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Provide httpx AsyncClient with connection pooling.

        Per-call timeouts are set by each client from its own config section.
        """
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(10.0),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            follow_redirects=True,
        ) as client:
            yield client

    @provide(scope=Scope.APP)
    def get_identity_provider(
        self,
        client: httpx.AsyncClient,
        config: Config,
    ) -> IdentityProvider:
        return HttpIdentityProvider(client, config)

    @provide(scope=Scope.APP)
    def get_geo_location_client(
        self,
        client: httpx.AsyncClient,
        config: Config,
    ) -> GeoLocationClient:
        return GeoLocationClient(client, config)

    @provide(scope=Scope.APP)
    def get_challenge_delivery(
        self,
        client: httpx.AsyncClient,
        config: Config,
    ) -> ChallengeDelivery:
        if config.delivery.webhook_url:
            return WebhookChallengeDelivery(client, config)
        return LoggingChallengeDelivery()
