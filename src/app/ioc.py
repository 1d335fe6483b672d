from collections.abc import AsyncIterator

from dishka import AsyncContainer, Provider, Scope, make_async_container, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.api.modules.auth.service import AuthFacadeService
from app.api.modules.auth.services.device import DeviceRegistry
from app.api.modules.auth.services.identity import (
    AccessTokenService,
    IdentityProvider,
)
from app.api.modules.auth.services.ledger import LoginAttemptLedger
from app.api.modules.auth.services.network import GeoLocationClient, RequestIpResolver
from app.api.modules.auth.services.otp import ChallengeDelivery, OtpChallengeManager
from app.api.modules.auth.services.trust import TrustScoringService
from app.clients.providers import HttpClientsProvider
from app.database.engine import build_engine, build_session_factory
from app.database.uow import UnitOfWork
from app.settings import Config, get_config


class AppProvider(Provider):
    """Application provider for dependency injection."""

    def __init__(self, config: Config | None = None):
        super().__init__()
        self._config = config

    @provide(scope=Scope.APP)
    def get_config(self) -> Config:
        return self._config or get_config()

    @provide(scope=Scope.APP)
    def get_access_token_service(self, config: Config) -> AccessTokenService:
        return AccessTokenService(config.jwt)

    @provide(scope=Scope.APP)
    def get_request_ip_resolver(self, config: Config) -> RequestIpResolver:
        return RequestIpResolver(config)


class DatabaseProvider(Provider):
    """Engine per application, session and unit of work per request."""

    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterator[AsyncEngine]:
        engine = build_engine(config)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(
        self, engine: AsyncEngine
    ) -> async_sessionmaker[AsyncSession]:
        return build_session_factory(engine)

    @provide(scope=Scope.REQUEST)
    async def get_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    @provide(scope=Scope.REQUEST)
    def get_uow(self, session: AsyncSession) -> UnitOfWork:
        return UnitOfWork(session)


class ServicesProvider(Provider):
    """Services provider for dependency injection."""

    @provide(scope=Scope.REQUEST)
    def get_ledger(self, uow: UnitOfWork) -> LoginAttemptLedger:
        return LoginAttemptLedger(uow)

    @provide(scope=Scope.REQUEST)
    def get_device_registry(self, uow: UnitOfWork, config: Config) -> DeviceRegistry:
        return DeviceRegistry(
            uow,
            read_retry_delay_seconds=config.auth.session_read_retry_delay_seconds,
        )

    @provide(scope=Scope.REQUEST)
    def get_trust_scoring_service(self, uow: UnitOfWork) -> TrustScoringService:
        return TrustScoringService(uow)

    @provide(scope=Scope.REQUEST)
    def get_otp_challenge_manager(
        self, uow: UnitOfWork, config: Config
    ) -> OtpChallengeManager:
        return OtpChallengeManager(
            uow,
            ttl_seconds=config.auth.otp_ttl_seconds,
            code_min=config.auth.otp_code_min,
            code_max=config.auth.otp_code_max,
        )

    @provide(scope=Scope.REQUEST)
    def get_auth_facade_service(
        self,
        config: Config,
        identity_provider: IdentityProvider,
        tokens: AccessTokenService,
        ledger: LoginAttemptLedger,
        registry: DeviceRegistry,
        trust: TrustScoringService,
        otp: OtpChallengeManager,
        delivery: ChallengeDelivery,
        geo_client: GeoLocationClient,
    ) -> AuthFacadeService:
        return AuthFacadeService(
            config=config,
            identity_provider=identity_provider,
            tokens=tokens,
            ledger=ledger,
            registry=registry,
            trust=trust,
            otp=otp,
            delivery=delivery,
            geo_client=geo_client,
        )


def get_async_container(
    config: Config | None = None,
    clients_provider: Provider | None = None,
) -> AsyncContainer:
    return make_async_container(
        AppProvider(config),
        DatabaseProvider(),
        ServicesProvider(),
        clients_provider or HttpClientsProvider(),
    )
