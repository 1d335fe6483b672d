# pylint: disable=redefined-outer-name
from datetime import UTC, datetime, timedelta

import pytest

from app.api.modules.auth import models  # noqa: F401
from app.api.modules.auth.services.device import DeviceRegistry
from app.api.modules.auth.services.identity import AccessTokenService
from app.api.modules.auth.services.ledger import LoginAttemptLedger
from app.api.modules.auth.services.otp import OtpChallengeManager
from app.api.modules.auth.services.trust import TrustScoringService
from app.database import Base, build_engine, build_session_factory
from app.database.uow import UnitOfWork
from app.settings import Config, JwtConfig

from .fakes import TEST_SECRET_KEY, RecordingDelivery


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def config():
    return Config(
        jwt=JwtConfig(secret_key=TEST_SECRET_KEY),
        database_dsn="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
async def engine(config):
    engine = build_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def uow(session):
    return UnitOfWork(session)


@pytest.fixture
def ledger(uow):
    return LoginAttemptLedger(uow)


@pytest.fixture
def registry(uow, clock):
    return DeviceRegistry(uow, read_retry_delay_seconds=0, clock=clock)


@pytest.fixture
def trust(uow):
    return TrustScoringService(uow)


@pytest.fixture
def otp(uow, clock):
    return OtpChallengeManager(uow, ttl_seconds=120, clock=clock)


@pytest.fixture
def tokens(config):
    return AccessTokenService(config.jwt)


@pytest.fixture
def delivery():
    return RecordingDelivery()
