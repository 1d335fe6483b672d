import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.modules.auth.exceptions import StorageUnavailable
from app.api.modules.auth.gateway import (
    DeviceSessionGateway,
    LoginAttemptGateway,
    OtpChallengeGateway,
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.login_attempts = LoginAttemptGateway(session)
        self.device_sessions = DeviceSessionGateway(session)
        self.otp_challenges = OtpChallengeGateway(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    @asynccontextmanager
    async def guard(self, operation: str) -> AsyncIterator[None]:
        """Translate driver/ORM failures into ``StorageUnavailable``."""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("Storage operation failed: %s", operation)
            logger.debug("Storage error: %s", exc)
            try:
                await self.rollback()
            except SQLAlchemyError:
                logger.debug("Rollback after %s failed", operation)
            raise StorageUnavailable(operation) from exc
