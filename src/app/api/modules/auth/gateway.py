import datetime
from collections.abc import Sequence

from sqlalchemy import BinaryExpression, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.modules.auth.models import DeviceSession, LoginAttempt, OtpChallenge


class LoginAttemptGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, attempt: LoginAttempt) -> LoginAttempt:
        self.session.add(attempt)
        await self.session.flush()
        return attempt

    async def get_total_count(self, filters: list[BinaryExpression]) -> int:
        stmt = select(func.count()).select_from(LoginAttempt).where(*filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_all(
        self,
        limit: int,
        offset: int,
        filters: list[BinaryExpression],
    ) -> Sequence[LoginAttempt]:
        stmt = (
            select(LoginAttempt)
            .filter(*filters)
            .order_by(LoginAttempt.occurred_at.desc(), LoginAttempt.id.desc())
            .offset(offset=offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_recent_for(
        self,
        account_id: str | None,
        email: str | None,
        limit: int,
    ) -> Sequence[LoginAttempt]:
        conditions = []
        if account_id:
            conditions.append(LoginAttempt.account_id == account_id)
        if email:
            conditions.append(LoginAttempt.email == email)
        if not conditions:
            return []

        stmt = (
            select(LoginAttempt)
            .where(or_(*conditions))
            .order_by(LoginAttempt.occurred_at.desc(), LoginAttempt.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_successful_for_account(
        self, account_id: str
    ) -> Sequence[LoginAttempt]:
        stmt = (
            select(LoginAttempt)
            .where(
                LoginAttempt.account_id == account_id,
                LoginAttempt.succeeded.is_(True),
            )
            .order_by(LoginAttempt.occurred_at.desc(), LoginAttempt.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class DeviceSessionGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_latest_for_fingerprint(
        self,
        account_id: str,
        fingerprint_raw: str,
    ) -> DeviceSession | None:
        stmt = (
            select(DeviceSession)
            .where(
                DeviceSession.account_id == account_id,
                DeviceSession.fingerprint_raw == fingerprint_raw,
            )
            .order_by(DeviceSession.last_active_at.desc(), DeviceSession.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_account(self, account_id: str) -> Sequence[DeviceSession]:
        stmt = (
            select(DeviceSession)
            .where(DeviceSession.account_id == account_id)
            .order_by(DeviceSession.last_active_at.desc(), DeviceSession.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_by_id(
        self, account_id: str, session_id: int
    ) -> DeviceSession | None:
        stmt = select(DeviceSession).where(
            DeviceSession.id == session_id,
            DeviceSession.account_id == account_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_total_count(self, account_id: str | None = None) -> int:
        stmt = select(func.count()).select_from(DeviceSession)
        if account_id is not None:
            stmt = stmt.where(DeviceSession.account_id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def create(self, device_session: DeviceSession) -> DeviceSession:
        self.session.add(device_session)
        await self.session.flush()
        return device_session

    async def touch(
        self,
        account_id: str,
        session_id: int,
        display_name: str,
        source_ip: str | None,
        last_active_at: datetime.datetime,
    ) -> bool:
        stmt = (
            update(DeviceSession)
            .where(
                DeviceSession.id == session_id,
                DeviceSession.account_id == account_id,
            )
            .values(
                display_name=display_name,
                source_ip=source_ip,
                last_active_at=last_active_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_one(self, account_id: str, session_id: int) -> bool:
        stmt = delete(DeviceSession).where(
            DeviceSession.id == session_id,
            DeviceSession.account_id == account_id,
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_all_except(
        self,
        account_id: str,
        keep_session_id: int | None,
    ) -> int:
        stmt = delete(DeviceSession).where(DeviceSession.account_id == account_id)
        if keep_session_id is not None:
            stmt = stmt.where(DeviceSession.id != keep_session_id)
        result = await self.session.execute(stmt)
        return result.rowcount


class OtpChallengeGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_scope(self, scope_key: str) -> OtpChallenge | None:
        stmt = select(OtpChallenge).where(OtpChallenge.scope_key == scope_key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, challenge: OtpChallenge) -> OtpChallenge:
        self.session.add(challenge)
        await self.session.flush()
        return challenge

    async def delete_by_scope(self, scope_key: str) -> int:
        stmt = delete(OtpChallenge).where(OtpChallenge.scope_key == scope_key)
        result = await self.session.execute(
            stmt.execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    async def delete_by_id(self, challenge_id: int) -> bool:
        stmt = delete(OtpChallenge).where(OtpChallenge.id == challenge_id)
        result = await self.session.execute(
            stmt.execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0

    async def delete_expired(self, now: datetime.datetime) -> int:
        stmt = delete(OtpChallenge).where(OtpChallenge.expires_at < now)
        result = await self.session.execute(
            stmt.execution_options(synchronize_session="fetch")
        )
        return result.rowcount
