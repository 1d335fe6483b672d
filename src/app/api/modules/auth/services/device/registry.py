import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from app.api.modules.auth.exceptions import NotFound
from app.api.modules.auth.models import DeviceSession
from app.api.modules.auth.services.device.fingerprint import parse_fingerprint
from app.database.base import utc_now
from app.database.uow import UnitOfWork

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Live "remembered device" sessions per account.

    ``upsert`` is a lookup followed by a write and is not atomic. Two
    concurrent first logins from the same fingerprint can both insert; the
    duplicate is tolerated because every later upsert targets the most
    recently active row for the pair. Revocation is always a single scoped
    DELETE statement.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        read_retry_delay_seconds: float = 0.5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow = uow
        self._read_retry_delay_seconds = read_retry_delay_seconds
        self._clock = clock

    async def upsert(
        self,
        account_id: str,
        fingerprint_raw: str,
        display_name_hint: str | None,
        source_ip: str | None,
    ) -> DeviceSession:
        display_name = (
            display_name_hint or parse_fingerprint(fingerprint_raw).display_name
        )
        now = self._clock()

        async with self._uow.guard("registry.upsert"):
            existing = await self._uow.device_sessions.get_latest_for_fingerprint(
                account_id=account_id,
                fingerprint_raw=fingerprint_raw,
            )
            if existing is not None:
                await self._uow.device_sessions.touch(
                    account_id=account_id,
                    session_id=existing.id,
                    display_name=display_name,
                    source_ip=source_ip,
                    last_active_at=now,
                )
                await self._uow.commit()
                logger.debug("Refreshed device session %s", existing.id)
                return existing

            device_session = DeviceSession(
                account_id=account_id,
                display_name=display_name,
                fingerprint_raw=fingerprint_raw,
                source_ip=source_ip,
                created_at=now,
                last_active_at=now,
            )
            await self._uow.device_sessions.create(device_session)
            await self._uow.commit()

        logger.info("Registered new device session %s", device_session.id)
        return device_session

    async def list(
        self,
        account_id: str,
        retry_if_empty: bool = False,
    ) -> Sequence[DeviceSession]:
        """Sessions ordered by last activity, newest first.

        With ``retry_if_empty`` an empty first read is repeated once after a
        short delay, for callers that just wrote a session and need to see it.
        """
        async with self._uow.guard("registry.list"):
            sessions = await self._uow.device_sessions.get_for_account(account_id)

        if sessions or not retry_if_empty:
            return sessions

        await asyncio.sleep(self._read_retry_delay_seconds)
        async with self._uow.guard("registry.list"):
            return await self._uow.device_sessions.get_for_account(account_id)

    async def find_current(
        self,
        account_id: str,
        fingerprint_raw: str,
    ) -> DeviceSession | None:
        async with self._uow.guard("registry.find_current"):
            return await self._uow.device_sessions.get_latest_for_fingerprint(
                account_id=account_id,
                fingerprint_raw=fingerprint_raw,
            )

    async def exists(self, account_id: str, session_id: int) -> bool:
        async with self._uow.guard("registry.exists"):
            found = await self._uow.device_sessions.get_by_id(account_id, session_id)
        return found is not None

    async def revoke(self, account_id: str, session_id: int) -> None:
        async with self._uow.guard("registry.revoke"):
            deleted = await self._uow.device_sessions.delete_one(
                account_id=account_id,
                session_id=session_id,
            )
            await self._uow.commit()

        if not deleted:
            raise NotFound(f"device session {session_id} not found")
        logger.info("Revoked device session %s", session_id)

    async def revoke_all_except(
        self,
        account_id: str,
        current_session_id: int | None,
    ) -> int:
        """Delete every session of the account except ``current_session_id``.

        A missing or unknown id deletes all of them; callers guard against it.
        """
        async with self._uow.guard("registry.revoke_all_except"):
            deleted = await self._uow.device_sessions.delete_all_except(
                account_id=account_id,
                keep_session_id=current_session_id,
            )
            await self._uow.commit()

        logger.info("Revoked %s device sessions", deleted)
        return deleted

    @staticmethod
    def is_current(session: DeviceSession, current_fingerprint_raw: str | None) -> bool:
        return session.fingerprint_raw == current_fingerprint_raw

    async def count(self, account_id: str) -> int:
        async with self._uow.guard("registry.count"):
            return await self._uow.device_sessions.get_total_count(account_id)

    async def count_all(self) -> int:
        async with self._uow.guard("registry.count_all"):
            return await self._uow.device_sessions.get_total_count()


__all__ = ("DeviceRegistry",)
