from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime

from sqlalchemy import BinaryExpression

from app.api.modules.auth.models import LoginAttempt
from app.database.base import utc_now
from app.database.uow import UnitOfWork


@dataclass(slots=True)
class AttemptFilter:
    account_id: str | None = None
    email: str | None = None
    succeeded: bool | None = None
    since: datetime | None = None

    def to_expressions(self) -> list[BinaryExpression]:
        filters: list[BinaryExpression] = []
        if self.account_id is not None:
            filters.append(LoginAttempt.account_id == self.account_id)
        if self.email is not None:
            filters.append(LoginAttempt.email == self.email)
        if self.succeeded is not None:
            filters.append(LoginAttempt.succeeded.is_(self.succeeded))
        if self.since is not None:
            filters.append(LoginAttempt.occurred_at >= self.since)
        return filters


class LoginAttemptLedger:
    """Append-only record of authentication attempts.

    Writes never fail on business rules, only when storage is unavailable.
    """

    def __init__(self, uow: UnitOfWork):
        self._uow = uow

    async def record(
        self,
        email: str,
        succeeded: bool,
        account_id: str | None = None,
        fingerprint_raw: str | None = None,
        source_ip: str | None = None,
        occurred_at: datetime | None = None,
    ) -> int:
        attempt = LoginAttempt(
            account_id=account_id,
            email=email,
            succeeded=succeeded,
            fingerprint_raw=fingerprint_raw,
            source_ip=source_ip,
            occurred_at=occurred_at or utc_now(),
        )
        async with self._uow.guard("ledger.record"):
            await self._uow.login_attempts.create(attempt)
            await self._uow.commit()
        return attempt.id

    async def list_recent(
        self,
        account_id: str | None,
        email: str | None,
        limit: int,
    ) -> Sequence[LoginAttempt]:
        # Rows are keyed by primary id, so an ordered LIMIT is already distinct.
        async with self._uow.guard("ledger.list_recent"):
            return await self._uow.login_attempts.get_recent_for(
                account_id=account_id,
                email=email,
                limit=limit,
            )

    async def count_failed(self, attempt_filter: AttemptFilter | None = None) -> int:
        attempt_filter = replace(attempt_filter or AttemptFilter(), succeeded=False)
        async with self._uow.guard("ledger.count_failed"):
            return await self._uow.login_attempts.get_total_count(
                attempt_filter.to_expressions()
            )

    async def count(self, attempt_filter: AttemptFilter | None = None) -> int:
        filters = attempt_filter.to_expressions() if attempt_filter else []
        async with self._uow.guard("ledger.count"):
            return await self._uow.login_attempts.get_total_count(filters)

    async def list_successful(self, account_id: str) -> Sequence[LoginAttempt]:
        async with self._uow.guard("ledger.list_successful"):
            return await self._uow.login_attempts.get_successful_for_account(
                account_id
            )

    async def list_page(
        self,
        limit: int,
        offset: int,
        attempt_filter: AttemptFilter | None = None,
    ) -> Sequence[LoginAttempt]:
        filters = attempt_filter.to_expressions() if attempt_filter else []
        async with self._uow.guard("ledger.list_page"):
            return await self._uow.login_attempts.get_all(
                limit=limit,
                offset=offset,
                filters=filters,
            )


__all__ = ("AttemptFilter", "LoginAttemptLedger")
