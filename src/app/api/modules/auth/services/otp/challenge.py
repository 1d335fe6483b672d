import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from hashlib import sha256

from app.api.modules.auth.exceptions import InvalidOrExpired
from app.api.modules.auth.models import OtpChallenge
from app.database.base import ensure_utc, utc_now
from app.database.uow import UnitOfWork

logger = logging.getLogger(__name__)

# Expired rows stay around this long so a late resend still finds its login.
_EXPIRED_RETENTION = timedelta(hours=1)


@dataclass(slots=True)
class IssuedChallenge:
    scope_key: str
    code: str
    expires_at: datetime


@dataclass(slots=True)
class VerifiedChallenge:
    scope_key: str
    account_id: str
    email: str
    session_id: int | None
    roles: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ChallengeCountdown:
    """Advisory countdown for clients. ``verify`` never consults it."""

    expires_at: datetime
    seconds_remaining: int
    can_resend: bool


def new_scope_key() -> str:
    return secrets.token_urlsafe(24)


def hash_code(scope_key: str, code: str) -> str:
    return sha256(f"{scope_key}:{code}".encode()).hexdigest()


def split_roles(value: str | None) -> list[str]:
    return [role for role in (value or "").split(",") if role]


class OtpChallengeManager:
    """Six-digit second-factor challenges kept in shared storage.

    One live challenge per scope key: ``issue`` replaces any previous one,
    so a resend is simply another ``issue``. ``verify`` consumes the
    challenge on success and reports every failure the same way.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        ttl_seconds: int = 120,
        code_min: int = 100_000,
        code_max: int = 999_999,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow = uow
        self._ttl = timedelta(seconds=max(1, int(ttl_seconds)))
        self._code_min = code_min
        self._code_max = code_max
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def generate_code(self) -> str:
        return str(self._code_min + secrets.randbelow(self._code_max - self._code_min + 1))

    async def issue(
        self,
        scope_key: str,
        account_id: str,
        email: str,
        session_id: int | None = None,
        roles: list[str] | None = None,
    ) -> IssuedChallenge:
        now = self._clock()
        code = self.generate_code()
        challenge = OtpChallenge(
            scope_key=scope_key,
            account_id=account_id,
            email=email,
            roles=",".join(roles or []),
            session_id=session_id,
            code_hash=hash_code(scope_key, code),
            created_at=now,
            expires_at=now + self._ttl,
        )

        async with self._uow.guard("otp.issue"):
            superseded = await self._uow.otp_challenges.delete_by_scope(scope_key)
            await self._uow.otp_challenges.delete_expired(now - _EXPIRED_RETENTION)
            await self._uow.otp_challenges.create(challenge)
            await self._uow.commit()

        if superseded:
            logger.info("Superseded pending OTP challenge for account %s", account_id)
        return IssuedChallenge(
            scope_key=scope_key,
            code=code,
            expires_at=challenge.expires_at,
        )

    async def reissue(self, scope_key: str) -> tuple[IssuedChallenge, OtpChallenge]:
        """Resend: a fresh code for the same pending login, countdown reset."""
        async with self._uow.guard("otp.reissue"):
            pending = await self._uow.otp_challenges.get_by_scope(scope_key)
        if pending is None:
            raise InvalidOrExpired("no pending login")

        issued = await self.issue(
            scope_key=scope_key,
            account_id=pending.account_id,
            email=pending.email,
            session_id=pending.session_id,
            roles=split_roles(pending.roles),
        )
        return issued, pending

    async def verify(self, scope_key: str, submitted_code: str) -> VerifiedChallenge:
        now = self._clock()
        async with self._uow.guard("otp.verify"):
            challenge = await self._uow.otp_challenges.get_by_scope(scope_key)
            if challenge is None:
                raise InvalidOrExpired()
            if now > ensure_utc(challenge.expires_at):
                raise InvalidOrExpired()
            if not hmac.compare_digest(
                challenge.code_hash, hash_code(scope_key, submitted_code.strip())
            ):
                raise InvalidOrExpired()

            # A concurrent verify may have consumed it between read and delete.
            consumed = await self._uow.otp_challenges.delete_by_id(challenge.id)
            await self._uow.commit()
            if not consumed:
                raise InvalidOrExpired()

        return VerifiedChallenge(
            scope_key=scope_key,
            account_id=challenge.account_id,
            email=challenge.email,
            session_id=challenge.session_id,
            roles=split_roles(challenge.roles),
        )

    async def countdown(self, scope_key: str) -> ChallengeCountdown | None:
        async with self._uow.guard("otp.countdown"):
            challenge = await self._uow.otp_challenges.get_by_scope(scope_key)
        if challenge is None:
            return None

        expires_at = ensure_utc(challenge.expires_at)
        remaining = max(0, int((expires_at - self._clock()).total_seconds()))
        return ChallengeCountdown(
            expires_at=expires_at,
            seconds_remaining=remaining,
            can_resend=remaining == 0,
        )


__all__ = (
    "ChallengeCountdown",
    "IssuedChallenge",
    "OtpChallengeManager",
    "VerifiedChallenge",
    "hash_code",
    "new_scope_key",
)
