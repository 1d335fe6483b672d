from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import jwt

from app.api.modules.auth.exceptions import NotAuthenticated
from app.database.base import utc_now
from app.settings import JwtConfig


@dataclass(slots=True)
class CurrentAccount:
    account_id: str
    email: str
    roles: list[str] = field(default_factory=list)
    session_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class AccessTokenService:
    """Bearer tokens handed out once a login is complete (second factor included)."""

    def __init__(self, config: JwtConfig, clock: Callable[[], datetime] = utc_now):
        self._secret_key = config.secret_key
        self._algorithm = config.algorithm
        self._expires_in = timedelta(minutes=config.access_token_expires_in_minutes)
        self._clock = clock

    @property
    def expires_in_seconds(self) -> int:
        return int(self._expires_in.total_seconds())

    def issue(self, account: CurrentAccount) -> str:
        now = self._clock()
        payload = {
            "sub": account.account_id,
            "email": account.email,
            "roles": account.roles,
            "iat": now,
            "exp": now + self._expires_in,
        }
        if account.session_id is not None:
            payload["sid"] = account.session_id
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str | None) -> CurrentAccount:
        if not token:
            raise NotAuthenticated()
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise NotAuthenticated(str(exc)) from exc

        account_id = payload.get("sub")
        if not account_id:
            raise NotAuthenticated("token without subject")

        sid = payload.get("sid")
        return CurrentAccount(
            account_id=str(account_id),
            email=str(payload.get("email") or ""),
            roles=list(payload.get("roles") or []),
            session_id=int(sid) if sid is not None else None,
        )


__all__ = ("AccessTokenService", "CurrentAccount")
