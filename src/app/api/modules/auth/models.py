import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base import Base, DateTimeMixin, utc_now


class LoginAttempt(Base):
    """Append-only ledger row. Never updated or deleted by the service."""

    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    account_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    email: Mapped[str] = mapped_column(String(320), index=True)
    succeeded: Mapped[bool] = mapped_column(Boolean, index=True)
    fingerprint_raw: Mapped[str | None] = mapped_column(
        String(1024), nullable=True
    )
    source_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    occurred_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )


class DeviceSession(Base, DateTimeMixin):
    __tablename__ = "device_sessions"
    # Deliberately not unique: concurrent first logins may insert twice.
    __table_args__ = (
        Index(
            "device_sessions_account_fingerprint_idx",
            "account_id",
            "fingerprint_raw",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    account_id: Mapped[str] = mapped_column(String(128), index=True)
    display_name: Mapped[str] = mapped_column(String(255))
    fingerprint_raw: Mapped[str] = mapped_column(String(1024))
    source_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_active_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )


class OtpChallenge(Base, DateTimeMixin):
    __tablename__ = "otp_challenges"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    scope_key: Mapped[str] = mapped_column(String(128), unique=True)
    account_id: Mapped[str] = mapped_column(String(128), index=True)
    email: Mapped[str] = mapped_column(String(320))
    roles: Mapped[str] = mapped_column(String(255), default="")
    session_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    code_hash: Mapped[str] = mapped_column(String(64))
    expires_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), index=True
    )
