from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.api.common.schema import Pagination, PaginationParams


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=1024)

    model_config = ConfigDict(extra="forbid")


class OtpVerifyRequest(BaseModel):
    login_id: str = Field(..., min_length=16, max_length=128)
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$")

    model_config = ConfigDict(extra="forbid")


class OtpResendRequest(BaseModel):
    login_id: str = Field(..., min_length=16, max_length=128)

    model_config = ConfigDict(extra="forbid")


class TrustAssessmentResponse(BaseModel):
    level: Literal["risky", "recognized", "trusted"]
    score: int
    reasons: list[str]

    @computed_field
    @property
    def display_score(self) -> int:
        return max(0, min(self.score, 100))


class OtpChallengeResponse(BaseModel):
    login_id: str
    expires_at: datetime
    expires_in_seconds: int
    # Only populated when the service runs in demo mode.
    code: str | None = None


class LoginResponse(BaseModel):
    account_id: str
    email: str
    mfa_required: bool
    access_token: str | None = None
    token_type: str = "bearer"
    expires_in_seconds: int | None = None
    session_id: int | None = None
    challenge: OtpChallengeResponse | None = None
    trust: TrustAssessmentResponse | None = None


class OtpCountdownResponse(BaseModel):
    login_id: str
    expires_at: datetime
    seconds_remaining: int
    can_resend: bool


class DeviceSessionResponse(BaseModel):
    id: int
    display_name: str
    browser: str
    os: str
    device_class: str
    source_ip: str | None
    location: str
    created_at: datetime
    last_active_at: datetime
    is_current: bool


class DeviceSessionListResponse(BaseModel):
    items: list[DeviceSessionResponse]
    total: int


class DeviceCountResponse(BaseModel):
    total: int


class RevokeResponse(BaseModel):
    revoked: int


class LoginAttemptResponse(BaseModel):
    id: int
    account_id: str | None
    email: str
    succeeded: bool
    fingerprint_raw: str | None
    source_ip: str | None
    occurred_at: datetime
    device: str


class ActivityResponse(BaseModel):
    items: list[LoginAttemptResponse]
    failed_attempts: int


class LoginAttemptListResponse(Pagination[LoginAttemptResponse]):
    pass


class LoginAttemptPaginationParams(PaginationParams):
    email: str | None = None
    account_id: str | None = None
    succeeded: bool | None = None


class SecurityStatsResponse(BaseModel):
    total_attempts: int
    failed_attempts: int
    active_sessions: int
