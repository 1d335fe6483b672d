from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from app.api.modules.auth.models import DeviceSession, LoginAttempt
from app.api.modules.auth.services.network.common import is_known_ip
from app.database.uow import UnitOfWork

TrustLevel = Literal["risky", "recognized", "trusted"]

TRUSTED_SCORE_THRESHOLD = 70
RECOGNIZED_SCORE_THRESHOLD = 30

SAME_FINGERPRINT_WEIGHT = 40
NEW_FINGERPRINT_WEIGHT = -20
RECOGNIZED_DEVICE_WEIGHT = 30
FREQUENT_IP_WEIGHT = 20
NEW_DEVICE_IP_WEIGHT = -15
ACTIVE_SESSION_WEIGHT = 10

FREQUENT_IP_MIN_ATTEMPTS = 3
NEW_COMBINATION_MIN_ATTEMPTS = 5

REASON_FIRST_LOGIN = "First login from this device"
REASON_NEW_BROWSER = "New browser detected"
REASON_RECOGNIZED_DEVICE = "Previously recognized device"
REASON_FREQUENT_IP = "Frequent IP address"
REASON_NEW_COMBINATION = "New device/IP combination"
REASON_ACTIVE_SESSION = "Active session exists"


@dataclass(slots=True)
class TrustAssessment:
    level: TrustLevel
    score: int
    reasons: list[str] = field(default_factory=list)

    @property
    def display_score(self) -> int:
        return max(0, min(self.score, 100))


def level_for_score(score: int) -> TrustLevel:
    if score >= TRUSTED_SCORE_THRESHOLD:
        return "trusted"
    if score >= RECOGNIZED_SCORE_THRESHOLD:
        return "recognized"
    return "risky"


def score_device(
    successful_attempts: Sequence[LoginAttempt],
    sessions: Sequence[DeviceSession],
    fingerprint_raw: str | None,
    source_ip: str | None,
) -> TrustAssessment:
    if not successful_attempts:
        return TrustAssessment(level="risky", score=0, reasons=[REASON_FIRST_LOGIN])

    score = 0
    reasons: list[str] = []

    same_fingerprint_count = sum(
        1 for attempt in successful_attempts if attempt.fingerprint_raw == fingerprint_raw
    )
    if same_fingerprint_count > 0:
        score += SAME_FINGERPRINT_WEIGHT
        reasons.append(f"Used {same_fingerprint_count} time(s) before")
    else:
        score += NEW_FINGERPRINT_WEIGHT
        reasons.append(REASON_NEW_BROWSER)

    has_session = any(s.fingerprint_raw == fingerprint_raw for s in sessions)
    if has_session:
        score += RECOGNIZED_DEVICE_WEIGHT
        reasons.append(REASON_RECOGNIZED_DEVICE)

    same_ip_count = 0
    if is_known_ip(source_ip):
        same_ip_count = sum(
            1 for attempt in successful_attempts if attempt.source_ip == source_ip
        )
    if same_ip_count > FREQUENT_IP_MIN_ATTEMPTS:
        score += FREQUENT_IP_WEIGHT
        reasons.append(REASON_FREQUENT_IP)
    elif (
        same_fingerprint_count == 0
        and len(successful_attempts) > NEW_COMBINATION_MIN_ATTEMPTS
    ):
        score += NEW_DEVICE_IP_WEIGHT
        reasons.append(REASON_NEW_COMBINATION)

    if has_session:
        score += ACTIVE_SESSION_WEIGHT
        if REASON_RECOGNIZED_DEVICE not in reasons:
            reasons.append(REASON_ACTIVE_SESSION)

    return TrustAssessment(level=level_for_score(score), score=score, reasons=reasons)


class TrustScoringService:
    """Classifies the device behind a login from ledger and registry state.

    The result is advisory; nothing in the login path is blocked on it.
    """

    def __init__(self, uow: UnitOfWork):
        self._uow = uow

    async def assess(
        self,
        account_id: str,
        fingerprint_raw: str | None,
        source_ip: str | None,
    ) -> TrustAssessment:
        async with self._uow.guard("trust.assess"):
            attempts = await self._uow.login_attempts.get_successful_for_account(
                account_id
            )
            if not attempts:
                return score_device([], [], fingerprint_raw, source_ip)
            sessions = await self._uow.device_sessions.get_for_account(account_id)

        return score_device(attempts, sessions, fingerprint_raw, source_ip)


__all__ = (
    "TrustAssessment",
    "TrustLevel",
    "TrustScoringService",
    "level_for_score",
    "score_device",
)
