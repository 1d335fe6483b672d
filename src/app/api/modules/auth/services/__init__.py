from app.api.modules.auth.services.device import DeviceRegistry, parse_fingerprint
from app.api.modules.auth.services.ledger import AttemptFilter, LoginAttemptLedger
from app.api.modules.auth.services.otp import OtpChallengeManager
from app.api.modules.auth.services.trust import TrustAssessment, TrustScoringService

__all__ = (
    "AttemptFilter",
    "DeviceRegistry",
    "LoginAttemptLedger",
    "OtpChallengeManager",
    "TrustAssessment",
    "TrustScoringService",
    "parse_fingerprint",
)
