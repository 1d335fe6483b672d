from app.api.modules.auth.services.otp.challenge import (
    ChallengeCountdown,
    IssuedChallenge,
    OtpChallengeManager,
    VerifiedChallenge,
    new_scope_key,
)
from app.api.modules.auth.services.otp.delivery import (
    ChallengeDelivery,
    LoggingChallengeDelivery,
    WebhookChallengeDelivery,
)

__all__ = (
    "ChallengeCountdown",
    "ChallengeDelivery",
    "IssuedChallenge",
    "LoggingChallengeDelivery",
    "OtpChallengeManager",
    "VerifiedChallenge",
    "WebhookChallengeDelivery",
    "new_scope_key",
)
