import asyncio
import logging
from collections.abc import Sequence

from app.api.modules.auth.exceptions import (
    AuthFailed,
    Forbidden,
    NotAuthenticated,
    NotFound,
    StorageUnavailable,
)
from app.api.modules.auth.models import DeviceSession, LoginAttempt
from app.api.modules.auth.schema import (
    ActivityResponse,
    DeviceSessionListResponse,
    DeviceSessionResponse,
    LoginAttemptListResponse,
    LoginAttemptPaginationParams,
    LoginAttemptResponse,
    LoginResponse,
    OtpChallengeResponse,
    OtpCountdownResponse,
    SecurityStatsResponse,
    TrustAssessmentResponse,
)
from app.api.modules.auth.services.device import DeviceRegistry, parse_fingerprint
from app.api.modules.auth.services.identity import (
    AccessTokenService,
    AuthenticatedIdentity,
    CurrentAccount,
    IdentityProvider,
)
from app.api.modules.auth.services.ledger import AttemptFilter, LoginAttemptLedger
from app.api.modules.auth.services.network import (
    LOCATION_PENDING,
    GeoLocationClient,
    format_location,
)
from app.api.modules.auth.services.otp import (
    ChallengeDelivery,
    IssuedChallenge,
    OtpChallengeManager,
    new_scope_key,
)
from app.api.modules.auth.services.trust import TrustAssessment, TrustScoringService
from app.database.base import ensure_utc
from app.settings import Config

logger = logging.getLogger(__name__)


def to_trust_response(
    assessment: TrustAssessment | None,
) -> TrustAssessmentResponse | None:
    if assessment is None:
        return None
    return TrustAssessmentResponse(
        level=assessment.level,
        score=assessment.score,
        reasons=list(assessment.reasons),
    )


def to_attempt_response(attempt: LoginAttempt) -> LoginAttemptResponse:
    return LoginAttemptResponse(
        id=attempt.id,
        account_id=attempt.account_id,
        email=attempt.email,
        succeeded=attempt.succeeded,
        fingerprint_raw=attempt.fingerprint_raw,
        source_ip=attempt.source_ip,
        occurred_at=ensure_utc(attempt.occurred_at),
        device=parse_fingerprint(attempt.fingerprint_raw).label,
    )


class AuthFacadeService:
    def __init__(
        self,
        config: Config,
        identity_provider: IdentityProvider,
        tokens: AccessTokenService,
        ledger: LoginAttemptLedger,
        registry: DeviceRegistry,
        trust: TrustScoringService,
        otp: OtpChallengeManager,
        delivery: ChallengeDelivery,
        geo_client: GeoLocationClient,
    ):
        self._config = config
        self._identity_provider = identity_provider
        self._tokens = tokens
        self._ledger = ledger
        self._registry = registry
        self._trust = trust
        self._otp = otp
        self._delivery = delivery
        self._geo_client = geo_client

    async def _safe_assess(
        self,
        account_id: str,
        fingerprint_raw: str,
        source_ip: str | None,
    ) -> TrustAssessment | None:
        try:
            return await self._trust.assess(account_id, fingerprint_raw, source_ip)
        except StorageUnavailable:
            logger.warning("Skipping trust assessment for account %s", account_id)
            return None

    async def _safe_upsert(
        self,
        identity: AuthenticatedIdentity,
        fingerprint_raw: str,
        source_ip: str | None,
    ) -> DeviceSession | None:
        try:
            return await self._registry.upsert(
                account_id=identity.account_id,
                fingerprint_raw=fingerprint_raw,
                display_name_hint=parse_fingerprint(fingerprint_raw).display_name,
                source_ip=source_ip,
            )
        except StorageUnavailable:
            logger.warning(
                "Device session upsert degraded for account %s", identity.account_id
            )
            return None

    def _challenge_response(self, issued: IssuedChallenge) -> OtpChallengeResponse:
        return OtpChallengeResponse(
            login_id=issued.scope_key,
            expires_at=issued.expires_at,
            expires_in_seconds=self._otp.ttl_seconds,
            code=issued.code if self._config.auth.expose_otp_code else None,
        )

    async def _send_challenge(self, email: str, issued: IssuedChallenge) -> None:
        try:
            await self._delivery.deliver(email, issued.code)
        except Exception:  # noqa: BLE001
            logger.exception("OTP delivery channel raised")

    async def login(
        self,
        email: str,
        password: str,
        fingerprint_raw: str,
        source_ip: str | None,
    ) -> LoginResponse:
        email = email.strip().lower()
        try:
            identity = await self._identity_provider.authenticate(email, password)
        except AuthFailed:
            try:
                await self._ledger.record(
                    email=email,
                    succeeded=False,
                    fingerprint_raw=fingerprint_raw,
                    source_ip=source_ip,
                )
            except StorageUnavailable:
                logger.warning("Failed login attempt could not be recorded")
            raise

        # Snapshot before this attempt is written, so the device is judged on
        # its history rather than on the login being evaluated.
        assessment = await self._safe_assess(
            identity.account_id, fingerprint_raw, source_ip
        )

        try:
            await self._ledger.record(
                email=identity.email,
                succeeded=True,
                account_id=identity.account_id,
                fingerprint_raw=fingerprint_raw,
                source_ip=source_ip,
            )
        except StorageUnavailable:
            logger.warning(
                "Successful login for account %s was not recorded", identity.account_id
            )
        device_session = await self._safe_upsert(identity, fingerprint_raw, source_ip)
        session_id = device_session.id if device_session else None

        response = LoginResponse(
            account_id=identity.account_id,
            email=identity.email,
            mfa_required=identity.mfa_enabled,
            session_id=session_id,
            trust=to_trust_response(assessment),
        )

        if identity.mfa_enabled:
            issued = await self._otp.issue(
                scope_key=new_scope_key(),
                account_id=identity.account_id,
                email=identity.email,
                session_id=session_id,
                roles=identity.roles,
            )
            await self._send_challenge(identity.email, issued)
            response.challenge = self._challenge_response(issued)
            return response

        response.access_token = self._tokens.issue(
            CurrentAccount(
                account_id=identity.account_id,
                email=identity.email,
                roles=identity.roles,
                session_id=session_id,
            )
        )
        response.expires_in_seconds = self._tokens.expires_in_seconds
        return response

    async def verify_otp(self, login_id: str, code: str) -> LoginResponse:
        verified = await self._otp.verify(login_id, code)
        logger.info("Second factor verified for account %s", verified.account_id)

        token = self._tokens.issue(
            CurrentAccount(
                account_id=verified.account_id,
                email=verified.email,
                roles=verified.roles,
                session_id=verified.session_id,
            )
        )
        return LoginResponse(
            account_id=verified.account_id,
            email=verified.email,
            mfa_required=False,
            access_token=token,
            expires_in_seconds=self._tokens.expires_in_seconds,
            session_id=verified.session_id,
        )

    async def resend_otp(self, login_id: str) -> OtpChallengeResponse:
        issued, pending = await self._otp.reissue(login_id)
        await self._send_challenge(pending.email, issued)
        return self._challenge_response(issued)

    async def otp_countdown(self, login_id: str) -> OtpCountdownResponse:
        countdown = await self._otp.countdown(login_id)
        if countdown is None:
            raise NotFound("no pending login")
        return OtpCountdownResponse(
            login_id=login_id,
            expires_at=countdown.expires_at,
            seconds_remaining=countdown.seconds_remaining,
            can_resend=countdown.can_resend,
        )

    async def current_account(self, token: str | None) -> CurrentAccount:
        account = self._tokens.decode(token)
        if (
            self._config.auth.enforce_session_revocation
            and account.session_id is not None
            and not await self._registry.exists(account.account_id, account.session_id)
        ):
            raise NotAuthenticated("device session revoked")
        return account

    async def heartbeat(
        self,
        account: CurrentAccount,
        fingerprint_raw: str,
        source_ip: str | None,
    ) -> DeviceSessionResponse:
        device_session = await self._registry.upsert(
            account_id=account.account_id,
            fingerprint_raw=fingerprint_raw,
            display_name_hint=parse_fingerprint(fingerprint_raw).display_name,
            source_ip=source_ip,
        )
        return self._device_response(
            device_session,
            fingerprint_raw,
            format_location(await self._geo_client.lookup(device_session.source_ip)),
        )

    def _device_response(
        self,
        device_session: DeviceSession,
        fingerprint_raw: str,
        location: str,
    ) -> DeviceSessionResponse:
        descriptor = parse_fingerprint(device_session.fingerprint_raw)
        return DeviceSessionResponse(
            id=device_session.id,
            display_name=device_session.display_name or descriptor.display_name,
            browser=descriptor.browser,
            os=descriptor.os,
            device_class=descriptor.device_class,
            source_ip=device_session.source_ip,
            location=location,
            created_at=ensure_utc(device_session.created_at),
            last_active_at=ensure_utc(device_session.last_active_at),
            is_current=self._registry.is_current(device_session, fingerprint_raw),
        )

    async def list_devices(
        self,
        account: CurrentAccount,
        fingerprint_raw: str,
        include_location: bool = True,
    ) -> DeviceSessionListResponse:
        try:
            sessions: Sequence[DeviceSession] = await self._registry.list(
                account.account_id, retry_if_empty=True
            )
        except StorageUnavailable:
            logger.warning("Device list unavailable for account %s", account.account_id)
            return DeviceSessionListResponse(items=[], total=0)

        if include_location:
            locations = await asyncio.gather(
                *(self._geo_client.lookup(s.source_ip) for s in sessions)
            )
            labels = [format_location(location) for location in locations]
        else:
            labels = [LOCATION_PENDING] * len(sessions)

        items = [
            self._device_response(s, fingerprint_raw, label)
            for s, label in zip(sessions, labels, strict=True)
        ]
        return DeviceSessionListResponse(items=items, total=len(items))

    async def count_devices(self, account: CurrentAccount) -> int:
        return await self._registry.count(account.account_id)

    async def revoke_device(self, account: CurrentAccount, session_id: int) -> None:
        await self._registry.revoke(account.account_id, session_id)

    async def revoke_other_devices(
        self,
        account: CurrentAccount,
        fingerprint_raw: str,
    ) -> int:
        current_id = account.session_id
        if current_id is None:
            current = await self._registry.find_current(
                account.account_id, fingerprint_raw
            )
            current_id = current.id if current else None

        # Without a known current session the delete would wipe every device.
        if current_id is None or not await self._registry.exists(
            account.account_id, current_id
        ):
            raise NotFound("current device session not found")

        return await self._registry.revoke_all_except(account.account_id, current_id)

    async def assess_current_device(
        self,
        account: CurrentAccount,
        fingerprint_raw: str,
        source_ip: str | None,
    ) -> TrustAssessmentResponse | None:
        assessment = await self._safe_assess(
            account.account_id, fingerprint_raw, source_ip
        )
        return to_trust_response(assessment)

    async def recent_activity(self, account: CurrentAccount) -> ActivityResponse:
        try:
            attempts = await self._ledger.list_recent(
                account_id=account.account_id,
                email=account.email or None,
                limit=self._config.auth.recent_activity_limit,
            )
            failed = (
                await self._ledger.count_failed(AttemptFilter(email=account.email))
                if account.email
                else 0
            )
        except StorageUnavailable:
            logger.warning("Recent activity unavailable for account %s", account.account_id)
            return ActivityResponse(items=[], failed_attempts=0)

        return ActivityResponse(
            items=[to_attempt_response(a) for a in attempts],
            failed_attempts=failed,
        )

    async def security_stats(self, account: CurrentAccount) -> SecurityStatsResponse:
        self._require_admin(account)
        return SecurityStatsResponse(
            total_attempts=await self._ledger.count(),
            failed_attempts=await self._ledger.count_failed(),
            active_sessions=await self._registry.count_all(),
        )

    async def list_attempts(
        self,
        account: CurrentAccount,
        params: LoginAttemptPaginationParams,
    ) -> LoginAttemptListResponse:
        self._require_admin(account)
        attempt_filter = AttemptFilter(
            account_id=params.account_id,
            email=params.email.strip().lower() if params.email else None,
            succeeded=params.succeeded,
        )
        items = await self._ledger.list_page(
            limit=params.limit,
            offset=params.offset,
            attempt_filter=attempt_filter,
        )
        total = await self._ledger.count(attempt_filter)
        return LoginAttemptListResponse.from_page(
            [to_attempt_response(a) for a in items], total, params
        )

    @staticmethod
    def _require_admin(account: CurrentAccount) -> None:
        if not account.is_admin:
            raise Forbidden("admin role required")


__all__ = ("AuthFacadeService",)
