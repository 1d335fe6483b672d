import pytest

from app.api.modules.auth.exceptions import InvalidOrExpired
from app.api.modules.auth.services.otp import OtpChallengeManager, new_scope_key
from app.api.modules.auth.services.otp.challenge import hash_code
from app.api.modules.auth.services.otp.delivery import (
    LoggingChallengeDelivery,
    mask_destination,
)


def _wrong(code: str) -> str:
    return "100000" if code != "100000" else "100001"


class TestOtpChallengeManager:
    def test_generated_codes_are_six_digits_in_range(self, otp):
        for _ in range(200):
            code = otp.generate_code()
            assert len(code) == 6
            assert 100_000 <= int(code) <= 999_999

    @pytest.mark.asyncio
    async def test_issue_sets_expiry_from_ttl(self, otp, clock):
        issued = await otp.issue(new_scope_key(), "acc-1", "user@example.com")

        assert (issued.expires_at - clock()).total_seconds() == 120
        assert otp.ttl_seconds == 120

    @pytest.mark.asyncio
    async def test_code_is_not_stored_in_clear(self, otp, uow):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")

        stored = await uow.otp_challenges.get_by_scope(scope_key)

        assert stored.code_hash != issued.code
        assert stored.code_hash == hash_code(scope_key, issued.code)

    @pytest.mark.asyncio
    async def test_verify_is_single_use(self, otp):
        scope_key = new_scope_key()
        issued = await otp.issue(
            scope_key, "acc-1", "user@example.com", session_id=7, roles=["admin"]
        )

        verified = await otp.verify(scope_key, issued.code)

        assert verified.account_id == "acc-1"
        assert verified.email == "user@example.com"
        assert verified.session_id == 7
        assert verified.roles == ["admin"]
        with pytest.raises(InvalidOrExpired):
            await otp.verify(scope_key, issued.code)

    @pytest.mark.asyncio
    async def test_verify_tolerates_surrounding_whitespace(self, otp):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")

        verified = await otp.verify(scope_key, f" {issued.code} ")

        assert verified.scope_key == scope_key

    @pytest.mark.asyncio
    async def test_wrong_code_keeps_challenge_alive(self, otp):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")

        with pytest.raises(InvalidOrExpired):
            await otp.verify(scope_key, _wrong(issued.code))

        verified = await otp.verify(scope_key, issued.code)
        assert verified.account_id == "acc-1"

    @pytest.mark.asyncio
    async def test_unknown_scope_is_rejected(self, otp):
        with pytest.raises(InvalidOrExpired):
            await otp.verify(new_scope_key(), "123456")

    @pytest.mark.asyncio
    async def test_code_is_valid_until_expiry_inclusive(self, otp, clock):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")
        clock.advance(seconds=120)

        verified = await otp.verify(scope_key, issued.code)

        assert verified.account_id == "acc-1"

    @pytest.mark.asyncio
    async def test_expired_code_is_rejected(self, otp, clock):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")
        clock.advance(seconds=121)

        with pytest.raises(InvalidOrExpired):
            await otp.verify(scope_key, issued.code)

    @pytest.mark.asyncio
    async def test_failure_modes_are_indistinguishable(self, otp, clock):
        scope_key = new_scope_key()
        issued = await otp.issue(scope_key, "acc-1", "user@example.com")

        with pytest.raises(InvalidOrExpired) as wrong_code:
            await otp.verify(scope_key, _wrong(issued.code))
        clock.advance(seconds=121)
        with pytest.raises(InvalidOrExpired) as expired:
            await otp.verify(scope_key, issued.code)
        with pytest.raises(InvalidOrExpired) as missing:
            await otp.verify(new_scope_key(), issued.code)

        assert {
            wrong_code.value.detail,
            expired.value.detail,
            missing.value.detail,
        } == {"invalid_or_expired_code"}

    @pytest.mark.asyncio
    async def test_second_issue_invalidates_first_code(self, otp, mocker):
        scope_key = new_scope_key()
        mocker.patch.object(otp, "generate_code", side_effect=["333333", "444444"])
        await otp.issue(scope_key, "acc-1", "user@example.com")
        await otp.issue(scope_key, "acc-1", "user@example.com")

        with pytest.raises(InvalidOrExpired):
            await otp.verify(scope_key, "333333")
        verified = await otp.verify(scope_key, "444444")
        assert verified.account_id == "acc-1"

    @pytest.mark.asyncio
    async def test_reissue_supersedes_previous_code(self, otp, clock, mocker):
        scope_key = new_scope_key()
        mocker.patch.object(otp, "generate_code", side_effect=["111111", "222222"])
        await otp.issue(scope_key, "acc-1", "user@example.com", roles=["admin"])
        clock.advance(seconds=60)

        reissued, pending = await otp.reissue(scope_key)

        assert reissued.code == "222222"
        assert (reissued.expires_at - clock()).total_seconds() == 120
        assert pending.email == "user@example.com"
        with pytest.raises(InvalidOrExpired):
            await otp.verify(scope_key, "111111")
        verified = await otp.verify(scope_key, "222222")
        assert verified.roles == ["admin"]

    @pytest.mark.asyncio
    async def test_reissue_after_expiry_still_finds_login(self, otp, clock):
        scope_key = new_scope_key()
        await otp.issue(scope_key, "acc-1", "user@example.com")
        clock.advance(minutes=10)

        reissued, _ = await otp.reissue(scope_key)

        verified = await otp.verify(scope_key, reissued.code)
        assert verified.account_id == "acc-1"

    @pytest.mark.asyncio
    async def test_reissue_without_pending_login(self, otp):
        with pytest.raises(InvalidOrExpired):
            await otp.reissue(new_scope_key())

    @pytest.mark.asyncio
    async def test_issue_purges_long_expired_challenges(self, otp, uow, clock):
        stale_key = new_scope_key()
        await otp.issue(stale_key, "acc-1", "user@example.com")
        clock.advance(hours=2)

        await otp.issue(new_scope_key(), "acc-2", "other@example.com")

        assert await uow.otp_challenges.get_by_scope(stale_key) is None

    @pytest.mark.asyncio
    async def test_countdown_ticks_down_then_allows_resend(self, otp, clock):
        scope_key = new_scope_key()
        await otp.issue(scope_key, "acc-1", "user@example.com")

        start = await otp.countdown(scope_key)
        clock.advance(seconds=90)
        middle = await otp.countdown(scope_key)
        clock.advance(seconds=60)
        done = await otp.countdown(scope_key)

        assert (start.seconds_remaining, start.can_resend) == (120, False)
        assert (middle.seconds_remaining, middle.can_resend) == (30, False)
        assert (done.seconds_remaining, done.can_resend) == (0, True)
        assert await otp.countdown(new_scope_key()) is None

    @pytest.mark.asyncio
    async def test_custom_ttl(self, uow, clock):
        manager = OtpChallengeManager(uow, ttl_seconds=30, clock=clock)

        issued = await manager.issue(new_scope_key(), "acc-1", "user@example.com")

        assert (issued.expires_at - clock()).total_seconds() == 30


class TestDelivery:
    @pytest.mark.parametrize(
        "destination, masked",
        [
            ("alice@example.com", "a***@example.com"),
            ("+15551234567", "+1***"),
        ],
    )
    def test_mask_destination(self, destination, masked):
        assert mask_destination(destination) == masked

    @pytest.mark.asyncio
    async def test_logging_delivery_never_logs_the_code(self, caplog):
        with caplog.at_level("INFO"):
            await LoggingChallengeDelivery().deliver("alice@example.com", "654321")

        assert "654321" not in caplog.text
        assert "a***@example.com" in caplog.text
