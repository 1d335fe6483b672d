from datetime import UTC, datetime, timedelta

import pytest

from app.api.modules.auth.models import DeviceSession, LoginAttempt
from app.api.modules.auth.services.trust import (
    TrustAssessment,
    level_for_score,
    score_device,
)

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_attempts(*pairs: tuple[str | None, str | None]) -> list[LoginAttempt]:
    return [
        LoginAttempt(
            account_id="acc-1",
            email="user@example.com",
            succeeded=True,
            fingerprint_raw=fingerprint,
            source_ip=ip,
            occurred_at=BASE_TIME + timedelta(minutes=i),
        )
        for i, (fingerprint, ip) in enumerate(pairs)
    ]


def make_session(fingerprint: str) -> DeviceSession:
    return DeviceSession(
        account_id="acc-1",
        display_name="device",
        fingerprint_raw=fingerprint,
        created_at=BASE_TIME,
        last_active_at=BASE_TIME,
    )


@pytest.mark.parametrize(
    "score, level",
    [
        (100, "trusted"),
        (70, "trusted"),
        (69, "recognized"),
        (30, "recognized"),
        (29, "risky"),
        (0, "risky"),
        (-35, "risky"),
    ],
)
def test_level_thresholds(score, level):
    assert level_for_score(score) == level


def test_display_score_is_clamped_but_score_is_not():
    assessment = TrustAssessment(level="trusted", score=120)

    assert assessment.score == 120
    assert assessment.display_score == 100
    assert TrustAssessment(level="risky", score=-35).display_score == 0


class TestScoreDevice:
    def test_first_login_is_terminal(self):
        assessment = score_device([], [make_session("UA-X")], "UA-X", "10.0.0.1")

        assert assessment.level == "risky"
        assert assessment.score == 0
        assert assessment.reasons == ["First login from this device"]

    def test_known_fingerprint_without_session(self):
        attempts = make_attempts(("UA-X", "10.0.0.1"), ("UA-X", "10.0.0.2"))

        assessment = score_device(attempts, [], "UA-X", "10.0.0.9")

        assert assessment.score == 40
        assert assessment.level == "recognized"
        assert assessment.reasons == ["Used 2 time(s) before"]

    def test_new_browser(self):
        attempts = make_attempts(("UA-X", "10.0.0.1"))

        assessment = score_device(attempts, [], "UA-Y", "10.0.0.1")

        assert assessment.score == -20
        assert assessment.level == "risky"
        assert assessment.reasons == ["New browser detected"]

    def test_recognized_device_does_not_repeat_reason(self):
        attempts = make_attempts(("UA-X", None))

        assessment = score_device(attempts, [make_session("UA-X")], "UA-X", None)

        assert assessment.score == 80
        assert assessment.reasons == [
            "Used 1 time(s) before",
            "Previously recognized device",
        ]
        assert "Active session exists" not in assessment.reasons

    def test_frequent_ip_needs_more_than_three_matches(self):
        three = make_attempts(*[("UA-X", "10.0.0.1")] * 3)
        four = make_attempts(*[("UA-X", "10.0.0.1")] * 4)

        assert score_device(three, [], "UA-X", "10.0.0.1").score == 40
        frequent = score_device(four, [], "UA-X", "10.0.0.1")
        assert frequent.score == 60
        assert "Frequent IP address" in frequent.reasons

    @pytest.mark.parametrize("source_ip", [None, "", "Unknown"])
    def test_unknown_ip_never_counts_as_frequent(self, source_ip):
        attempts = make_attempts(*[("UA-X", source_ip)] * 5)

        assessment = score_device(attempts, [], "UA-X", source_ip)

        assert "Frequent IP address" not in assessment.reasons
        assert assessment.score == 40

    def test_new_combination_needs_more_than_five_attempts(self):
        five = make_attempts(*[("UA-X", "10.0.0.1")] * 5)
        six = make_attempts(*[("UA-X", "10.0.0.1")] * 6)

        assert score_device(five, [], "UA-Z", "10.9.9.9").score == -20
        combined = score_device(six, [], "UA-Z", "10.9.9.9")
        assert combined.score == -35
        assert combined.reasons == ["New browser detected", "New device/IP combination"]

    def test_score_reaching_seventy_is_trusted(self):
        attempts = make_attempts(("UA-X", "10.0.0.1"))

        assessment = score_device(attempts, [make_session("UA-X")], "UA-X", None)

        assert assessment.score >= 70
        assert assessment.level == "trusted"


class TestTrustScoringService:
    @pytest.mark.asyncio
    async def test_account_with_history(self, trust, ledger, registry):
        for _ in range(5):
            await ledger.record(
                email="a@example.com",
                succeeded=True,
                account_id="acc-A",
                fingerprint_raw="UA-X",
                source_ip="10.0.0.1",
            )
        await ledger.record(
            email="a@example.com",
            succeeded=True,
            account_id="acc-A",
            fingerprint_raw="UA-Y",
            source_ip="10.0.0.2",
        )
        await ledger.record(
            email="a@example.com",
            succeeded=False,
            account_id="acc-A",
            fingerprint_raw="UA-Z",
            source_ip="10.0.0.3",
        )
        await registry.upsert("acc-A", "UA-X", None, "10.0.0.1")

        known = await trust.assess("acc-A", "UA-X", "10.0.0.1")
        unknown = await trust.assess("acc-A", "UA-Z", "10.0.0.3")

        assert known.score >= 80
        assert known.level == "trusted"
        assert "Used 5 time(s) before" in known.reasons
        assert unknown.score <= -35
        assert unknown.level == "risky"

    @pytest.mark.asyncio
    async def test_failed_attempts_only_is_first_login(self, trust, ledger):
        await ledger.record(
            email="a@example.com",
            succeeded=False,
            account_id="acc-A",
            fingerprint_raw="UA-X",
        )

        assessment = await trust.assess("acc-A", "UA-X", None)

        assert assessment.reasons == ["First login from this device"]
