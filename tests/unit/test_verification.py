import pytest

from gatekeeper.application.verification import (
    VerificationCoordinator,
    VerificationResult,
)
from gatekeeper.domain import services as domain_services
from gatekeeper.domain.entities import Purpose
from gatekeeper.domain.errors import CodeExpired, RateLimited, TooManyAttempts, WrongCode
from gatekeeper.infrastructure.memory.staging_store import StagingStore

EMAIL = "ann@example.com"


@pytest.fixture()
def verification(clock):
    return VerificationCoordinator(
        StagingStore("tickets", now=clock),
        code_ttl_seconds=600,
        resend_cooldown_seconds=60,
        max_attempts=3,
        now=clock,
    )


def _codes(monkeypatch, *codes):
    it = iter(codes)
    monkeypatch.setattr(domain_services, "generate_6digit_code", lambda: next(it))


def test_issue_then_verify_consumes_the_ticket(verification):
    code = verification.issue(EMAIL, Purpose.SIGNUP)
    assert code == "123456"
    assert verification.verify(EMAIL, Purpose.SIGNUP, code) is VerificationResult.OK
    assert (
        verification.verify(EMAIL, Purpose.SIGNUP, code) is VerificationResult.EXPIRED
    )


def test_identifier_is_normalized(verification):
    verification.issue("  ANN@Example.com", Purpose.SIGNUP)
    assert verification.verify(EMAIL, Purpose.SIGNUP, "123456") is VerificationResult.OK


def test_reissue_invalidates_the_earlier_code(verification, clock, monkeypatch):
    _codes(monkeypatch, "111111", "222222")
    first = verification.issue(EMAIL, Purpose.SIGNUP)
    clock.advance(60)
    second = verification.issue(EMAIL, Purpose.SIGNUP)

    assert (
        verification.verify(EMAIL, Purpose.SIGNUP, first)
        is VerificationResult.WRONG_CODE
    )
    assert verification.verify(EMAIL, Purpose.SIGNUP, second) is VerificationResult.OK


def test_three_wrong_then_right_is_too_many_attempts(verification):
    verification.issue(EMAIL, Purpose.SIGNUP)
    for _ in range(3):
        assert (
            verification.verify(EMAIL, Purpose.SIGNUP, "000000")
            is VerificationResult.WRONG_CODE
        )
    assert (
        verification.verify(EMAIL, Purpose.SIGNUP, "123456")
        is VerificationResult.TOO_MANY_ATTEMPTS
    )
    # the ticket is gone afterwards
    assert (
        verification.verify(EMAIL, Purpose.SIGNUP, "123456")
        is VerificationResult.EXPIRED
    )


def test_resend_cooldown_boundary(verification, clock):
    verification.issue(EMAIL, Purpose.SIGNUP)

    clock.advance(59)
    with pytest.raises(RateLimited) as ei:
        verification.issue(EMAIL, Purpose.SIGNUP)
    assert ei.value.retry_after_seconds == 1

    clock.advance(1)
    assert verification.issue(EMAIL, Purpose.SIGNUP) == "123456"


def test_code_expires_after_ttl(verification, clock):
    verification.issue(EMAIL, Purpose.SIGNUP)
    clock.advance(600)
    assert (
        verification.verify(EMAIL, Purpose.SIGNUP, "123456")
        is VerificationResult.EXPIRED
    )


def test_expired_ticket_does_not_hold_the_cooldown(verification, clock):
    verification.issue(EMAIL, Purpose.SIGNUP)
    clock.advance(600)
    assert verification.issue(EMAIL, Purpose.SIGNUP) == "123456"


def test_purposes_are_independent(verification):
    verification.issue(EMAIL, Purpose.SIGNUP)
    # no cooldown across purposes
    verification.issue(EMAIL, Purpose.PASSWORD_RESET)
    assert (
        verification.verify(EMAIL, Purpose.PASSWORD_RESET, "123456")
        is VerificationResult.OK
    )
    assert verification.verify(EMAIL, Purpose.SIGNUP, "123456") is VerificationResult.OK


def test_require_valid_raises_matching_errors(verification):
    with pytest.raises(CodeExpired):
        verification.require_valid(EMAIL, Purpose.SIGNUP, "123456")

    verification.issue(EMAIL, Purpose.SIGNUP)
    with pytest.raises(WrongCode) as ei:
        verification.require_valid(EMAIL, Purpose.SIGNUP, "999999")
    assert ei.value.detail == "invalid verification code"

    for _ in range(2):
        verification.verify(EMAIL, Purpose.SIGNUP, "999999")
    with pytest.raises(TooManyAttempts):
        verification.require_valid(EMAIL, Purpose.SIGNUP, "123456")


def test_invalidate_drops_the_ticket_and_the_cooldown(verification):
    verification.issue(EMAIL, Purpose.SIGNUP)
    verification.invalidate(EMAIL, Purpose.SIGNUP)
    assert verification.issue(EMAIL, Purpose.SIGNUP) == "123456"
