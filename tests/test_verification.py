"""Passcode issuance and verification rules."""

import asyncio

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.common.errors import (
    CooldownActive,
    DispatchError,
    InvalidOrExpired,
    TooManyAttempts,
    ValidationFailed,
)
from storefront.common.rate_limit import TokenBucket
from storefront.services.verification import service as verification_service
from storefront.services.verification.models import PasscodeChallenge, PasscodeCooldown
from storefront.services.verification.service import PasscodeVerifier, generate_passcode


def test_generated_passcodes_are_six_digits():
    for _ in range(200):
        code = generate_passcode()
        assert len(code) == 6
        assert code.isdigit()


def test_issue_persists_challenge_and_sends_code(issuer, session_factory, channel, clock):
    issued = asyncio.run(issuer.issue(" A@X.com ", phone="0300 1234567"))

    assert issued.email == "a@x.com"
    with session_factory() as db:
        rows = db.execute(select(PasscodeChallenge)).scalars().all()
    assert len(rows) == 1
    assert rows[0].email == "a@x.com"
    assert rows[0].phone == "0300 1234567"
    assert rows[0].verified is False
    assert len(channel.messages) == 1
    assert channel.messages[0].to == "a@x.com"
    assert issued.code in channel.messages[0].html


def test_issue_sets_ten_minute_expiry(issuer, clock):
    issued = asyncio.run(issuer.issue("a@x.com"))

    assert (issued.expires_at - clock.now).total_seconds() == 600


@pytest.mark.parametrize("email", ["", "   ", "not-an-email", "a@", None])
def test_issue_rejects_malformed_email(issuer, channel, email):
    with pytest.raises(ValidationFailed):
        asyncio.run(issuer.issue(email))
    assert channel.messages == []


def test_second_issue_within_cooldown_is_rejected(issuer, session_factory, clock):
    asyncio.run(issuer.issue("a@x.com"))

    with pytest.raises(CooldownActive) as exc_info:
        asyncio.run(issuer.issue("A@x.com"))

    assert exc_info.value.seconds_remaining == 60
    with session_factory() as db:
        assert len(db.execute(select(PasscodeChallenge)).scalars().all()) == 1


def test_cooldown_remaining_decreases_as_time_passes(issuer, clock):
    asyncio.run(issuer.issue("a@x.com"))
    seen = []
    for step in (1, 15, 20, 23):
        clock.advance(step)
        with pytest.raises(CooldownActive) as exc_info:
            asyncio.run(issuer.issue("a@x.com"))
        seen.append(exc_info.value.seconds_remaining)

    assert seen == [59, 44, 24, 1]


def test_issue_allowed_again_after_cooldown(issuer, session_factory, clock):
    asyncio.run(issuer.issue("a@x.com"))
    clock.advance(60)

    asyncio.run(issuer.issue("a@x.com"))

    with session_factory() as db:
        assert len(db.execute(select(PasscodeChallenge)).scalars().all()) == 2


def test_cooldown_is_per_identity(issuer):
    asyncio.run(issuer.issue("a@x.com"))
    asyncio.run(issuer.issue("b@x.com"))


def test_dispatch_failure_surfaces_and_keeps_cooldown(issuer, channel, session_factory):
    channel.fail = True

    with pytest.raises(DispatchError):
        asyncio.run(issuer.issue("a@x.com"))

    with session_factory() as db:
        assert len(db.execute(select(PasscodeChallenge)).scalars().all()) == 1
    channel.fail = False
    with pytest.raises(CooldownActive):
        asyncio.run(issuer.issue("a@x.com"))


def test_verify_succeeds_exactly_once(issuer, verifier):
    issued = asyncio.run(issuer.issue("a@x.com"))

    challenge = verifier.verify("a@x.com", issued.code)

    assert challenge.verified is True
    with pytest.raises(InvalidOrExpired):
        verifier.verify("a@x.com", issued.code)


def test_verify_is_case_insensitive_on_email(issuer, verifier):
    issued = asyncio.run(issuer.issue("a@x.com"))

    verifier.verify("  A@X.COM", issued.code)


def test_verify_wrong_code_fails(issuer, verifier):
    issued = asyncio.run(issuer.issue("a@x.com"))
    wrong = f"{(int(issued.code) + 1) % 10**6:06d}"

    with pytest.raises(InvalidOrExpired):
        verifier.verify("a@x.com", wrong)
    verifier.verify("a@x.com", issued.code)


def test_verify_after_expiry_fails(issuer, verifier, clock):
    issued = asyncio.run(issuer.issue("a@x.com"))
    clock.advance(600)

    with pytest.raises(InvalidOrExpired):
        verifier.verify("a@x.com", issued.code)


def test_verify_just_before_expiry_succeeds(issuer, verifier, clock):
    issued = asyncio.run(issuer.issue("a@x.com"))
    clock.advance(599)

    verifier.verify("a@x.com", issued.code)


def test_code_for_another_identity_fails(issuer, verifier):
    issued = asyncio.run(issuer.issue("a@x.com"))

    with pytest.raises(InvalidOrExpired):
        verifier.verify("b@x.com", issued.code)


def test_reissue_keeps_older_rows_for_audit(issuer, verifier, session_factory, clock):
    first = asyncio.run(issuer.issue("a@x.com"))
    clock.advance(61)
    second = asyncio.run(issuer.issue("a@x.com"))

    verifier.verify("a@x.com", second.code)

    with session_factory() as db:
        rows = {row.id: row for row in db.execute(select(PasscodeChallenge)).scalars()}
    assert rows[second.challenge_id].verified is True
    assert rows[first.challenge_id].verified is False


@pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", None])
def test_verify_rejects_malformed_code(verifier, code):
    with pytest.raises(ValidationFailed):
        verifier.verify("a@x.com", code)


def test_verify_attempts_are_throttled(issuer, session_factory, clock, fake_redis):
    limiter = TokenBucket(fake_redis, namespace="verify", capacity=3, period_seconds=600)
    verifier = PasscodeVerifier(session_factory, attempt_limiter=limiter, clock=clock)
    issued = asyncio.run(issuer.issue("a@x.com"))
    wrong = f"{(int(issued.code) + 1) % 10**6:06d}"

    for _ in range(3):
        with pytest.raises(InvalidOrExpired):
            verifier.verify("a@x.com", wrong)
    with pytest.raises(TooManyAttempts):
        verifier.verify("a@x.com", issued.code)


def test_throttle_fails_open_when_redis_is_down(issuer, session_factory, clock):
    class BrokenRedis:
        def hmget(self, *args, **kwargs):
            raise ConnectionError("redis unavailable")

    limiter = TokenBucket(BrokenRedis(), namespace="verify", capacity=1, period_seconds=600)
    verifier = PasscodeVerifier(session_factory, attempt_limiter=limiter, clock=clock)
    issued = asyncio.run(issuer.issue("a@x.com"))

    verifier.verify("a@x.com", issued.code)


def test_has_fresh_verification_respects_window(issuer, verifier, clock):
    issued = asyncio.run(issuer.issue("a@x.com"))
    assert verifier.has_fresh_verification("a@x.com", 1800) is False

    verifier.verify("a@x.com", issued.code)
    assert verifier.has_fresh_verification("a@x.com", 1800) is True

    clock.advance(1800)
    assert verifier.has_fresh_verification("a@x.com", 1800) is False


def hide_cooldown_rows(monkeypatch):
    """Make every session miss the cooldown row, as a request racing the first insert would."""

    real_get = Session.get

    def get(self, entity, ident, **kwargs):
        if entity is PasscodeCooldown:
            return None
        return real_get(self, entity, ident, **kwargs)

    monkeypatch.setattr(Session, "get", get)


def test_losing_first_insert_falls_back_to_cooldown(issuer, session_factory, monkeypatch):
    asyncio.run(issuer.issue("a@x.com"))
    hide_cooldown_rows(monkeypatch)

    with pytest.raises(CooldownActive) as exc_info:
        asyncio.run(issuer.issue("a@x.com"))

    assert exc_info.value.seconds_remaining == 60
    with session_factory() as db:
        assert len(db.execute(select(PasscodeChallenge)).scalars().all()) == 1


def test_losing_first_insert_still_issues_after_cooldown(issuer, session_factory, clock, monkeypatch):
    asyncio.run(issuer.issue("a@x.com"))
    hide_cooldown_rows(monkeypatch)
    clock.advance(60)

    asyncio.run(issuer.issue("a@x.com"))

    with session_factory() as db:
        assert len(db.execute(select(PasscodeChallenge)).scalars().all()) == 2
        assert db.execute(select(PasscodeCooldown)).scalar_one().email == "a@x.com"


def test_concurrent_verify_loses_guarded_update(issuer, verifier, session_factory, monkeypatch):
    issued = asyncio.run(issuer.issue("a@x.com"))

    def update_after_competitor(entity):
        # Another request verifies the same challenge between our select and update.
        with session_factory() as other:
            other.execute(
                update(PasscodeChallenge)
                .where(PasscodeChallenge.id == issued.challenge_id)
                .values(verified=True)
                .execution_options(synchronize_session=False)
            )
            other.commit()
        return update(entity)

    monkeypatch.setattr(verification_service, "update", update_after_competitor)

    with pytest.raises(InvalidOrExpired):
        verifier.verify("a@x.com", issued.code)

    with session_factory() as db:
        assert db.get(PasscodeChallenge, issued.challenge_id).verified is True
