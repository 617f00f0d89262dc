"""Passcode issuance and verification.

Issuance is serialized per identity through the `passcode_cooldowns` row: the
slot is claimed with a guarded `UPDATE ... WHERE last_issued_at <= cutoff`, so
two near-simultaneous requests cannot both pass the cooldown. Verification
flips `verified` with a guarded update for the same reason.
"""

import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from storefront.common.config import settings
from storefront.common.db import as_utc, utcnow
from storefront.common.errors import CooldownActive, InvalidOrExpired, PersistenceError, TooManyAttempts
from storefront.common.logging import logger, mask_email
from storefront.common.metrics import (
    passcode_cooldown_rejections_total,
    passcode_verifications_total,
    passcodes_issued_total,
)
from storefront.services.verification.identity import check_passcode_format, normalize_email
from storefront.services.verification.models import PasscodeChallenge, PasscodeCooldown


def generate_passcode() -> str:
    """Uniform 6-digit code, zero padded."""

    return f"{secrets.randbelow(10**6):06d}"


def find_fresh_verification(db, email: str, not_before: datetime) -> PasscodeChallenge | None:
    """Most recent verified challenge for `email` created after `not_before`."""

    return db.execute(
        select(PasscodeChallenge)
        .where(
            PasscodeChallenge.email == email,
            PasscodeChallenge.verified.is_(True),
            PasscodeChallenge.created_at > not_before,
        )
        .order_by(PasscodeChallenge.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


@dataclass(frozen=True)
class IssuedPasscode:
    """Outcome of a successful issue call."""

    challenge_id: str
    email: str
    expires_at: datetime
    code: str


class PasscodeIssuer:
    """Creates passcode challenges and hands them to the notification dispatcher."""

    def __init__(
        self,
        session_factory,
        dispatcher,
        cooldown_seconds: int = settings.passcode_cooldown_seconds,
        ttl_seconds: int = settings.passcode_ttl_seconds,
        clock=utcnow,
        service_name: str = "verification",
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.cooldown_seconds = cooldown_seconds
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.service_name = service_name

    def _remaining(self, db, email: str, now: datetime) -> int:
        last_issued_at = db.execute(
            select(PasscodeCooldown.last_issued_at).where(PasscodeCooldown.email == email)
        ).scalar_one()
        elapsed = (now - as_utc(last_issued_at)).total_seconds()
        remaining = math.ceil(self.cooldown_seconds - elapsed)
        return min(self.cooldown_seconds, max(1, remaining))

    def _claim_cooldown(self, db, email: str, now: datetime) -> None:
        """Reserve the issuance slot for `email` or raise `CooldownActive`."""

        if db.get(PasscodeCooldown, email) is None:
            db.add(PasscodeCooldown(email=email, last_issued_at=now))
            try:
                db.flush()
                return
            except IntegrityError:
                # A concurrent first issue inserted the row; fall through to the guarded update.
                db.rollback()

        cutoff = now - timedelta(seconds=self.cooldown_seconds)
        result = db.execute(
            update(PasscodeCooldown)
            .where(PasscodeCooldown.email == email, PasscodeCooldown.last_issued_at <= cutoff)
            .values(last_issued_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            remaining = self._remaining(db, email, now)
            db.rollback()
            passcode_cooldown_rejections_total.labels(service=self.service_name).inc()
            logger.info("passcode_cooldown_active email=%s remaining=%s", mask_email(email), remaining)
            raise CooldownActive(remaining)

    async def issue(self, email: str, phone: str | None = None) -> IssuedPasscode:
        """Persist a new challenge and dispatch its code by email.

        A dispatch failure propagates as `DispatchError`; the challenge and the
        cooldown stay in place, so the caller retries after the cooldown.
        """

        email = normalize_email(email)
        phone = (phone or "").strip() or None
        now = self.clock()
        with self.session_factory() as db:
            self._claim_cooldown(db, email, now)
            challenge = PasscodeChallenge(
                email=email,
                phone=phone,
                code=generate_passcode(),
                created_at=now,
                expires_at=now + timedelta(seconds=self.ttl_seconds),
                verified=False,
            )
            db.add(challenge)
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("passcode_store_failed email=%s error=%s", mask_email(email), exc)
                raise PersistenceError(str(exc)) from exc

        passcodes_issued_total.labels(service=self.service_name).inc()
        logger.info("passcode_issued email=%s challenge_id=%s", mask_email(email), challenge.id)
        await self.dispatcher.send_passcode(
            email,
            code=challenge.code,
            expires_in_minutes=self.ttl_seconds // 60,
            reference=challenge.id,
        )
        return IssuedPasscode(
            challenge_id=challenge.id,
            email=email,
            expires_at=challenge.expires_at,
            code=challenge.code,
        )


class PasscodeVerifier:
    """Matches submitted codes against the most recent live challenge."""

    def __init__(
        self,
        session_factory,
        attempt_limiter=None,
        clock=utcnow,
        service_name: str = "verification",
    ) -> None:
        self.session_factory = session_factory
        self.attempt_limiter = attempt_limiter
        self.clock = clock
        self.service_name = service_name

    def has_fresh_verification(self, email: str, window_seconds: int) -> bool:
        """True when `email` verified a challenge created within the window."""

        email = normalize_email(email)
        not_before = self.clock() - timedelta(seconds=window_seconds)
        with self.session_factory() as db:
            return find_fresh_verification(db, email, not_before) is not None

    def verify(self, email: str, code: str) -> PasscodeChallenge:
        """Mark the matching challenge verified or raise `InvalidOrExpired`."""

        email = normalize_email(email)
        code = check_passcode_format(code)
        if self.attempt_limiter is not None and not self.attempt_limiter.consume(email):
            passcode_verifications_total.labels(service=self.service_name, outcome="throttled").inc()
            logger.warning("passcode_verify_throttled email=%s", mask_email(email))
            raise TooManyAttempts()

        now = self.clock()
        with self.session_factory() as db:
            challenge = db.execute(
                select(PasscodeChallenge)
                .where(
                    PasscodeChallenge.email == email,
                    PasscodeChallenge.code == code,
                    PasscodeChallenge.verified.is_(False),
                    PasscodeChallenge.expires_at > now,
                )
                .order_by(PasscodeChallenge.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if challenge is None:
                passcode_verifications_total.labels(service=self.service_name, outcome="rejected").inc()
                logger.info("passcode_rejected email=%s", mask_email(email))
                raise InvalidOrExpired()

            result = db.execute(
                update(PasscodeChallenge)
                .where(PasscodeChallenge.id == challenge.id, PasscodeChallenge.verified.is_(False))
                .values(verified=True, verified_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                passcode_verifications_total.labels(service=self.service_name, outcome="rejected").inc()
                raise InvalidOrExpired()
            db.commit()

        challenge.verified = True
        challenge.verified_at = now
        passcode_verifications_total.labels(service=self.service_name, outcome="verified").inc()
        logger.info("passcode_verified email=%s challenge_id=%s", mask_email(email), challenge.id)
        return challenge
