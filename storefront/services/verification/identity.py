"""Contact identity normalization shared by verification and orders."""

import re

from email_validator import EmailNotValidError, validate_email

from storefront.common.errors import ValidationFailed


PASSCODE_RE = re.compile(r"^\d{6}$")


def normalize_email(email: str | None) -> str:
    """Return the trimmed, lowercased email or raise `ValidationFailed`."""

    candidate = (email or "").strip()
    if not candidate:
        raise ValidationFailed("Email is required")
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationFailed("Please enter a valid email address") from exc
    return candidate.lower()


def check_passcode_format(code: str | None) -> str:
    candidate = (code or "").strip()
    if not PASSCODE_RE.match(candidate):
        raise ValidationFailed("OTP must be a 6-digit code")
    return candidate
