"""Domain exceptions raised by the verification and order services.

The HTTP boundary maps each class to a status code and the uniform
`{"success": false, "message": ...}` body; `public_message` is what the caller
sees, so infrastructure errors never leak internal detail.
"""


class StorefrontError(Exception):
    """Base exception for all storefront workflow errors."""

    status_code = 400
    public_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


class ValidationFailed(StorefrontError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, message: str):
        self.public_message = message
        super().__init__(message)


class CooldownActive(StorefrontError):
    """Raised when a passcode was issued for the same identity too recently."""

    status_code = 429

    def __init__(self, seconds_remaining: int):
        self.seconds_remaining = seconds_remaining
        self.public_message = f"Please wait {seconds_remaining} seconds before requesting a new code"
        super().__init__(self.public_message)


class TooManyAttempts(StorefrontError):
    """Raised when an identity exhausted its verification attempts."""

    status_code = 429
    public_message = "Too many verification attempts. Please try again later"


class InvalidOrExpired(StorefrontError):
    """Raised for a wrong, expired, or already used passcode.

    The three cases are deliberately indistinguishable to the caller.
    """

    public_message = "Invalid or expired OTP"


class NotVerified(StorefrontError):
    """Raised when an action needs a fresh verified passcode and none exists."""

    status_code = 403
    public_message = "Email verification required before placing an order"

    def __init__(self, message: str | None = None):
        if message:
            self.public_message = message
        super().__init__(message)


class Unauthorized(StorefrontError):
    """Raised when an admin-only operation lacks a valid API key."""

    status_code = 401
    public_message = "invalid API key"


class OrderNotFound(StorefrontError):
    """Raised when a tracking id does not match any order."""

    status_code = 404
    public_message = "Order not found"

    def __init__(self, tracking_id: str):
        self.tracking_id = tracking_id
        super().__init__(f"Order not found: {tracking_id}")


class PersistenceError(StorefrontError):
    """Raised when the database rejects a write; nothing was committed."""

    status_code = 500
    public_message = "Failed to save your request. Please try again"


class DispatchError(StorefrontError):
    """Raised when the email channel fails to accept a message."""

    status_code = 502
    public_message = "Failed to send email. Please try again"
