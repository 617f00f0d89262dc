"""Notification payloads, one model per template kind."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    PASSCODE = "passcode"
    CONFIRMATION = "confirmation"
    STATUS_UPDATE = "status_update"


class PasscodePayload(BaseModel):
    code: str
    expires_in_minutes: int = 10


class ConfirmationItem(BaseModel):
    name: str | None = None
    quantity: int = 1
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    image_url: str | None = None


class ConfirmationPayload(BaseModel):
    """Everything the order confirmation email summarizes."""

    customer_name: str | None = None
    customer_address: str | None = None
    payment_method: str | None = None
    items: list[ConfirmationItem] = Field(default_factory=list)
    tracking_ids: list[str] = Field(default_factory=list)


class StatusUpdatePayload(BaseModel):
    tracking_id: str
    new_status: str
    customer_name: str | None = None
    product_name: str | None = None
    quantity: int | None = None
    total_amount: Decimal | None = None


class NotificationRequest(BaseModel):
    """Rendering job handed to the dispatcher; never persisted."""

    kind: NotificationKind
    recipient: str
    payload: PasscodePayload | ConfirmationPayload | StatusUpdatePayload
    reference: str | None = None
