"""Order request/response schemas shared by the services and the HTTP boundary."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["cash_on_delivery", "mobile_wallet_a", "mobile_wallet_b", "bank_transfer"]
PaymentStatus = Literal["pending", "awaiting_payment", "paid", "failed"]


def initial_payment_status(method: str) -> str:
    """Cash on delivery is settled at the door; every other method waits for payment."""

    return "pending" if method == "cash_on_delivery" else "awaiting_payment"


class LineItem(BaseModel):
    """One cart entry as submitted at checkout."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    image_url: str | None = None
    quantity: int = Field(ge=1)


class OrderDetails(BaseModel):
    """Customer and delivery details captured by the checkout form."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str | None = None
    notes: str | None = None
    payment_method: PaymentMethod = Field(default="cash_on_delivery", alias="paymentMethod")

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class OrderView(BaseModel):
    """Public representation of an order line."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tracking_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_address: str | None
    product_id: str
    product_name: str
    product_price: float
    product_image_url: str | None
    quantity: int
    total_amount: float
    status: str
    payment_method: str
    payment_status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderStatusUpdate(BaseModel):
    """Admin console edit of one order."""

    status: OrderStatus
    payment_status: PaymentStatus | None = None
    notify: bool = True
