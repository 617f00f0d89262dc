"""Request variants accepted by the order-verification endpoint.

The body is a discriminated union on `action`; each variant has exactly one
handler in `handlers.ActionHandlers.handle`.
"""

from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel

from storefront.services.notification.schemas import ConfirmationItem
from storefront.services.orders.schemas import LineItem, OrderDetails, OrderStatus, PaymentMethod


class ActionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SendPasscode(ActionModel):
    action: Literal["send"]
    email: str
    phone: str | None = None


class VerifyPasscode(ActionModel):
    action: Literal["verify"]
    email: str
    otp: str


class CreateOrder(ActionModel):
    action: Literal["create-order"]
    email: str
    order_data: OrderDetails = Field(alias="orderData")
    items: list[LineItem] = Field(min_length=1)
    idempotency_key: str | None = Field(default=None, alias="idempotencyKey")


class SendConfirmation(ActionModel):
    action: Literal["send-confirmation"]
    email: str
    order_items: list[ConfirmationItem] = Field(alias="orderItems")
    tracking_ids: list[str] = Field(alias="trackingIds", min_length=1)
    payment_method: PaymentMethod | None = Field(default=None, alias="paymentMethod")
    customer_name: str | None = Field(default=None, alias="customerName")
    customer_address: str | None = Field(default=None, alias="customerAddress")


class StatusOrderDetails(ActionModel):
    customer_name: str | None = Field(default=None, alias="customerName")
    product_name: str | None = Field(default=None, alias="productName")
    quantity: int | None = None
    total_amount: Decimal | None = Field(default=None, alias="totalAmount")


class SendStatusUpdate(ActionModel):
    action: Literal["send-status-update"]
    email: str
    order_details: StatusOrderDetails = Field(default_factory=StatusOrderDetails, alias="orderDetails")
    new_status: OrderStatus = Field(alias="newStatus")
    tracking_id: str = Field(alias="trackingId")


class TrackOrder(ActionModel):
    action: Literal["track-order"]
    tracking_id: str = Field(alias="trackingId")


class GetOrderHistory(ActionModel):
    action: Literal["get-order-history"]
    email: str


Action = Annotated[
    Union[
        SendPasscode,
        VerifyPasscode,
        CreateOrder,
        SendConfirmation,
        SendStatusUpdate,
        TrackOrder,
        GetOrderHistory,
    ],
    Field(discriminator="action"),
]


class ActionRequest(RootModel[Action]):
    """Request body wrapper so FastAPI resolves the union by `action`."""


ACTION_TYPES = (
    SendPasscode,
    VerifyPasscode,
    CreateOrder,
    SendConfirmation,
    SendStatusUpdate,
    TrackOrder,
    GetOrderHistory,
)
