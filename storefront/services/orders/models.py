"""Order database models.

One row per purchased line item. Product name, price and image are snapshots
taken at checkout, so later catalog edits never change an existing order.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.common.db import Base


ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
PAYMENT_METHODS = ("cash_on_delivery", "mobile_wallet_a", "mobile_wallet_b", "bank_transfer")
PAYMENT_STATUSES = ("pending", "awaiting_payment", "paid", "failed")


class OrderLine(Base):
    """A single persisted order line with its public tracking id."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        Index("ix_orders_customer_email_created_at", "customer_email", "created_at"),
        UniqueConstraint("customer_email", "checkout_key", "line_number", name="uq_orders_checkout_line"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    tracking_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    customer_name: Mapped[str] = mapped_column(String)
    customer_email: Mapped[str] = mapped_column(String)
    customer_phone: Mapped[str] = mapped_column(String)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_id: Mapped[str] = mapped_column(String)
    product_name: Mapped[str] = mapped_column(String)
    product_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    product_image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    payment_method: Mapped[str] = mapped_column(String)
    payment_status: Mapped[str] = mapped_column(String)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    checkout_key: Mapped[str | None] = mapped_column(String, nullable=True)
    line_number: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
