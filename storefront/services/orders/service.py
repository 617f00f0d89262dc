"""Order materialization, lookup and admin edits.

Creating orders is gated on a fresh verified passcode. All lines of one
checkout are committed in a single transaction; the confirmation email is sent
afterwards and its failure never undoes the order.
"""

from datetime import timedelta
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from storefront.common.config import settings
from storefront.common.db import utcnow
from storefront.common.errors import NotVerified, OrderNotFound, PersistenceError, ValidationFailed
from storefront.common.logging import logger, mask_email, tracking_id_ctx
from storefront.common.metrics import (
    order_lines_created_total,
    order_rejections_total,
    order_status_changes_total,
    orders_created_total,
)
from storefront.services.notification.schemas import (
    ConfirmationItem,
    ConfirmationPayload,
    NotificationKind,
    StatusUpdatePayload,
)
from storefront.services.orders.models import ORDER_STATUSES, PAYMENT_STATUSES, OrderLine
from storefront.services.orders.schemas import LineItem, OrderDetails, initial_payment_status
from storefront.services.orders.tracking import generate_batch
from storefront.services.verification.identity import normalize_email
from storefront.services.verification.service import find_fresh_verification


# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


def _coerce_items(items) -> list[LineItem]:
    try:
        return [item if isinstance(item, LineItem) else LineItem.model_validate(item) for item in items]
    except ValidationError as exc:
        raise ValidationFailed("Invalid cart item") from exc


class OrderMaterializer:
    """Turns a verified checkout into persisted order lines."""

    def __init__(
        self,
        session_factory,
        dispatcher,
        site_settings,
        verified_window_seconds: int = settings.verified_window_seconds,
        clock=utcnow,
        max_attempts: int = 3,
        service_name: str = "orders",
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.site_settings = site_settings
        self.verified_window_seconds = verified_window_seconds
        self.clock = clock
        self.max_attempts = max_attempts
        self.service_name = service_name

    def _existing_checkout(self, db, email: str, checkout_key: str) -> list[str]:
        return list(
            db.execute(
                select(OrderLine.tracking_id)
                .where(OrderLine.customer_email == email, OrderLine.checkout_key == checkout_key)
                .order_by(OrderLine.line_number)
            ).scalars()
        )

    def _build_lines(self, email, details: OrderDetails, items, tracking_ids, checkout_key, now) -> list[OrderLine]:
        lines = []
        for index, (item, tracking_id) in enumerate(zip(items, tracking_ids)):
            lines.append(
                OrderLine(
                    tracking_id=tracking_id,
                    customer_name=details.name,
                    customer_email=email,
                    customer_phone=details.phone,
                    customer_address=(details.address or "").strip() or None,
                    product_id=item.id,
                    product_name=item.name,
                    product_price=item.price,
                    product_image_url=item.image_url,
                    quantity=item.quantity,
                    total_amount=item.price * item.quantity,
                    status="pending",
                    payment_method=details.payment_method,
                    payment_status=initial_payment_status(details.payment_method),
                    notes=(details.notes or "").strip() or None,
                    checkout_key=checkout_key,
                    line_number=index,
                    created_at=now,
                    updated_at=now,
                )
            )
        return lines

    async def create_order(
        self,
        email: str,
        details: OrderDetails,
        items,
        idempotency_key: str | None = None,
    ) -> list[str]:
        """Persist one order line per item and return their tracking ids in item order."""

        email = normalize_email(email)
        items = _coerce_items(items)
        if not items:
            raise ValidationFailed("Cart is empty")
        if any(item.price * item.quantity > MAX_AMOUNT for item in items):
            raise ValidationFailed("Order line total is too large")
        checkout_key = (idempotency_key or "").strip() or None
        now = self.clock()
        site = self.site_settings.snapshot()

        with self.session_factory() as db:
            not_before = now - timedelta(seconds=self.verified_window_seconds)
            if find_fresh_verification(db, email, not_before) is None:
                order_rejections_total.labels(service=self.service_name, reason="not_verified").inc()
                logger.warning("order_rejected_not_verified email=%s", mask_email(email))
                raise NotVerified()
            if checkout_key:
                existing = self._existing_checkout(db, email, checkout_key)
                if existing:
                    logger.info("duplicate checkout skipped email=%s checkout_key=%s", mask_email(email), checkout_key)
                    return existing

        tracking_ids: list[str] = []
        for attempt in range(1, self.max_attempts + 1):
            tracking_ids = generate_batch(site.tracking_prefix, now, len(items))
            with self.session_factory() as db:
                db.add_all(self._build_lines(email, details, items, tracking_ids, checkout_key, now))
                try:
                    db.commit()
                    break
                except IntegrityError as exc:
                    db.rollback()
                    if checkout_key:
                        existing = self._existing_checkout(db, email, checkout_key)
                        if existing:
                            logger.info("concurrent checkout won email=%s checkout_key=%s", mask_email(email), checkout_key)
                            return existing
                    if attempt == self.max_attempts:
                        logger.error("order_insert_failed email=%s error=%s", mask_email(email), exc)
                        raise PersistenceError(str(exc)) from exc
                    logger.warning("tracking_id collision retry=%s/%s", attempt, self.max_attempts)
                except SQLAlchemyError as exc:
                    db.rollback()
                    logger.error("order_insert_failed email=%s error=%s", mask_email(email), exc)
                    raise PersistenceError(str(exc)) from exc

        orders_created_total.labels(service=self.service_name).inc()
        order_lines_created_total.labels(service=self.service_name).inc(len(tracking_ids))
        logger.info("order_created email=%s tracking_ids=%s", mask_email(email), ",".join(tracking_ids))

        await self.dispatcher.send_best_effort(
            NotificationKind.CONFIRMATION,
            email,
            ConfirmationPayload(
                customer_name=details.name,
                customer_address=details.address,
                payment_method=details.payment_method,
                items=[
                    ConfirmationItem(name=i.name, quantity=i.quantity, price=i.price, image_url=i.image_url)
                    for i in items
                ],
                tracking_ids=tracking_ids,
            ),
            reference=tracking_ids[0],
        )
        return tracking_ids


class OrderLookup:
    """Read-only order queries for the tracking and history pages."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def find_by_tracking_id(self, tracking_id: str | None) -> OrderLine | None:
        """Exact, case-sensitive match; unknown ids return None."""

        candidate = (tracking_id or "").strip()
        if not candidate:
            return None
        with self.session_factory() as db:
            return db.execute(select(OrderLine).where(OrderLine.tracking_id == candidate)).scalar_one_or_none()

    def find_by_email(self, email: str) -> list[OrderLine]:
        """All orders for a normalized email, newest first."""

        email = normalize_email(email)
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(OrderLine)
                    .where(OrderLine.customer_email == email)
                    .order_by(OrderLine.created_at.desc(), OrderLine.line_number)
                ).scalars()
            )


class OrderAdmin:
    """Admin console operations: listing, status changes, hard deletes."""

    def __init__(self, session_factory, dispatcher, clock=utcnow, service_name: str = "orders") -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.clock = clock
        self.service_name = service_name

    def list_orders(self, status: str | None = None, limit: int = 100) -> list[OrderLine]:
        query = select(OrderLine).order_by(OrderLine.created_at.desc(), OrderLine.line_number).limit(limit)
        if status is not None:
            query = query.where(OrderLine.status == status)
        with self.session_factory() as db:
            return list(db.execute(query).scalars())

    async def update_status(
        self,
        tracking_id: str,
        new_status: str,
        payment_status: str | None = None,
        notify: bool = True,
    ) -> OrderLine:
        """Set any status (last write wins) and email the customer when it changed."""

        if new_status not in ORDER_STATUSES:
            raise ValidationFailed(f"Unknown order status: {new_status}")
        if payment_status is not None and payment_status not in PAYMENT_STATUSES:
            raise ValidationFailed(f"Unknown payment status: {payment_status}")

        tracking_id_ctx.set(tracking_id)
        with self.session_factory() as db:
            order = db.execute(select(OrderLine).where(OrderLine.tracking_id == tracking_id)).scalar_one_or_none()
            if order is None:
                raise OrderNotFound(tracking_id)
            previous = order.status
            order.status = new_status
            if payment_status is not None:
                order.payment_status = payment_status
            order.updated_at = self.clock()
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("order_status_update_failed error=%s", exc)
                raise PersistenceError(str(exc)) from exc

        order_status_changes_total.labels(service=self.service_name, status=new_status).inc()
        logger.info("order_status_changed from=%s to=%s", previous, new_status)
        if notify and previous != new_status:
            await self.dispatcher.send_best_effort(
                NotificationKind.STATUS_UPDATE,
                order.customer_email,
                StatusUpdatePayload(
                    tracking_id=order.tracking_id,
                    new_status=new_status,
                    customer_name=order.customer_name,
                    product_name=order.product_name,
                    quantity=order.quantity,
                    total_amount=order.total_amount,
                ),
                reference=order.tracking_id,
            )
        return order

    def delete_order(self, tracking_id: str) -> None:
        with self.session_factory() as db:
            result = db.execute(delete(OrderLine).where(OrderLine.tracking_id == tracking_id))
            if result.rowcount != 1:
                db.rollback()
                raise OrderNotFound(tracking_id)
            db.commit()
        logger.info("order_deleted tracking_id=%s", tracking_id)
