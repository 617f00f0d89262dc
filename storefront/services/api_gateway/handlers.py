"""One handler per action variant, plus the wiring that builds them."""

from storefront.common.config import settings
from storefront.common.db import utcnow
from storefront.common.errors import NotVerified, OrderNotFound, Unauthorized
from storefront.common.logging import action_ctx, logger, tracking_id_ctx
from storefront.common.rate_limit import TokenBucket
from storefront.common.site_settings import SiteSettingsProvider
from storefront.services.api_gateway.actions import (
    CreateOrder,
    GetOrderHistory,
    SendConfirmation,
    SendPasscode,
    SendStatusUpdate,
    TrackOrder,
    VerifyPasscode,
)
from storefront.services.notification.channel import build_channel
from storefront.services.notification.schemas import ConfirmationPayload, StatusUpdatePayload
from storefront.services.notification.service import NotificationDispatcher
from storefront.services.orders.schemas import OrderView
from storefront.services.orders.service import OrderAdmin, OrderLookup, OrderMaterializer
from storefront.services.verification.identity import normalize_email
from storefront.services.verification.service import PasscodeIssuer, PasscodeVerifier


def order_json(order) -> dict:
    return OrderView.model_validate(order).model_dump(mode="json")


class ActionHandlers:
    """Executes validated actions against the workflow services."""

    def __init__(
        self,
        issuer: PasscodeIssuer,
        verifier: PasscodeVerifier,
        materializer: OrderMaterializer,
        lookup: OrderLookup,
        admin: OrderAdmin,
        dispatcher: NotificationDispatcher,
        api_key: str = settings.api_key,
        history_requires_verification: bool = settings.order_history_requires_verification,
        verified_window_seconds: int = settings.verified_window_seconds,
        expose_debug_passcode: bool = settings.expose_debug_passcode,
    ) -> None:
        self.issuer = issuer
        self.verifier = verifier
        self.materializer = materializer
        self.lookup = lookup
        self.admin = admin
        self.dispatcher = dispatcher
        self.api_key = api_key
        self.history_requires_verification = history_requires_verification
        self.verified_window_seconds = verified_window_seconds
        self.expose_debug_passcode = expose_debug_passcode

    def is_admin(self, x_api_key: str | None) -> bool:
        return bool(self.api_key) and x_api_key == self.api_key

    async def handle(self, action, x_api_key: str | None = None) -> dict:
        """Dispatch one action to its handler."""

        action_ctx.set(action.action)
        match action:
            case SendPasscode():
                return await self.send_passcode(action)
            case VerifyPasscode():
                return self.verify_passcode(action)
            case CreateOrder():
                return await self.create_order(action)
            case SendConfirmation():
                return await self.send_confirmation(action)
            case SendStatusUpdate():
                if not self.is_admin(x_api_key):
                    raise Unauthorized()
                return await self.send_status_update(action)
            case TrackOrder():
                return self.track_order(action)
            case GetOrderHistory():
                return self.order_history(action)
        raise TypeError(f"Unhandled action type: {type(action).__name__}")

    async def send_passcode(self, action: SendPasscode) -> dict:
        issued = await self.issuer.issue(action.email, action.phone)
        body = {"success": True, "message": "OTP sent successfully"}
        if self.expose_debug_passcode:
            body["debugOtp"] = issued.code
        return body

    def verify_passcode(self, action: VerifyPasscode) -> dict:
        self.verifier.verify(action.email, action.otp)
        return {"success": True, "message": "OTP verified successfully"}

    async def create_order(self, action: CreateOrder) -> dict:
        tracking_ids = await self.materializer.create_order(
            action.email,
            action.order_data,
            action.items,
            idempotency_key=action.idempotency_key,
        )
        return {"success": True, "trackingIds": tracking_ids}

    async def send_confirmation(self, action: SendConfirmation) -> dict:
        # Only resend for orders this email actually owns.
        email = normalize_email(action.email)
        for tracking_id in action.tracking_ids:
            order = self.lookup.find_by_tracking_id(tracking_id)
            if order is None or order.customer_email != email:
                raise OrderNotFound(tracking_id)
        await self.dispatcher.send_confirmation(
            email,
            ConfirmationPayload(
                customer_name=action.customer_name,
                customer_address=action.customer_address,
                payment_method=action.payment_method,
                items=action.order_items,
                tracking_ids=action.tracking_ids,
            ),
        )
        return {"success": True}

    async def send_status_update(self, action: SendStatusUpdate) -> dict:
        tracking_id_ctx.set(action.tracking_id)
        details = action.order_details
        await self.dispatcher.send_status_update(
            normalize_email(action.email),
            StatusUpdatePayload(
                tracking_id=action.tracking_id,
                new_status=action.new_status,
                customer_name=details.customer_name,
                product_name=details.product_name,
                quantity=details.quantity,
                total_amount=details.total_amount,
            ),
        )
        return {"success": True}

    def track_order(self, action: TrackOrder) -> dict:
        order = self.lookup.find_by_tracking_id(action.tracking_id)
        if order is None:
            raise OrderNotFound(action.tracking_id)
        return {"success": True, "order": order_json(order)}

    def order_history(self, action: GetOrderHistory) -> dict:
        if self.history_requires_verification and not self.verifier.has_fresh_verification(
            action.email, self.verified_window_seconds
        ):
            logger.info("order_history_requires_verification")
            raise NotVerified("Email verification required to view order history")
        orders = self.lookup.find_by_email(action.email)
        return {"success": True, "orders": [order_json(order) for order in orders]}


def build_handlers(session_factory, rdb=None, channel=None, site_settings=None, clock=utcnow) -> ActionHandlers:
    """Wire the workflow services around one session factory."""

    site_settings = site_settings or SiteSettingsProvider(session_factory)
    dispatcher = NotificationDispatcher(session_factory, channel or build_channel(), site_settings)
    limiter = TokenBucket(
        rdb,
        namespace="verify",
        capacity=settings.verify_attempts_per_window,
        period_seconds=settings.verify_window_seconds,
    )
    return ActionHandlers(
        issuer=PasscodeIssuer(session_factory, dispatcher, clock=clock),
        verifier=PasscodeVerifier(session_factory, attempt_limiter=limiter, clock=clock),
        materializer=OrderMaterializer(session_factory, dispatcher, site_settings, clock=clock),
        lookup=OrderLookup(session_factory),
        admin=OrderAdmin(session_factory, dispatcher, clock=clock),
        dispatcher=dispatcher,
    )
