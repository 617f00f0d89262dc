"""Pure email renderers: payload + site settings in, subject + HTML out.

Renderers never raise for missing optional fields; they substitute `-` so a
half-filled payload still produces a sendable message.
"""

from dataclasses import dataclass
from decimal import Decimal
from html import escape

from storefront.common.site_settings import SiteSettingsSnapshot
from storefront.services.notification.schemas import (
    ConfirmationPayload,
    NotificationKind,
    PasscodePayload,
    StatusUpdatePayload,
)


PLACEHOLDER = "-"

PAYMENT_METHOD_LABELS = {
    "cash_on_delivery": "Cash on Delivery",
    "mobile_wallet_a": "Mobile Wallet A",
    "mobile_wallet_b": "Mobile Wallet B",
    "bank_transfer": "Bank Transfer",
}

STATUS_MESSAGES = {
    "pending": "We have received your order and will confirm it shortly.",
    "confirmed": "Your order has been confirmed and is being prepared.",
    "shipped": "Your order is on its way.",
    "delivered": "Your order has been delivered. Thank you for shopping with us!",
    "cancelled": "Your order has been cancelled. Contact us if this is unexpected.",
}


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str


def _text(value) -> str:
    if value is None or value == "":
        return PLACEHOLDER
    return escape(str(value))


def format_money(amount: Decimal | None, currency: str) -> str:
    if amount is None:
        return PLACEHOLDER
    return f"{escape(currency)} {Decimal(amount):,.2f}"


def payment_label(method: str | None) -> str:
    if not method:
        return PLACEHOLDER
    return PAYMENT_METHOD_LABELS.get(method, escape(method))


def payment_instructions(method: str | None, site: SiteSettingsSnapshot) -> str:
    """Method-specific instructions, or an empty string when nothing is configured."""

    if method == "bank_transfer" and site.bank_account_details:
        return f"Please transfer the total to: {escape(site.bank_account_details)}"
    if method == "mobile_wallet_a" and site.mobile_wallet_a_number:
        return f"Please send the total via Mobile Wallet A to {escape(site.mobile_wallet_a_number)}"
    if method == "mobile_wallet_b" and site.mobile_wallet_b_number:
        return f"Please send the total via Mobile Wallet B to {escape(site.mobile_wallet_b_number)}"
    if method == "cash_on_delivery":
        return "Please keep the exact amount ready at delivery."
    return ""


def _layout(site: SiteSettingsSnapshot, body: str) -> str:
    contact = " | ".join(_text(v) for v in (site.support_email, site.support_phone) if v)
    footer = f"<p style=\"color:#888;font-size:12px\">{contact}</p>" if contact else ""
    return (
        "<div style=\"font-family:Arial,sans-serif;max-width:600px;margin:0 auto\">"
        f"<h2>{_text(site.store_name)}</h2>{body}{footer}</div>"
    )


def render_passcode(payload: PasscodePayload, site: SiteSettingsSnapshot) -> RenderedEmail:
    body = (
        "<p>Your verification code is:</p>"
        f"<p style=\"font-size:28px;letter-spacing:6px;font-weight:bold\">{_text(payload.code)}</p>"
        f"<p>This code expires in {payload.expires_in_minutes} minutes. "
        "If you did not request it, you can ignore this email.</p>"
    )
    return RenderedEmail(
        subject=f"{site.store_name} verification code",
        html=_layout(site, body),
    )


def render_confirmation(payload: ConfirmationPayload, site: SiteSettingsSnapshot) -> RenderedEmail:
    rows = []
    grand_total = Decimal("0")
    for index, item in enumerate(payload.items):
        line_total = Decimal(item.price) * item.quantity
        grand_total += line_total
        tracking = payload.tracking_ids[index] if index < len(payload.tracking_ids) else None
        rows.append(
            "<tr>"
            f"<td>{_text(item.name)}</td>"
            f"<td>{item.quantity}</td>"
            f"<td>{format_money(line_total, site.currency)}</td>"
            f"<td><code>{_text(tracking)}</code></td>"
            "</tr>"
        )
    instructions = payment_instructions(payload.payment_method, site)
    body = (
        f"<p>Hi {_text(payload.customer_name)}, thank you for your order!</p>"
        "<table width=\"100%\" cellpadding=\"6\">"
        "<tr><th align=\"left\">Product</th><th>Qty</th><th>Total</th><th>Tracking ID</th></tr>"
        f"{''.join(rows)}</table>"
        f"<p><strong>Order total:</strong> {format_money(grand_total, site.currency)}</p>"
        f"<p><strong>Delivery address:</strong> {_text(payload.customer_address)}</p>"
        f"<p><strong>Payment method:</strong> {payment_label(payload.payment_method)}</p>"
        + (f"<p>{instructions}</p>" if instructions else "")
        + "<p>Use your tracking ID to follow your order status at any time.</p>"
    )
    return RenderedEmail(
        subject=f"{site.store_name} order confirmation",
        html=_layout(site, body),
    )


def render_status_update(payload: StatusUpdatePayload, site: SiteSettingsSnapshot) -> RenderedEmail:
    message = STATUS_MESSAGES.get(payload.new_status, "The status of your order has changed.")
    body = (
        f"<p>Hi {_text(payload.customer_name)},</p>"
        f"<p>{escape(message)}</p>"
        f"<p><strong>Tracking ID:</strong> <code>{_text(payload.tracking_id)}</code></p>"
        f"<p><strong>Status:</strong> {_text(payload.new_status.capitalize())}</p>"
        f"<p><strong>Product:</strong> {_text(payload.product_name)} "
        f"(x{_text(payload.quantity)})</p>"
        f"<p><strong>Total:</strong> {format_money(payload.total_amount, site.currency)}</p>"
    )
    return RenderedEmail(
        subject=f"Order {payload.tracking_id} is now {payload.new_status}",
        html=_layout(site, body),
    )


def render(kind: NotificationKind, payload, site: SiteSettingsSnapshot) -> RenderedEmail:
    """Render any supported notification kind."""

    match kind:
        case NotificationKind.PASSCODE:
            return render_passcode(payload, site)
        case NotificationKind.CONFIRMATION:
            return render_confirmation(payload, site)
        case NotificationKind.STATUS_UPDATE:
            return render_status_update(payload, site)
    raise ValueError(f"Unsupported notification kind: {kind}")
