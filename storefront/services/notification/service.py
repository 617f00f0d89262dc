"""Notification dispatcher: renders a template and hands it to the email channel."""

from time import perf_counter

from storefront.common.config import settings
from storefront.common.errors import DispatchError
from storefront.common.logging import logger, mask_email
from storefront.common.metrics import notification_latency_seconds, notifications_total
from storefront.common.tracing import tracer
from storefront.services.notification.channel import EmailMessage
from storefront.services.notification.models import NotificationLog
from storefront.services.notification.schemas import (
    ConfirmationPayload,
    NotificationKind,
    NotificationRequest,
    PasscodePayload,
    StatusUpdatePayload,
)
from storefront.services.notification.templates import render


class NotificationDispatcher:
    """Sends transactional emails and records each attempt."""

    def __init__(
        self,
        session_factory,
        channel,
        site_settings,
        sender: str = settings.email_from,
        service_name: str = "notification",
    ) -> None:
        self.session_factory = session_factory
        self.channel = channel
        self.site_settings = site_settings
        self.sender = sender
        self.service_name = service_name

    def _log_attempt(self, request: NotificationRequest, subject: str, outcome: str, error: str | None) -> None:
        # The log is an audit aid; losing a row must not change the send outcome.
        try:
            with self.session_factory() as db:
                db.add(
                    NotificationLog(
                        kind=request.kind.value,
                        recipient=request.recipient,
                        subject=subject,
                        outcome=outcome,
                        error=error,
                        reference=request.reference,
                    )
                )
                db.commit()
        except Exception as exc:
            logger.warning("notification_log_failed kind=%s error=%s", request.kind.value, exc)

    async def dispatch(self, request: NotificationRequest) -> None:
        """Render and deliver one request; raise `DispatchError` on channel failure."""

        kind = request.kind.value
        rendered = render(request.kind, request.payload, self.site_settings.snapshot())
        message = EmailMessage(
            sender=self.sender,
            to=request.recipient,
            subject=rendered.subject,
            html=rendered.html,
        )
        start = perf_counter()
        with tracer.start_as_current_span(f"notification.{kind}"):
            try:
                await self.channel.deliver(message)
            except Exception as exc:
                notifications_total.labels(service=self.service_name, kind=kind, outcome="failed").inc()
                logger.error(
                    "notification_failed kind=%s to=%s error=%s", kind, mask_email(request.recipient), exc
                )
                self._log_attempt(request, rendered.subject, "failed", str(exc))
                raise DispatchError(f"email channel error: {exc}") from exc
            finally:
                notification_latency_seconds.labels(service=self.service_name, kind=kind).observe(
                    max(0.0, perf_counter() - start)
                )
        notifications_total.labels(service=self.service_name, kind=kind, outcome="sent").inc()
        logger.info("notification_sent kind=%s to=%s", kind, mask_email(request.recipient))
        self._log_attempt(request, rendered.subject, "sent", None)

    async def send(self, kind: NotificationKind, recipient: str, payload, reference: str | None = None) -> None:
        await self.dispatch(
            NotificationRequest(kind=kind, recipient=recipient, payload=payload, reference=reference)
        )

    async def send_passcode(
        self, recipient: str, code: str, expires_in_minutes: int, reference: str | None = None
    ) -> None:
        await self.send(
            NotificationKind.PASSCODE,
            recipient,
            PasscodePayload(code=code, expires_in_minutes=expires_in_minutes),
            reference=reference,
        )

    async def send_confirmation(self, recipient: str, payload: ConfirmationPayload) -> None:
        reference = payload.tracking_ids[0] if payload.tracking_ids else None
        await self.send(NotificationKind.CONFIRMATION, recipient, payload, reference=reference)

    async def send_status_update(self, recipient: str, payload: StatusUpdatePayload) -> None:
        await self.send(NotificationKind.STATUS_UPDATE, recipient, payload, reference=payload.tracking_id)

    async def send_best_effort(self, kind: NotificationKind, recipient: str, payload, reference=None) -> bool:
        """Like `send`, but a failure is logged and reported as False."""

        try:
            await self.send(kind, recipient, payload, reference=reference)
        except DispatchError as exc:
            logger.warning("notification_degraded kind=%s error=%s", kind.value, exc)
            return False
        return True
