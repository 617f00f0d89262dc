"""Outbound transactional email channels."""

from dataclasses import dataclass

import httpx

from storefront.common.config import settings
from storefront.common.logging import logger, mask_email


class ChannelError(Exception):
    """Raised by a channel when the provider does not accept a message."""


@dataclass(frozen=True)
class EmailMessage:
    sender: str
    to: str
    subject: str
    html: str


class HttpEmailChannel:
    """Posts messages to a Resend-compatible HTTP email API."""

    def __init__(self, api_url: str, api_key: str, timeout: float = 10.0) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    async def deliver(self, message: EmailMessage) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": message.sender,
                        "to": [message.to],
                        "subject": message.subject,
                        "html": message.html,
                    },
                )
        except httpx.HTTPError as exc:
            raise ChannelError(f"email provider unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise ChannelError(f"email provider rejected message status={resp.status_code} body={resp.text}")


class LoggingChannel:
    """Development channel: logs the message instead of sending it."""

    async def deliver(self, message: EmailMessage) -> None:
        logger.info("email_not_sent_no_api_key to=%s subject=%s", mask_email(message.to), message.subject)


def build_channel():
    """Pick the HTTP channel when an API key is configured."""

    if settings.email_api_key:
        return HttpEmailChannel(settings.email_api_url, settings.email_api_key)
    logger.warning("email_api_key unset; emails will only be logged")
    return LoggingChannel()
