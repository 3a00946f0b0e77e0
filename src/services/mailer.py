# transactional email: one HTML message per recipient, success or failure each
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class SendResult:
    recipient: str
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class MailTransport(ABC):
    """Delivers one message and reports the outcome as a SendResult."""

    @abstractmethod
    async def send(self, recipient: str, subject: str, html: str) -> SendResult:
        ...

    async def aclose(self) -> None:
        return None


class ResendTransport(MailTransport):
    """Delivers through the Resend HTTP API; timeouts and HTTP errors count as failures."""

    def __init__(
        self,
        api_key: str,
        sender: Optional[str] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sender = sender or config.MAIL_FROM
        self.url = url or config.RESEND_API_URL
        self._client = httpx.AsyncClient(
            timeout=timeout or config.HTTP_TIMEOUT,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def send(self, recipient: str, subject: str, html: str) -> SendResult:
        try:
            response = await self._client.post(
                self.url,
                json={"from": self.sender, "to": [recipient], "subject": subject, "html": html},
            )
        except httpx.HTTPError as e:
            _logger.warning(f"Mail to {recipient} failed: {e!r}")
            return SendResult(recipient, False, error=str(e) or type(e).__name__)

        if response.status_code >= 400:
            detail = response.text[:200]
            _logger.warning(f"Mail to {recipient} rejected ({response.status_code}): {detail}")
            return SendResult(recipient, False, error=f"HTTP {response.status_code}: {detail}")

        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            pass
        return SendResult(recipient, True, message_id=message_id)

    async def aclose(self) -> None:
        await self._client.aclose()


class UnconfiguredTransport(MailTransport):
    """Used when no API key is configured: nothing can be delivered, so every send fails."""

    error = "mail transport not configured"

    async def send(self, recipient: str, subject: str, html: str) -> SendResult:
        _logger.warning(f"Mail to {recipient} not sent: {self.error}")
        return SendResult(recipient, False, error=self.error)


def default_transport() -> MailTransport:
    if config.RESEND_API_KEY:
        return ResendTransport(config.RESEND_API_KEY)
    _logger.error("RESEND_API_KEY is not set; campaign mail cannot be delivered.")
    return UnconfiguredTransport()
