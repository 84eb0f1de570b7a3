"""Outbound email transports."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

import httpx

from ..config import EmailConfig
from ..errors import ConfigurationError, NonRetryableError, TransientError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol for anything that can deliver one email."""

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        tags: Optional[Dict[str, str]] = None,
        from_email: Optional[str] = None,
    ) -> str:
        """Send a plain-text email and return the provider message id."""


class ResendNotifier:
    """Send emails through the Resend REST API."""

    def __init__(self, config: EmailConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if not self._config.resend_api_key:
            raise ConfigurationError("RESEND_API_KEY environment variable is not set")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url, timeout=self._config.timeout_seconds
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        tags: Optional[Dict[str, str]] = None,
        from_email: Optional[str] = None,
    ) -> str:
        client = self._http()
        payload = {
            "from": from_email or self._config.from_email,
            "to": [to],
            "subject": subject,
            "text": body,
            "tags": [{"name": k, "value": v} for k, v in (tags or {}).items()],
        }
        try:
            response = await client.post(
                "/emails",
                json=payload,
                headers={"Authorization": f"Bearer {self._config.resend_api_key}"},
            )
        except httpx.HTTPError as exc:
            raise TransientError(f"Failed to send email to {to}: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(
                f"Resend error ({response.status_code}) sending to {to}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise NonRetryableError(
                f"Resend rejected email to {to} ({response.status_code}): {response.text}"
            )
        message_id = response.json().get("id", "")
        logger.info(f"Sent email {message_id} to {to}")
        return message_id


class LoggingNotifier:
    """Development notifier that only logs each email."""

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        tags: Optional[Dict[str, str]] = None,
        from_email: Optional[str] = None,
    ) -> str:
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(f"[email {message_id}] to={to} subject={subject!r} tags={tags or {}}")
        return message_id


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str
    tags: Dict[str, str] = field(default_factory=dict)
    from_email: Optional[str] = None


class RecordingNotifier:
    """Keeps sent emails in memory; sends to ``failing`` recipients raise."""

    def __init__(self, failing: Iterable[str] = ()) -> None:
        self.failing = set(failing)
        self.sent: List[SentEmail] = []

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        tags: Optional[Dict[str, str]] = None,
        from_email: Optional[str] = None,
    ) -> str:
        if to in self.failing:
            raise TransientError(f"Delivery to {to} failed")
        self.sent.append(SentEmail(to, subject, body, dict(tags or {}), from_email))
        return f"msg-{len(self.sent)}"

    @property
    def recipients(self) -> List[str]:
        return [email.to for email in self.sent]


def get_notifier(config: EmailConfig) -> Notifier:
    """Resend when an API key is configured, logging otherwise."""
    if config.resend_api_key:
        return ResendNotifier(config)
    logger.warning("RESEND_API_KEY not set; emails will only be logged")
    return LoggingNotifier()
