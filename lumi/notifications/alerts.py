"""Severity-based routing and fan-out of staff alerts."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel

from ..config import AlertConfig
from ..contracts import StaffAlert
from ..errors import AlertDeliveryError
from .audit import AuditLog
from .email import Notifier

logger = logging.getLogger(__name__)

ESCALATED = ("high", "urgent")


class AlertMessage(BaseModel):
    subject: str
    body: str


def _dedupe(addresses: List[str]) -> List[str]:
    seen: set[str] = set()
    result = []
    for address in addresses:
        key = address.lower()
        if address and key not in seen:
            seen.add(key)
            result.append(address)
    return result


class AlertDispatcher:
    """Resolves recipients for an alert and notifies each independently."""

    def __init__(
        self,
        notifier: Notifier,
        config: Optional[AlertConfig] = None,
        audit: Optional[AuditLog] = None,
        from_email: Optional[str] = None,
    ) -> None:
        self._notifier = notifier
        self._config = config or AlertConfig()
        self._audit = audit or AuditLog(self._config.audit_log_path)
        self._from_email = from_email

    @property
    def audit_log(self) -> AuditLog:
        return self._audit

    def resolve_recipients(self, alert: StaffAlert) -> List[str]:
        """Recipient list for ``alert``.

        ``assigned_to`` wins outright; otherwise the list escalates with
        severity: base, then secondary for high, then manager for urgent.
        """
        if alert.assigned_to:
            return [alert.assigned_to]
        recipients = list(self._config.base)
        if alert.severity in ESCALATED:
            recipients += self._config.secondary
        if alert.severity == "urgent":
            recipients += self._config.manager
        return _dedupe(recipients)

    def format_alert(self, alert: StaffAlert) -> AlertMessage:
        severity = alert.severity.upper()
        lines = [
            f"Alert Type: {severity}",
            f"Record ID: {alert.record_id}",
        ]
        if alert.guest_email:
            lines.append(f"Guest: {alert.guest_email}")
        lines += [
            "",
            "Reason:",
            alert.reason,
            "",
            "---",
            "This alert was generated automatically by Lumi.",
            f"View in dashboard: {self._config.dashboard_url.rstrip('/')}/admin/alerts/{alert.record_id}",
        ]
        return AlertMessage(subject=f"[{severity}] Guest Alert - Lumi", body="\n".join(lines))

    async def send_all(
        self, alert: StaffAlert, recipients: List[str], message: AlertMessage
    ) -> int:
        """Send ``message`` to every recipient; return the number notified.

        Raises :class:`AlertDeliveryError` only when every send failed.
        """
        if not recipients:
            return 0
        tags = {"type": "staff_alert", "severity": alert.severity}
        results = await asyncio.gather(
            *(
                self._notifier.send(
                    to, message.subject, message.body, tags=tags, from_email=self._from_email
                )
                for to in recipients
            ),
            return_exceptions=True,
        )
        failures = [
            (to, result) for to, result in zip(recipients, results) if isinstance(result, BaseException)
        ]
        for to, error in failures:
            logger.warning(f"Alert {alert.record_id} not delivered to {to}: {error!r}")
        sent = len(recipients) - len(failures)
        if sent == 0:
            raise AlertDeliveryError(
                f"Alert {alert.record_id} could not be delivered to any of {len(recipients)} recipient(s)"
            )
        return sent

    async def record_audit(self, alert: StaffAlert, recipients: List[str]) -> None:
        if alert.severity not in ESCALATED:
            return
        await self._audit.record(
            "staff_alert", {**alert.model_dump(mode="json"), "recipients": recipients}
        )

    async def dispatch(self, alert: StaffAlert) -> int:
        """Route, send and audit ``alert``; return recipients notified."""
        recipients = self.resolve_recipients(alert)
        sent = await self.send_all(alert, recipients, self.format_alert(alert))
        await self.record_audit(alert, recipients)
        logger.info(f"Alert {alert.record_id} ({alert.severity}) notified {sent}/{len(recipients)}")
        return sent
