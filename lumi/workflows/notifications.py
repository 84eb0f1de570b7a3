"""Staff alerts and outbound email."""

from __future__ import annotations

from typing import Any, Dict, List

from ..contracts import SEND_EMAIL, STAFF_ALERT, SendEmail, StaffAlert
from ..notifications import AlertMessage
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps


def notification_workflows(deps: WorkflowDeps) -> List[Workflow]:
    alerts = deps.alerts
    notifier = deps.notifier

    async def staff_alert(ctx: WorkflowContext) -> Dict[str, Any]:
        alert: StaffAlert = ctx.payload
        recipients = await ctx.step.run(
            "determine-recipients", alerts.resolve_recipients, alert
        )
        message = await ctx.step.run(
            "format-alert", alerts.format_alert, alert, returns=AlertMessage
        )
        sent = await ctx.step.run("send-alerts", alerts.send_all, alert, recipients, message)
        if alert.severity in ("high", "urgent"):
            await ctx.step.run("log-alert", alerts.record_audit, alert, recipients)
        return {
            "success": True,
            "recipients_notified": sent,
            "recipients": recipients,
            "severity": alert.severity,
        }

    async def send_email(ctx: WorkflowContext) -> Dict[str, Any]:
        email: SendEmail = ctx.payload

        async def _send() -> Dict[str, str]:
            message_id = await notifier.send(
                email.to,
                email.subject,
                email.body,
                tags={"template": email.template or "default", "source": "lumi"},
            )
            return {"email_id": message_id}

        result = await ctx.step.run("send-email", _send)
        return {"success": True, "email_id": result["email_id"], "to": email.to, "template": email.template}

    return [
        Workflow(id="notification-staff-alert", event=STAFF_ALERT, fn=staff_alert, max_attempts=2),
        Workflow(id="notification-send-email", event=SEND_EMAIL, fn=send_email, max_attempts=3),
    ]
