import json

import pytest

from lumi.config import AlertConfig
from lumi.contracts import StaffAlert
from lumi.errors import AlertDeliveryError
from lumi.notifications import AlertDispatcher, AuditLog, RecordingNotifier


def _alert(severity: str = "medium", **fields) -> StaffAlert:
    return StaffAlert(record_id="recCheckin1", reason="Guest reported chest pain", severity=severity, **fields)


def test_recipients_escalate_with_severity():
    dispatcher = AlertDispatcher(RecordingNotifier())

    assert dispatcher.resolve_recipients(_alert("low")) == ["alerts@aro-ha.com"]
    assert dispatcher.resolve_recipients(_alert("high")) == ["alerts@aro-ha.com", "wellness@aro-ha.com"]
    assert dispatcher.resolve_recipients(_alert("urgent")) == [
        "alerts@aro-ha.com",
        "wellness@aro-ha.com",
        "manager@aro-ha.com",
    ]


def test_assigned_recipient_overrides_routing():
    dispatcher = AlertDispatcher(RecordingNotifier())
    alert = _alert("urgent", assigned_to="spa@aro-ha.com")
    assert dispatcher.resolve_recipients(alert) == ["spa@aro-ha.com"]


def test_recipients_are_deduplicated():
    config = AlertConfig(base=["desk@example.com"], secondary=["Desk@example.com"], manager=["gm@example.com"])
    dispatcher = AlertDispatcher(RecordingNotifier(), config)
    assert dispatcher.resolve_recipients(_alert("urgent")) == ["desk@example.com", "gm@example.com"]


def test_format_alert():
    dispatcher = AlertDispatcher(RecordingNotifier(), AlertConfig(dashboard_url="https://lumi.test/"))
    message = dispatcher.format_alert(_alert("high", guest_email="ana@example.com"))

    assert message.subject == "[HIGH] Guest Alert - Lumi"
    assert "Record ID: recCheckin1" in message.body
    assert "Guest: ana@example.com" in message.body
    assert "Guest reported chest pain" in message.body
    assert message.body.endswith("https://lumi.test/admin/alerts/recCheckin1")


@pytest.mark.asyncio
async def test_urgent_alert_reaches_every_tier():
    notifier = RecordingNotifier()
    dispatcher = AlertDispatcher(notifier, from_email="Lumi Alerts <alerts@aro-ha.com>")

    sent = await dispatcher.dispatch(_alert("urgent"))

    assert sent == 3
    assert sorted(notifier.recipients) == ["alerts@aro-ha.com", "manager@aro-ha.com", "wellness@aro-ha.com"]
    assert all(email.tags == {"type": "staff_alert", "severity": "urgent"} for email in notifier.sent)
    assert all(email.from_email == "Lumi Alerts <alerts@aro-ha.com>" for email in notifier.sent)


@pytest.mark.asyncio
async def test_partial_failure_counts_successes():
    notifier = RecordingNotifier(failing={"wellness@aro-ha.com"})
    dispatcher = AlertDispatcher(notifier)

    sent = await dispatcher.dispatch(_alert("urgent"))

    assert sent == 2
    assert "wellness@aro-ha.com" not in notifier.recipients


@pytest.mark.asyncio
async def test_total_failure_raises():
    notifier = RecordingNotifier(failing={"alerts@aro-ha.com"})
    dispatcher = AlertDispatcher(notifier)

    with pytest.raises(AlertDeliveryError):
        await dispatcher.dispatch(_alert("low"))


@pytest.mark.asyncio
async def test_only_escalated_alerts_are_audited(tmp_path):
    path = tmp_path / "audit" / "alerts.jsonl"
    audit = AuditLog(str(path))
    dispatcher = AlertDispatcher(RecordingNotifier(), audit=audit)

    await dispatcher.dispatch(_alert("medium"))
    assert audit.entries == []

    await dispatcher.dispatch(_alert("high", guest_email="ana@example.com"))
    (entry,) = audit.entries
    assert entry["type"] == "staff_alert"
    assert entry["severity"] == "high"
    assert entry["recipients"] == ["alerts@aro-ha.com", "wellness@aro-ha.com"]

    (line,) = path.read_text().splitlines()
    assert json.loads(line)["record_id"] == "recCheckin1"
