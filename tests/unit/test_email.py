import json

import httpx
import pytest

from lumi.config import EmailConfig
from lumi.errors import ConfigurationError, NonRetryableError, TransientError
from lumi.notifications import LoggingNotifier, ResendNotifier, get_notifier


def _notifier(handler, api_key="re_test") -> ResendNotifier:
    config = EmailConfig(resend_api_key=api_key)
    client = httpx.AsyncClient(base_url=config.base_url, transport=httpx.MockTransport(handler))
    return ResendNotifier(config, client=client)


@pytest.mark.asyncio
async def test_send_posts_resend_payload():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email_123"})

    message_id = await _notifier(handler).send(
        "ana@example.com", "Hello", "Kia ora", tags={"template": "welcome"}
    )

    assert message_id == "email_123"
    request = seen[0]
    assert request.url.path == "/emails"
    assert request.headers["authorization"] == "Bearer re_test"
    assert json.loads(request.content) == {
        "from": "Lumi <lumi@aro-ha.com>",
        "to": ["ana@example.com"],
        "subject": "Hello",
        "text": "Kia ora",
        "tags": [{"name": "template", "value": "welcome"}],
    }


@pytest.mark.asyncio
async def test_provider_errors_are_classified():
    with pytest.raises(TransientError):
        await _notifier(lambda r: httpx.Response(503)).send("a@example.com", "s", "b")
    with pytest.raises(TransientError):
        await _notifier(lambda r: httpx.Response(429)).send("a@example.com", "s", "b")
    with pytest.raises(NonRetryableError):
        await _notifier(lambda r: httpx.Response(422, json={"message": "invalid to"})).send(
            "a@example.com", "s", "b"
        )


@pytest.mark.asyncio
async def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        await _notifier(lambda r: httpx.Response(200), api_key=None).send("a@example.com", "s", "b")


def test_get_notifier_falls_back_to_logging():
    assert isinstance(get_notifier(EmailConfig()), LoggingNotifier)
    assert isinstance(get_notifier(EmailConfig(resend_api_key="re_test")), ResendNotifier)
