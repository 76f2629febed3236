import asyncio
import json

import httpx
import pytest

from sitecms.config import Settings
from sitecms.errors import ConfigurationError, UpstreamFailure
from sitecms.services.mailer import BREVO_URL, BrevoMailer, ContactMessage, build_text_body

MAIL_SETTINGS = Settings(
    brevo_api_key="brevo-key",
    contact_to_email="owner@example.com",
    contact_from_email="site@example.com",
    contact_from_name="Vitro",
    contact_subject_prefix="New message",
)

MSG = ContactMessage(name="Anna", email="anna@example.com", message="Hello there", phone="+30 210", interest="vases")


def _mailer(handler, settings=MAIL_SETTINGS):
    return BrevoMailer(settings, transport=httpx.MockTransport(handler))


def test_unconfigured_relay_raises_configuration_error():
    mailer = BrevoMailer(Settings(brevo_api_key="k"))
    with pytest.raises(ConfigurationError) as ei:
        asyncio.run(mailer.send(MSG))
    assert ei.value.status_code == 500
    assert "CONTACT_TO_EMAIL" in ei.value.message
    assert "CONTACT_FROM_EMAIL" in ei.value.message
    assert "BREVO_API_KEY" not in ei.value.message


def test_send_posts_expected_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers["api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"messageId": "<abc@brevo>"})

    out = asyncio.run(_mailer(handler).send(MSG))

    assert out == {"messageId": "<abc@brevo>"}
    assert seen["url"] == BREVO_URL
    assert seen["key"] == "brevo-key"
    body = seen["body"]
    assert body["sender"] == {"name": "Vitro", "email": "site@example.com"}
    assert body["to"] == [{"email": "owner@example.com"}]
    assert body["replyTo"] == {"email": "anna@example.com", "name": "Anna"}
    assert body["subject"] == "New message (Anna)"
    assert "Hello there" in body["textContent"]
    assert "Phone: +30 210" in body["textContent"]


def test_subject_without_name():
    mailer = BrevoMailer(MAIL_SETTINGS)
    payload = mailer.build_payload(ContactMessage(email="x@example.com", message="hey"))
    assert payload["subject"] == "New message (no name)"
    assert payload["replyTo"] == {"email": "x@example.com", "name": "x@example.com"}


def test_text_body_skips_empty_optional_fields():
    body = build_text_body(ContactMessage(email="x@example.com", message="hey"))
    assert "Phone" not in body
    assert "Name: -" in body


def test_upstream_error_is_surfaced_with_details():
    def handler(request):
        return httpx.Response(400, json={"code": "invalid_parameter", "message": "sender not verified"})

    with pytest.raises(UpstreamFailure) as ei:
        asyncio.run(_mailer(handler).send(MSG))
    assert ei.value.status_code == 502
    assert ei.value.upstream_status == 400
    assert ei.value.to_payload()["details"]["code"] == "invalid_parameter"


def test_transport_error_is_upstream_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamFailure):
        asyncio.run(_mailer(handler).send(MSG))
