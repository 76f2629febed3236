# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from sitecms.config import Settings
from sitecms.errors import ConfigurationError, UpstreamFailure

logger = logging.getLogger("sitecms.contact")

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


@dataclass(frozen=True)
class ContactMessage:
    email: str
    message: str
    name: str = ""
    phone: str = ""
    interest: str = ""


def build_subject(prefix: str, msg: ContactMessage) -> str:
    return f"{prefix} ({msg.name or 'no name'})"


def build_text_body(msg: ContactMessage) -> str:
    lines = [
        "New message from the contact form:",
        "",
        f"Name: {msg.name or '-'}",
        f"Email: {msg.email or '-'}",
    ]
    if msg.phone:
        lines.append(f"Phone: {msg.phone}")
    if msg.interest:
        lines.append(f"Interest: {msg.interest}")
    lines += ["Message:", msg.message, ""]
    return "\n".join(lines)


class BrevoMailer:
    """Relays contact-form messages through Brevo's transactional email API."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self.settings.mail_configured

    def missing_settings(self) -> list[str]:
        s = self.settings
        pairs = [
            ("BREVO_API_KEY", s.brevo_api_key),
            ("CONTACT_TO_EMAIL", s.contact_to_email),
            ("CONTACT_FROM_EMAIL", s.contact_from_email),
        ]
        return [name for name, value in pairs if not value]

    def build_payload(self, msg: ContactMessage) -> Dict[str, Any]:
        s = self.settings
        payload: Dict[str, Any] = {
            "sender": {"name": s.contact_from_name, "email": s.contact_from_email},
            "to": [{"email": s.contact_to_email}],
            "subject": build_subject(s.contact_subject_prefix, msg),
            "textContent": build_text_body(msg),
        }
        if msg.email:
            payload["replyTo"] = {"email": msg.email, "name": msg.name or msg.email}
        return payload

    async def send(self, msg: ContactMessage) -> Dict[str, Any]:
        missing = self.missing_settings()
        if missing:
            logger.error("Mail relay not configured, missing %s", ", ".join(missing))
            raise ConfigurationError(
                "Email is not configured on the server (missing " + " / ".join(missing) + ")."
            )

        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": self.settings.brevo_api_key,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout, transport=self._transport
            ) as client:
                resp = await client.post(BREVO_URL, headers=headers, json=self.build_payload(msg))
        except httpx.HTTPError as exc:
            logger.error("Brevo request failed: %s", exc)
            raise UpstreamFailure(f"Email provider unreachable: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if not resp.is_success:
            logger.error("Brevo error status=%s body=%s", resp.status_code, body)
            raise UpstreamFailure(
                "Email provider failed to send the message.",
                upstream_status=resp.status_code,
                details=body,
            )

        logger.info("Contact message relayed, messageId=%s", (body or {}).get("messageId", "-"))
        return body if isinstance(body, dict) else {}
