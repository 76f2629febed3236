# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import httpx

from sitecms.config import Settings
from sitecms.errors import ConfigurationError, UpstreamFailure, ValidationError

logger = logging.getLogger("sitecms.gemini")


@dataclass(frozen=True)
class ProxiedResponse:
    status_code: int
    content: bytes
    media_type: str


class GeminiProxy:
    """Pass-through to the Generative Language REST API.

    The server-side key is attached as a header; any ``key`` the browser sends is dropped.
    """

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def target_url(self, path: str) -> str:
        clean = "/".join(p for p in str(path or "").split("/") if p)
        if not clean or any(p in {".", ".."} for p in clean.split("/")):
            raise ValidationError("invalid proxy path")
        return f"{self.settings.gemini_base_url}/{clean}"

    async def forward(
        self,
        method: str,
        path: str,
        *,
        query: Iterable[Tuple[str, str]] = (),
        body: bytes = b"",
        content_type: str = "",
    ) -> ProxiedResponse:
        if not self.settings.gemini_api_key:
            logger.error("GEMINI_API_KEY not configured")
            raise ConfigurationError("AI proxy is not configured (missing GEMINI_API_KEY).")

        url = self.target_url(path)
        params = [(k, v) for k, v in query if k != "key"]
        headers = {"x-goog-api-key": self.settings.gemini_api_key}
        if body:
            headers["content-type"] = content_type or "application/json"

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout, transport=self._transport
            ) as client:
                resp = await client.request(
                    method.upper(), url, params=params, content=body or None, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("Gemini request to %s failed: %s", path, exc)
            raise UpstreamFailure(f"AI provider unreachable: {exc}") from exc

        media_type = resp.headers.get("content-type", "application/json")
        if not resp.is_success:
            logger.warning("Gemini %s %s -> %s", method.upper(), path, resp.status_code)
            raise UpstreamFailure(
                "AI provider returned an error.",
                upstream_status=resp.status_code,
                body=resp.content,
                media_type=media_type,
            )
        return ProxiedResponse(status_code=resp.status_code, content=resp.content, media_type=media_type)
