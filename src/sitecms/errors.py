# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by the stores, services and HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SiteError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = dict(extra or {})

    def to_payload(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.message, **self.extra}


class Unauthorized(SiteError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ValidationError(SiteError):
    status_code = 400


class PayloadTooLarge(SiteError):
    status_code = 413


class RateLimited(SiteError):
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests, try again later."):
        super().__init__(message, extra={"retryAfter": retry_after})
        self.retry_after = retry_after


class StorageFailure(SiteError):
    status_code = 500


class ConfigurationError(SiteError):
    status_code = 500


class UpstreamFailure(SiteError):
    """An outbound provider answered with a non-success status or not at all.

    When ``body`` is set the HTTP layer replays the upstream response as-is
    (status, body, content type) instead of wrapping it in the JSON envelope.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        details: Any = None,
        body: Optional[bytes] = None,
        media_type: Optional[str] = None,
    ):
        extra = {"details": details} if details is not None else None
        super().__init__(message, extra=extra)
        self.upstream_status = upstream_status
        self.body = body
        self.media_type = media_type
