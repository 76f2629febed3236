# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, Request

from sitecms.auth.session import SessionManager
from sitecms.config import Settings
from sitecms.errors import Unauthorized

LOGIN_PAGE = "/admin/login"


def session_token(request: Request) -> Optional[str]:
    settings: Settings = request.app.state.settings
    return request.cookies.get(settings.cookie_name) or None


def is_authenticated(request: Request) -> bool:
    cached = getattr(request.state, "authenticated", None)
    if cached is not None:
        return bool(cached)
    sessions: SessionManager = request.app.state.sessions
    return sessions.is_authenticated(session_token(request))


def require_api_session(request: Request) -> None:
    """Gate for JSON APIs: 401 when the caller has no live session."""
    if not is_authenticated(request):
        raise Unauthorized("Unauthorized")


def require_page_session(request: Request) -> None:
    """Gate for admin pages: redirect to the login page instead of a 401."""
    if is_authenticated(request):
        return
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"{LOGIN_PAGE}?next={quote(next_url, safe='/')}"
    raise HTTPException(status_code=303, headers={"Location": loc})


def cookie_settings(settings: Settings) -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": settings.cookie_secure,
        "max_age": settings.session_max_age,
        "path": "/",
    }
