# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Optional

import httpx
from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import Scope

from sitecms.auth.credentials import Credential
from sitecms.auth.session import SessionManager
from sitecms.config import Settings
from sitecms.errors import RateLimited, SiteError, Unauthorized, UpstreamFailure, ValidationError
from sitecms.infra.site_repo import ContentStore, loads_strict
from sitecms.infra.uploads import URL_PREFIX, UploadStore
from sitecms.permissions import (
    cookie_settings,
    is_authenticated,
    require_api_session,
    require_page_session,
    session_token,
)
from sitecms.schemas import ContactRequest, LoginRequest, SitePayload, describe_errors, parse_body
from sitecms.services.gemini_proxy import GeminiProxy
from sitecms.services.mailer import BrevoMailer, ContactMessage
from sitecms.services.rate_limit import RateLimiter

logger = logging.getLogger("sitecms.app")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

ADMIN_HOME = "/admin/"


def _render(request: Request, template_name: str, ctx: dict, status_code: int = 200):
    base_ctx = {"authenticated": is_authenticated(request)}
    return templates.TemplateResponse(request, template_name, {**base_ctx, **(ctx or {})}, status_code=status_code)


def _safe_next(next_url: str) -> str:
    """Only same-origin absolute paths are allowed as post-login targets."""
    n = (next_url or "").strip()
    if not n.startswith("/") or n.startswith("//") or "\\" in n:
        return ADMIN_HOME
    return n


def client_id(request: Request, settings: Settings) -> str:
    if settings.trust_proxy:
        first = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return loads_strict(raw)
    except (ValueError, RecursionError) as e:
        raise ValidationError("invalid JSON body") from e


class PublicFiles(StaticFiles):
    """The public site mount.

    Anything that normalizes into ``blocked`` is treated as missing, so the
    admin pages are only reachable through the session-gated routes. GET
    requests for unknown extensionless paths get ``index.html``.
    """

    def __init__(self, *, directory: Path, blocked: Path, spa_fallback: bool = True):
        super().__init__(directory=str(directory), html=True)
        self.blocked = Path(blocked).resolve()
        self.spa_fallback = spa_fallback

    def _is_blocked(self, full_path: str) -> bool:
        target = Path(full_path).resolve()
        return target == self.blocked or self.blocked in target.parents

    def lookup_path(self, path: str):
        full_path, stat_result = super().lookup_path(path)
        if full_path and self._is_blocked(full_path):
            return "", None
        return full_path, stat_result

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            if exc.status_code != 404 or not self._wants_index(path):
                raise
            full_path, stat_result = await run_in_threadpool(self.lookup_path, "index.html")
            if stat_result is None:
                raise
            return self.file_response(full_path, stat_result, scope)

    def _wants_index(self, path: str) -> bool:
        p = PurePosixPath(path)
        return self.spa_fallback and not p.suffix and p.parts[:1] != ("api",)


def _resolve_admin_file(root: Path, path: str) -> Path:
    root = root.resolve()
    target = (root / (path or "")).resolve()
    if target != root and root not in target.parents:
        raise HTTPException(status_code=404, detail="Not found")
    if target.is_dir():
        target = target / "index.html"
    elif not target.exists() and not target.suffix:
        target = target.with_suffix(".html")
    if not target.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return target


def create_app(
    settings: Optional[Settings] = None,
    *,
    mail_transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if settings.session_secret_generated:
        logger.warning("SESSION_SECRET not set; generated a random one, sessions will not survive a restart")

    app = FastAPI(title="sitecms")
    app.state.settings = settings
    app.state.sessions = SessionManager(
        Credential.from_settings(settings),
        settings.session_secret,
        max_age=settings.session_max_age,
    )
    app.state.store = ContentStore(settings.site_file, max_bytes=settings.max_site_bytes)
    app.state.uploads = UploadStore(
        settings.uploads_dir,
        max_bytes=settings.max_upload_bytes,
        allowed_types=settings.upload_types,
    )
    app.state.mailer = BrevoMailer(settings, transport=mail_transport)
    app.state.gemini = GeminiProxy(settings, transport=ai_transport)
    app.state.contact_limiter = RateLimiter(settings.contact_rate_limit, settings.contact_rate_window)

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        request.state.authenticated = app.state.sessions.is_authenticated(session_token(request))
        return await call_next(request)

    @app.exception_handler(SiteError)
    async def _site_error(request: Request, exc: SiteError):
        if isinstance(exc, UpstreamFailure) and exc.body is not None:
            return Response(
                content=exc.body,
                status_code=exc.upstream_status or exc.status_code,
                media_type=exc.media_type,
            )
        headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
        return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"ok": False, "error": "invalid request body", "details": describe_errors(exc.errors())},
            status_code=400,
        )

    # ------------------ Health ------------------

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz():
        return "ok"

    # ------------------ Session ------------------

    @app.post("/api/login")
    @app.post("/api/admin/login")
    def api_login(body: LoginRequest):
        token = app.state.sessions.login(body.username, body.password)
        resp = JSONResponse({"ok": True})
        resp.set_cookie(settings.cookie_name, token, **cookie_settings(settings))
        return resp

    @app.post("/api/logout")
    def api_logout(request: Request):
        app.state.sessions.logout(session_token(request))
        resp = JSONResponse({"ok": True})
        resp.delete_cookie(settings.cookie_name, path="/")
        return resp

    @app.get("/api/session")
    def api_session(request: Request):
        return {"ok": True, "authenticated": is_authenticated(request)}

    # ------------------ Site content ------------------

    @app.get("/api/site")
    def get_site():
        data = app.state.store.read()
        return JSONResponse({"ok": True, "data": data}, headers={"Cache-Control": "no-store"})

    @app.post("/api/site", dependencies=[Depends(require_api_session)])
    async def save_site(request: Request):
        body = await _json_body(request)
        payload = parse_body(SitePayload, body, message="missing data")
        doc = await run_in_threadpool(app.state.store.write, payload.data)
        return {"ok": True, "data": doc}

    # ------------------ Uploads ------------------

    @app.post("/api/upload", dependencies=[Depends(require_api_session)])
    async def upload(request: Request):
        async with request.form() as form:
            file = form.get("file")
            if not isinstance(file, UploadFile) or not file.filename:
                raise ValidationError("missing file")
            content = await file.read(settings.max_upload_bytes + 1)
            stored = await run_in_threadpool(
                app.state.uploads.save, file.filename, file.content_type or "", content
            )
        return {"ok": True, "url": stored.url}

    # ------------------ Contact ------------------

    @app.post("/api/contact")
    async def contact(request: Request):
        app.state.contact_limiter.hit(client_id(request, settings))

        ctype = request.headers.get("content-type", "")
        if ctype.startswith("application/x-www-form-urlencoded") or ctype.startswith("multipart/form-data"):
            async with request.form() as form:
                body = {k: v for k, v in form.items() if isinstance(v, str)}
        else:
            body = await _json_body(request)
        form_data = parse_body(ContactRequest, body, message="Missing email or message.")

        logger.info(
            "Contact incoming name=%r email=%r message_len=%d",
            form_data.name[:80],
            form_data.email[:120],
            len(form_data.message),
        )
        await app.state.mailer.send(
            ContactMessage(
                email=form_data.email,
                message=form_data.message,
                name=form_data.name,
                phone=form_data.phone,
                interest=form_data.interest,
            )
        )
        return {"ok": True}

    # ------------------ AI proxy ------------------

    @app.api_route(
        "/api/gemini/{path:path}",
        methods=["GET", "POST"],
        dependencies=[Depends(require_api_session)],
    )
    async def gemini(path: str, request: Request):
        body = await request.body() if request.method == "POST" else b""
        r = await app.state.gemini.forward(
            request.method,
            path,
            query=request.query_params.multi_items(),
            body=body,
            content_type=request.headers.get("content-type", ""),
        )
        return Response(content=r.content, status_code=r.status_code, media_type=r.media_type)

    # ------------------ Admin pages ------------------

    @app.get("/admin/login", response_class=HTMLResponse)
    def login_get(request: Request, next: str = ADMIN_HOME):
        if is_authenticated(request):
            return RedirectResponse(url=_safe_next(next), status_code=303)
        return _render(request, "login.html", {"next": _safe_next(next), "error": ""})

    @app.post("/admin/login")
    def login_post(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
        next: str = Form(ADMIN_HOME),
    ):
        try:
            token = app.state.sessions.login(username, password)
        except Unauthorized:
            return _render(
                request,
                "login.html",
                {"next": _safe_next(next), "error": "Invalid credentials"},
                status_code=401,
            )
        resp = RedirectResponse(url=_safe_next(next), status_code=303)
        resp.set_cookie(settings.cookie_name, token, **cookie_settings(settings))
        return resp

    @app.post("/admin/logout")
    def logout_post(request: Request):
        app.state.sessions.logout(session_token(request))
        resp = RedirectResponse(url="/admin/login", status_code=303)
        resp.delete_cookie(settings.cookie_name, path="/")
        return resp

    @app.get("/admin", dependencies=[Depends(require_page_session)])
    @app.get("/admin/{path:path}", dependencies=[Depends(require_page_session)])
    def admin_page(path: str = ""):
        return FileResponse(_resolve_admin_file(settings.admin_dir, path))

    # ------------------ Static ------------------

    try:
        settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create uploads dir %s: %s", settings.uploads_dir, e)
    app.mount(URL_PREFIX, StaticFiles(directory=str(settings.uploads_dir), check_dir=False), name="uploads")

    if settings.public_dir.is_dir():
        app.mount("/", PublicFiles(directory=settings.public_dir, blocked=settings.admin_dir), name="public")
    else:
        logger.warning("PUBLIC_DIR %s does not exist; static site not served", settings.public_dir)

    logger.info("Site document: %s", settings.site_file)
    return app
