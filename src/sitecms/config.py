# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

MIB = 1024 * 1024

DEFAULT_UPLOAD_TYPES = (
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/avif",
)

_TRUE = {"1", "true", "yes", "y", "on"}


def _flag(raw: Optional[str], default: bool = False) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


def _int(raw: Optional[str], default: int) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed by reference."""

    admin_user: str = ""
    admin_pass: str = ""
    admin_pass_hash: str = ""

    session_secret: str = field(default_factory=lambda: secrets.token_urlsafe(48))
    session_secret_generated: bool = False
    session_max_age: int = 12 * 60 * 60
    cookie_name: str = "sitecms_session"
    cookie_secure: bool = False

    data_dir: Path = Path("/var/data")
    site_data_file: Optional[Path] = None
    public_dir: Path = Path("public")

    max_site_bytes: int = 18 * MIB
    max_upload_bytes: int = 8 * MIB
    upload_types: Tuple[str, ...] = DEFAULT_UPLOAD_TYPES

    brevo_api_key: str = ""
    contact_to_email: str = ""
    contact_from_email: str = ""
    contact_from_name: str = "Website"
    contact_subject_prefix: str = "New message from site"
    contact_rate_limit: int = 10
    contact_rate_window: int = 60
    trust_proxy: bool = False

    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    upstream_timeout: float = 60.0

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False

    @property
    def site_file(self) -> Path:
        return self.site_data_file or (self.data_dir / "site-data.json")

    @property
    def uploads_dir(self) -> Path:
        return self.data_dir / "uploads"

    @property
    def admin_dir(self) -> Path:
        return self.public_dir / "admin"

    @property
    def mail_configured(self) -> bool:
        return bool(self.brevo_api_key and self.contact_to_email and self.contact_from_email)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        secret = (env.get("SESSION_SECRET") or "").strip()
        generated = not secret
        if generated:
            secret = secrets.token_urlsafe(48)

        app_env = (env.get("APP_ENV") or "development").strip().lower()
        data_dir = Path(env.get("RENDER_DISK_PATH") or env.get("DATA_DIR") or "/var/data").resolve()
        site_file = env.get("SITE_DATA_FILE")

        return cls(
            admin_user=env.get("ADMIN_USER", ""),
            admin_pass=env.get("ADMIN_PASS", ""),
            admin_pass_hash=(env.get("ADMIN_PASS_HASH") or "").strip(),
            session_secret=secret,
            session_secret_generated=generated,
            session_max_age=_int(env.get("SESSION_MAX_AGE"), 12 * 60 * 60),
            cookie_name=env.get("SESSION_COOKIE_NAME") or "sitecms_session",
            cookie_secure=_flag(env.get("COOKIE_SECURE"), default=(app_env == "production")),
            data_dir=data_dir,
            site_data_file=Path(site_file).resolve() if site_file else None,
            public_dir=Path(env.get("PUBLIC_DIR") or "public").resolve(),
            max_site_bytes=_int(env.get("MAX_SITE_BYTES"), 18 * MIB),
            max_upload_bytes=_int(env.get("MAX_UPLOAD_BYTES"), 8 * MIB),
            brevo_api_key=env.get("BREVO_API_KEY", ""),
            contact_to_email=env.get("CONTACT_TO_EMAIL", ""),
            contact_from_email=env.get("CONTACT_FROM_EMAIL", ""),
            contact_from_name=env.get("CONTACT_FROM_NAME") or "Website",
            contact_subject_prefix=env.get("CONTACT_SUBJECT_PREFIX") or "New message from site",
            contact_rate_limit=_int(env.get("CONTACT_RATE_LIMIT"), 10),
            contact_rate_window=_int(env.get("CONTACT_RATE_WINDOW"), 60),
            trust_proxy=_flag(env.get("TRUST_PROXY")),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            gemini_base_url=(env.get("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com").rstrip("/"),
            upstream_timeout=float(_int(env.get("UPSTREAM_TIMEOUT"), 60)),
            log_level=env.get("LOG_LEVEL") or "INFO",
            host=env.get("HOST") or "0.0.0.0",
            port=_int(env.get("PORT"), 3000),
            reload=_flag(env.get("RELOAD")),
        )
