# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from sitecms.auth.credentials import Credential, authenticate
from sitecms.errors import Unauthorized

logger = logging.getLogger("sitecms.auth")

SESSION_SALT = "sitecms.session.v1"
DEFAULT_MAX_AGE_SECONDS = 12 * 60 * 60


@dataclass(frozen=True)
class SessionRecord:
    authenticated: bool
    created_at: float


class SessionStore:
    """In-memory session table: session id -> SessionRecord."""

    def __init__(self, *, max_age: int = DEFAULT_MAX_AGE_SECONDS, clock: Callable[[], float] = time.time):
        self.max_age = max_age
        self._clock = clock
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def create(self) -> str:
        sid = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            self._records[sid] = SessionRecord(authenticated=True, created_at=now)
        return sid

    def get(self, sid: str) -> Optional[SessionRecord]:
        if not sid:
            return None
        with self._lock:
            rec = self._records.get(sid)
            if rec is None:
                return None
            if self._clock() - rec.created_at > self.max_age:
                del self._records[sid]
                return None
            return rec

    def is_authenticated(self, sid: str) -> bool:
        rec = self.get(sid)
        return bool(rec and rec.authenticated is True)

    def destroy(self, sid: str) -> None:
        with self._lock:
            self._records.pop(sid, None)

    def _purge_locked(self, now: float) -> None:
        expired = [k for k, r in self._records.items() if now - r.created_at > self.max_age]
        for k in expired:
            del self._records[k]


class SessionManager:
    """Login/logout and the authentication predicate.

    The client only ever holds a signed token wrapping the session id; whether
    the session is alive is decided by the server-side table.
    """

    def __init__(self, credential: Credential, secret: str, *, max_age: int = DEFAULT_MAX_AGE_SECONDS,
                 store: Optional[SessionStore] = None):
        if not secret:
            raise RuntimeError("SESSION_SECRET is required")
        self.credential = credential
        self.max_age = max_age
        self.store = store or SessionStore(max_age=max_age)
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt=SESSION_SALT)

    def login(self, username: str, password: str) -> str:
        if not authenticate(self.credential, username, password):
            logger.warning("Login failed for user %r", (username or "")[:80])
            raise Unauthorized("Invalid credentials")
        sid = self.store.create()
        logger.info("Admin %r logged in", username)
        return self._serializer.dumps({"sid": sid})

    def session_id(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except (BadSignature, BadTimeSignature):
            return None
        sid = (data or {}).get("sid") if isinstance(data, dict) else None
        return str(sid) if sid else None

    def is_authenticated(self, token: Optional[str]) -> bool:
        sid = self.session_id(token)
        if not sid:
            return False
        return self.store.is_authenticated(sid)

    def logout(self, token: Optional[str]) -> None:
        sid = self.session_id(token)
        if sid:
            self.store.destroy(sid)
