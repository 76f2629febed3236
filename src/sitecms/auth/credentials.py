# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from sitecms.config import Settings

logger = logging.getLogger("sitecms.auth")

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


@dataclass(frozen=True)
class Credential:
    """The single admin login, held only in memory as an argon2 hash."""

    username: str
    password_hash: str

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password_hash)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Credential":
        if settings.admin_pass_hash:
            ph = settings.admin_pass_hash
        elif settings.admin_pass:
            ph = hash_password(settings.admin_pass)
        else:
            ph = ""
        cred = cls(username=settings.admin_user or "", password_hash=ph)
        if not cred.configured:
            logger.warning("ADMIN_USER / ADMIN_PASS not set; admin login is disabled")
        return cred


def authenticate(credential: Credential, username: str, password: str) -> bool:
    """Case-sensitive match of both fields against the configured credential."""
    if not credential.configured:
        return False
    user_ok = hmac.compare_digest(
        (username or "").encode("utf-8"), credential.username.encode("utf-8")
    )
    # Always verify the password so a wrong username takes the same path.
    pass_ok = verify_password(credential.password_hash, password or "")
    return user_ok and pass_ok
