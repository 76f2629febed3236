# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request bodies accepted by the JSON API."""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from sitecms.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class SitePayload(BaseModel):
    data: Optional[Any] = None


class ContactRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=254)
    message: str = Field(min_length=1, max_length=10_000)
    name: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=50)
    interest: str = Field(default="", max_length=200)


def describe_errors(errors: list) -> list[str]:
    out = []
    for e in errors:
        loc = ".".join(str(p) for p in e.get("loc", ()) if p != "body")
        out.append(f"{loc}: {e.get('msg', 'invalid')}" if loc else str(e.get("msg", "invalid")))
    return out


def parse_body(model: Type[M], body: Any, *, message: str = "invalid request body") -> M:
    if not isinstance(body, dict):
        raise ValidationError(message)
    try:
        return model.model_validate(body)
    except SchemaError as e:
        raise ValidationError(message, extra={"details": describe_errors(e.errors())}) from e
