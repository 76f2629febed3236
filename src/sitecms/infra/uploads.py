# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from sitecms.errors import PayloadTooLarge, StorageFailure, ValidationError

logger = logging.getLogger("sitecms.uploads")

URL_PREFIX = "/uploads"

_EXT_BY_TYPE = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/avif": ".avif",
}


def sanitize_filename(filename: str, content_type: str = "", max_len: int = 80) -> str:
    """Reduce a client-supplied name to a safe basename made of [A-Za-z0-9._-]."""
    base = Path(str(filename or "").replace("\\", "/")).name
    base = re.sub(r"[^A-Za-z0-9._-]", "_", base)
    base = re.sub(r"_+", "_", base).lstrip("._")
    if len(base) > max_len:
        stem, dot, ext = base.rpartition(".")
        if dot and 0 < len(ext) <= 10:
            base = stem[: max_len - len(ext) - 1] + "." + ext
        else:
            base = base[:max_len]
    if not base:
        base = "upload" + _EXT_BY_TYPE.get(content_type, "")
    return base


@dataclass(frozen=True)
class StoredUpload:
    name: str
    path: Path
    url: str


class UploadStore:
    def __init__(
        self,
        root: Path,
        *,
        max_bytes: int,
        allowed_types: Iterable[str],
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root)
        self.max_bytes = int(max_bytes)
        self.allowed_types = {t.lower() for t in allowed_types}
        self._clock = clock

    def new_name(self, filename: str, content_type: str) -> str:
        ms = int(self._clock() * 1000)
        return f"{ms}-{secrets.token_hex(6)}-{sanitize_filename(filename, content_type)}"

    def check(self, filename: str, content_type: str, size: int) -> None:
        if not filename or size <= 0:
            raise ValidationError("missing file")
        ct = (content_type or "").split(";")[0].strip().lower()
        if ct not in self.allowed_types:
            raise ValidationError(f"unsupported file type: {ct or 'unknown'} (images only)")
        if size > self.max_bytes:
            raise PayloadTooLarge(
                "file too large",
                extra={"bytes": size, "maxBytes": self.max_bytes},
            )

    def save(self, filename: str, content_type: str, data: bytes) -> StoredUpload:
        self.check(filename, content_type, len(data or b""))
        ct = (content_type or "").split(";")[0].strip().lower()
        name = self.new_name(filename, ct)
        out_path = self.root / name
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # "xb": never overwrite an existing upload
            with open(out_path, "xb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Failed to store upload %s: %s", name, e)
            raise StorageFailure(f"Failed to store upload: {e}") from e
        logger.info("Stored upload %s (%d bytes, %s)", name, len(data), ct)
        return StoredUpload(name=name, path=out_path, url=f"{URL_PREFIX}/{name}")
