# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from sitecms.errors import PayloadTooLarge, StorageFailure, ValidationError

logger = logging.getLogger("sitecms.store")

META_KEY = "_meta"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with milliseconds and a trailing Z (2026-01-31T12:00:00.000Z)."""
    dt = now or datetime.now(timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def loads_strict(raw: Any) -> Any:
    """json.loads that refuses NaN, Infinity and -Infinity."""
    return json.loads(raw, parse_constant=_reject_constant)


def serialized_size(obj: Any) -> int:
    """Size in bytes of the compact UTF-8 JSON form; this is what the write ceiling measures."""
    return len(json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=(",", ":")).encode("utf-8"))


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write content via temp file + rename so readers see the old or new file, never a mix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.debug("Failed to unlink temp file %s", tmp_path, exc_info=True)
        raise


class LoadStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    status: LoadStatus
    document: Optional[Dict[str, Any]] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK


class ContentStore:
    """Owner of the single site JSON document.

    - ``load`` distinguishes present / absent / unreadable.
    - ``read`` collapses that to "document or None" for public callers.
    - ``write`` validates, stamps ``_meta.savedAt`` and atomically replaces the file.
      Last writer wins; there is no conflict detection.
    """

    def __init__(self, path: Path, *, max_bytes: int, now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.path = Path(path)
        self.max_bytes = int(max_bytes)
        self._now = now

    def load(self) -> LoadResult:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return LoadResult(LoadStatus.ABSENT)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read %s: %s", self.path, e)
            return LoadResult(LoadStatus.FAILED, error=str(e))

        if not raw.strip():
            return LoadResult(LoadStatus.ABSENT)
        try:
            doc = loads_strict(raw)
        except (ValueError, RecursionError) as e:
            logger.warning("Ignoring unparsable %s: %s", self.path, e)
            return LoadResult(LoadStatus.ABSENT)
        if not isinstance(doc, dict):
            logger.warning("Ignoring %s: top-level JSON is %s, not an object", self.path, type(doc).__name__)
            return LoadResult(LoadStatus.ABSENT)
        return LoadResult(LoadStatus.OK, document=doc)

    def read(self) -> Optional[Dict[str, Any]]:
        return self.load().document

    def validate(self, candidate: Any) -> Dict[str, Any]:
        if candidate is None or not isinstance(candidate, dict):
            raise ValidationError("missing data")
        try:
            size = serialized_size(candidate)
        except (ValueError, RecursionError) as e:
            raise ValidationError("data is not valid JSON (non-finite number or nesting too deep)") from e
        if size > self.max_bytes:
            raise PayloadTooLarge(
                "payload too large: shrink images or text and try again",
                extra={"bytes": size, "maxBytes": self.max_bytes},
            )
        return candidate

    def write(self, candidate: Any) -> Dict[str, Any]:
        data = self.validate(candidate)

        meta = data.get(META_KEY)
        meta = dict(meta) if isinstance(meta, dict) else {}
        meta["savedAt"] = utc_timestamp(self._now())
        doc = {**data, META_KEY: meta}

        content = json.dumps(doc, ensure_ascii=False, allow_nan=False, indent=2)
        try:
            atomic_write_text(self.path, content)
        except OSError as e:
            logger.error("Failed to save %s: %s", self.path, e)
            raise StorageFailure(f"Failed to save: {e}") from e

        logger.info("Saved %s (%d bytes)", self.path.name, len(content.encode("utf-8")))
        return doc
