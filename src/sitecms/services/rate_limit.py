# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from sitecms.errors import RateLimited


@dataclass
class _Window:
    started: float
    count: int


class RateLimiter:
    """Fixed-window counter keyed by client identity.

    A key's window starts at its first hit and resets ``window_seconds`` later.
    Expired windows are evicted once the table grows past ``max_keys``.
    """

    def __init__(self, limit: int, window_seconds: float, *, max_keys: int = 10_000,
                 clock: Callable[[], float] = time.monotonic):
        if limit < 1 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.limit = int(limit)
        self.window = float(window_seconds)
        self.max_keys = int(max_keys)
        self._clock = clock
        self._hits: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str) -> int:
        """Count one request for ``key``; return how many remain in the window."""
        now = self._clock()
        with self._lock:
            w = self._hits.get(key)
            if w is None or now - w.started >= self.window:
                if w is None and len(self._hits) >= self.max_keys:
                    self._evict_locked(now)
                w = _Window(started=now, count=0)
                self._hits[key] = w
            if w.count >= self.limit:
                retry_after = max(1, math.ceil(self.window - (now - w.started)))
                raise RateLimited(retry_after)
            w.count += 1
            return self.limit - w.count

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def _evict_locked(self, now: float) -> None:
        stale = [k for k, w in self._hits.items() if now - w.started >= self.window]
        for k in stale:
            del self._hits[k]
