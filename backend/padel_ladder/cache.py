from __future__ import annotations

from asyncio import Lock
import time
from typing import Optional

from .entities import LeagueSettings


class SettingsCache:
    """Holds the single league settings record for ``ttl_seconds``.

    A ttl of zero or less disables caching, so every read goes to the store.
    """

    def __init__(self, ttl_seconds: float = 30.0) -> None:
        self._ttl = ttl_seconds
        self._lock = Lock()
        self._value: Optional[LeagueSettings] = None
        self._expires_at = 0.0

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    async def get(self) -> Optional[LeagueSettings]:
        async with self._lock:
            if self._value is not None and self._expires_at <= time.monotonic():
                self._value = None
            return self._value

    async def put(self, settings: LeagueSettings) -> None:
        if not self.enabled:
            return
        async with self._lock:
            self._value = settings
            self._expires_at = time.monotonic() + self._ttl

    async def invalidate(self) -> None:
        async with self._lock:
            self._value = None
            self._expires_at = 0.0
