"""Coarse change notifications.

Messages only name the table that changed; subscribers re-fetch what they
display. Delivery is best-effort: a committed write never fails because
Redis is unreachable.
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as redis

from ..config import CHANGES_CHANNEL, REDIS_URL
from ..time_utils import utcnow

LOGGER = logging.getLogger(__name__)

TABLES = frozenset({"teams", "challenges", "join_requests", "users", "settings"})


class ChangeNotifier:
    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        *,
        channel: str = CHANGES_CHANNEL,
    ) -> None:
        self._redis = redis_client
        self.channel = channel

    @property
    def redis_client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(REDIS_URL, decode_responses=True)
        return self._redis

    async def publish(self, *tables: str) -> None:
        for table in tables:
            if table not in TABLES:
                raise ValueError(f"unknown table: {table!r}")
            message = {"table": table, "at": utcnow().isoformat()}
            try:
                await self.redis_client.publish(self.channel, json.dumps(message))
            except redis.RedisError as exc:
                LOGGER.warning("Change notification for %s not delivered: %s", table, exc)


class NullNotifier(ChangeNotifier):
    """Notifier that drops every message."""

    async def publish(self, *tables: str) -> None:
        return None
