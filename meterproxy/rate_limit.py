from __future__ import annotations

import logging
import time
from typing import Optional

from redis.exceptions import RedisError

logger = logging.getLogger("meterproxy.ratelimit")


class RateLimiter:
    """
    Fixed-window request counter in Redis.

    One key per (scope, identity, window bucket); INCR it and give it a TTL on
    first use. If Redis is unreachable the request is let through.
    """

    def __init__(self, redis_client, limit: int, window_seconds: int = 60, prefix: str = "rl"):
        self.redis = redis_client
        self.limit = int(limit)
        self.window_seconds = max(1, int(window_seconds))
        self.prefix = prefix

    def _key(self, scope: str, identity: str, now: Optional[float] = None) -> str:
        bucket = int(now if now is not None else time.time()) // self.window_seconds
        return f"{self.prefix}:{scope}:{identity}:{bucket}"

    async def allow(self, scope: str, identity: Optional[str], now: Optional[float] = None) -> bool:
        if self.redis is None or self.limit <= 0 or not identity:
            return True

        key = self._key(scope, identity, now)
        try:
            count = int(await self.redis.incr(key))
            if count == 1:
                await self.redis.expire(key, self.window_seconds * 2)
        except (RedisError, OSError) as exc:
            logger.warning("rate limiter unavailable, allowing request: %r", exc)
            return True

        return count <= self.limit
