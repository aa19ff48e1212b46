from __future__ import annotations

import logging
import threading
from time import monotonic
from typing import Dict, Tuple

from sharebox.config import REDIS_URL

logger = logging.getLogger("sharebox.rate_limit")


class RateLimiter:
    """Fixed window rate limiter with Redis or in-memory storage per client."""

    def __init__(self, limit: int, window_seconds: int = 60, namespace: str = "rate_limit") -> None:
        self.limit = max(limit, 1)
        self.window_seconds = window_seconds
        self.namespace = namespace
        self._clients: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = monotonic() + window_seconds
        self._redis_client = self._connect_redis()

    def _connect_redis(self):
        if not REDIS_URL:
            return None
        try:
            import redis

            client = redis.from_url(REDIS_URL)
            client.ping()
            return client
        except Exception as exc:
            logger.warning("event=rate_limit_redis_unavailable error=%s", exc)
            return None

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Register a hit for the given key.
        Returns (allowed, retry_after_seconds).
        """
        if self._redis_client is not None:
            try:
                return self._hit_redis(key)
            except Exception as exc:
                logger.warning("event=rate_limit_redis_error error=%s", exc)
        return self._hit_memory(key)

    def _hit_redis(self, key: str) -> Tuple[bool, int]:
        redis_key = f"{self.namespace}:{key}"
        pipe = self._redis_client.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            # First hit of the window owns the expiry
            self._redis_client.expire(redis_key, self.window_seconds)
            ttl = self.window_seconds
        if int(count) > self.limit:
            return False, max(int(ttl), 1)
        return True, int(ttl)

    def _hit_memory(self, key: str) -> Tuple[bool, int]:
        now = monotonic()
        with self._lock:
            if now >= self._next_sweep:
                self._evict_expired(now)
            count, reset_at = self._clients.get(key, (0, now + self.window_seconds))
            if now > reset_at:
                count = 0
                reset_at = now + self.window_seconds
            if count >= self.limit:
                retry_after = max(0, int(reset_at - now))
                return False, retry_after or 1

            self._clients[key] = (count + 1, reset_at)
            retry_after = max(0, int(reset_at - now))
            return True, retry_after

    def _evict_expired(self, now: float) -> None:
        # Caller holds the lock; runs at most once per window
        expired = [key for key, (_, reset_at) in self._clients.items() if now > reset_at]
        for key in expired:
            del self._clients[key]
        self._next_sweep = now + self.window_seconds
