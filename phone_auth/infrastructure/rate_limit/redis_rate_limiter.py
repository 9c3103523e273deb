from typing import Optional

import redis

from ...application.ports.rate_limiter import RateLimiter


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter shared by every instance pointing at the same Redis."""

    def __init__(self, url: Optional[str] = None, prefix: str = "rl:", client: Optional[redis.Redis] = None) -> None:
        if client is None:
            if not url:
                raise ValueError("Redis URL or client required")
            client = redis.Redis.from_url(url)
        self.client = client
        self.prefix = prefix

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        rk = f"{self.prefix}{key}:{window_seconds}"
        # Use Redis INCR with EXPIRE for fixed window
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, window_seconds, nx=True)
        count, _ = pipe.execute()
        return int(count) <= int(max_requests)
