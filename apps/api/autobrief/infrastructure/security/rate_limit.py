import logging
from collections import deque
from time import monotonic
from typing import Callable, Deque, Dict, Optional, Tuple

import redis

from autobrief.config import get_settings

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    pass


class FixedWindowLimiter:
    """
    Counts hits per `rl:{bucket}:{identifier}` key in Redis (INCR + EXPIRE).
    While Redis is unreachable the same limits are applied per process.
    """

    def __init__(
        self,
        client_factory: Callable[[], redis.Redis],
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._client_factory = client_factory
        self._client: Optional[redis.Redis] = None
        self._clock = clock
        self._local: Dict[str, Tuple[int, Deque[float]]] = {}

    def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def hit(self, bucket: str, identifier: str, limit: int, window_seconds: int) -> None:
        key = f"rl:{bucket}:{identifier}"
        try:
            client = self._redis()
            count = client.incr(key)
            if count == 1:
                client.expire(key, window_seconds)
        except redis.RedisError as exc:
            logger.warning(
                "Rate limit Redis fallback engaged: %s", exc.__class__.__name__, extra={"bucket": bucket}
            )
            self._hit_local(key, bucket, limit, window_seconds)
            return
        if count > limit:
            raise RateLimitExceeded(bucket)

    def _hit_local(self, key: str, bucket: str, limit: int, window_seconds: int) -> None:
        now = self._clock()
        self._drop_expired(now)
        _, hits = self._local.setdefault(key, (window_seconds, deque()))
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()
        if len(hits) >= limit:
            raise RateLimitExceeded(bucket)
        hits.append(now)

    def _drop_expired(self, now: float) -> None:
        expired = [
            key
            for key, (window_seconds, hits) in self._local.items()
            if not hits or hits[-1] <= now - window_seconds
        ]
        for key in expired:
            del self._local[key]


def _default_client() -> redis.Redis:
    return redis.Redis.from_url(
        get_settings().redis_url,
        decode_responses=True,
        socket_connect_timeout=0.5,
        socket_timeout=0.5,
    )


limiter = FixedWindowLimiter(_default_client)


def enforce(bucket: str, identifier: str, limit: int, window_seconds: int) -> None:
    limiter.hit(bucket, identifier, limit, window_seconds)
