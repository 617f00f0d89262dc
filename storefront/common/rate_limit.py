"""Redis token bucket shared by throttled endpoints."""

from time import time

from storefront.common.logging import logger


class TokenBucket:
    """Per-key token bucket stored in a Redis hash.

    `capacity` tokens refill linearly over `period_seconds`. Redis outages fail
    open: the attempt is allowed and a warning is logged.
    """

    def __init__(self, rdb, namespace: str, capacity: int, period_seconds: int) -> None:
        self.rdb = rdb
        self.namespace = namespace
        self.capacity = float(capacity)
        self.period_seconds = period_seconds

    def _key(self, subject: str) -> str:
        return f"tokenbucket:{self.namespace}:{subject}"

    def consume(self, subject: str) -> bool:
        """Take one token for `subject`; False when the bucket is empty."""

        if self.rdb is None:
            return True
        key = self._key(subject)
        now = time()
        refill_per_sec = self.capacity / float(self.period_seconds)
        try:
            values = self.rdb.hmget(key, "tokens", "updated_at")
            tokens = float(values[0]) if values[0] is not None else self.capacity
            updated_at = float(values[1]) if values[1] is not None else now
            elapsed = max(0.0, now - updated_at)
            tokens = min(self.capacity, tokens + elapsed * refill_per_sec)
            allowed = tokens >= 1.0
            if allowed:
                tokens -= 1.0
            self.rdb.hset(key, mapping={"tokens": tokens, "updated_at": now})
            self.rdb.expire(key, self.period_seconds * 2)
        except Exception as exc:
            logger.warning("token_bucket_unavailable namespace=%s error=%s", self.namespace, exc)
            return True
        return allowed
