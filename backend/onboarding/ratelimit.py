import logging
import time

import redis
from django.conf import settings

log = logging.getLogger(__name__)

_r = None


class RateLimitExceeded(Exception): ...


def _redis():
    global _r
    if _r is None:
        _r = redis.Redis.from_url(settings.RATELIMIT_REDIS_URL)
    return _r


def _bucket(key: str, window_sec: int, max_count: int):
    # fixed window: the window number is part of the key
    key = f"{key}:{int(time.time()) // window_sec}"
    try:
        p = _redis().pipeline()
        p.incr(key, 1)
        p.expire(key, window_sec)
        count, _ = p.execute()
    except redis.RedisError as exc:
        # an unavailable limiter must not take redemption down with it
        log.warning("rate limit check skipped for %s: %s", key, exc)
        return
    if int(count) > max_count:
        raise RateLimitExceeded(f"Rate limit exceeded for {key}")


def check_redeem_per_ip(ip: str):
    if not settings.RATELIMIT_ENABLED:
        return
    _bucket(f"rl:invite:redeem:{ip or 'unknown'}", 3600, settings.INVITE_REDEEM_PER_IP_PER_HOUR)
