"""RedisRunLease — concrete RunLeaseProtocol backed by a Redis key with TTL.

acquire: SET key token NX PX ttl. The TTL bounds how long a crashed run can
block the next one.
release: compare-and-delete in a Lua script, so a run whose lease already
expired never deletes the lease of the run that replaced it.
"""

import logging
import uuid

from config.settings import settings
from src.cm_common.redis_client import get_redis

logger = logging.getLogger(__name__)

RUN_LEASE_KEY = "cm:autopay:run"

_RELEASE_LUA = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisRunLease:
    def __init__(self, key: str = RUN_LEASE_KEY, ttl_seconds: int | None = None) -> None:
        self._key = key
        self._ttl_ms = (ttl_seconds or settings.AUTOPAY_LEASE_TTL_SECONDS) * 1000

    async def acquire(self) -> str | None:
        redis = await get_redis()
        token = uuid.uuid4().hex
        acquired = await redis.set(self._key, token, nx=True, px=self._ttl_ms)
        return token if acquired else None

    async def release(self, token: str) -> None:
        redis = await get_redis()
        released = await redis.eval(_RELEASE_LUA, 1, self._key, token)
        if not released:
            logger.warning("Run lease %s expired before release", self._key)
