"""Atomic store scripts.

Each script is a Lua program for Redis plus a Python twin with identical
semantics for the in-memory store. Both must stay in sync.
"""

import math
from typing import Any, Sequence

from ratekeeper.store.base import StoreScript

# Refill-then-spend for one token bucket, executed atomically so that two
# concurrent callers can never both spend the same token.
#   KEYS[1]: bucket key (hash with fields 'tokens' and 'last')
#   ARGV[1]: capacity (real)
#   ARGV[2]: refill rate, tokens per second (real)
#   ARGV[3]: now, seconds since epoch (real)
#   ARGV[4]: cleanup TTL in seconds (integer)
# Returns 1 when a token was spent, 0 when denied. Nothing is written on denial.
TOKEN_BUCKET_LUA = """
    local key = KEYS[1]
    local capacity = tonumber(ARGV[1])
    local rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local ttl = tonumber(ARGV[4])

    -- tonumber() accepts 'nan' and 'inf'; those count as unparsable too
    local function finite_or(raw, default)
        local value = tonumber(raw)
        if value == nil or value ~= value
            or value == math.huge or value == -math.huge then
            return default
        end
        return value
    end

    -- Unparsable fields fall back to a full, freshly stamped bucket
    local state = redis.call('HMGET', key, 'tokens', 'last')
    local tokens = finite_or(state[1], capacity)
    local last = finite_or(state[2], now)

    if tokens > capacity then tokens = capacity end
    if tokens < 0 then tokens = 0 end

    -- A caller whose clock lags behind the stored stamp gets no refill
    local elapsed = now - last
    if elapsed < 0 then elapsed = 0 end

    tokens = math.min(capacity, tokens + elapsed * rate)

    if tokens < 1 then
        return 0
    end

    tokens = tokens - 1
    if now > last then last = now end

    redis.call('HSET', key, 'tokens', tokens, 'last', last)
    redis.call('EXPIRE', key, ttl)

    return 1
"""


def _parse_real(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _token_bucket_local(view: Any, keys: Sequence[str], args: Sequence[Any]) -> int:
    key = keys[0]
    capacity, rate, now, ttl = (float(a) for a in args)

    tokens = _parse_real(view.hget(key, "tokens"), capacity)
    last = _parse_real(view.hget(key, "last"), now)

    tokens = min(max(tokens, 0.0), capacity)
    elapsed = max(0.0, now - last)
    tokens = min(capacity, tokens + elapsed * rate)

    if tokens < 1:
        return 0

    tokens -= 1
    view.hset(key, {"tokens": repr(tokens), "last": repr(max(last, now))})
    view.expire(key, ttl)
    return 1


TOKEN_BUCKET_SCRIPT = StoreScript(
    name="token_bucket",
    lua=TOKEN_BUCKET_LUA,
    local=_token_bucket_local,
)
