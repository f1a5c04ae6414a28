"""Rate limiting middleware for Starlette/FastAPI applications.

Applies one limiter to every request. The identity is derived from the
bearer token when present, otherwise from the client IP; both are hashed so
raw credentials and addresses never reach the store.
"""

import hashlib
import math
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.limiters.base import RateLimiter

logger = get_logger(__name__)

# Bearer tokens are truncated to this length before hashing
MAX_API_KEY_LENGTH = 512


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce a rate limit on requests.

    Rate limits are applied per API key if available, otherwise per IP.

    Example:
        >>> app.add_middleware(
        ...     RateLimitMiddleware,
        ...     limiter=TokenBucketLimiter(store),
        ...     config=TokenBucketConfig(capacity=10, refill_rate=1),
        ... )
    """

    def __init__(self, app, limiter: RateLimiter, config: Any):
        super().__init__(app)
        limiter.validate_config(config)
        self.limiter = limiter
        self.config = config

    def _get_client_identity(self, request: Request) -> str:
        """Get the rate limit identity for the request.

        Uses the API key from the Authorization header if available,
        otherwise the first X-Forwarded-For hop or the peer address.

        Returns:
            Identity string (hashed, no sensitive data exposed)
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            api_key = auth[7:].strip()
            if api_key:
                key_hash = hashlib.sha256(
                    api_key[:MAX_API_KEY_LENGTH].encode()
                ).hexdigest()[:32]
                return f"apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"ip:{ip_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with rate limiting."""
        identity = self._get_client_identity(request)
        decision = await self.limiter.allow(identity, self.config)

        if not decision.allowed:
            retry_after = self.limiter.retry_after(self.config)
            logger.info(
                "Request rejected by rate limiter",
                extra=get_log_context(
                    identity=identity,
                    strategy=decision.strategy,
                    allowed=False,
                    path=request.url.path,
                ),
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "strategy": decision.strategy,
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(math.ceil(retry_after))},
            )

        return await call_next(request)
