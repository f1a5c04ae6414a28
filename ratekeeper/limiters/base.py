"""Common interface for all rate limiting strategies.

Each strategy is stateless: it reads and writes the injected store and reads
the injected clock, nothing else. Any number of coroutines, processes or
machines may call ``allow`` concurrently.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from ratekeeper.core.clock import Clock, SystemClock
from ratekeeper.core.config import settings
from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.exceptions import RateLimitExceeded, StoreError
from ratekeeper.limiters.models import Decision, Strategy
from ratekeeper.store.base import Store

logger = get_logger(__name__)


class RateLimiter(ABC):
    """Abstract base class for rate limiting strategies.

    Subclasses set ``strategy``, ``key_prefix`` and ``config_type`` and
    implement ``_check``. Store failures are turned into a Decision here,
    according to ``fail_closed``.
    """

    strategy: ClassVar[Strategy]
    key_prefix: ClassVar[str]
    config_type: ClassVar[type]

    def __init__(
        self,
        store: Store,
        clock: Optional[Clock] = None,
        fail_closed: Optional[bool] = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared store holding the authoritative counters
            clock: Time source (defaults to the local wall clock)
            fail_closed: Deny when the store fails (None = from settings)
        """
        self._store = store
        self._clock = clock or SystemClock()
        self.fail_closed = (
            settings.rate_limit_fail_closed if fail_closed is None else fail_closed
        )

    def key(self, identity: str) -> str:
        """Store key holding this strategy's state for ``identity``."""
        return f"{self.key_prefix}:{identity}"

    async def allow(self, identity: str, config: Any) -> Decision:
        """Decide whether a new request from ``identity`` may proceed.

        Args:
            identity: Opaque caller identifier (user id, API key hash, ...)
            config: Strategy-specific configuration

        Returns:
            Decision; ``error`` is set when the store could not be consulted.

        Raises:
            TypeError: If ``config`` is not this strategy's config type.
            ValueError: If ``config`` is not usable with this strategy.
        """
        self.validate_config(config)

        start = time.perf_counter()
        try:
            allowed = await self._check(identity, config)
        except StoreError as e:
            return self._handle_store_failure(identity, e)

        logger.debug(
            "Rate limit decision",
            extra=get_log_context(
                identity=identity,
                strategy=self.strategy.value,
                key=self.key(identity),
                allowed=allowed,
                duration_ms=round((time.perf_counter() - start) * 1000, 3),
            ),
        )
        return Decision(allowed=allowed, strategy=self.strategy.value)

    def validate_config(self, config: Any) -> None:
        """Check that ``config`` can be used with this strategy.

        Called by ``allow`` before touching the store; callers that hold one
        config for their whole lifetime (e.g. the middleware) can call it up
        front to fail at setup time.

        Raises:
            TypeError: If ``config`` is not this strategy's config type.
            ValueError: If a subclass rejects the config's values.
        """
        if not isinstance(config, self.config_type):
            raise TypeError(
                f"{type(self).__name__} expects {self.config_type.__name__}, "
                f"got {type(config).__name__}"
            )

    async def enforce(self, identity: str, config: Any) -> Decision:
        """Like ``allow`` but raise when the request is denied.

        Raises:
            RateLimitExceeded: If the decision is a denial.
        """
        decision = await self.allow(identity, config)
        if not decision.allowed:
            raise RateLimitExceeded(
                identity=identity,
                strategy=self.strategy.value,
                retry_after=self.retry_after(config),
            )
        return decision

    @abstractmethod
    def retry_after(self, config: Any) -> float:
        """Conservative seconds a denied caller should wait before retrying."""
        pass

    @abstractmethod
    async def _check(self, identity: str, config: Any) -> bool:
        """Run the strategy against the store and return the admit decision."""
        pass

    def _handle_store_failure(self, identity: str, error: StoreError) -> Decision:
        """Apply the fail-closed/fail-open policy to a store failure."""
        context = get_log_context(
            identity=identity,
            strategy=self.strategy.value,
            key=self.key(identity),
            allowed=not self.fail_closed,
        )
        if self.fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered: {error}. Request denied.",
                extra=context,
            )
        else:
            logger.warning(
                f"Rate limiting fail-open triggered: {error}. "
                "Request allowed without rate limit check.",
                extra=context,
            )
        return Decision(
            allowed=not self.fail_closed,
            strategy=self.strategy.value,
            error=error,
        )
