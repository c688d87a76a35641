"""
EcoFlow - Rate Limiting
Per-caller request throttling with pluggable backing storage.

Backed by the ``limits`` library: ``memory://`` keeps counters in-process
for single-instance deployments, ``redis://host:port`` shares them across
instances.
"""

import logging
from typing import Optional

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from src.core.config import settings

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a caller exceeds its request budget."""

    def __init__(self, identity: str, limit: str):
        super().__init__(f"Rate limit exceeded for {identity}: {limit}")
        self.identity = identity
        self.limit = limit


class RateLimiter:
    """
    Moving-window rate limiter keyed by caller identity.

    Usage:
        limiter = RateLimiter("20/minute")
        limiter.check("user-123")   # raises RateLimitExceeded when over budget
    """

    def __init__(
        self,
        limit: Optional[str] = None,
        storage_uri: Optional[str] = None,
        namespace: str = "ecoflow"
    ):
        """
        Initialize rate limiter.

        Args:
            limit: Limit expression such as "20/minute"
            storage_uri: Storage backend URI (memory://, redis://...)
            namespace: Key prefix separating independent limiters
        """
        self.limit_expression = limit or settings.rate_limit
        self.storage_uri = storage_uri or settings.rate_limit_storage_uri
        self.namespace = namespace

        self._limit = parse(self.limit_expression)
        self._storage = storage_from_string(self.storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

        logger.info(
            f"RateLimiter initialized: {self.limit_expression} "
            f"({self.storage_uri.split(':')[0]})"
        )

    def hit(self, identity: str) -> bool:
        """
        Record one request for identity.

        Returns:
            True if the request is within budget
        """
        return self._strategy.hit(self._limit, self.namespace, identity)

    def check(self, identity: str) -> None:
        """Record one request, raising RateLimitExceeded when over budget."""
        if not self.hit(identity):
            logger.warning(f"Rate limit exceeded: {identity}")
            raise RateLimitExceeded(identity, self.limit_expression)

    def reset(self) -> None:
        """Clear all counters."""
        self._storage.reset()
