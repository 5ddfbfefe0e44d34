"""
Request throttling.

Two independent mechanisms live here:

* ``RateGate`` caps report deliveries per actor over a trailing window using
  the Firestore ``rate_limits`` collection. The count is read and then a new
  marker is written as two separate calls, so concurrent requests from one
  actor can both slip under the ceiling.
* ``limiter`` is the slowapi per-IP throttle applied to the AI generation
  routes.

Example usage:
    gate = RateGate(FirestoreCounterStore(db), max_requests=10, window_seconds=3600)
    result = await gate.check(actor.uid)
    if not result.allowed:
        raise RateLimited(result.message)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.logging import get_logger

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address)


def ip_rate_limit(per_minute: int, disabled: bool = False):
    """
    Decorator applying the per-IP throttle, or a no-op when disabled.

    Example:
        @router.post("/api/generate-market-analysis")
        @ip_rate_limit(10)
        async def generate(request: Request, ...):
            ...
    """
    if disabled:
        def no_limit_decorator(func):
            return func
        return no_limit_decorator
    return limiter.limit(f"{per_minute}/minute")


@dataclass
class RateLimitResult:
    allowed: bool
    message: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateGate:
    """
    Trailing-window request ceiling per actor.

    A counter-store failure lets the request through: when the store is down,
    report delivery keeps working without a limit.
    """

    def __init__(
        self,
        counter_store: Any,
        max_requests: int = 10,
        window_seconds: int = 3600,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.counter_store = counter_store
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock or _utcnow

    async def check(self, actor_id: str) -> RateLimitResult:
        """
        Count the actor's requests in the window and record this one if allowed.

        Args:
            actor_id: Verified uid of the caller

        Returns:
            RateLimitResult; ``allowed`` is False once the count reaches the ceiling
        """
        now = self.clock()
        try:
            recent = await self.counter_store.count_since(actor_id, now - self.window)
            if recent >= self.max_requests:
                logger.info(
                    "Report rate limit reached",
                    extra={"actor_id": actor_id, "count": recent, "limit": self.max_requests}
                )
                return RateLimitResult(False, "Rate limit exceeded. Please try again later.")

            await self.counter_store.append(actor_id, now)
            return RateLimitResult(True, "Rate limit check passed")

        except Exception as e:
            logger.warning(
                f"Rate limit check failed, allowing request: {e}",
                extra={"actor_id": actor_id}
            )
            return RateLimitResult(True, "Rate limit check failed, proceeding with request")
