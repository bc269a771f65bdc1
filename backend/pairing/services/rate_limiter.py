"""Rate Limiter - per-identity, per-endpoint admission gate.

Invariants:
    - Key is "{identity}:{endpoint}"; endpoints without a rule are always allowed
    - allowed <=> count <= max_requests for the current window
    - Never raises: backend failures follow the fail strategy
      (fail-open allows, fail-closed denies with remaining=0)
    - peek() never increments and is always fail-open

Design Decisions:
    - Backend is injected (Redis in production, memory for single worker / tests)
    - Limiter only decides; the HTTP layer turns a denial into 429 + Retry-After
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from pairing.core.domain_types import FailStrategy
from pairing.core.errors import RateLimitBackendError
from pairing.infrastructure.rate_limit_backends import WindowCount

logger = logging.getLogger(__name__)

PARTNERSHIP_REQUEST = "partnership_request"
PARTNERSHIP_RESPONSE = "partnership_response"


class WindowCounter(Protocol):
    async def hit(self, key: str, window_seconds: int) -> WindowCount: ...
    async def read(self, key: str, window_seconds: int) -> WindowCount: ...
    async def close(self) -> None: ...


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int = 3600


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int | None = None
    count: int = 0


def default_rules(
    request_limit: int = 10, response_limit: int = 20, window_seconds: int = 3600,
) -> dict[str, RateLimitRule]:
    return {
        PARTNERSHIP_REQUEST: RateLimitRule(request_limit, window_seconds),
        PARTNERSHIP_RESPONSE: RateLimitRule(response_limit, window_seconds),
    }


class RateLimiter:
    def __init__(
        self,
        backend: WindowCounter,
        rules: dict[str, RateLimitRule] | None = None,
        fail_strategy: FailStrategy = FailStrategy.FAIL_OPEN,
    ):
        self.backend = backend
        self.rules = rules if rules is not None else default_rules()
        self.fail_strategy = fail_strategy

    async def check(self, identity: str, endpoint: str) -> RateLimitDecision:
        """Count one hit and decide whether it is admitted."""
        rule = self.rules.get(endpoint)
        if rule is None:
            return RateLimitDecision(allowed=True, remaining=0)
        try:
            window = await self.backend.hit(f"{identity}:{endpoint}", rule.window_seconds)
        except RateLimitBackendError as e:
            logger.error(
                f"Rate limit backend failed ({self.fail_strategy.value}): {e.message}",
                extra={"party_id": identity, "endpoint": endpoint},
            )
            if self.fail_strategy is FailStrategy.FAIL_CLOSED:
                return RateLimitDecision(
                    allowed=False, remaining=0,
                    retry_after_seconds=rule.window_seconds,
                )
            return RateLimitDecision(allowed=True, remaining=rule.max_requests - 1)

        if window.count > rule.max_requests:
            logger.warning(
                "Rate limit exceeded",
                extra={"party_id": identity, "endpoint": endpoint},
            )
            return RateLimitDecision(
                allowed=False, remaining=0,
                retry_after_seconds=window.ttl_seconds, count=window.count,
            )
        return RateLimitDecision(
            allowed=True, remaining=rule.max_requests - window.count,
            count=window.count,
        )

    async def peek(self, identity: str, endpoint: str) -> RateLimitDecision:
        """Current status without consuming a hit."""
        rule = self.rules.get(endpoint)
        if rule is None:
            return RateLimitDecision(allowed=True, remaining=0)
        try:
            window = await self.backend.read(f"{identity}:{endpoint}", rule.window_seconds)
        except RateLimitBackendError as e:
            logger.error(
                f"Rate limit backend failed on peek: {e.message}",
                extra={"party_id": identity, "endpoint": endpoint},
            )
            return RateLimitDecision(allowed=True, remaining=rule.max_requests)
        exhausted = window.count >= rule.max_requests
        return RateLimitDecision(
            allowed=not exhausted,
            remaining=max(0, rule.max_requests - window.count),
            retry_after_seconds=window.ttl_seconds if exhausted else None,
            count=window.count,
        )

    async def close(self) -> None:
        await self.backend.close()
