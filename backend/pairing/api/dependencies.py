"""Route Dependencies - caller identity, shared services and rate limiting.

Invariants:
    - Identity comes from X-User-Id / X-User-Role, set by the upstream auth gateway
    - Missing identity => AuthenticationRequiredError (401), wrong role => 403
    - Services are built once in the lifespan and read from app.state

Design Decisions:
    - Rate limiting is a route dependency, not middleware: only the create and
      respond routes are gated, each with its own rule
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, Header, Request

from pairing.core.domain_types import CallerRole, PartyId
from pairing.core.errors import (
    AuthenticationRequiredError, RateLimitExceededError, UnauthorizedActionError,
)
from pairing.services.partnership_service import PartnershipService
from pairing.services.rate_limiter import RateLimitDecision, RateLimiter


@dataclass(frozen=True)
class CallerIdentity:
    id: PartyId
    role: CallerRole


async def get_caller_identity(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> CallerIdentity:
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationRequiredError()
    try:
        role = CallerRole((x_user_role or "").strip().lower())
    except ValueError:
        raise UnauthorizedActionError("Unknown caller role") from None
    return CallerIdentity(id=PartyId(x_user_id.strip()), role=role)


def require_role(*roles: CallerRole) -> Callable[..., Awaitable[CallerIdentity]]:
    allowed = ", ".join(r.value for r in roles)

    async def dependency(
        caller: CallerIdentity = Depends(get_caller_identity),
    ) -> CallerIdentity:
        if caller.role not in roles:
            raise UnauthorizedActionError(f"This action requires role: {allowed}")
        return caller

    return dependency


def get_partnership_service(request: Request) -> PartnershipService:
    return request.app.state.partnership_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(endpoint: str) -> Callable[..., Awaitable[RateLimitDecision]]:
    """Dependency factory: count one hit for the caller, 429 when over the limit."""

    async def dependency(
        caller: CallerIdentity = Depends(get_caller_identity),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitDecision:
        decision = await limiter.check(caller.id, endpoint)
        if not decision.allowed:
            raise RateLimitExceededError(endpoint, decision.retry_after_seconds)
        return decision

    return dependency
