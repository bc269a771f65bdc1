"""Student Partnerships - HTTP adapter over the student workflow.

Invariants:
    - Every route requires the student role; the caller id is the acting party
    - Create and respond are rate limited per caller (partnership_request /
      partnership_response rules)
    - Responses are Result envelopes with the domain error's HTTP status
"""

from fastapi import APIRouter, Depends, Query, status

from pairing.api.dependencies import (
    CallerIdentity, enforce_rate_limit, get_partnership_service, get_rate_limiter,
    require_role,
)
from pairing.api.responses import result_response
from pairing.core.domain_types import (
    CallerRole, PartyId, PartyKind, RequestDirection, RequestId,
)
from pairing.schemas.partnership import (
    PartnershipRequestCreate, PartnershipRequestOut, PartnershipRespond,
    RateLimitStatusOut, StudentOut, StudentUnpair,
)
from pairing.services.partnership_service import PartnershipService
from pairing.services.rate_limiter import (
    PARTNERSHIP_REQUEST, PARTNERSHIP_RESPONSE, RateLimiter,
)

router = APIRouter(prefix="/api/v1/partnerships", tags=["partnerships"])

student_only = require_role(CallerRole.STUDENT)


@router.post(
    "/requests",
    dependencies=[Depends(enforce_rate_limit(PARTNERSHIP_REQUEST))],
)
async def create_request(
    body: PartnershipRequestCreate,
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.create_partnership_request(caller.id, PartyId(body.target_id))
    return result_response(
        result, transform=lambda rid: {"request_id": rid},
        success_status=status.HTTP_201_CREATED,
    )


@router.get("/requests")
async def list_requests(
    direction: RequestDirection = Query(RequestDirection.ALL),
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.list_requests(caller.id, direction, PartyKind.STUDENT)
    return result_response(
        result, transform=lambda rs: [PartnershipRequestOut.from_entity(r) for r in rs],
    )


@router.post(
    "/requests/{request_id}/respond",
    dependencies=[Depends(enforce_rate_limit(PARTNERSHIP_RESPONSE))],
)
async def respond_to_request(
    request_id: str,
    body: PartnershipRespond,
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.respond_to_partnership_request(
        RequestId(request_id), caller.id, body.action, PartyKind.STUDENT,
    )
    return result_response(result)


@router.post("/requests/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.cancel_partnership_request(
        RequestId(request_id), caller.id, PartyKind.STUDENT,
    )
    return result_response(result)


@router.post("/unpair")
async def unpair(
    body: StudentUnpair | None = None,
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    if body is None or body.partner_id is None:
        result = await service.unpair_from_partner(caller.id)
        return result_response(result, transform=lambda pid: {"former_partner_id": pid})
    result = await service.unpair(caller.id, PartyId(body.partner_id))
    return result_response(result)


@router.get("/available")
async def list_available_students(
    caller: CallerIdentity = Depends(student_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.list_available_partners(caller.id, PartyKind.STUDENT)
    return result_response(
        result, transform=lambda ss: [StudentOut.from_entity(s) for s in ss],
    )


@router.get("/rate-limits")
async def rate_limit_status(
    caller: CallerIdentity = Depends(student_only),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Remaining quota per gated endpoint; never consumes a hit."""
    statuses = []
    for endpoint in (PARTNERSHIP_REQUEST, PARTNERSHIP_RESPONSE):
        decision = await limiter.peek(caller.id, endpoint)
        statuses.append(RateLimitStatusOut(
            endpoint=endpoint,
            allowed=decision.allowed,
            remaining=decision.remaining,
            retry_after_seconds=decision.retry_after_seconds,
        ))
    return {"success": True, "data": [s.model_dump() for s in statuses]}
