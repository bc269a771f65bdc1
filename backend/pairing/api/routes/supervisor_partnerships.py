"""Supervisor Partnerships - HTTP adapter over the co-supervision workflow.

Invariants:
    - Every route requires the supervisor role
    - Create and respond share the per-caller rate limit rules of student routes
    - Unpair is per project: the main supervisor or the co-supervisor may call it
"""

from fastapi import APIRouter, Depends, Query, status

from pairing.api.dependencies import (
    CallerIdentity, enforce_rate_limit, get_partnership_service, require_role,
)
from pairing.api.responses import result_response
from pairing.core.domain_types import (
    CallerRole, PartyId, PartyKind, ProjectId, RequestDirection, RequestId,
)
from pairing.schemas.partnership import (
    PartnershipRequestOut, PartnershipRespond, SupervisorOut,
    SupervisorPartnershipRequestCreate,
)
from pairing.services.partnership_service import PartnershipService
from pairing.services.rate_limiter import PARTNERSHIP_REQUEST, PARTNERSHIP_RESPONSE

router = APIRouter(
    prefix="/api/v1/supervisor-partnerships", tags=["supervisor-partnerships"],
)

supervisor_only = require_role(CallerRole.SUPERVISOR)


@router.post(
    "/requests",
    dependencies=[Depends(enforce_rate_limit(PARTNERSHIP_REQUEST))],
)
async def create_request(
    body: SupervisorPartnershipRequestCreate,
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.create_partnership_request(
        caller.id, PartyId(body.target_id), ProjectId(body.project_id),
    )
    return result_response(
        result, transform=lambda rid: {"request_id": rid},
        success_status=status.HTTP_201_CREATED,
    )


@router.get("/requests")
async def list_requests(
    direction: RequestDirection = Query(RequestDirection.ALL),
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.list_requests(caller.id, direction, PartyKind.SUPERVISOR)
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
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.respond_to_partnership_request(
        RequestId(request_id), caller.id, body.action, PartyKind.SUPERVISOR,
    )
    return result_response(result)


@router.post("/requests/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.cancel_partnership_request(
        RequestId(request_id), caller.id, PartyKind.SUPERVISOR,
    )
    return result_response(result)


@router.post("/projects/{project_id}/unpair")
async def unpair(
    project_id: str,
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.unpair(caller.id, project_id=ProjectId(project_id))
    return result_response(
        result, transform=lambda sid: {"released_supervisor_id": sid},
    )


@router.get("/partners-with-capacity")
async def list_partners_with_capacity(
    caller: CallerIdentity = Depends(supervisor_only),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.list_available_partners(caller.id, PartyKind.SUPERVISOR)
    return result_response(
        result, transform=lambda ss: [SupervisorOut.from_entity(s) for s in ss],
    )
