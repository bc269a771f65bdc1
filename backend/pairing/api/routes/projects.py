"""Project lifecycle routes - completion releases the co-supervisor's capacity."""

from fastapi import APIRouter, Depends

from pairing.api.dependencies import (
    CallerIdentity, get_partnership_service, require_role,
)
from pairing.api.responses import result_response
from pairing.core.domain_types import CallerRole, ProjectId
from pairing.services.partnership_service import PartnershipService

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


@router.post("/{project_id}/complete")
async def complete_project(
    project_id: str,
    caller: CallerIdentity = Depends(
        require_role(CallerRole.SUPERVISOR, CallerRole.ADMIN),
    ),
    service: PartnershipService = Depends(get_partnership_service),
):
    result = await service.complete_project(
        ProjectId(project_id), caller.id, is_admin=caller.role is CallerRole.ADMIN,
    )
    return result_response(result)
