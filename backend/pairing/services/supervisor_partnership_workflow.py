"""Supervisor Partnership Workflow - co-supervision requests scoped to one project.

Invariants:
    - Only the project's main supervisor requests a co-supervisor for it
    - Accept attaches the co-supervisor and bumps the target's capacity in the
      same transaction that marks the request accepted (CapacityCoordinator)
    - At most one accepted request per project; the others are cancelled after commit
    - Unpair and project completion detach through the coordinator: capacity never < 0

Design Decisions:
    - Duplicate check is per project: two supervisors may have pending requests
      for different projects at the same time
    - Project completion cancels leftover requests best-effort, like sibling cleanup
"""

import logging

from pairing.core.clock import utcnow
from pairing.core.domain_types import (
    PartyId, PartyKind, ProjectId, ProjectStatus, RequestDirection, RequestId,
    RequestStatus, ResponseAction,
)
from pairing.core.enforce_partnership import (
    check_co_supervisor_slot_free,
    check_no_pending_duplicate,
    check_not_self,
    check_project_owner,
    check_request_canceller,
    check_request_pending,
    check_request_responder,
    check_supervisor_available,
    check_supervisor_capacity,
    parse_action,
    parse_direction,
)
from pairing.core.entities import PartnershipRequest, Project, Supervisor
from pairing.core.errors import (
    NotPairedError, ResourceNotFoundError, UnauthorizedActionError,
)
from pairing.core.ids import new_request_id
from pairing.core.repository_protocols import EntityStore, StoreSession
from pairing.services.batch_writes import cancel_pending_requests
from pairing.services.capacity_coordinator import CapacityCoordinator
from pairing.services.sibling_cleanup import CleanupScheduler

logger = logging.getLogger(__name__)


async def _load_supervisor(session: StoreSession, supervisor_id: PartyId) -> Supervisor:
    supervisor = await session.supervisors.get_by_id(supervisor_id)
    if supervisor is None:
        raise ResourceNotFoundError("Supervisor", supervisor_id)
    return supervisor


async def _load_project(session: StoreSession, project_id: ProjectId) -> Project:
    project = await session.projects.get_by_id(project_id)
    if project is None:
        raise ResourceNotFoundError("Project", project_id)
    return project


async def _load_request(session: StoreSession, request_id: RequestId) -> PartnershipRequest:
    request = await session.supervisor_requests.get_by_id(request_id)
    if request is None:
        raise ResourceNotFoundError("Supervisor partnership request", request_id)
    return request


class SupervisorPartnershipWorkflow:
    """Supervisor-supervisor pairing state machine, capacity-aware."""

    def __init__(
        self, store: EntityStore, capacity: CapacityCoordinator,
        cleanup: CleanupScheduler,
    ):
        self.store = store
        self.capacity = capacity
        self.cleanup = cleanup

    # ─── Create ─────────────────────────────────────────────────

    async def create_request(
        self, requester_id: PartyId, target_id: PartyId, project_id: ProjectId,
    ) -> RequestId:
        check_not_self(requester_id, target_id)
        async with self.store.reader() as snapshot:
            await self._validate_create(snapshot, requester_id, target_id, project_id)

        request_id = new_request_id(PartyKind.SUPERVISOR)

        async def run(tx: StoreSession) -> RequestId:
            await self._validate_create(tx, requester_id, target_id, project_id)
            await tx.supervisor_requests.add(PartnershipRequest(
                id=request_id,
                kind=PartyKind.SUPERVISOR,
                requester_id=requester_id,
                target_id=target_id,
                status=RequestStatus.PENDING,
                created_at=utcnow(),
                project_id=project_id,
            ))
            return request_id

        return await self.store.run_transaction(run, operation="create_supervisor_request")

    async def _validate_create(
        self, session: StoreSession, requester_id: PartyId, target_id: PartyId,
        project_id: ProjectId,
    ) -> None:
        await _load_supervisor(session, requester_id)
        target = await _load_supervisor(session, target_id)
        project = await _load_project(session, project_id)
        existing = await session.supervisor_requests.find_pending_between(
            requester_id, target_id, project_id,
        )
        check_no_pending_duplicate(existing, requester_id, PartyKind.SUPERVISOR)
        check_project_owner(project, requester_id)
        check_co_supervisor_slot_free(project)
        check_supervisor_capacity(target)
        check_supervisor_available(target)

    # ─── Respond ────────────────────────────────────────────────

    async def respond_to_request(
        self, request_id: RequestId, responder_id: PartyId, action: str | ResponseAction,
    ) -> ResponseAction:
        parsed = parse_action(action)
        async with self.store.reader() as snapshot:
            request = await _load_request(snapshot, request_id)
        check_request_responder(request, responder_id)
        check_request_pending(request)

        if parsed is ResponseAction.ACCEPT:
            await self._accept(request)
        else:
            await self._reject(request)
        return parsed

    async def _accept(self, request: PartnershipRequest) -> None:
        async def run(tx: StoreSession) -> None:
            current = await _load_request(tx, request.id)
            check_request_pending(current)
            project = await _load_project(tx, current.project_id)
            check_project_owner(project, current.requester_id)
            await self.capacity.attach(current.project_id, current.target_id, tx=tx)
            await tx.supervisor_requests.update_status(
                current.id, RequestStatus.ACCEPTED, utcnow(),
            )

        await self.store.run_transaction(run, operation="accept_supervisor_request")
        logger.info(
            "Co-supervision partnership formed",
            extra={
                "request_id": request.id, "project_id": request.project_id,
                "party_id": request.target_id,
            },
        )
        self.cleanup.schedule(
            self._cancel_project_requests(request.project_id, exclude_id=request.id),
            operation="cancel_sibling_supervisor_requests",
            request_id=request.id, project_id=request.project_id,
        )

    async def _reject(self, request: PartnershipRequest) -> None:
        async def run(tx: StoreSession) -> None:
            current = await _load_request(tx, request.id)
            check_request_pending(current)
            await tx.supervisor_requests.update_status(
                current.id, RequestStatus.REJECTED, utcnow(),
            )

        await self.store.run_transaction(run, operation="reject_supervisor_request")

    async def _cancel_project_requests(
        self, project_id: ProjectId, exclude_id: RequestId | None = None,
    ) -> int:
        async with self.store.reader() as snapshot:
            pending = await snapshot.supervisor_requests.find_pending_for_project(project_id)
        ids = [r.id for r in pending if r.id != exclude_id]
        cancelled = await cancel_pending_requests(
            self.store, ids, PartyKind.SUPERVISOR,
            operation="cancel_project_supervisor_requests",
        )
        if cancelled:
            logger.info(
                f"Cancelled {cancelled} pending supervisor requests",
                extra={"project_id": project_id},
            )
        return cancelled

    # ─── Cancel ─────────────────────────────────────────────────

    async def cancel_request(self, request_id: RequestId, requester_id: PartyId) -> None:
        async with self.store.reader() as snapshot:
            request = await _load_request(snapshot, request_id)
        check_request_canceller(request, requester_id)
        check_request_pending(request, "Can only cancel pending requests")

        async def run(tx: StoreSession) -> None:
            current = await _load_request(tx, request_id)
            check_request_pending(current, "Request is no longer pending")
            await tx.supervisor_requests.update_status(
                current.id, RequestStatus.CANCELLED, utcnow(),
            )

        await self.store.run_transaction(run, operation="cancel_supervisor_request")

    # ─── Unpair ─────────────────────────────────────────────────

    async def unpair(self, project_id: ProjectId, caller_id: PartyId) -> PartyId:
        """Remove the project's co-supervisor. Returns the released supervisor id."""
        async with self.store.reader() as snapshot:
            project = await _load_project(snapshot, project_id)
        if caller_id not in (project.supervisor_id, project.co_supervisor_id):
            raise UnauthorizedActionError("Unauthorized to unpair from this project")
        if project.co_supervisor_id is None:
            raise NotPairedError("Project does not have a co-supervisor")
        co_supervisor_id = project.co_supervisor_id

        async def run(tx: StoreSession) -> None:
            if not await self.capacity.detach(project_id, co_supervisor_id, tx=tx):
                raise NotPairedError("Project does not have a co-supervisor")

        await self.store.run_transaction(run, operation="unpair_supervisors")
        return co_supervisor_id

    # ─── Project completion ─────────────────────────────────────

    async def complete_project(
        self, project_id: ProjectId, caller_id: PartyId, is_admin: bool = False,
    ) -> bool:
        """Mark the project completed and release its co-supervisor.

        Returns True when a co-supervisor slot was freed.
        """
        async with self.store.reader() as snapshot:
            project = await _load_project(snapshot, project_id)
        if not is_admin and project.supervisor_id != caller_id:
            raise UnauthorizedActionError(
                "Only the project supervisor can complete this project",
            )

        async def run(tx: StoreSession) -> bool:
            await _load_project(tx, project_id)
            await tx.projects.set_status(project_id, ProjectStatus.COMPLETED)
            return await self.capacity.detach(project_id, tx=tx)

        released = await self.store.run_transaction(run, operation="complete_project")
        self.cleanup.schedule(
            self._cancel_project_requests(project_id),
            operation="cancel_project_supervisor_requests",
            project_id=project_id,
        )
        return released

    # ─── Queries ────────────────────────────────────────────────

    async def list_requests(
        self, supervisor_id: PartyId,
        direction: str | RequestDirection = RequestDirection.ALL,
    ) -> list[PartnershipRequest]:
        direction = parse_direction(direction)
        async with self.store.reader() as snapshot:
            requests = await snapshot.supervisor_requests.find_pending(
                supervisor_id, direction,
            )
        unique = {r.id: r for r in requests}
        return sorted(unique.values(), key=lambda r: r.created_at, reverse=True)

    async def list_partners_with_capacity(self, supervisor_id: PartyId) -> list[Supervisor]:
        async with self.store.reader() as snapshot:
            return await snapshot.supervisors.list_with_capacity(exclude_id=supervisor_id)
