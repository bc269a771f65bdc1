"""Partnership Service - public facade returning Result envelopes.

Invariants:
    - Domain errors (validation, not-found, conflict, authorization) become
      Result.fail with the error's code and HTTP status, logged at WARNING
    - Infrastructure errors (DatabaseError, TransactionAbortedError, ...) propagate
    - kind and direction accept enum members or their plain string values;
      anything else is a VALIDATION_ERROR failure, never a silent default
    - kind selects the student or supervisor workflow; everything else is shared

Design Decisions:
    - Constructed once at startup (lifespan) and shared; holds no per-call state
    - _execute takes a zero-argument factory so input parsing runs inside the
      same domain-error boundary as the workflow call
    - wait_for_cleanup() lets shutdown and tests await fire-and-forget cleanup
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pairing.core.domain_types import (
    PartyId, PartyKind, ProjectId, RequestDirection, RequestId, ResponseAction,
)
from pairing.core.enforce_partnership import parse_kind
from pairing.core.errors import PairingError, PartnershipValidationError
from pairing.core.repository_protocols import EntityStore
from pairing.core.result import Result
from pairing.services.capacity_coordinator import CapacityCoordinator
from pairing.services.sibling_cleanup import CleanupScheduler
from pairing.services.student_partnership_workflow import StudentPartnershipWorkflow
from pairing.services.supervisor_partnership_workflow import (
    SupervisorPartnershipWorkflow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _label(value: Any) -> Any:
    return getattr(value, "value", value)


class PartnershipService:
    def __init__(self, store: EntityStore, cleanup: CleanupScheduler | None = None):
        self.store = store
        self.cleanup = cleanup or CleanupScheduler()
        self.capacity = CapacityCoordinator(store)
        self.students = StudentPartnershipWorkflow(store, self.cleanup)
        self.supervisors = SupervisorPartnershipWorkflow(
            store, self.capacity, self.cleanup,
        )

    def _workflow(
        self, kind: str | PartyKind,
    ) -> StudentPartnershipWorkflow | SupervisorPartnershipWorkflow:
        if parse_kind(kind) is PartyKind.SUPERVISOR:
            return self.supervisors
        return self.students

    async def _execute(
        self, operation: str, call: Callable[[], Awaitable[T]],
        message: str | None = None, **fields: Any,
    ) -> Result[T]:
        try:
            data = await call()
        except PairingError as e:
            if not e.is_domain:
                raise
            logger.warning(
                f"{operation} refused: {e.message}",
                extra={"operation": operation, "error_code": e.code, **fields},
            )
            return Result.fail(e)
        logger.info(f"{operation} succeeded", extra={"operation": operation, **fields})
        return Result.ok(data, message)

    # ─── Requests ───────────────────────────────────────────────

    async def create_partnership_request(
        self, requester_id: PartyId, target_id: PartyId,
        project_id: ProjectId | None = None,
    ) -> Result[RequestId]:
        """Student request when project_id is None, co-supervision request otherwise."""

        async def create() -> RequestId:
            if project_id is None:
                return await self.students.create_request(requester_id, target_id)
            return await self.supervisors.create_request(
                requester_id, target_id, project_id,
            )

        return await self._execute(
            "create_partnership_request", create,
            "Partnership request sent successfully",
            party_id=requester_id, project_id=project_id,
        )

    async def respond_to_partnership_request(
        self, request_id: RequestId, responder_id: PartyId,
        action: str | ResponseAction, kind: str | PartyKind = PartyKind.STUDENT,
    ) -> Result[None]:

        async def respond() -> None:
            await self._workflow(kind).respond_to_request(
                request_id, responder_id, action,
            )

        message = (
            "Partnership request accepted" if action == ResponseAction.ACCEPT.value
            else "Partnership request rejected"
        )
        return await self._execute(
            "respond_to_partnership_request", respond, message,
            request_id=request_id, party_id=responder_id, kind=_label(kind),
            action=_label(action),
        )

    async def cancel_partnership_request(
        self, request_id: RequestId, requester_id: PartyId,
        kind: str | PartyKind = PartyKind.STUDENT,
    ) -> Result[None]:
        return await self._execute(
            "cancel_partnership_request",
            lambda: self._workflow(kind).cancel_request(request_id, requester_id),
            "Partnership request cancelled",
            request_id=request_id, party_id=requester_id, kind=_label(kind),
        )

    # ─── Unpair ─────────────────────────────────────────────────

    async def unpair(
        self, party_id_a: PartyId, party_id_b: PartyId | None = None, *,
        project_id: ProjectId | None = None,
    ) -> Result[Any]:
        """Students: unpair(a, b). Supervisors: unpair(caller, project_id=...)."""
        if (party_id_b is None) == (project_id is None):
            return Result.fail(PartnershipValidationError(
                "Provide either a partner id or a project id",
            ))

        async def dissolve() -> PartyId | None:
            if project_id is not None:
                return await self.supervisors.unpair(project_id, party_id_a)
            await self.students.unpair(party_id_a, party_id_b)
            return None

        return await self._execute(
            "unpair", dissolve, "Partnership dissolved",
            party_id=party_id_a, project_id=project_id,
        )

    async def unpair_from_partner(self, student_id: PartyId) -> Result[PartyId]:
        return await self._execute(
            "unpair", lambda: self.students.unpair_from_partner(student_id),
            "Partnership dissolved", party_id=student_id,
        )

    async def complete_project(
        self, project_id: ProjectId, caller_id: PartyId, is_admin: bool = False,
    ) -> Result[dict]:
        async def complete() -> dict:
            released = await self.supervisors.complete_project(
                project_id, caller_id, is_admin,
            )
            return {"project_id": project_id, "co_supervisor_released": released}

        return await self._execute(
            "complete_project", complete, "Project completed",
            party_id=caller_id, project_id=project_id,
        )

    # ─── Queries ────────────────────────────────────────────────

    async def list_requests(
        self, party_id: PartyId,
        direction: str | RequestDirection = RequestDirection.ALL,
        kind: str | PartyKind = PartyKind.STUDENT,
    ) -> Result[list]:
        async def list_pending() -> list:
            return await self._workflow(kind).list_requests(party_id, direction)

        return await self._execute(
            "list_requests", list_pending,
            party_id=party_id, kind=_label(kind),
        )

    async def list_available_partners(
        self, party_id: PartyId, kind: str | PartyKind = PartyKind.STUDENT,
    ) -> Result[list]:
        async def list_available() -> list:
            if parse_kind(kind) is PartyKind.SUPERVISOR:
                return await self.supervisors.list_partners_with_capacity(party_id)
            return await self.students.list_available_students(party_id)

        return await self._execute(
            "list_available_partners", list_available,
            party_id=party_id, kind=_label(kind),
        )

    async def wait_for_cleanup(self) -> None:
        await self.cleanup.drain()
