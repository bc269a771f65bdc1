"""Capacity Coordinator - project co-supervisor slot and supervisor capacity as one unit.

Invariants:
    - Slot and counter change together, in the same transaction, or not at all
    - attach refuses a taken slot, exhausted capacity, or the project's own supervisor
    - detach is idempotent: empty slot => no-op, never drives capacity below zero
    - Given a tx (StoreSession), both join it; otherwise they run their own transaction

Design Decisions:
    - Re-reads project and supervisor inside the transaction: callers' snapshots may be stale
"""

import logging

from pairing.core.domain_types import PartyId, ProjectId
from pairing.core.enforce_partnership import (
    check_co_supervisor_slot_free, check_supervisor_capacity,
)
from pairing.core.errors import (
    NotPairedError, PartnershipValidationError, ResourceNotFoundError,
)
from pairing.core.repository_protocols import EntityStore, StoreSession

logger = logging.getLogger(__name__)


class CapacityCoordinator:
    def __init__(self, store: EntityStore):
        self.store = store

    async def attach(
        self, project_id: ProjectId, supervisor_id: PartyId,
        tx: StoreSession | None = None,
    ) -> None:
        if tx is None:
            async def run(session: StoreSession) -> None:
                await self._attach(session, project_id, supervisor_id)

            await self.store.run_transaction(run, operation="capacity_attach")
            return
        await self._attach(tx, project_id, supervisor_id)

    async def detach(
        self, project_id: ProjectId, supervisor_id: PartyId | None = None,
        tx: StoreSession | None = None,
    ) -> bool:
        """Free the co-supervisor slot. Returns False when it was already empty."""
        if tx is None:
            async def run(session: StoreSession) -> bool:
                return await self._detach(session, project_id, supervisor_id)

            return await self.store.run_transaction(run, operation="capacity_detach")
        return await self._detach(tx, project_id, supervisor_id)

    async def _attach(
        self, tx: StoreSession, project_id: ProjectId, supervisor_id: PartyId,
    ) -> None:
        project = await tx.projects.get_by_id(project_id)
        if project is None:
            raise ResourceNotFoundError("Project", project_id)
        supervisor = await tx.supervisors.get_by_id(supervisor_id)
        if supervisor is None:
            raise ResourceNotFoundError("Supervisor", supervisor_id)
        if project.supervisor_id == supervisor_id:
            raise PartnershipValidationError(
                "Project supervisor cannot also be its co-supervisor",
                field="target_id", code="SELF_PARTNERSHIP",
            )
        check_co_supervisor_slot_free(project)
        check_supervisor_capacity(
            supervisor, "Target supervisor no longer has available capacity",
        )

        await tx.projects.set_co_supervisor(project_id, supervisor_id)
        await tx.supervisors.adjust_capacity(supervisor_id, 1)
        logger.info(
            "Co-supervisor attached",
            extra={"project_id": project_id, "party_id": supervisor_id},
        )

    async def _detach(
        self, tx: StoreSession, project_id: ProjectId, supervisor_id: PartyId | None,
    ) -> bool:
        project = await tx.projects.get_by_id(project_id)
        if project is None:
            raise ResourceNotFoundError("Project", project_id)
        co_id = project.co_supervisor_id
        if co_id is None:
            return False
        if supervisor_id is not None and co_id != supervisor_id:
            raise NotPairedError("Supervisor is not the co-supervisor of this project")

        await tx.projects.set_co_supervisor(project_id, None)
        supervisor = await tx.supervisors.get_by_id(co_id)
        if supervisor is not None and supervisor.current_capacity > 0:
            await tx.supervisors.adjust_capacity(co_id, -1)
        else:
            logger.warning(
                "Co-supervisor capacity already at zero on detach",
                extra={"project_id": project_id, "party_id": co_id},
            )
        logger.info(
            "Co-supervisor detached",
            extra={"project_id": project_id, "party_id": co_id},
        )
        return True
