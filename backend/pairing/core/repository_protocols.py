"""Boundary Protocols - contracts between the partnership engine and storage.

Invariants:
    - Services NEVER import a concrete store; everything goes through these Protocols
    - Repositories hold no business rules: pure persistence facades
    - Mutating methods are only called inside EntityStore.run_transaction or batch_write
    - update_status_many touches pending rows only and accepts at most
      EntityStore.max_batch_size ids per call

Design Decisions:
    - Protocol over ABC: structural subtyping, the SQL adapter and the in-memory
      test store share no base class
    - run_transaction takes a callable, not a context manager: the store may run
      it more than once after a write conflict, so the callable must only touch
      the StoreSession it is given
"""

from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol, TypeVar

from pairing.core.domain_types import (
    ApplicationId, ApplicationStatus, PartyId, ProjectId, ProjectStatus,
    RequestDirection, RequestId, RequestStatus,
)
from pairing.core.entities import (
    Application, PartnershipRequest, Project, Student, Supervisor,
)

T = TypeVar("T")


class StudentRepository(Protocol):
    async def get_by_id(self, student_id: PartyId) -> Student | None: ...
    async def list_unpaired(self, exclude_id: PartyId) -> list[Student]: ...
    async def set_partner(
        self, student_id: PartyId, partner_id: PartyId | None,
    ) -> None: ...


class SupervisorRepository(Protocol):
    async def get_by_id(self, supervisor_id: PartyId) -> Supervisor | None: ...
    async def list_with_capacity(self, exclude_id: PartyId) -> list[Supervisor]: ...
    async def adjust_capacity(self, supervisor_id: PartyId, delta: int) -> None: ...


class ProjectRepository(Protocol):
    async def get_by_id(self, project_id: ProjectId) -> Project | None: ...
    async def set_co_supervisor(
        self, project_id: ProjectId, supervisor_id: PartyId | None,
    ) -> None: ...
    async def set_status(self, project_id: ProjectId, status: ProjectStatus) -> None: ...


class RequestRepository(Protocol):
    """Indexed access to request records by (requester, status) and (target, status)."""
    async def get_by_id(self, request_id: RequestId) -> PartnershipRequest | None: ...
    async def find_pending(
        self, party_id: PartyId, direction: RequestDirection,
    ) -> list[PartnershipRequest]: ...
    async def find_pending_between(
        self, party_a: PartyId, party_b: PartyId,
        project_id: ProjectId | None = None,
    ) -> list[PartnershipRequest]: ...
    async def add(self, request: PartnershipRequest) -> None: ...
    async def update_status(
        self, request_id: RequestId, status: RequestStatus, responded_at: datetime,
    ) -> None: ...
    async def update_status_many(
        self, request_ids: Sequence[RequestId], status: RequestStatus,
        responded_at: datetime,
    ) -> int: ...


class SupervisorRequestRepository(RequestRepository, Protocol):
    """Supervisor requests are additionally indexed by project."""
    async def find_pending_for_project(
        self, project_id: ProjectId,
    ) -> list[PartnershipRequest]: ...


class ApplicationRepository(Protocol):
    async def find_by_students(
        self, student_ids: Sequence[PartyId],
        statuses: frozenset[ApplicationStatus],
    ) -> list[Application]: ...
    async def clear_partner_info_many(
        self, application_ids: Sequence[ApplicationId],
    ) -> int: ...


class StoreSession(Protocol):
    """Typed repositories bound to one read snapshot or one transaction."""
    students: StudentRepository
    supervisors: SupervisorRepository
    projects: ProjectRepository
    requests: RequestRepository
    supervisor_requests: SupervisorRequestRepository
    applications: ApplicationRepository


class EntityStore(Protocol):
    """Document-store style capability set: snapshot reads, retried transactions, bounded batches."""
    max_batch_size: int

    def reader(self) -> AbstractAsyncContextManager[StoreSession]: ...

    async def run_transaction(
        self, fn: Callable[[StoreSession], Awaitable[T]], *, operation: str = "transaction",
    ) -> T: ...

    async def batch_write(
        self, fn: Callable[[StoreSession], Awaitable[T]], *, operation: str = "batch_write",
    ) -> T: ...
