"""SQL Entity Store - repository Protocols implemented on SQLAlchemy async sessions.

Invariants:
    - Repositories convert ORM rows to frozen entities before returning them
    - run_transaction re-runs the whole callable on retryable DatabaseError
      (serialization failure / deadlock), up to max_retries, then raises
      TransactionAbortedError
    - Transactional reads lock the rows they return (FOR UPDATE where supported)
    - update_status_many only moves rows that are still pending, so a concurrent
      accept and a sibling cancellation never both win
    - Bulk writes reject more than max_batch_size ids (BatchLimitExceededError)

Design Decisions:
    - One SqlStoreSession per reader / transaction: repositories share the AsyncSession
    - Bulk UPDATE ... WHERE id IN (...) with synchronize_session=False: rows are not
      kept in the identity map between calls
    - Exponential backoff with ±25% jitter between attempts
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, TypeVar

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pairing.core.clock import utcnow
from pairing.core.domain_types import (
    BATCH_WRITE_LIMIT, ApplicationId, ApplicationStatus, PartnershipStatus,
    PartyId, PartyKind, ProjectId, ProjectStatus, RequestDirection, RequestId,
    RequestStatus,
)
from pairing.core.entities import (
    Application, PartnershipRequest, Project, Student, Supervisor,
)
from pairing.core.errors import (
    BatchLimitExceededError, DatabaseError, TransactionAbortedError,
)
from pairing.infrastructure.database import DatabaseSessionManager
from pairing.models import (
    ApplicationModel, PartnershipRequestModel, ProjectModel, StudentModel,
    SupervisorModel, SupervisorPartnershipRequestModel,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _check_batch(ids: Sequence, limit: int) -> None:
    if len(ids) > limit:
        raise BatchLimitExceededError(len(ids), limit)


class _SqlRepository:
    def __init__(self, db: AsyncSession, max_batch_size: int, lock_rows: bool):
        self.db = db
        self.max_batch_size = max_batch_size
        self.lock_rows = lock_rows

    async def _get(self, model, row_id: str):
        stmt = select(model).where(model.id == row_id)
        if self.lock_rows:
            stmt = stmt.with_for_update()
        return (await self.db.execute(stmt)).scalar_one_or_none()


# ─── Parties & Projects ─────────────────────────────────────────

class SqlStudentRepository(_SqlRepository):

    @staticmethod
    def _to_entity(row: StudentModel) -> Student:
        return Student(
            id=PartyId(row.id),
            full_name=row.full_name,
            email=row.email,
            partner_id=row.partner_id,
            partnership_status=PartnershipStatus(row.partnership_status),
        )

    async def get_by_id(self, student_id: PartyId) -> Student | None:
        row = await self._get(StudentModel, student_id)
        return self._to_entity(row) if row else None

    async def list_unpaired(self, exclude_id: PartyId) -> list[Student]:
        result = await self.db.execute(
            select(StudentModel)
            .where(StudentModel.partner_id.is_(None), StudentModel.id != exclude_id)
            .order_by(StudentModel.full_name, StudentModel.id)
        )
        return [self._to_entity(row) for row in result.scalars()]

    async def set_partner(self, student_id: PartyId, partner_id: PartyId | None) -> None:
        status = PartnershipStatus.PAIRED if partner_id else PartnershipStatus.NONE
        await self.db.execute(
            update(StudentModel)
            .where(StudentModel.id == student_id)
            .values(
                partner_id=partner_id,
                partnership_status=status.value,
                updated_at=utcnow(),
            )
        )


class SqlSupervisorRepository(_SqlRepository):

    @staticmethod
    def _to_entity(row: SupervisorModel) -> Supervisor:
        return Supervisor(
            id=PartyId(row.id),
            full_name=row.full_name,
            email=row.email,
            max_capacity=row.max_capacity,
            current_capacity=row.current_capacity,
            is_active=row.is_active,
            is_approved=row.is_approved,
        )

    async def get_by_id(self, supervisor_id: PartyId) -> Supervisor | None:
        row = await self._get(SupervisorModel, supervisor_id)
        return self._to_entity(row) if row else None

    async def list_with_capacity(self, exclude_id: PartyId) -> list[Supervisor]:
        result = await self.db.execute(
            select(SupervisorModel)
            .where(
                SupervisorModel.id != exclude_id,
                SupervisorModel.is_active.is_(True),
                SupervisorModel.is_approved.is_(True),
                SupervisorModel.current_capacity < SupervisorModel.max_capacity,
            )
            .order_by(SupervisorModel.full_name, SupervisorModel.id)
        )
        return [self._to_entity(row) for row in result.scalars()]

    async def adjust_capacity(self, supervisor_id: PartyId, delta: int) -> None:
        # CHECK constraint rejects anything outside [0, max_capacity]
        await self.db.execute(
            update(SupervisorModel)
            .where(SupervisorModel.id == supervisor_id)
            .values(
                current_capacity=SupervisorModel.current_capacity + delta,
                updated_at=utcnow(),
            )
        )


class SqlProjectRepository(_SqlRepository):

    @staticmethod
    def _to_entity(row: ProjectModel) -> Project:
        return Project(
            id=ProjectId(row.id),
            supervisor_id=PartyId(row.supervisor_id),
            title=row.title,
            status=ProjectStatus(row.status),
            co_supervisor_id=row.co_supervisor_id,
        )

    async def get_by_id(self, project_id: ProjectId) -> Project | None:
        row = await self._get(ProjectModel, project_id)
        return self._to_entity(row) if row else None

    async def set_co_supervisor(
        self, project_id: ProjectId, supervisor_id: PartyId | None,
    ) -> None:
        await self.db.execute(
            update(ProjectModel)
            .where(ProjectModel.id == project_id)
            .values(co_supervisor_id=supervisor_id, updated_at=utcnow())
        )

    async def set_status(self, project_id: ProjectId, status: ProjectStatus) -> None:
        now = utcnow()
        values = {"status": status.value, "updated_at": now}
        if status is ProjectStatus.COMPLETED:
            values["completed_at"] = now
        await self.db.execute(
            update(ProjectModel).where(ProjectModel.id == project_id).values(**values)
        )


# ─── Requests ───────────────────────────────────────────────────

class SqlStudentRequestRepository(_SqlRepository):
    model = PartnershipRequestModel
    kind = PartyKind.STUDENT

    def _to_entity(self, row) -> PartnershipRequest:
        return PartnershipRequest(
            id=RequestId(row.id),
            kind=self.kind,
            requester_id=PartyId(row.requester_id),
            target_id=PartyId(row.target_id),
            status=RequestStatus(row.status),
            created_at=row.created_at,
            responded_at=row.responded_at,
        )

    def _to_row(self, request: PartnershipRequest):
        return self.model(
            id=request.id,
            requester_id=request.requester_id,
            target_id=request.target_id,
            status=request.status.value,
            created_at=request.created_at,
            responded_at=request.responded_at,
        )

    def _scope(self, stmt, project_id: ProjectId | None):
        return stmt

    async def get_by_id(self, request_id: RequestId) -> PartnershipRequest | None:
        row = await self._get(self.model, request_id)
        return self._to_entity(row) if row else None

    async def find_pending(
        self, party_id: PartyId, direction: RequestDirection,
    ) -> list[PartnershipRequest]:
        m = self.model
        if direction is RequestDirection.INCOMING:
            party_filter = m.target_id == party_id
        elif direction is RequestDirection.OUTGOING:
            party_filter = m.requester_id == party_id
        else:
            party_filter = or_(m.target_id == party_id, m.requester_id == party_id)
        result = await self.db.execute(
            select(m)
            .where(party_filter, m.status == RequestStatus.PENDING.value)
            .order_by(m.created_at.desc(), m.id)
        )
        return [self._to_entity(row) for row in result.scalars()]

    async def find_pending_between(
        self, party_a: PartyId, party_b: PartyId,
        project_id: ProjectId | None = None,
    ) -> list[PartnershipRequest]:
        m = self.model
        stmt = select(m).where(
            or_(
                and_(m.requester_id == party_a, m.target_id == party_b),
                and_(m.requester_id == party_b, m.target_id == party_a),
            ),
            m.status == RequestStatus.PENDING.value,
        )
        result = await self.db.execute(self._scope(stmt, project_id))
        return [self._to_entity(row) for row in result.scalars()]

    async def add(self, request: PartnershipRequest) -> None:
        self.db.add(self._to_row(request))
        await self.db.flush()

    async def update_status(
        self, request_id: RequestId, status: RequestStatus, responded_at: datetime,
    ) -> None:
        await self.db.execute(
            update(self.model)
            .where(self.model.id == request_id)
            .values(status=status.value, responded_at=responded_at)
        )

    async def update_status_many(
        self, request_ids: Sequence[RequestId], status: RequestStatus,
        responded_at: datetime,
    ) -> int:
        _check_batch(request_ids, self.max_batch_size)
        if not request_ids:
            return 0
        result = await self.db.execute(
            update(self.model)
            .where(
                self.model.id.in_(list(request_ids)),
                self.model.status == RequestStatus.PENDING.value,
            )
            .values(status=status.value, responded_at=responded_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class SqlSupervisorRequestRepository(SqlStudentRequestRepository):
    model = SupervisorPartnershipRequestModel
    kind = PartyKind.SUPERVISOR

    def _to_entity(self, row) -> PartnershipRequest:
        request = super()._to_entity(row)
        return PartnershipRequest(
            id=request.id, kind=request.kind,
            requester_id=request.requester_id, target_id=request.target_id,
            status=request.status, created_at=request.created_at,
            responded_at=request.responded_at,
            project_id=ProjectId(row.project_id),
        )

    def _to_row(self, request: PartnershipRequest):
        row = super()._to_row(request)
        row.project_id = request.project_id
        return row

    def _scope(self, stmt, project_id: ProjectId | None):
        if project_id is None:
            return stmt
        return stmt.where(self.model.project_id == project_id)

    async def find_pending_for_project(
        self, project_id: ProjectId,
    ) -> list[PartnershipRequest]:
        m = self.model
        result = await self.db.execute(
            select(m)
            .where(m.project_id == project_id, m.status == RequestStatus.PENDING.value)
            .order_by(m.created_at.desc(), m.id)
        )
        return [self._to_entity(row) for row in result.scalars()]


# ─── Applications ───────────────────────────────────────────────

class SqlApplicationRepository(_SqlRepository):

    @staticmethod
    def _to_entity(row: ApplicationModel) -> Application:
        return Application(
            id=ApplicationId(row.id),
            student_id=PartyId(row.student_id),
            status=ApplicationStatus(row.status),
            has_partner=row.has_partner,
            partner_name=row.partner_name,
            partner_email=row.partner_email,
        )

    async def find_by_students(
        self, student_ids: Sequence[PartyId],
        statuses: frozenset[ApplicationStatus],
    ) -> list[Application]:
        if not student_ids or not statuses:
            return []
        result = await self.db.execute(
            select(ApplicationModel)
            .where(
                ApplicationModel.student_id.in_(list(student_ids)),
                ApplicationModel.status.in_([s.value for s in statuses]),
            )
            .order_by(ApplicationModel.id)
        )
        return [self._to_entity(row) for row in result.scalars()]

    async def clear_partner_info_many(
        self, application_ids: Sequence[ApplicationId],
    ) -> int:
        _check_batch(application_ids, self.max_batch_size)
        if not application_ids:
            return 0
        result = await self.db.execute(
            update(ApplicationModel)
            .where(ApplicationModel.id.in_(list(application_ids)))
            .values(
                has_partner=False, partner_name=None, partner_email=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


# ─── Store ──────────────────────────────────────────────────────

class SqlStoreSession:
    """Repositories bound to one AsyncSession."""

    def __init__(
        self, db: AsyncSession, max_batch_size: int = BATCH_WRITE_LIMIT,
        lock_rows: bool = False,
    ):
        args = (db, max_batch_size, lock_rows)
        self.students = SqlStudentRepository(*args)
        self.supervisors = SqlSupervisorRepository(*args)
        self.projects = SqlProjectRepository(*args)
        self.requests = SqlStudentRequestRepository(*args)
        self.supervisor_requests = SqlSupervisorRequestRepository(*args)
        self.applications = SqlApplicationRepository(*args)


class SqlEntityStore:
    """EntityStore over a DatabaseSessionManager."""

    def __init__(
        self,
        manager: DatabaseSessionManager,
        max_retries: int = 5,
        base_delay_ms: int = 20,
        max_delay_ms: int = 1_000,
        max_batch_size: int = BATCH_WRITE_LIMIT,
    ):
        self.manager = manager
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.max_batch_size = max_batch_size

    @asynccontextmanager
    async def reader(self) -> AsyncGenerator[SqlStoreSession, None]:
        async with self.manager.session() as db:
            yield SqlStoreSession(db, self.max_batch_size)

    async def run_transaction(
        self, fn: Callable[[SqlStoreSession], Awaitable[T]], *,
        operation: str = "transaction",
    ) -> T:
        """Run fn in one transaction, re-running it from scratch on write conflicts."""
        for attempt in range(self.max_retries + 1):
            try:
                async with self.manager.transaction() as db:
                    return await fn(
                        SqlStoreSession(db, self.max_batch_size, lock_rows=True),
                    )
            except DatabaseError as e:
                if not e.retryable:
                    raise
                if attempt >= self.max_retries:
                    raise TransactionAbortedError(operation, attempt + 1) from e
                delay = self._backoff(attempt)
                logger.warning(
                    f"Transaction conflict, retry after {delay}ms",
                    extra={"operation": operation, "attempt": attempt + 1},
                )
                await asyncio.sleep(delay / 1000)
        raise TransactionAbortedError(operation, self.max_retries + 1)

    async def batch_write(
        self, fn: Callable[[SqlStoreSession], Awaitable[T]], *,
        operation: str = "batch_write",
    ) -> T:
        """Run fn as one atomic, non-retried write."""
        async with self.manager.transaction() as db:
            return await fn(SqlStoreSession(db, self.max_batch_size))

    async def health_check(self) -> bool:
        return await self.manager.health_check()

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
