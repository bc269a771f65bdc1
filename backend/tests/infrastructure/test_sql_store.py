"""SQL entity store - repositories over aiosqlite, retry and error mapping.

Tests:
    - Rows round-trip to frozen entities (students, supervisors, projects, requests)
    - Pending lookups by direction, pair and project
    - update_status_many only moves pending rows and enforces the batch limit
    - CHECK constraint on capacity surfaces as DatabaseError
    - run_transaction retries retryable errors, then aborts
    - The engine runs end-to-end on the SQL store
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pairing.core.domain_types import (
    ApplicationStatus, PartnershipStatus, PartyKind, RequestDirection, RequestStatus,
)
from pairing.core.entities import PartnershipRequest
from pairing.core.errors import (
    BatchLimitExceededError, DatabaseError, TransactionAbortedError,
)
from pairing.db.base import Base
from pairing.infrastructure.database import DatabaseSessionManager, is_retryable
from pairing.infrastructure.sql_store import SqlEntityStore
from pairing.models import (
    ApplicationModel, PartnershipRequestModel, ProjectModel, StudentModel,
    SupervisorModel,
)
from pairing.services.partnership_service import PartnershipService

T0 = datetime(2026, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    manager = DatabaseSessionManager.from_engine(engine)
    yield SqlEntityStore(manager, max_retries=2, base_delay_ms=1, max_delay_ms=2)
    await engine.dispose()


async def _seed(store: SqlEntityStore, *rows) -> None:
    async with store.manager.transaction() as db:
        db.add_all(rows)


def _request_row(request_id, requester, target, minutes=0, status="pending"):
    return PartnershipRequestModel(
        id=request_id, requester_id=requester, target_id=target, status=status,
        created_at=T0 + timedelta(minutes=minutes),
    )


# ─── Repositories ───────────────────────────────────────────────

async def test_student_partner_round_trip(sql_store):
    await _seed(sql_store, StudentModel(id="a", full_name="Ana"), StudentModel(id="b"))

    async def pair(tx):
        await tx.students.set_partner("a", "b")

    await sql_store.run_transaction(pair)

    async with sql_store.reader() as snap:
        a = await snap.students.get_by_id("a")
        unpaired = await snap.students.list_unpaired(exclude_id="zzz")
    assert a.partner_id == "b"
    assert a.partnership_status is PartnershipStatus.PAIRED
    assert [s.id for s in unpaired] == ["b"]


async def test_supervisors_with_capacity_filter(sql_store):
    await _seed(
        sql_store,
        SupervisorModel(id="me", max_capacity=3),
        SupervisorModel(id="free", max_capacity=2, current_capacity=1),
        SupervisorModel(id="full", max_capacity=1, current_capacity=1),
        SupervisorModel(id="inactive", max_capacity=2, is_active=False),
    )
    async with sql_store.reader() as snap:
        partners = await snap.supervisors.list_with_capacity(exclude_id="me")
    assert [s.id for s in partners] == ["free"]
    assert partners[0].available_capacity == 1


async def test_capacity_check_constraint_maps_to_database_error(sql_store):
    await _seed(sql_store, SupervisorModel(id="s", max_capacity=1, current_capacity=1))

    async def overfill(tx):
        await tx.supervisors.adjust_capacity("s", 1)

    with pytest.raises(DatabaseError) as exc:
        await sql_store.run_transaction(overfill)
    assert not exc.value.retryable
    async with sql_store.reader() as snap:
        assert (await snap.supervisors.get_by_id("s")).current_capacity == 1


async def test_find_pending_by_direction(sql_store):
    await _seed(
        sql_store,
        StudentModel(id="a"), StudentModel(id="b"), StudentModel(id="c"),
        _request_row("r1", "a", "b", minutes=1),
        _request_row("r2", "c", "a", minutes=2),
        _request_row("r3", "a", "c", minutes=3, status="rejected"),
    )
    async with sql_store.reader() as snap:
        incoming = await snap.requests.find_pending("a", RequestDirection.INCOMING)
        everything = await snap.requests.find_pending("a", RequestDirection.ALL)
        between = await snap.requests.find_pending_between("b", "a")
    assert [r.id for r in incoming] == ["r2"]
    assert [r.id for r in everything] == ["r2", "r1"]
    assert [r.id for r in between] == ["r1"]
    assert between[0].kind is PartyKind.STUDENT


async def test_supervisor_requests_are_project_scoped(sql_store):
    await _seed(
        sql_store,
        SupervisorModel(id="o", max_capacity=2), SupervisorModel(id="t", max_capacity=2),
        ProjectModel(id="p1", supervisor_id="o"), ProjectModel(id="p2", supervisor_id="o"),
    )

    async def add(tx):
        for rid, pid in (("s1", "p1"), ("s2", "p2")):
            await tx.supervisor_requests.add(PartnershipRequest(
                id=rid, kind=PartyKind.SUPERVISOR, requester_id="o", target_id="t",
                status=RequestStatus.PENDING, created_at=T0, project_id=pid,
            ))

    await sql_store.run_transaction(add)
    async with sql_store.reader() as snap:
        scoped = await snap.supervisor_requests.find_pending_between("o", "t", "p1")
        for_project = await snap.supervisor_requests.find_pending_for_project("p2")
    assert [r.id for r in scoped] == ["s1"]
    assert [r.project_id for r in for_project] == ["p2"]


async def test_update_status_many_skips_terminal_rows(sql_store):
    await _seed(
        sql_store,
        StudentModel(id="a"), StudentModel(id="b"),
        _request_row("r1", "a", "b"),
        _request_row("r2", "b", "a", status="accepted"),
    )

    async def cancel(session):
        return await session.requests.update_status_many(
            ["r1", "r2"], RequestStatus.CANCELLED, T0,
        )

    assert await sql_store.batch_write(cancel) == 1
    async with sql_store.reader() as snap:
        assert (await snap.requests.get_by_id("r1")).status is RequestStatus.CANCELLED
        assert (await snap.requests.get_by_id("r2")).status is RequestStatus.ACCEPTED


async def test_batch_limit_enforced(sql_store):
    sql_store.max_batch_size = 2

    async def too_many(session):
        return await session.requests.update_status_many(
            ["x", "y", "z"], RequestStatus.CANCELLED, T0,
        )

    with pytest.raises(BatchLimitExceededError):
        await sql_store.batch_write(too_many)


async def test_clear_partner_info(sql_store):
    await _seed(
        sql_store,
        StudentModel(id="a"),
        ApplicationModel(
            id="app1", student_id="a", status="approved", has_partner=True,
            partner_name="B", partner_email="b@uni.test",
        ),
    )
    async with sql_store.reader() as snap:
        apps = await snap.applications.find_by_students(
            ["a"], frozenset({ApplicationStatus.APPROVED}),
        )

    async def clear(session):
        return await session.applications.clear_partner_info_many([a.id for a in apps])

    assert await sql_store.batch_write(clear) == 1
    async with sql_store.reader() as snap:
        [app] = await snap.applications.find_by_students(
            ["a"], frozenset({ApplicationStatus.APPROVED}),
        )
    assert app.has_partner is False
    assert app.partner_name is None


# ─── Retry & error mapping ──────────────────────────────────────

async def test_retryable_errors_are_retried(sql_store):
    calls = []

    async def flaky(tx):
        calls.append(1)
        if len(calls) < 3:
            raise DatabaseError("serialization failure", "commit", retryable=True)
        return "ok"

    assert await sql_store.run_transaction(flaky) == "ok"
    assert len(calls) == 3


async def test_retry_budget_exhausted(sql_store):
    async def always_conflicts(tx):
        raise DatabaseError("serialization failure", "commit", retryable=True)

    with pytest.raises(TransactionAbortedError) as exc:
        await sql_store.run_transaction(always_conflicts, operation="accept")
    assert exc.value.attempts == 3
    assert exc.value.operation == "accept"


class _DriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__("driver error")
        self.sqlstate = sqlstate


@pytest.mark.parametrize("sqlstate,expected", [
    ("40001", True), ("40P01", True), ("23505", False), (None, False),
])
def test_sqlstate_classification(sqlstate, expected):
    error = OperationalError("SELECT 1", {}, _DriverError(sqlstate))
    assert is_retryable(error) is expected


async def test_health_check(sql_store):
    assert await sql_store.health_check() is True


# ─── Engine on SQL ──────────────────────────────────────────────

async def test_student_flow_on_sql_store(sql_store):
    await _seed(
        sql_store,
        StudentModel(id="a"), StudentModel(id="b"), StudentModel(id="c"),
        _request_row("old", "c", "a"),
    )
    service = PartnershipService(sql_store)

    created = await service.create_partnership_request("a", "b")
    accepted = await service.respond_to_partnership_request(created.data, "b", "accept")
    await service.wait_for_cleanup()

    assert accepted.success
    async with sql_store.reader() as snap:
        a = await snap.students.get_by_id("a")
        b = await snap.students.get_by_id("b")
        old = await snap.requests.get_by_id("old")
    assert a.partner_id == "b" and b.partner_id == "a"
    assert old.status is RequestStatus.CANCELLED

    unpaired = await service.unpair("a", "b")
    assert unpaired.success
    async with sql_store.reader() as snap:
        assert (await snap.students.get_by_id("a")).partner_id is None


async def test_supervisor_flow_on_sql_store(sql_store):
    await _seed(
        sql_store,
        SupervisorModel(id="o", max_capacity=2), SupervisorModel(id="t", max_capacity=1),
        ProjectModel(id="p1", supervisor_id="o"),
    )
    service = PartnershipService(sql_store)

    created = await service.create_partnership_request("o", "t", "p1")
    accepted = await service.respond_to_partnership_request(
        created.data, "t", "accept", PartyKind.SUPERVISOR,
    )
    await service.wait_for_cleanup()

    assert accepted.success
    async with sql_store.reader() as snap:
        project = await snap.projects.get_by_id("p1")
        target = await snap.supervisors.get_by_id("t")
    assert project.co_supervisor_id == "t"
    assert target.current_capacity == 1

    completed = await service.complete_project("p1", "o")
    assert completed.data["co_supervisor_released"] is True
    async with sql_store.reader() as snap:
        assert (await snap.supervisors.get_by_id("t")).current_capacity == 0
