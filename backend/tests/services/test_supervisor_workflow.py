"""Supervisor workflow - co-supervision requests, capacity and project completion.

Tests:
    - create checks ownership, slot, capacity, availability and per-project duplicates
    - accept attaches the co-supervisor and bumps capacity atomically
    - accept cancels the other pending requests of the same project afterwards
    - unpair by owner or co-supervisor releases capacity
    - complete_project releases capacity and cancels leftover requests
"""

import pytest

from pairing.core.domain_types import ProjectStatus, RequestStatus
from pairing.core.errors import (
    CapacityExhaustedError,
    CoSupervisorAssignedError,
    DuplicateRequestError,
    NotPairedError,
    RequestAlreadyProcessedError,
    ResourceNotFoundError,
    SupervisorUnavailableError,
    UnauthorizedActionError,
)
from pairing.services.capacity_coordinator import CapacityCoordinator
from pairing.services.sibling_cleanup import CleanupScheduler
from pairing.services.supervisor_partnership_workflow import (
    SupervisorPartnershipWorkflow,
)


@pytest.fixture
async def cleanup():
    scheduler = CleanupScheduler()
    yield scheduler
    await scheduler.drain()


@pytest.fixture
def workflow(store, cleanup):
    return SupervisorPartnershipWorkflow(store, CapacityCoordinator(store), cleanup)


@pytest.fixture
def seeded(store):
    store.add_supervisor("owner", max_capacity=3)
    store.add_supervisor("t1", max_capacity=2)
    store.add_supervisor("t2", max_capacity=2)
    store.add_project("p1", "owner")
    return store


# ─── Create ─────────────────────────────────────────────────────

async def test_owner_creates_request(seeded, workflow):
    request_id = await workflow.create_request("owner", "t1", "p1")
    request = seeded.request(request_id)
    assert request_id.startswith("sreq_")
    assert request.project_id == "p1"
    assert request.status is RequestStatus.PENDING
    assert seeded.supervisor("t1").current_capacity == 0


async def test_non_owner_cannot_request(seeded, workflow):
    with pytest.raises(UnauthorizedActionError) as exc:
        await workflow.create_request("t2", "t1", "p1")
    assert exc.value.message == "Only the project supervisor can request a co-supervisor"


async def test_unknown_project(seeded, workflow):
    with pytest.raises(ResourceNotFoundError) as exc:
        await workflow.create_request("owner", "t1", "nope")
    assert exc.value.resource_type == "Project"


async def test_project_with_co_supervisor_refuses(seeded, workflow):
    seeded.add_project("p2", "owner", co_supervisor_id="t2")
    with pytest.raises(CoSupervisorAssignedError):
        await workflow.create_request("owner", "t1", "p2")


async def test_target_without_capacity(seeded, workflow):
    seeded.add_supervisor("full", max_capacity=1, current_capacity=1)
    with pytest.raises(CapacityExhaustedError) as exc:
        await workflow.create_request("owner", "full", "p1")
    assert exc.value.message == "Target supervisor has no available capacity"


async def test_inactive_target(seeded, workflow):
    seeded.add_supervisor("idle", max_capacity=2, is_active=False)
    with pytest.raises(SupervisorUnavailableError):
        await workflow.create_request("owner", "idle", "p1")


async def test_duplicate_is_scoped_to_project(seeded, workflow):
    seeded.add_project("p2", "owner")
    await workflow.create_request("owner", "t1", "p1")

    with pytest.raises(DuplicateRequestError) as exc:
        await workflow.create_request("owner", "t1", "p1")
    assert exc.value.message == "You already have a pending request with this supervisor"

    other = await workflow.create_request("owner", "t1", "p2")
    assert seeded.request(other).project_id == "p2"


# ─── Respond ────────────────────────────────────────────────────

async def test_accept_attaches_and_consumes_capacity(seeded, workflow, cleanup):
    seeded.add_request("s1", "owner", "t1", project_id="p1")

    await workflow.respond_to_request("s1", "t1", "accept")
    await cleanup.drain()

    assert seeded.project("p1").co_supervisor_id == "t1"
    assert seeded.supervisor("t1").current_capacity == 1
    assert seeded.request("s1").status is RequestStatus.ACCEPTED


async def test_accept_cancels_other_requests_for_project(seeded, workflow, cleanup):
    seeded.add_project("p2", "owner")
    seeded.add_request("s1", "owner", "t1", project_id="p1")
    seeded.add_request("s2", "owner", "t2", project_id="p1")
    seeded.add_request("s3", "owner", "t2", project_id="p2")

    await workflow.respond_to_request("s1", "t1", "accept")
    await cleanup.drain()

    assert seeded.request("s2").status is RequestStatus.CANCELLED
    assert seeded.request("s3").status is RequestStatus.PENDING
    assert seeded.supervisor("t2").current_capacity == 0


async def test_accept_refused_when_capacity_filled_meanwhile(seeded, workflow):
    seeded.add_request("s1", "owner", "t1", project_id="p1")
    seeded.add_supervisor("t1", max_capacity=2, current_capacity=2)

    with pytest.raises(CapacityExhaustedError) as exc:
        await workflow.respond_to_request("s1", "t1", "accept")
    assert exc.value.message == "Target supervisor no longer has available capacity"
    assert seeded.project("p1").co_supervisor_id is None
    assert seeded.request("s1").status is RequestStatus.PENDING


async def test_accept_refused_when_slot_taken_meanwhile(seeded, workflow):
    seeded.add_request("s1", "owner", "t1", project_id="p1")
    seeded.add_project("p1", "owner", co_supervisor_id="t2")

    with pytest.raises(CoSupervisorAssignedError):
        await workflow.respond_to_request("s1", "t1", "accept")
    assert seeded.supervisor("t1").current_capacity == 0


async def test_reject_leaves_capacity(seeded, workflow):
    seeded.add_request("s1", "owner", "t1", project_id="p1")
    await workflow.respond_to_request("s1", "t1", "reject")
    assert seeded.request("s1").status is RequestStatus.REJECTED
    assert seeded.supervisor("t1").current_capacity == 0


async def test_cancel_then_accept_is_already_processed(seeded, workflow):
    seeded.add_request("s1", "owner", "t1", project_id="p1")
    await workflow.cancel_request("s1", "owner")
    with pytest.raises(RequestAlreadyProcessedError):
        await workflow.respond_to_request("s1", "t1", "accept")


# ─── Unpair ─────────────────────────────────────────────────────

@pytest.mark.parametrize("caller", ["owner", "t1"])
async def test_owner_or_co_supervisor_unpairs(seeded, workflow, caller):
    seeded.add_project("p1", "owner", co_supervisor_id="t1")
    seeded.add_supervisor("t1", max_capacity=2, current_capacity=1)

    released = await workflow.unpair("p1", caller)

    assert released == "t1"
    assert seeded.project("p1").co_supervisor_id is None
    assert seeded.supervisor("t1").current_capacity == 0


async def test_outsider_cannot_unpair(seeded, workflow):
    seeded.add_project("p1", "owner", co_supervisor_id="t1")
    with pytest.raises(UnauthorizedActionError) as exc:
        await workflow.unpair("p1", "t2")
    assert exc.value.message == "Unauthorized to unpair from this project"


async def test_unpair_without_co_supervisor(seeded, workflow):
    with pytest.raises(NotPairedError) as exc:
        await workflow.unpair("p1", "owner")
    assert exc.value.message == "Project does not have a co-supervisor"


# ─── Project completion ─────────────────────────────────────────

async def test_complete_project_releases_capacity_and_cancels_requests(
    seeded, workflow, cleanup,
):
    seeded.add_project("p1", "owner", co_supervisor_id="t1")
    seeded.add_supervisor("t1", max_capacity=2, current_capacity=1)
    seeded.add_request("s9", "owner", "t2", project_id="p1")

    released = await workflow.complete_project("p1", "owner")
    await cleanup.drain()

    assert released is True
    assert seeded.project("p1").status is ProjectStatus.COMPLETED
    assert seeded.project("p1").co_supervisor_id is None
    assert seeded.supervisor("t1").current_capacity == 0
    assert seeded.request("s9").status is RequestStatus.CANCELLED


async def test_complete_project_without_co_supervisor(seeded, workflow):
    assert await workflow.complete_project("p1", "owner") is False
    assert seeded.project("p1").status is ProjectStatus.COMPLETED


async def test_only_owner_or_admin_completes(seeded, workflow):
    with pytest.raises(UnauthorizedActionError):
        await workflow.complete_project("p1", "t1")
    await workflow.complete_project("p1", "admin-1", is_admin=True)
    assert seeded.project("p1").status is ProjectStatus.COMPLETED


# ─── Queries ────────────────────────────────────────────────────

async def test_partners_with_capacity(seeded, workflow):
    seeded.add_supervisor("full", max_capacity=1, current_capacity=1)
    seeded.add_supervisor("pending", max_capacity=2, is_approved=False)

    partners = await workflow.list_partners_with_capacity("owner")

    assert {s.id for s in partners} == {"t1", "t2"}
