"""Racing operations - one winner, typed losers, invariants intact.

Tests:
    - Concurrent reverse creates leave exactly one pending request (Scenario C)
    - Double accept of the same request: one success, one "already processed"
    - Two projects racing for a supervisor's last slot: capacity never exceeded
    - A student accepting two requests at once ends with one partner
    - Persistent conflicts abort with TransactionAbortedError
"""

import asyncio

import pytest

from pairing.core.domain_types import PartnershipStatus, PartyKind, RequestStatus
from pairing.core.errors import TransactionAbortedError


def _hold_first_commits(store, parties: int) -> None:
    """First attempts of `parties` transactions all finish reading before any commits."""
    barrier = asyncio.Barrier(parties)
    run_transaction = store.run_transaction

    async def gated_run_transaction(fn, *, operation: str = "transaction"):
        first_attempt = True

        async def gated(tx):
            nonlocal first_attempt
            result = await fn(tx)
            if first_attempt:
                first_attempt = False
                await barrier.wait()
            return result

        return await run_transaction(gated, operation=operation)

    store.run_transaction = gated_run_transaction


async def test_concurrent_reverse_creates_leave_one_pending(store, service):
    store.add_student("a")
    store.add_student("b")
    _hold_first_commits(store, 2)

    first, second = await asyncio.gather(
        service.create_partnership_request("a", "b"),
        service.create_partnership_request("b", "a"),
    )

    results = [first, second]
    winners = [r for r in results if r.success]
    losers = [r for r in results if not r.success]
    assert len(winners) == 1 and len(losers) == 1
    assert losers[0].code == "REVERSE_REQUEST_EXISTS"
    assert losers[0].error == (
        "This student has already sent you a request. Check your incoming requests."
    )
    pending = [
        r for r in store.requests_between("a", "b") if r.status is RequestStatus.PENDING
    ]
    assert len(pending) == 1
    assert store.conflicts >= 1


async def test_double_accept_has_one_winner(store, service):
    store.add_student("a")
    store.add_student("b")
    store.add_request("r1", "a", "b")

    results = await asyncio.gather(
        service.respond_to_partnership_request("r1", "b", "accept"),
        service.respond_to_partnership_request("r1", "b", "accept"),
    )
    await service.wait_for_cleanup()

    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.code == "REQUEST_ALREADY_PROCESSED"
    assert loser.error == "Request already processed"
    assert store.student("a").partner_id == "b"
    assert store.student("b").partner_id == "a"


async def test_capacity_race_never_exceeds_max(store, service):
    store.add_supervisor("s1", max_capacity=3)
    store.add_supervisor("s2", max_capacity=3)
    store.add_supervisor("target", max_capacity=1)
    store.add_project("p1", "s1")
    store.add_project("p2", "s2")
    store.add_request("q1", "s1", "target", project_id="p1")
    store.add_request("q2", "s2", "target", project_id="p2")

    results = await asyncio.gather(
        service.respond_to_partnership_request("q1", "target", "accept", PartyKind.SUPERVISOR),
        service.respond_to_partnership_request("q2", "target", "accept", PartyKind.SUPERVISOR),
    )
    await service.wait_for_cleanup()

    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.code == "CAPACITY_EXHAUSTED"
    assert store.supervisor("target").current_capacity == 1
    attached = [
        p for p in ("p1", "p2") if store.project(p).co_supervisor_id == "target"
    ]
    assert len(attached) == 1


async def test_student_accepting_two_requests_at_once(store, service):
    for sid in ("x", "y", "z"):
        store.add_student(sid)
    store.add_request("r1", "y", "x")
    store.add_request("r2", "z", "x")

    results = await asyncio.gather(
        service.respond_to_partnership_request("r1", "x", "accept"),
        service.respond_to_partnership_request("r2", "x", "accept"),
    )
    await service.wait_for_cleanup()

    assert sorted(r.success for r in results) == [False, True]
    partner = store.student("x").partner_id
    assert partner in ("y", "z")
    assert store.student(partner).partner_id == "x"
    loser_id = "z" if partner == "y" else "y"
    assert store.student(loser_id).partnership_status is PartnershipStatus.NONE


async def test_retryable_conflicts_are_retried(store, service):
    store.add_student("a")
    store.add_student("b")
    store.fail_transactions(2)

    result = await service.create_partnership_request("a", "b")

    assert result.success
    assert store.conflicts == 2


async def test_persistent_conflicts_abort(store, service):
    store.add_student("a")
    store.add_student("b")
    store.fail_transactions(store.max_attempts)

    with pytest.raises(TransactionAbortedError) as exc:
        await service.create_partnership_request("a", "b")
    assert exc.value.attempts == store.max_attempts
    assert store.requests_between("a", "b") == []


async def test_already_paired_loser_keeps_symmetry(store, service):
    for sid in ("a", "b", "c"):
        store.add_student(sid)
    store.add_request("r1", "a", "b")
    store.add_request("r2", "c", "a")

    await asyncio.gather(
        service.respond_to_partnership_request("r1", "b", "accept"),
        service.respond_to_partnership_request("r2", "a", "accept"),
    )
    await service.wait_for_cleanup()

    a = store.student("a")
    assert a.partner_id in ("b", "c")
    assert store.student(a.partner_id).partner_id == "a"
    for sid in ("b", "c"):
        student = store.student(sid)
        if student.partner_id is not None:
            assert store.student(student.partner_id).partner_id == sid