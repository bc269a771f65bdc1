"""Student Partnership Workflow - create / respond / cancel / unpair between two students.

Invariants:
    - Every check runs twice: on a snapshot (fast refusal) and again inside the
      transaction on re-read state (authoritative)
    - Pending requests never change a student's partnership fields
    - Accept sets partner_id on BOTH students and marks the request accepted atomically
    - Sibling cancellation and application sync run after commit and never undo it

Design Decisions:
    - Multiplicity allowed: a student in 'none' may hold any number of pending requests;
      the first accepted one wins, the rest are cancelled afterwards
    - Domain errors are raised, not returned: raising inside run_transaction aborts it
"""

import logging

from pairing.core.clock import utcnow
from pairing.core.domain_types import (
    ACTIVE_APPLICATION_STATUSES, PartyId, PartyKind, PartyRole, RequestDirection,
    RequestId, RequestStatus, ResponseAction,
)
from pairing.core.enforce_partnership import (
    check_mutually_paired,
    check_no_pending_duplicate,
    check_not_self,
    check_request_canceller,
    check_request_pending,
    check_request_responder,
    check_student_available,
    check_students_unpaired_for_accept,
    parse_action,
    parse_direction,
)
from pairing.core.entities import PartnershipRequest, Student
from pairing.core.errors import NotPairedError, ResourceNotFoundError
from pairing.core.ids import new_request_id
from pairing.core.repository_protocols import EntityStore, StoreSession
from pairing.services.batch_writes import cancel_pending_requests, execute_batch_updates
from pairing.services.sibling_cleanup import CleanupScheduler

logger = logging.getLogger(__name__)


async def _load_student(session: StoreSession, student_id: PartyId) -> Student:
    student = await session.students.get_by_id(student_id)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)
    return student


async def _load_request(session: StoreSession, request_id: RequestId) -> PartnershipRequest:
    request = await session.requests.get_by_id(request_id)
    if request is None:
        raise ResourceNotFoundError("Partnership request", request_id)
    return request


class StudentPartnershipWorkflow:
    """Student-student pairing state machine over an EntityStore."""

    def __init__(self, store: EntityStore, cleanup: CleanupScheduler):
        self.store = store
        self.cleanup = cleanup

    # ─── Create ─────────────────────────────────────────────────

    async def create_request(self, requester_id: PartyId, target_id: PartyId) -> RequestId:
        check_not_self(requester_id, target_id)
        async with self.store.reader() as snapshot:
            await self._validate_create(snapshot, requester_id, target_id)

        request_id = new_request_id(PartyKind.STUDENT)

        async def run(tx: StoreSession) -> RequestId:
            await self._validate_create(tx, requester_id, target_id)
            await tx.requests.add(PartnershipRequest(
                id=request_id,
                kind=PartyKind.STUDENT,
                requester_id=requester_id,
                target_id=target_id,
                status=RequestStatus.PENDING,
                created_at=utcnow(),
            ))
            return request_id

        return await self.store.run_transaction(run, operation="create_student_request")

    async def _validate_create(
        self, session: StoreSession, requester_id: PartyId, target_id: PartyId,
    ) -> None:
        requester = await _load_student(session, requester_id)
        target = await _load_student(session, target_id)
        existing = await session.requests.find_pending_between(requester_id, target_id)
        check_no_pending_duplicate(existing, requester_id, PartyKind.STUDENT)
        check_student_available(requester, PartyRole.REQUESTER)
        check_student_available(target, PartyRole.TARGET)

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
            requester = await _load_student(tx, current.requester_id)
            target = await _load_student(tx, current.target_id)
            check_students_unpaired_for_accept(requester, target)

            await tx.students.set_partner(requester.id, target.id)
            await tx.students.set_partner(target.id, requester.id)
            await tx.requests.update_status(current.id, RequestStatus.ACCEPTED, utcnow())

        await self.store.run_transaction(run, operation="accept_student_request")
        logger.info(
            "Student partnership formed",
            extra={"request_id": request.id, "party_id": request.target_id},
        )
        self.cleanup.schedule(
            self._cancel_sibling_requests(
                request.id, (request.requester_id, request.target_id),
            ),
            operation="cancel_sibling_student_requests",
            request_id=request.id,
        )

    async def _reject(self, request: PartnershipRequest) -> None:
        async def run(tx: StoreSession) -> None:
            current = await _load_request(tx, request.id)
            check_request_pending(current)
            await tx.requests.update_status(current.id, RequestStatus.REJECTED, utcnow())

        await self.store.run_transaction(run, operation="reject_student_request")

    async def _cancel_sibling_requests(
        self, accepted_id: RequestId, student_ids: tuple[PartyId, PartyId],
    ) -> int:
        """Cancel every other pending request that touches either new partner."""
        sibling_ids: dict[RequestId, None] = {}
        async with self.store.reader() as snapshot:
            for student_id in student_ids:
                for pending in await snapshot.requests.find_pending(
                    student_id, RequestDirection.ALL,
                ):
                    if pending.id != accepted_id:
                        sibling_ids[pending.id] = None
        cancelled = await cancel_pending_requests(
            self.store, list(sibling_ids), PartyKind.STUDENT,
            operation="cancel_sibling_student_requests",
        )
        if cancelled:
            logger.info(
                f"Cancelled {cancelled} sibling student requests",
                extra={"request_id": accepted_id},
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
            await tx.requests.update_status(current.id, RequestStatus.CANCELLED, utcnow())

        await self.store.run_transaction(run, operation="cancel_student_request")

    # ─── Unpair ─────────────────────────────────────────────────

    async def unpair(self, student_id: PartyId, partner_id: PartyId) -> None:
        async def run(tx: StoreSession) -> None:
            first = await _load_student(tx, student_id)
            second = await _load_student(tx, partner_id)
            check_mutually_paired(first, second)
            await tx.students.set_partner(first.id, None)
            await tx.students.set_partner(second.id, None)

        await self.store.run_transaction(run, operation="unpair_students")
        logger.info(
            "Student partnership dissolved",
            extra={"party_id": student_id, "operation": "unpair_students"},
        )
        await self._sync_applications_after_unpair((student_id, partner_id))

    async def unpair_from_partner(self, student_id: PartyId) -> PartyId:
        """Unpair the caller from whoever they are paired with. Returns the former partner."""
        async with self.store.reader() as snapshot:
            student = await _load_student(snapshot, student_id)
        if student.partner_id is None:
            raise NotPairedError("You are not currently paired with anyone")
        await self.unpair(student_id, student.partner_id)
        return student.partner_id

    async def _sync_applications_after_unpair(
        self, student_ids: tuple[PartyId, PartyId],
    ) -> None:
        """Clear partner info on active applications. Best-effort: the unpair already committed."""
        try:
            async with self.store.reader() as snapshot:
                applications = await snapshot.applications.find_by_students(
                    list(student_ids), ACTIVE_APPLICATION_STATUSES,
                )

            async def write(session: StoreSession, chunk: list) -> int:
                return await session.applications.clear_partner_info_many(chunk)

            await execute_batch_updates(
                self.store, [a.id for a in applications], write,
                operation="sync_applications_after_unpair",
            )
        except Exception as e:
            logger.error(
                f"Application partner sync failed: {e}",
                exc_info=True,
                extra={"operation": "sync_applications_after_unpair"},
            )

    # ─── Queries ────────────────────────────────────────────────

    async def list_requests(
        self, student_id: PartyId,
        direction: str | RequestDirection = RequestDirection.ALL,
    ) -> list[PartnershipRequest]:
        direction = parse_direction(direction)
        async with self.store.reader() as snapshot:
            requests = await snapshot.requests.find_pending(student_id, direction)
        unique = {r.id: r for r in requests}
        return sorted(unique.values(), key=lambda r: r.created_at, reverse=True)

    async def list_available_students(self, student_id: PartyId) -> list[Student]:
        async with self.store.reader() as snapshot:
            return await snapshot.students.list_unpaired(exclude_id=student_id)
