"""Partnership Rule Enforcement - preconditions for creating, answering and ending partnerships.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Each check raises a typed domain error on violation and returns None otherwise
    - The same checks run on pre-check snapshots and again on in-transaction re-reads

Design Decisions:
    - Pure functions over method dispatch: testable without fakes
    - Exceptions (not dicts): workflows abort the enclosing transaction by raising
"""

from collections.abc import Sequence
from typing import TypeVar

from pairing.core.domain_types import (
    PartyKind, PartyRole, RequestDirection, RequestStatus, ResponseAction,
)
from pairing.core.entities import (
    PartnershipRequest, Project, Student, Supervisor,
)
from pairing.core.errors import (
    AlreadyPairedError,
    CapacityExhaustedError,
    CoSupervisorAssignedError,
    DuplicateRequestError,
    InvalidActionError,
    NotPairedError,
    PartnershipValidationError,
    RequestAlreadyProcessedError,
    SelfPartnershipError,
    SupervisorUnavailableError,
    UnauthorizedActionError,
)

T = TypeVar("T")


def check_not_self(requester_id: str, target_id: str) -> None:
    """Rule 1: nobody partners with themselves. Runs before any storage access."""
    if requester_id == target_id:
        raise SelfPartnershipError()


def parse_action(action: str | ResponseAction) -> ResponseAction:
    """Normalize a respond action; anything outside accept/reject is a validation error."""
    try:
        return ResponseAction(action)
    except ValueError:
        raise InvalidActionError(action) from None


def parse_direction(direction: str | RequestDirection) -> RequestDirection:
    try:
        return RequestDirection(direction)
    except ValueError:
        raise PartnershipValidationError(
            f"Invalid direction '{direction}'. Must be one of: incoming, outgoing, all",
            "direction",
        ) from None


def parse_kind(kind: str | PartyKind) -> PartyKind:
    try:
        return PartyKind(kind)
    except ValueError:
        raise PartnershipValidationError(
            f"Invalid party kind '{kind}'. Must be one of: student, supervisor",
            "kind",
        ) from None


def check_no_pending_duplicate(
    existing: Sequence[PartnershipRequest], requester_id: str, kind: PartyKind,
) -> None:
    """Rule 2: one pending request per pair. A forward duplicate wins over a reverse one."""
    pending = [r for r in existing if r.status is RequestStatus.PENDING]
    if not pending:
        return
    is_reverse = all(r.requester_id != requester_id for r in pending)
    raise DuplicateRequestError(is_reverse=is_reverse, party_label=kind.value)


def check_student_available(student: Student, role: PartyRole) -> None:
    """Rule 3: a paired student can neither send nor receive requests."""
    if not student.is_paired:
        return
    if role is PartyRole.REQUESTER:
        raise AlreadyPairedError("You are already paired with another student")
    raise AlreadyPairedError("Target student is already paired")


def check_students_unpaired_for_accept(requester: Student, target: Student) -> None:
    """Acceptance-time re-check, phrased from the responder's point of view."""
    if requester.is_paired:
        raise AlreadyPairedError("Requester is already paired with another student")
    if target.is_paired:
        raise AlreadyPairedError("You are already paired with another student")


def check_mutually_paired(first: Student, second: Student) -> None:
    if first.partner_id != second.id or second.partner_id != first.id:
        raise NotPairedError("Students are not paired with each other")


def check_project_owner(project: Project, supervisor_id: str) -> None:
    """Rule 4: only the project supervisor asks for a co-supervisor."""
    if project.supervisor_id != supervisor_id:
        raise UnauthorizedActionError(
            "Only the project supervisor can request a co-supervisor",
        )


def check_co_supervisor_slot_free(project: Project) -> None:
    if project.co_supervisor_id is not None:
        raise CoSupervisorAssignedError()


def check_supervisor_available(supervisor: Supervisor) -> None:
    if not (supervisor.is_active and supervisor.is_approved):
        raise SupervisorUnavailableError()


def check_supervisor_capacity(
    supervisor: Supervisor,
    message: str = "Target supervisor has no available capacity",
) -> None:
    """Rule 5: current_capacity < max_capacity before another project is attached."""
    if not supervisor.has_capacity:
        raise CapacityExhaustedError(message)


def check_request_responder(request: PartnershipRequest, responder_id: str) -> None:
    if request.target_id != responder_id:
        raise UnauthorizedActionError("Unauthorized to respond to this request")


def check_request_canceller(request: PartnershipRequest, requester_id: str) -> None:
    if request.requester_id != requester_id:
        raise UnauthorizedActionError("Unauthorized to cancel this request")


def check_request_pending(
    request: PartnershipRequest, message: str = "Request already processed",
) -> None:
    """Idempotency guard: a request leaves pending exactly once."""
    if request.status is not RequestStatus.PENDING:
        raise RequestAlreadyProcessedError(message)


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into lists of at most size elements (batch write limit)."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
