"""Domain Types - identity types and enums shared across the codebase.

Invariants:
    - Party ids are opaque strings issued by the upstream auth provider
    - Request ids carry a kind prefix (see core/ids.py)
    - All valid states encoded as Enums - no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

PartyId = NewType("PartyId", str)
ProjectId = NewType("ProjectId", str)
RequestId = NewType("RequestId", str)
ApplicationId = NewType("ApplicationId", str)


# ─── Limits ──────────────────────────────────────────────────────

BATCH_WRITE_LIMIT = 500


# ─── Enums ───────────────────────────────────────────────────────

class PartyKind(str, Enum):
    """Which side of the matching a partnership belongs to."""
    STUDENT = "student"
    SUPERVISOR = "supervisor"


class PartyRole(str, Enum):
    """Position of a party inside a single request."""
    REQUESTER = "requester"
    TARGET = "target"


class CallerRole(str, Enum):
    """Roles issued by the upstream auth layer."""
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"


class PartnershipStatus(str, Enum):
    """Pairing state of a party. Pending requests never change it."""
    NONE = "none"
    PAIRED = "paired"


class RequestStatus(str, Enum):
    """Request lifecycle: born pending, exactly one terminal transition."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ResponseAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class RequestDirection(str, Enum):
    """Inbox filter for listing requests."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    ALL = "all"


class ProjectStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


# Applications whose partner info must follow the student's pairing state
ACTIVE_APPLICATION_STATUSES = frozenset({
    ApplicationStatus.PENDING, ApplicationStatus.APPROVED,
})


class FailStrategy(str, Enum):
    """Rate limiter behaviour when its backend is unreachable."""
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"
