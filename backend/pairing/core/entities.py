"""Domain Entities - immutable snapshots of the records the engine reasons about.

Invariants:
    - Student: partner_id set <=> partnership_status == PAIRED
    - Supervisor: 0 <= current_capacity <= max_capacity
    - Project: at most one co_supervisor_id
    - PartnershipRequest: project_id set only for supervisor requests

Design Decisions:
    - Frozen dataclasses, not ORM rows: the engine runs unchanged against the
      SQL adapter and the in-memory test store
    - Mutations go through repository methods, never through these objects
"""

from dataclasses import dataclass
from datetime import datetime

from pairing.core.domain_types import (
    ApplicationId, ApplicationStatus, PartnershipStatus, PartyId, PartyKind,
    ProjectId, ProjectStatus, RequestId, RequestStatus,
)


@dataclass(frozen=True)
class Student:
    id: PartyId
    full_name: str = ""
    email: str = ""
    partner_id: PartyId | None = None
    partnership_status: PartnershipStatus = PartnershipStatus.NONE

    @property
    def is_paired(self) -> bool:
        # partner_id is the source of truth; status mirrors it
        return self.partner_id is not None


@dataclass(frozen=True)
class Supervisor:
    id: PartyId
    full_name: str = ""
    email: str = ""
    max_capacity: int = 0
    current_capacity: int = 0
    is_active: bool = True
    is_approved: bool = True

    @property
    def available_capacity(self) -> int:
        return max(0, self.max_capacity - self.current_capacity)

    @property
    def has_capacity(self) -> bool:
        return self.current_capacity < self.max_capacity


@dataclass(frozen=True)
class Project:
    id: ProjectId
    supervisor_id: PartyId
    title: str = ""
    status: ProjectStatus = ProjectStatus.APPROVED
    co_supervisor_id: PartyId | None = None


@dataclass(frozen=True)
class PartnershipRequest:
    id: RequestId
    kind: PartyKind
    requester_id: PartyId
    target_id: PartyId
    status: RequestStatus
    created_at: datetime
    responded_at: datetime | None = None
    project_id: ProjectId | None = None

    def involves(self, party_id: str) -> bool:
        return party_id in (self.requester_id, self.target_id)


@dataclass(frozen=True)
class Application:
    id: ApplicationId
    student_id: PartyId
    status: ApplicationStatus = ApplicationStatus.PENDING
    has_partner: bool = False
    partner_name: str | None = None
    partner_email: str | None = None
