"""Partnership Schemas - Pydantic models for the HTTP boundary.

Invariants:
    - Ids are stripped, non-empty, at most 128 chars
    - action is passed through as text: the engine owns the accept/reject rule
      and answers INVALID_ACTION for anything else

Design Decisions:
    - from_entity() classmethods keep the core entities free of Pydantic
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from pairing.core.entities import PartnershipRequest, Student, Supervisor


def _strip_id(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("id cannot be empty or whitespace")
    return v


class PartnershipRequestCreate(BaseModel):
    """Student asks another student to partner."""
    target_id: str = Field(min_length=1, max_length=128)

    @field_validator("target_id")
    @classmethod
    def strip_target(cls, v: str) -> str:
        return _strip_id(v)


class SupervisorPartnershipRequestCreate(PartnershipRequestCreate):
    """Project supervisor asks another supervisor to co-supervise."""
    project_id: str = Field(min_length=1, max_length=128)

    @field_validator("project_id")
    @classmethod
    def strip_project(cls, v: str) -> str:
        return _strip_id(v)


class PartnershipRespond(BaseModel):
    action: str = Field(min_length=1, max_length=20)

    @field_validator("action")
    @classmethod
    def normalize_action(cls, v: str) -> str:
        return v.strip().lower()


class StudentUnpair(BaseModel):
    """Omit partner_id to unpair from the current partner."""
    partner_id: str | None = Field(None, max_length=128)


class PartnershipRequestOut(BaseModel):
    id: str
    kind: str
    requester_id: str
    target_id: str
    status: str
    created_at: datetime
    responded_at: datetime | None = None
    project_id: str | None = None

    @classmethod
    def from_entity(cls, request: PartnershipRequest) -> "PartnershipRequestOut":
        return cls(
            id=request.id,
            kind=request.kind.value,
            requester_id=request.requester_id,
            target_id=request.target_id,
            status=request.status.value,
            created_at=request.created_at,
            responded_at=request.responded_at,
            project_id=request.project_id,
        )


class StudentOut(BaseModel):
    id: str
    full_name: str
    email: str

    @classmethod
    def from_entity(cls, student: Student) -> "StudentOut":
        return cls(id=student.id, full_name=student.full_name, email=student.email)


class SupervisorOut(BaseModel):
    id: str
    full_name: str
    email: str
    max_capacity: int
    current_capacity: int
    available_capacity: int

    @classmethod
    def from_entity(cls, supervisor: Supervisor) -> "SupervisorOut":
        return cls(
            id=supervisor.id,
            full_name=supervisor.full_name,
            email=supervisor.email,
            max_capacity=supervisor.max_capacity,
            current_capacity=supervisor.current_capacity,
            available_capacity=supervisor.available_capacity,
        )


class RateLimitStatusOut(BaseModel):
    endpoint: str
    allowed: bool
    remaining: int
    retry_after_seconds: int | None = None
