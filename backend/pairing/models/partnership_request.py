"""Partnership Request ORM - append-only audit trail of pairing proposals.

Invariants:
    - status: pending -> accepted | rejected | cancelled, exactly once
    - responded_at set together with the terminal status
    - Rows are never deleted

Design Decisions:
    - Two tables: students pair globally, supervisors pair per project
    - Composite indexes back the (requester, status) / (target, status) /
      (project, status) lookups of the request repository
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pairing.db.base import Base


class PartnershipRequestModel(Base):
    """Student to student request."""
    __tablename__ = "partnership_requests"
    __table_args__ = (
        Index("ix_partnership_requests_requester_status", "requester_id", "status"),
        Index("ix_partnership_requests_target_status", "target_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    requester_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id"), nullable=False,
    )
    target_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )


class SupervisorPartnershipRequestModel(Base):
    """Supervisor to supervisor co-supervision request for one project."""
    __tablename__ = "supervisor_partnership_requests"
    __table_args__ = (
        Index(
            "ix_supervisor_partnership_requests_requester_status",
            "requester_id", "status",
        ),
        Index(
            "ix_supervisor_partnership_requests_target_status",
            "target_id", "status",
        ),
        Index(
            "ix_supervisor_partnership_requests_project_status",
            "project_id", "status",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    requester_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("supervisors.id"), nullable=False,
    )
    target_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("supervisors.id"), nullable=False,
    )
    project_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("projects.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
