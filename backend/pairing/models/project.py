"""Project ORM - a capstone project with one main supervisor and an optional co-supervisor.

Invariants:
    - co_supervisor_id set => that supervisor's current_capacity counts this project
    - status transitions: pending_approval -> approved -> in_progress -> completed
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from pairing.db.base import Base


class ProjectModel(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    supervisor_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("supervisors.id"), nullable=False,
    )
    co_supervisor_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("supervisors.id"), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="approved",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
