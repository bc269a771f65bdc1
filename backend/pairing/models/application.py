"""Application ORM - a student's application to a supervisor.

Only the partner snapshot fields are maintained by this service: they are
cleared when the student unpairs.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pairing.db.base import Base


class ApplicationModel(Base):
    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_student_status", "student_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    student_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id"), nullable=False,
    )
    supervisor_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending",
    )
    has_partner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    partner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    partner_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
