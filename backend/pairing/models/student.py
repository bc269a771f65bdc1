"""Student ORM - a party in student-student partnerships.

Invariants:
    - id is the auth provider uid (string primary key)
    - partner_id set <=> partnership_status == 'paired', and symmetric across the pair
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from pairing.db.base import Base


class StudentModel(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    partner_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    partnership_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none",
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
