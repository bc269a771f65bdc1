"""Initial schema - students, supervisors, projects, requests, applications.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _request_columns(party_table: str) -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("requester_id", sa.String(128), sa.ForeignKey(f"{party_table}.id"), nullable=False),
        sa.Column("target_id", sa.String(128), sa.ForeignKey(f"{party_table}.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("email", sa.String(320), nullable=False, server_default=""),
        sa.Column("partner_id", sa.String(128), nullable=True),
        sa.Column("partnership_status", sa.String(20), nullable=False, server_default="none"),
        *_timestamps(),
    )

    op.create_table(
        "supervisors",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("email", sa.String(320), nullable=False, server_default=""),
        sa.Column("max_capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_approved", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "current_capacity >= 0 AND current_capacity <= max_capacity",
            name="ck_supervisors_capacity_bounds",
        ),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False, server_default=""),
        sa.Column("supervisor_id", sa.String(128), sa.ForeignKey("supervisors.id"), nullable=False),
        sa.Column("co_supervisor_id", sa.String(128), sa.ForeignKey("supervisors.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="approved"),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table("partnership_requests", *_request_columns("students"))
    op.create_index(
        "ix_partnership_requests_requester_status",
        "partnership_requests", ["requester_id", "status"],
    )
    op.create_index(
        "ix_partnership_requests_target_status",
        "partnership_requests", ["target_id", "status"],
    )

    op.create_table(
        "supervisor_partnership_requests",
        *_request_columns("supervisors"),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
    )
    op.create_index(
        "ix_supervisor_partnership_requests_requester_status",
        "supervisor_partnership_requests", ["requester_id", "status"],
    )
    op.create_index(
        "ix_supervisor_partnership_requests_target_status",
        "supervisor_partnership_requests", ["target_id", "status"],
    )
    op.create_index(
        "ix_supervisor_partnership_requests_project_status",
        "supervisor_partnership_requests", ["project_id", "status"],
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("student_id", sa.String(128), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("supervisor_id", sa.String(128), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("has_partner", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("partner_name", sa.String(200), nullable=True),
        sa.Column("partner_email", sa.String(320), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_applications_student_status", "applications", ["student_id", "status"],
    )


def downgrade() -> None:
    op.drop_table("applications")
    op.drop_table("supervisor_partnership_requests")
    op.drop_table("partnership_requests")
    op.drop_table("projects")
    op.drop_table("supervisors")
    op.drop_table("students")
