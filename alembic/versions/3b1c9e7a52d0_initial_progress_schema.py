"""initial progress schema

Revision ID: 3b1c9e7a52d0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1c9e7a52d0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("sequential_unlock", sa.Boolean(), nullable=False),
        sa.Column("drip_enabled", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "course_modules",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
    )
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])
    op.create_table(
        "lessons",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column(
            "module_id", _UUID, sa.ForeignKey("course_modules.id"), nullable=False
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("drip_unlock_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("drip_days", sa.Integer(), nullable=True),
        sa.UniqueConstraint("module_id", "sequence_order"),
    )
    op.create_index("ix_lessons_module_id", "lessons", ["module_id"])
    op.create_table(
        "assignments",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("recording_id", _UUID, sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("submission_type", sa.String(length=16), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=True),
    )
    op.create_index("ix_assignments_recording_id", "assignments", ["recording_id"])
    op.create_table(
        "pathways",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "pathway_steps",
        sa.Column("pathway_id", _UUID, sa.ForeignKey("pathways.id"), primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), primary_key=True),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("choice_group", sa.Integer(), nullable=True),
    )
    op.create_table(
        "batches",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
    )
    op.create_table(
        "batch_lesson_offsets",
        sa.Column("batch_id", _UUID, sa.ForeignKey("batches.id"), primary_key=True),
        sa.Column("lesson_id", _UUID, sa.ForeignKey("lessons.id"), primary_key=True),
        sa.Column("offset_days", sa.Integer(), nullable=False),
    )
    op.create_table(
        "student_accounts",
        sa.Column("student_id", _UUID, primary_key=True),
        sa.Column("lms_status", sa.String(length=16), nullable=False),
    )
    op.create_table(
        "enrollments",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("student_id", _UUID, nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("pathway_id", _UUID, sa.ForeignKey("pathways.id"), nullable=True),
        sa.Column("batch_id", _UUID, sa.ForeignKey("batches.id"), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("drip_override", sa.Boolean(), nullable=False),
        sa.Column("drip_enabled", sa.Boolean(), nullable=False),
        sa.Column("sequential_override", sa.Boolean(), nullable=False),
        sa.Column("sequential_enabled", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index(
        "uq_enrollments_active_course",
        "enrollments",
        ["student_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index(
        "uq_enrollments_active_pathway",
        "enrollments",
        ["student_id", "pathway_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active' AND pathway_id IS NOT NULL"),
    )
    op.create_table(
        "choice_selections",
        sa.Column("student_id", _UUID, primary_key=True),
        sa.Column("pathway_id", _UUID, sa.ForeignKey("pathways.id"), primary_key=True),
        sa.Column("choice_group", sa.Integer(), primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "lesson_views",
        sa.Column("user_id", _UUID, primary_key=True),
        sa.Column("lesson_id", _UUID, sa.ForeignKey("lessons.id"), primary_key=True),
        sa.Column("watched", sa.Boolean(), nullable=False),
        sa.Column("watched_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "submissions",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column(
            "assignment_id", _UUID, sa.ForeignKey("assignments.id"), nullable=False
        ),
        sa.Column("student_id", _UUID, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", _UUID, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("assignment_id", "student_id", "version"),
    )
    op.create_index("ix_submissions_student_id", "submissions", ["student_id"])


def downgrade() -> None:
    op.drop_table("submissions")
    op.drop_table("lesson_views")
    op.drop_table("choice_selections")
    op.drop_index("uq_enrollments_active_pathway", table_name="enrollments")
    op.drop_index("uq_enrollments_active_course", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("student_accounts")
    op.drop_table("batch_lesson_offsets")
    op.drop_table("batches")
    op.drop_table("pathway_steps")
    op.drop_table("pathways")
    op.drop_table("assignments")
    op.drop_table("lessons")
    op.drop_table("course_modules")
    op.drop_table("courses")
