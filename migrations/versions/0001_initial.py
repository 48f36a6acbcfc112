"""Agenda schema: sessions, rooms, modules, people and their links"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sessions",
        sa.Column("session_id", sa.Integer(), primary_key=True),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("session_type", sa.String(length=50)),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("track", sa.String(length=20), nullable=False, server_default="Tous"),
        sa.CheckConstraint("ends_at > starts_at", name="chk_session_range"),
    )
    op.create_index("ix_sessions_starts_at", "sessions", ["starts_at"])

    op.create_table(
        "rooms",
        sa.Column("room_id", sa.Integer(), primary_key=True),
        sa.Column("building", sa.String(length=20), nullable=False),
        sa.Column("room_number", sa.String(length=20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.UniqueConstraint("building", "room_number", name="uq_room_building_number"),
    )

    op.create_table(
        "modules",
        sa.Column("module_id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
    )

    op.create_table(
        "instructors",
        sa.Column("instructor_id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("is_referent", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
    )

    op.create_table(
        "students",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("track", sa.String(length=20), nullable=False),
    )

    op.create_table(
        "reservations",
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.session_id"), primary_key=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.room_id"), primary_key=True),
    )
    op.create_index("ix_reservations_room_id", "reservations", ["room_id"])

    op.create_table(
        "session_modules",
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.session_id"), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), primary_key=True),
        sa.Column("module_role", sa.String(length=10), primary_key=True),
        sa.CheckConstraint("module_role IN ('major', 'minor')", name="chk_session_module_role"),
    )

    op.create_table(
        "teaching_assignments",
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.session_id"), primary_key=True),
        sa.Column(
            "instructor_id",
            sa.Integer(),
            sa.ForeignKey("instructors.instructor_id"),
            primary_key=True,
        ),
    )
    op.create_index(
        "ix_teaching_assignments_instructor_id", "teaching_assignments", ["instructor_id"]
    )

    op.create_table(
        "instructor_modules",
        sa.Column(
            "instructor_id",
            sa.Integer(),
            sa.ForeignKey("instructors.instructor_id"),
            primary_key=True,
        ),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), primary_key=True),
    )

    op.create_table(
        "enrollments",
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.student_id"), primary_key=True),
        sa.Column("major_module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), nullable=False),
        sa.Column("minor_module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), nullable=False),
    )

    op.create_table(
        "module_associations",
        sa.Column("association_id", sa.Integer(), primary_key=True),
        sa.Column("major_module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), nullable=False),
        sa.Column("minor_module_id", sa.Integer(), sa.ForeignKey("modules.module_id"), nullable=False),
        sa.UniqueConstraint(
            "major_module_id", "minor_module_id", name="uq_module_association_pair"
        ),
    )

    op.create_table(
        "module_colors",
        sa.Column("color_id", sa.Integer(), primary_key=True),
        sa.Column(
            "module_id",
            sa.Integer(),
            sa.ForeignKey("modules.module_id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("color", sa.String(length=20), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("module_colors")
    op.drop_table("module_associations")
    op.drop_table("enrollments")
    op.drop_table("instructor_modules")
    op.drop_index("ix_teaching_assignments_instructor_id", table_name="teaching_assignments")
    op.drop_table("teaching_assignments")
    op.drop_table("session_modules")
    op.drop_index("ix_reservations_room_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("students")
    op.drop_table("instructors")
    op.drop_table("modules")
    op.drop_table("rooms")
    op.drop_index("ix_sessions_starts_at", table_name="sessions")
    op.drop_table("sessions")
