"""create training state and progression ledger

Revision ID: 8d4f06b2c951
Revises: 3a1c9e2b7d10
Create Date: 2026-10-18 09:47:31.502117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql



# revision identifiers, used by Alembic.
revision: str = '8d4f06b2c951'
down_revision: Union[str, Sequence[str], None] = '3a1c9e2b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# JSONB on PostgreSQL, JSON text on SQLite.
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _enum(name: str, *values: str) -> postgresql.ENUM:
    postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)
    return postgresql.ENUM(*values, name=name, create_type=False)


def upgrade() -> None:
    max_type_enum = _enum("max_type", "ONE_RM", "TRAINING_MAX", "E1RM")
    enrollment_status_enum = _enum("enrollment_status", "ACTIVE", "QUIT")
    session_status_enum = _enum("session_status", "IN_PROGRESS", "COMPLETED", "ABANDONED")
    trigger_type_enum = _enum("trigger_type", "AFTER_SESSION", "AFTER_WEEK", "AFTER_CYCLE")

    op.create_table(
        "lift_maxes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("lift_id", sa.Uuid(), nullable=False),
        sa.Column("max_type", max_type_enum, nullable=False),
        sa.Column("value", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("value > 0", name="ck_lift_maxes_value_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["lift_id"], ["lifts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "lift_id",
            "max_type",
            "effective_date",
            name="uq_lift_maxes_user_lift_type_date",
        ),
    )
    op.create_index(op.f("ix_lift_maxes_user_id"), "lift_maxes", ["user_id"], unique=False)
    op.create_index(
        "lift_maxes_lookup",
        "lift_maxes",
        ["user_id", "lift_id", "max_type", "effective_date"],
        unique=False,
    )

    op.create_table(
        "user_program_states",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Uuid(), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False),
        sa.Column("current_week", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("current_cycle_iteration", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("current_day_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("current_week >= 1", name="ck_user_program_states_week_min"),
        sa.CheckConstraint("current_cycle_iteration >= 1", name="ck_user_program_states_iteration_min"),
        sa.CheckConstraint("current_day_index >= 0", name="ck_user_program_states_day_index_min"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_program_states_user_id"), "user_program_states", ["user_id"], unique=False)
    op.create_index(
        "uq_user_program_states_one_active",
        "user_program_states",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "workout_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("enrollment_id", sa.Uuid(), nullable=False),
        sa.Column("day_id", sa.Uuid(), nullable=True),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("cycle_iteration", sa.Integer(), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("status", session_status_enum, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["enrollment_id"], ["user_program_states.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["day_id"], ["days.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workout_sessions_user_id"), "workout_sessions", ["user_id"], unique=False)
    op.create_index(
        "workout_sessions_user_time",
        "workout_sessions",
        ["user_id", sa.text("started_at DESC")],
        unique=False,
    )
    # One IN_PROGRESS session per enrollment; racing starts fail on this index.
    op.create_index(
        "uq_workout_sessions_one_in_progress",
        "workout_sessions",
        ["enrollment_id"],
        unique=True,
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
        sqlite_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table(
        "logged_sets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("prescription_id", sa.Uuid(), nullable=True),
        sa.Column("lift_id", sa.Uuid(), nullable=False),
        sa.Column("set_number", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("target_reps", sa.Integer(), nullable=True),
        sa.Column("reps_performed", sa.Integer(), nullable=False),
        sa.Column("is_amrap", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("rpe", sa.Numeric(precision=4, scale=2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["session_id"], ["workout_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["prescription_id"], ["prescriptions.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["lift_id"], ["lifts.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_logged_sets_user_id"), "logged_sets", ["user_id"], unique=False)
    op.create_index(
        "logged_sets_session_order",
        "logged_sets",
        ["session_id", "lift_id", "set_number"],
        unique=False,
    )

    op.create_table(
        "progressions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("progression_type", sa.String(length=50), nullable=False),
        sa.Column("parameters", JSON_TYPE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "program_progressions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("program_id", sa.Uuid(), nullable=False),
        sa.Column("progression_id", sa.Uuid(), nullable=False),
        sa.Column("lift_id", sa.Uuid(), nullable=True),
        sa.Column("priority", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("override_increment", sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["progression_id"], ["progressions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lift_id"], ["lifts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "program_id",
            "progression_id",
            "lift_id",
            name="uq_program_progressions_program_progression_lift",
        ),
    )
    op.create_index("program_progressions_priority", "program_progressions", ["program_id", "priority"], unique=False)

    for table_name, unique_name, extra_columns, checks in (
        (
            "user_progression_states",
            "uq_user_progression_states_user_lift_progression",
            [
                sa.Column("current_stage", sa.Integer(), server_default=sa.text("0"), nullable=False),
                sa.Column("extra_state", JSON_TYPE, server_default=sa.text("'{}'"), nullable=False),
            ],
            [sa.CheckConstraint("current_stage >= 0", name="ck_user_progression_states_stage_min")],
        ),
        (
            "failure_counters",
            "uq_failure_counters_user_lift_progression",
            [
                sa.Column("consecutive_failures", sa.Integer(), server_default=sa.text("0"), nullable=False),
                sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
                sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
            ],
            [sa.CheckConstraint("consecutive_failures >= 0", name="ck_failure_counters_non_negative")],
        ),
    ):
        op.create_table(
            table_name,
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("lift_id", sa.Uuid(), nullable=False),
            sa.Column("progression_id", sa.Uuid(), nullable=False),
            *extra_columns,
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
            *checks,
            sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
            sa.ForeignKeyConstraint(["lift_id"], ["lifts.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["progression_id"], ["progressions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "lift_id", "progression_id", name=unique_name),
        )
        op.create_index(op.f(f"ix_{table_name}_user_id"), table_name, ["user_id"], unique=False)

    op.create_table(
        "progression_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("progression_id", sa.Uuid(), nullable=False),
        sa.Column("lift_id", sa.Uuid(), nullable=False),
        sa.Column("previous_value", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("new_value", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("delta", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("trigger_type", trigger_type_enum, nullable=False),
        sa.Column("trigger_context", JSON_TYPE, nullable=False),
        sa.Column("details", JSON_TYPE, server_default=sa.text("'{}'"), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["progression_id"], ["progressions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lift_id"], ["lifts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "progression_id",
            "lift_id",
            "trigger_type",
            "applied_at",
            name="uq_progression_logs_idempotency",
        ),
    )
    op.create_index("progression_logs_user_time", "progression_logs", ["user_id", "applied_at"], unique=False)


def downgrade() -> None:
    op.drop_index("progression_logs_user_time", table_name="progression_logs")
    op.drop_table("progression_logs")
    for table_name in ("failure_counters", "user_progression_states"):
        op.drop_index(op.f(f"ix_{table_name}_user_id"), table_name=table_name)
        op.drop_table(table_name)
    op.drop_index("program_progressions_priority", table_name="program_progressions")
    op.drop_table("program_progressions")
    op.drop_table("progressions")
    op.drop_index("logged_sets_session_order", table_name="logged_sets")
    op.drop_index(op.f("ix_logged_sets_user_id"), table_name="logged_sets")
    op.drop_table("logged_sets")
    op.drop_index(
        "uq_workout_sessions_one_in_progress",
        table_name="workout_sessions",
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
        sqlite_where=sa.text("status = 'IN_PROGRESS'"),
    )
    op.drop_index("workout_sessions_user_time", table_name="workout_sessions")
    op.drop_index(op.f("ix_workout_sessions_user_id"), table_name="workout_sessions")
    op.drop_table("workout_sessions")
    op.drop_index(
        "uq_user_program_states_one_active",
        table_name="user_program_states",
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )
    op.drop_index(op.f("ix_user_program_states_user_id"), table_name="user_program_states")
    op.drop_table("user_program_states")
    op.drop_index("lift_maxes_lookup", table_name="lift_maxes")
    op.drop_index(op.f("ix_lift_maxes_user_id"), table_name="lift_maxes")
    op.drop_table("lift_maxes")

    bind = op.get_bind()
    for enum_name in ("trigger_type", "session_status", "enrollment_status", "max_type"):
        postgresql.ENUM(name=enum_name).drop(bind, checkfirst=True)
