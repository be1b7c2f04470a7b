"""Sprint engine schema

Revision ID: 001_sprint_engine
Revises:
Create Date: 2026-10-17

Creates the following tables:
- objectives: learner goals with streak, difficulty and velocity state
- milestones: target days within an objective
- sprints: planned sprints, unique per (objective_id, day_number)
- sprint_artifacts: submitted evidence, unique per (sprint_id, artifact_id)
- objective_adaptation_history: applied recalibrations
- sprint_adaptations: per-sprint difficulty changes
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_sprint_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create objectives table
    op.create_table(
        "objectives",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("profile", sa.JSON(), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("success_criteria", sa.JSON(), nullable=False),
        sa.Column("required_skills", sa.JSON(), nullable=False),
        sa.Column("allowed_resources", sa.JSON(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("estimated_total_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("completed_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_day", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sprints_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_difficulty", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("learning_velocity", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("recalibration_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_recalibrated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completion_date", sa.Date(), nullable=True),
        sa.Column("sprint_generation_mode", sa.String(20), nullable=False, server_default="daily"),
        sa.Column("auto_generate_next_sprint", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_objectives_user_id", "objectives", ["user_id"])

    # Create milestones table
    op.create_table(
        "milestones",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("objective_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_day", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["objective_id"], ["objectives.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_milestones_objective_id", "milestones", ["objective_id"])

    # Create sprints table
    op.create_table(
        "sprints",
        sa.Column("id", sa.String(96), nullable=False),
        sa.Column("objective_id", sa.String(64), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("length_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_estimated_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="beginner"),
        sa.Column("difficulty_score", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("status", sa.String(20), nullable=False, server_default="planned"),
        sa.Column("planner_mode", sa.String(20), nullable=False, server_default="skeleton"),
        sa.Column("planner_input", sa.JSON(), nullable=False),
        sa.Column("planner_output", sa.JSON(), nullable=False),
        sa.Column("plan_metadata", sa.JSON(), nullable=False),
        sa.Column("adaptive_metadata", sa.JSON(), nullable=False),
        sa.Column("is_auto_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("next_sprint_id", sa.String(96), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("hours_spent", sa.Float(), nullable=True),
        sa.Column("tasks_completed", sa.Integer(), nullable=True),
        sa.Column("total_tasks", sa.Integer(), nullable=True),
        sa.Column("reflection", sa.Text(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("reviewer_summary", sa.JSON(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("self_evaluation_confidence", sa.Float(), nullable=True),
        sa.Column("self_evaluation_reflection", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["objective_id"], ["objectives.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("objective_id", "day_number", name="uq_sprints_objective_day"),
    )
    op.create_index("ix_sprints_objective_id", "sprints", ["objective_id"])
    op.create_index("ix_sprints_status", "sprints", ["status"])

    # Create sprint_artifacts table
    op.create_table(
        "sprint_artifacts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sprint_id", sa.String(96), nullable=False),
        sa.Column("artifact_id", sa.String(128), nullable=False),
        sa.Column("project_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="unknown"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["sprint_id"], ["sprints.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sprint_id", "artifact_id", name="uq_sprint_artifacts_key"),
    )
    op.create_index("ix_sprint_artifacts_sprint_id", "sprint_artifacts", ["sprint_id"])

    # Create objective_adaptation_history table
    op.create_table(
        "objective_adaptation_history",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("objective_id", sa.String(64), nullable=False),
        sa.Column("previous_estimate", sa.Integer(), nullable=False),
        sa.Column("new_estimate", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("performance_scores", sa.JSON(), nullable=False),
        sa.Column("velocity", sa.Float(), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=False),
        sa.Column("adjustment_type", sa.String(20), nullable=False),
        sa.Column("recommendations", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["objective_id"], ["objectives.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_objective_adaptation_history_objective_id",
        "objective_adaptation_history",
        ["objective_id"],
    )

    # Create sprint_adaptations table
    op.create_table(
        "sprint_adaptations",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("sprint_id", sa.String(96), nullable=False),
        sa.Column("objective_id", sa.String(64), nullable=False),
        sa.Column("adaptation_type", sa.String(40), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("previous_difficulty", sa.Integer(), nullable=False),
        sa.Column("new_difficulty", sa.Integer(), nullable=False),
        sa.Column("notes", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["sprint_id"], ["sprints.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sprint_adaptations_sprint_id", "sprint_adaptations", ["sprint_id"])
    op.create_index("ix_sprint_adaptations_objective_id", "sprint_adaptations", ["objective_id"])


def downgrade() -> None:
    op.drop_table("sprint_adaptations")
    op.drop_table("objective_adaptation_history")
    op.drop_table("sprint_artifacts")
    op.drop_table("sprints")
    op.drop_table("milestones")
    op.drop_table("objectives")
