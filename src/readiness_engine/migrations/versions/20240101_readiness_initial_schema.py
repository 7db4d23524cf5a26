"""readiness: initial schema: assessment attempts and the post-completion outbox.

Revision ID: readiness_001_initial
Revises:
Create Date: 2024-01-01 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "readiness_001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create assessment_attempts and outbox_tasks."""
    # assessment_attempts: one row per owner run through a survey
    op.create_table(
        "assessment_attempts",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("survey_id", sa.Integer, nullable=False, comment="Survey template the attempt answers"),
        sa.Column("title", sa.String(255), nullable=False, server_default="", comment="Display title"),
        sa.Column("owner_kind", sa.String(20), nullable=False, comment="guest | account"),
        sa.Column("owner_ref", sa.String(255), nullable=False, comment="Guest token or account user id"),
        sa.Column(
            "industry",
            sa.String(50),
            nullable=True,
            comment="NAICS-style industry code used for benchmarking",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="draft",
            comment="draft | in-progress | completed",
        ),
        sa.Column(
            "answers",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Ordered list of {question_id, value}; value null while unanswered",
        ),
        sa.Column(
            "catalog_snapshot",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Questions the attempt was created with: {id, category, text, details}",
        ),
        sa.Column(
            "catalog_version",
            sa.String(50),
            nullable=False,
            server_default="",
            comment="Catalog version at creation",
        ),
        sa.Column("score", sa.Integer, nullable=True, comment="Overall score 0-100, set at completion"),
        sa.Column(
            "recommendations",
            sa.Text,
            nullable=True,
            comment="Free-text recommendations from the text-generation collaborator",
        ),
        sa.Column(
            "recommendations_status",
            sa.String(20),
            nullable=False,
            server_default="not_requested",
            comment="not_requested | pending | ready | failed",
        ),
        sa.Column(
            "report_ref",
            sa.String(1024),
            nullable=True,
            comment="Artifact reference returned by the PDF renderer",
        ),
        sa.Column(
            "report_status",
            sa.String(20),
            nullable=False,
            server_default="not_requested",
            comment="not_requested | pending | ready | failed",
        ),
        sa.Column("completed_on", sa.DateTime(timezone=True), nullable=True, comment="Completion timestamp"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('draft', 'in-progress', 'completed')",
            name="ck_assessment_attempts_status",
        ),
        sa.CheckConstraint(
            "status <> 'completed' OR score IS NOT NULL",
            name="ck_assessment_attempts_completed_score",
        ),
    )
    op.create_index(
        "ix_assessment_attempts_owner",
        "assessment_attempts",
        ["owner_kind", "owner_ref", "survey_id"],
    )
    op.create_index(
        "ix_assessment_attempts_completed",
        "assessment_attempts",
        ["survey_id", "status", "completed_on"],
    )
    op.create_index("ix_assessment_attempts_industry", "assessment_attempts", ["industry"])

    # outbox_tasks: durable post-completion task queue
    op.create_table(
        "outbox_tasks",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "attempt_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assessment_attempts.id", ondelete="CASCADE"),
            nullable=False,
            comment="Attempt the task belongs to",
        ),
        sa.Column(
            "kind",
            sa.String(50),
            nullable=False,
            comment="generate_recommendations | render_report",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="pending",
            comment="pending | running | done | failed",
        ),
        sa.Column("last_error", sa.Text, nullable=True, comment="Failure description when status is failed"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_outbox_tasks_attempt_id", "outbox_tasks", ["attempt_id"])
    op.create_index("ix_outbox_tasks_status", "outbox_tasks", ["status", "created_at"])


def downgrade() -> None:
    """Drop readiness engine tables."""
    for table in ["outbox_tasks", "assessment_attempts"]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
