"""SQLAlchemy ORM models for the readiness engine.

Repositories in ``adapters/repositories.py`` map these rows to the plain
domain dataclasses in ``core/domain.py``; services never see ORM objects.

Tables:
    assessment_attempts - one row per attempt, answers and catalog snapshot as JSONB
    outbox_tasks        - durable post-completion task queue
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ReadinessBase(DeclarativeBase):
    """Base class for readiness engine ORM models."""


class AssessmentAttemptRecord(ReadinessBase):
    """One owner's run through a survey.

    ``answers`` always holds one ``{question_id, value}`` entry per question
    in ``catalog_snapshot``. Owners are stored as a (kind, ref) pair so that
    guest tokens and account ids share one column.

    Table: assessment_attempts
    """

    __tablename__ = "assessment_attempts"
    __table_args__ = (
        Index("ix_assessment_attempts_owner", "owner_kind", "owner_ref", "survey_id"),
        Index("ix_assessment_attempts_completed", "survey_id", "status", "completed_on"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Primary key UUID",
    )
    survey_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Survey template the attempt answers",
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        server_default="",
        comment="Display title",
    )
    owner_kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="guest | account",
    )
    owner_ref: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Guest token or account user id",
    )
    industry: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        comment="NAICS-style industry code used for benchmarking",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="draft",
        comment="draft | in-progress | completed",
    )
    answers: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default="[]",
        comment="Ordered list of {question_id, value}; value null while unanswered",
    )
    catalog_snapshot: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default="[]",
        comment="Questions the attempt was created with: {id, category, text, details}",
    )
    catalog_version: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        server_default="",
        comment="Catalog version at creation",
    )
    score: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Overall score 0-100, set at completion",
    )
    recommendations: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Free-text recommendations from the text-generation collaborator",
    )
    recommendations_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="not_requested",
        comment="not_requested | pending | ready | failed",
    )
    report_ref: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        comment="Artifact reference returned by the PDF renderer",
    )
    report_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="not_requested",
        comment="not_requested | pending | ready | failed",
    )
    completed_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Completion timestamp",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class OutboxTaskRecord(ReadinessBase):
    """A post-completion side effect waiting to run, running, or finished.

    Table: outbox_tasks
    """

    __tablename__ = "outbox_tasks"
    __table_args__ = (Index("ix_outbox_tasks_status", "status", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Primary key UUID",
    )
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Attempt the task belongs to",
    )
    kind: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="generate_recommendations | render_report",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="pending",
        comment="pending | running | done | failed",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Failure description when status is failed",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
