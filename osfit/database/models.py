"""SQLModel database tables.

Tables:
- ChatSession: a user's chat session; carries the ownership (user_id)
- IssueSolution: one row per issue-solving attempt within a session
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel

from osfit.schemas import AssistantMode, SolutionStatus, SolutionStep


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp for the TIMESTAMPTZ columns."""
    return datetime.now(timezone.utc)


def _timestamp_column(nullable: bool = False) -> Column:
    return Column(DateTime(timezone=True), nullable=nullable)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ChatSession Model
# =============================================================================

class ChatSession(SQLModel, table=True):
    """Chat session owned by a single authenticated user."""

    __tablename__ = "chat_sessions"
    __table_args__ = (
        Index("ix_chat_sessions_user_created", "user_id", "created_at"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str = Field(index=True, description="Auth provider user id (JWT sub)")
    session_token: str = Field(default_factory=_new_id, unique=True)
    title: str | None = Field(default=None)
    mode: str = Field(default=AssistantMode.ISSUE_SOLVER.value)
    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    last_active: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())


# =============================================================================
# IssueSolution Model
# =============================================================================

class IssueSolution(SQLModel, table=True):
    """An issue-solving attempt: fetch -> explain -> plan -> PR."""

    __tablename__ = "issue_solutions"
    __table_args__ = (
        Index("ix_issue_solutions_session_created", "session_id", "created_at"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    session_id: str = Field(
        foreign_key="chat_sessions.id",
        ondelete="CASCADE",
        index=True,
    )

    # Request
    issue_url: str = Field(sa_column=Column(Text, nullable=False))
    issue_number: int | None = Field(default=None)
    language: str = Field(default="en")

    # Fetched issue snapshot
    issue_title: str | None = Field(default=None, sa_column=Column(Text))
    issue_body: str | None = Field(default=None, sa_column=Column(Text))
    issue_labels: str | None = Field(default=None, sa_column=Column(Text))

    # Generated content
    explanation: str | None = Field(default=None, sa_column=Column(Text))
    solution_plan: str | None = Field(default=None, sa_column=Column(Text))
    git_diff: str | None = Field(default=None, sa_column=Column(Text))
    pr_solution: str | None = Field(default=None, sa_column=Column(Text))

    # Workflow state
    current_step: str = Field(default=SolutionStep.FETCHING.value)
    status: str = Field(default=SolutionStatus.IN_PROGRESS.value, index=True)
    error_message: str | None = Field(default=None, sa_column=Column(Text))

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime | None = Field(default=None, sa_column=_timestamp_column(nullable=True))

    @property
    def is_terminal(self) -> bool:
        return self.status == SolutionStatus.COMPLETED.value
