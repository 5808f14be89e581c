"""Pydantic schemas for all issue-solver I/O contracts.

These schemas define the contracts between:
- API endpoints and clients
- LLM provider inputs/outputs
- The issue fetcher and the workflow
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class SolutionStep(str, Enum):
    """Position of an issue-solving session within the workflow."""
    ISSUE_INPUT = "issue_input"
    FETCHING = "fetching"
    EXPLAINING = "explaining"
    SOLUTION_STEP = "solution_step"
    PR_CONTEXT = "pr_context"
    COMPLETED = "completed"
    DISCARDED = "discarded"


class SolutionStatus(str, Enum):
    """Coarse status of an issue-solving session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AssistantMode(str, Enum):
    """Chat session modes."""
    ISSUE_SOLVER = "issue_solver"


class SolverAction(str, Enum):
    """User-triggered actions on an existing issue-solving session."""
    SOLUTION = "solution"
    PR = "pr"
    DISCARD = "discard"


# =============================================================================
# GitHub Issue Schemas
# =============================================================================

class IssueRef(BaseModel):
    """Owner/repo/number parsed from a GitHub issue URL."""
    owner: str
    repo: str
    number: int

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/issues/{self.number}"


class IssueComment(BaseModel):
    author: str = ""
    body: str = ""
    created_at: str | None = None


class GitHubIssue(BaseModel):
    """Structured issue data returned by an issue fetcher."""
    title: str = Field(..., description="Issue title")
    body: str = Field(default="", description="Issue body as plain text or markdown")
    number: int = Field(..., description="Issue number")
    url: str = Field(default="", description="Canonical issue URL")
    state: str = Field(default="unknown", description="open, closed or unknown")
    labels: list[str] = Field(default_factory=list)
    comments: list[IssueComment] = Field(default_factory=list)


# =============================================================================
# API Request/Response Schemas
# =============================================================================

class IssueSolverCreateRequest(BaseModel):
    """POST /issue-solver body."""
    session_id: str = Field(..., min_length=1)
    issue_url: str = Field(..., min_length=1)
    language: str = Field(default="en")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": "5b0f6c1e-4d1e-4c8e-9f57-1d2b1f7a8c10",
                "issue_url": "https://github.com/acme/widgets/issues/42",
                "language": "en",
            }
        }
    )


class IssueSolverActionRequest(BaseModel):
    """PATCH /issue-solver body."""
    issue_id: str = Field(..., min_length=1)
    action: SolverAction
    git_diff: str | None = None
    language: str | None = None


class IssueSolutionRead(BaseModel):
    """Serialized issue_solutions row."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    issue_url: str
    issue_number: int | None = None
    issue_title: str | None = None
    issue_body: str | None = None
    issue_labels: str | None = None
    explanation: str | None = None
    solution_plan: str | None = None
    git_diff: str | None = None
    pr_solution: str | None = None
    current_step: SolutionStep
    status: SolutionStatus
    language: str = "en"
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class IssueSolverResponse(BaseModel):
    issue: IssueSolutionRead
    message: str


class IssueSolverListResponse(BaseModel):
    issues: list[IssueSolutionRead]


class SessionCreateRequest(BaseModel):
    mode: AssistantMode = AssistantMode.ISSUE_SOLVER
    title: str | None = None


class ChatSessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_token: str
    title: str | None = None
    mode: AssistantMode
    created_at: datetime
    last_active: datetime


class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    target_language: str = Field(..., min_length=2)


# =============================================================================
# LLM Schemas
# =============================================================================

class LLMMessage(BaseModel):
    """A single message in an LLM conversation."""
    role: Literal["system", "user", "assistant"] = Field(...)
    content: str = Field(...)


class LLMResponse(BaseModel):
    """Response from an LLM provider."""
    content: str | None = None
    model: str
    usage: dict[str, Any] = Field(default_factory=dict)
    finish_reason: str | None = None
    latency_ms: int | None = None
    raw_response: dict[str, Any] | None = None

    @property
    def error(self) -> str | None:
        """Error text when the provider call failed."""
        if self.finish_reason != "error":
            return None
        return str((self.raw_response or {}).get("error", "LLM request failed"))
