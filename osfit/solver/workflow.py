"""Issue-solver workflow.

State machine:
issue_input → fetching → explaining → solution_step → pr_context → completed
                                           ↓               ↓
                                       discarded       discarded

Every transition is persisted before the next external call, so a failure
leaves the row at the step where it stopped (with ``error_message`` set)
instead of rolling back. Each operation makes at most one fetcher call and
one gateway call, never retried here; retrying means calling the operation
again, which only overwrites the same columns.
"""

from __future__ import annotations

import logging
from typing import Sequence

from osfit.database.models import IssueSolution
from osfit.database.store import IssueSolutionStore
from osfit.errors import (
    GenerationError,
    InvalidTransitionError,
    IssueFetchError,
    ValidationError,
)
from osfit.llm.credentials import LLMCredentials
from osfit.llm.router import LanguageModelGateway
from osfit.schemas import SolutionStatus, SolutionStep
from osfit.solver.prompts import (
    EXPLANATION_PROMPT,
    PR_PROMPT,
    SOLUTION_PROMPT,
    format_explanation_prompt,
    format_pr_prompt,
    format_solution_prompt,
)
from osfit.tools.issues import IssueFetcher, parse_issue_url


logger = logging.getLogger(__name__)

# Characters of the user's diff included in the PR prompt
MAX_DIFF_CHARS = 5000

# Rows returned when resuming a session
ACTIVE_LIST_LIMIT = 10

STEP_ORDER: tuple[SolutionStep, ...] = (
    SolutionStep.ISSUE_INPUT,
    SolutionStep.FETCHING,
    SolutionStep.EXPLAINING,
    SolutionStep.SOLUTION_STEP,
    SolutionStep.PR_CONTEXT,
    SolutionStep.COMPLETED,
)

TERMINAL_STEPS = frozenset({SolutionStep.COMPLETED, SolutionStep.DISCARDED})


def can_advance(current: SolutionStep, target: SolutionStep) -> bool:
    """Whether moving from ``current`` to ``target`` keeps the step order.

    Staying on the same step is allowed (an operation regenerating its own
    output); discarding is allowed from any non-terminal step.
    """
    if current in TERMINAL_STEPS:
        return False
    if target == SolutionStep.DISCARDED:
        return True
    return STEP_ORDER.index(target) >= STEP_ORDER.index(current)


class IssueSolver:
    """Coordinates fetcher, gateway and store for one request."""

    def __init__(
        self,
        store: IssueSolutionStore,
        fetcher: IssueFetcher,
        gateway: LanguageModelGateway,
        max_diff_chars: int = MAX_DIFF_CHARS,
    ):
        self.store = store
        self.fetcher = fetcher
        self.gateway = gateway
        self.max_diff_chars = max_diff_chars

    async def _advance(self, row: IssueSolution, target: SolutionStep, **values) -> IssueSolution:
        current = SolutionStep(row.current_step)
        if not can_advance(current, target):
            raise InvalidTransitionError(
                f"Cannot move issue from {current.value} to {target.value}"
            )
        values["current_step"] = target.value
        row = await self.store.update_solution(row, **values)
        logger.info(f"[{row.id[:8]}] {current.value} -> {target.value}")
        return row

    async def _record_failure(self, row: IssueSolution, error: Exception) -> None:
        """Keep the row where it stopped, noting why."""
        logger.warning(f"[{row.id[:8]}] stuck in {row.current_step}: {error}")
        try:
            await self.store.update_solution(row, error_message=str(error))
        except InvalidTransitionError:
            logger.info(f"[{row.id[:8]}] already terminal, failure not recorded")

    @staticmethod
    def _require_open(row: IssueSolution) -> None:
        if row.is_terminal:
            raise InvalidTransitionError(
                f"Issue is already {row.current_step}; no further changes are allowed"
            )
        if row.current_step == SolutionStep.FETCHING.value or not row.issue_title:
            raise InvalidTransitionError("Issue data has not been fetched yet; submit the issue URL again")

    # =========================================================================
    # Operations
    # =========================================================================

    async def create_and_analyze(
        self,
        user_id: str,
        session_id: str,
        issue_url: str,
        credentials: LLMCredentials,
        language: str = "en",
    ) -> IssueSolution:
        """Create a row for ``issue_url``, fetch the issue and explain it.

        Raises:
            NotFoundError: Session missing or not owned by ``user_id``
            IssueFetchError: Fetch failed; the row stays in ``fetching``
            GenerationError: Explanation failed; the row stays in ``explaining``
        """
        ref = parse_issue_url(issue_url)
        await self.store.get_owned_session(session_id, user_id)

        row = await self.store.create_solution(
            session_id=session_id,
            issue_url=issue_url,
            issue_number=ref.number,
            language=language,
            current_step=SolutionStep.FETCHING.value,
        )
        logger.info(f"[{row.id[:8]}] Created for {issue_url}")

        try:
            issue = await self.fetcher.fetch(issue_url)
        except IssueFetchError as e:
            await self._record_failure(row, e)
            raise

        row = await self._advance(
            row,
            SolutionStep.EXPLAINING,
            issue_title=issue.title,
            issue_body=issue.body or "",
            issue_labels=", ".join(issue.labels),
            issue_number=issue.number,
            error_message=None,
        )

        try:
            explanation = await self.gateway.complete(
                EXPLANATION_PROMPT,
                format_explanation_prompt(issue.title, issue.number, issue.body, issue.labels),
                language,
                credentials,
            )
        except GenerationError as e:
            await self._record_failure(row, e)
            raise

        return await self._advance(
            row,
            SolutionStep.SOLUTION_STEP,
            explanation=explanation,
        )

    async def request_solution_plan(
        self,
        user_id: str,
        issue_id: str,
        credentials: LLMCredentials,
        language: str | None = None,
    ) -> IssueSolution:
        """Generate (or regenerate) the step-by-step plan and move to ``pr_context``."""
        row = await self.store.get_owned_solution(issue_id, user_id)
        self._require_open(row)

        plan = await self.gateway.complete(
            SOLUTION_PROMPT,
            format_solution_prompt(row.issue_title, row.issue_body, row.explanation),
            language or row.language,
            credentials,
        )

        return await self._advance(
            row,
            SolutionStep.PR_CONTEXT,
            solution_plan=plan,
            error_message=None,
        )

    async def generate_pull_request(
        self,
        user_id: str,
        issue_id: str,
        git_diff: str | None,
        credentials: LLMCredentials,
        language: str | None = None,
    ) -> IssueSolution:
        """Draft the PR from the plan and diff, then complete the row."""
        if not git_diff or not git_diff.strip():
            raise ValidationError("git_diff required for PR generation")

        row = await self.store.get_owned_solution(issue_id, user_id)
        self._require_open(row)

        pr_solution = await self.gateway.complete(
            PR_PROMPT,
            format_pr_prompt(
                row.issue_title,
                row.issue_number,
                row.solution_plan,
                git_diff,
                self.max_diff_chars,
            ),
            language or row.language,
            credentials,
        )

        return await self._advance(
            row,
            SolutionStep.COMPLETED,
            git_diff=git_diff,
            pr_solution=pr_solution,
            status=SolutionStatus.COMPLETED.value,
            error_message=None,
        )

    async def discard(self, user_id: str, issue_id: str) -> IssueSolution:
        """Mark the row discarded; already-terminal rows are returned untouched."""
        row = await self.store.get_owned_solution(issue_id, user_id)
        if row.is_terminal:
            return row

        try:
            return await self._advance(
                row,
                SolutionStep.DISCARDED,
                status=SolutionStatus.COMPLETED.value,
            )
        except InvalidTransitionError:
            # Went terminal between the read and the write; the store refreshed it
            return row

    async def list_active(
        self,
        user_id: str,
        session_id: str,
        limit: int = ACTIVE_LIST_LIMIT,
    ) -> Sequence[IssueSolution]:
        """Latest rows of a session, newest first, in any state."""
        return await self.store.list_for_session(session_id, user_id, limit=limit)
