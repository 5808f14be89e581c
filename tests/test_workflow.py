"""Tests for the issue-solver state machine."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from osfit.database.models import IssueSolution
from osfit.errors import (
    ErrorKind,
    GenerationError,
    InvalidTransitionError,
    IssueFetchError,
    NotFoundError,
    ValidationError,
)
from osfit.schemas import SolutionStep
from osfit.solver.workflow import ACTIVE_LIST_LIMIT, MAX_DIFF_CHARS, can_advance

ISSUE_URL = "https://github.com/acme/widgets/issues/42"


async def _analyzed(solver, chat_session, credentials):
    return await solver.create_and_analyze("user-1", chat_session.id, ISSUE_URL, credentials)


class TestCreateAndAnalyze:
    async def test_fetch_and_explain_reaches_solution_step(self, solver, chat_session, credentials, fetcher, gateway):
        gateway.reply = "**PROBLEM**\n\n> Empty fields are dropped."

        row = await _analyzed(solver, chat_session, credentials)

        assert row.current_step == "solution_step"
        assert row.status == "in_progress"
        assert row.issue_title == "Bug in parser"
        assert row.issue_labels == "bug"
        assert row.issue_number == 42
        assert row.explanation == "**PROBLEM**\n\n> Empty fields are dropped."
        assert fetcher.calls == [ISSUE_URL]
        assert len(gateway.calls) == 1

    async def test_issue_data_is_stored_before_explanation(
        self, solver, chat_session, credentials, gateway, session_maker
    ):
        seen = []

        async def snapshot():
            async with session_maker() as other:
                rows = (await other.execute(select(IssueSolution))).scalars().all()
                seen.extend((r.current_step, r.issue_title, r.explanation) for r in rows)

        gateway.before_reply = snapshot

        await _analyzed(solver, chat_session, credentials)

        assert seen == [("explaining", "Bug in parser", None)]

    async def test_explanation_prompt_carries_issue_and_language(self, solver, chat_session, credentials, gateway):
        await solver.create_and_analyze("user-1", chat_session.id, ISSUE_URL, credentials, language="hi")

        call = gateway.calls[0]
        assert "Bug in parser" in call["user_message"]
        assert "#42" in call["user_message"]
        assert "Labels: bug" in call["user_message"]
        assert call["target_language"] == "hi"
        assert call["credentials"] is credentials

    async def test_fetch_failure_leaves_row_in_fetching(
        self, solver, chat_session, credentials, fetcher, gateway
    ):
        fetcher.error = IssueFetchError("Issue not found. The repository may be private or the issue deleted.")

        with pytest.raises(IssueFetchError):
            await _analyzed(solver, chat_session, credentials)

        rows = await solver.list_active("user-1", chat_session.id)
        assert len(rows) == 1
        assert rows[0].current_step == "fetching"
        assert rows[0].status == "in_progress"
        assert rows[0].issue_title is None
        assert "private" in rows[0].error_message
        assert gateway.calls == []

    async def test_explanation_failure_keeps_fetched_data(self, solver, chat_session, credentials, gateway):
        gateway.error = GenerationError("429 quota exceeded", service="gemini", source="system")

        with pytest.raises(GenerationError) as exc_info:
            await _analyzed(solver, chat_session, credentials)

        assert exc_info.value.kind == ErrorKind.QUOTA
        rows = await solver.list_active("user-1", chat_session.id)
        assert rows[0].current_step == "explaining"
        assert rows[0].issue_title == "Bug in parser"
        assert rows[0].explanation is None

    async def test_explanation_round_trips_unchanged(
        self, solver, chat_session, credentials, gateway, session_maker
    ):
        gateway.reply = "Ünïcødé explanation " + "x" * 20000

        row = await _analyzed(solver, chat_session, credentials)

        async with session_maker() as other:
            stored = await other.get(IssueSolution, row.id)
        assert stored.explanation == gateway.reply

    async def test_foreign_session_is_not_found(self, solver, store, credentials, fetcher):
        other_session = await store.create_session("user-2")

        with pytest.raises(NotFoundError):
            await solver.create_and_analyze("user-1", other_session.id, ISSUE_URL, credentials)

        assert fetcher.calls == []
        assert await store.list_for_session(other_session.id, "user-2") == []

    async def test_invalid_url_is_rejected_before_any_write(self, solver, chat_session, credentials, fetcher):
        with pytest.raises(ValidationError):
            await solver.create_and_analyze(
                "user-1", chat_session.id, "https://gitlab.com/acme/widgets/issues/42", credentials
            )

        assert fetcher.calls == []
        assert await solver.list_active("user-1", chat_session.id) == []


class TestSolutionPlan:
    async def test_plan_moves_to_pr_context(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)
        gateway.reply = "**SOLUTION PLAN**\n\n1. **Step 1:** keep empty fields"

        row = await solver.request_solution_plan("user-1", row.id, credentials)

        assert row.current_step == "pr_context"
        assert row.solution_plan.startswith("**SOLUTION PLAN**")
        assert "Previous Analysis:" in gateway.calls[-1]["user_message"]

    async def test_plan_uses_stored_language_by_default(self, solver, chat_session, credentials, gateway):
        row = await solver.create_and_analyze("user-1", chat_session.id, ISSUE_URL, credentials, language="es")

        await solver.request_solution_plan("user-1", row.id, credentials)

        assert gateway.calls[-1]["target_language"] == "es"

    async def test_plan_can_recover_a_failed_explanation(self, solver, chat_session, credentials, gateway):
        gateway.error = GenerationError("network error", service="gemini", source="user")
        with pytest.raises(GenerationError):
            await _analyzed(solver, chat_session, credentials)
        stuck = (await solver.list_active("user-1", chat_session.id))[0]

        gateway.error = None
        row = await solver.request_solution_plan("user-1", stuck.id, credentials)

        assert row.current_step == "pr_context"
        assert row.error_message is None

    async def test_plan_rejected_while_still_fetching(self, solver, chat_session, credentials, fetcher, gateway):
        fetcher.error = IssueFetchError("Failed to fetch issue")
        with pytest.raises(IssueFetchError):
            await _analyzed(solver, chat_session, credentials)
        stuck = (await solver.list_active("user-1", chat_session.id))[0]

        with pytest.raises(InvalidTransitionError):
            await solver.request_solution_plan("user-1", stuck.id, credentials)
        assert gateway.calls == []

    async def test_other_user_gets_not_found(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)

        with pytest.raises(NotFoundError):
            await solver.request_solution_plan("intruder", row.id, credentials)
        assert len(gateway.calls) == 1


class TestPullRequest:
    async def test_pull_request_completes_row(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)
        row = await solver.request_solution_plan("user-1", row.id, credentials)
        gateway.reply = "**PR TITLE**\n\n> `fix: keep empty fields`"

        row = await solver.generate_pull_request("user-1", row.id, "diff --git a/x b/x\n+fix", credentials)

        assert row.status == "completed"
        assert row.current_step == "completed"
        assert row.pr_solution.startswith("**PR TITLE**")
        assert row.git_diff == "diff --git a/x b/x\n+fix"

    async def test_long_diff_is_truncated_in_prompt_only(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)
        git_diff = "diff --git a/x b/x\n" + "+" * (MAX_DIFF_CHARS * 2) + "TAIL_MARKER"

        row = await solver.generate_pull_request("user-1", row.id, git_diff, credentials)

        prompt = gateway.calls[-1]["user_message"]
        assert git_diff[:MAX_DIFF_CHARS] in prompt
        assert "TAIL_MARKER" not in prompt
        assert prompt.count("+") == MAX_DIFF_CHARS - len("diff --git a/x b/x\n")
        assert row.git_diff == git_diff
        assert row.status == "completed"

    async def test_pr_without_plan_is_allowed(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)

        row = await solver.generate_pull_request("user-1", row.id, "diff --git a/y b/y", credentials)

        assert row.current_step == "completed"
        assert row.solution_plan is None
        assert "Solution Plan:\nN/A" in gateway.calls[-1]["user_message"]

    @pytest.mark.parametrize("git_diff", [None, "", "   \n"])
    async def test_empty_diff_is_rejected_before_gateway(self, solver, chat_session, credentials, gateway, git_diff):
        row = await _analyzed(solver, chat_session, credentials)

        with pytest.raises(ValidationError):
            await solver.generate_pull_request("user-1", row.id, git_diff, credentials)
        assert len(gateway.calls) == 1

    async def test_pr_generation_failure_keeps_row_open(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)
        gateway.error = GenerationError("invalid api key", service="groq", source="user")

        with pytest.raises(GenerationError):
            await solver.generate_pull_request("user-1", row.id, "diff --git a/x b/x", credentials)

        row = (await solver.list_active("user-1", chat_session.id))[0]
        assert row.status == "in_progress"
        assert row.current_step == "solution_step"
        assert row.git_diff is None


class TestDiscardAndTerminalStates:
    async def test_discard_from_solution_step(self, solver, chat_session, credentials):
        row = await _analyzed(solver, chat_session, credentials)

        row = await solver.discard("user-1", row.id)

        assert row.status == "completed"
        assert row.current_step == "discarded"
        assert row.solution_plan is None

    async def test_discard_is_idempotent(self, solver, chat_session, credentials):
        row = await _analyzed(solver, chat_session, credentials)
        first = await solver.discard("user-1", row.id)
        updated_at = first.updated_at

        second = await solver.discard("user-1", row.id)

        assert second.current_step == "discarded"
        assert second.updated_at == updated_at

    async def test_discard_on_completed_row_changes_nothing(self, solver, chat_session, credentials):
        row = await _analyzed(solver, chat_session, credentials)
        row = await solver.generate_pull_request("user-1", row.id, "diff --git a/x b/x", credentials)

        row = await solver.discard("user-1", row.id)

        assert row.current_step == "completed"
        assert row.pr_solution == "generated text"

    async def test_terminal_rows_reject_further_generation(self, solver, chat_session, credentials, gateway):
        row = await _analyzed(solver, chat_session, credentials)
        await solver.discard("user-1", row.id)
        calls_before = len(gateway.calls)

        with pytest.raises(InvalidTransitionError):
            await solver.request_solution_plan("user-1", row.id, credentials)
        with pytest.raises(InvalidTransitionError):
            await solver.generate_pull_request("user-1", row.id, "diff --git a/x b/x", credentials)

        row = (await solver.list_active("user-1", chat_session.id))[0]
        assert row.solution_plan is None
        assert row.pr_solution is None
        assert len(gateway.calls) == calls_before

    async def test_discard_during_generation_wins(self, solver, store, chat_session, credentials, gateway, session_maker):
        row = await _analyzed(solver, chat_session, credentials)

        async def discard_elsewhere():
            async with session_maker() as other:
                stored = await other.get(IssueSolution, row.id)
                stored.status = "completed"
                stored.current_step = "discarded"
                await other.commit()

        gateway.before_reply = discard_elsewhere

        with pytest.raises(InvalidTransitionError):
            await solver.request_solution_plan("user-1", row.id, credentials)

        async with session_maker() as other:
            stored = await other.get(IssueSolution, row.id)
        assert stored.current_step == "discarded"
        assert stored.solution_plan is None


class TestListActive:
    async def test_cap_order_and_isolation(self, solver, store, db_session, chat_session):
        other = await store.create_session("user-1")
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i in range(ACTIVE_LIST_LIMIT + 2):
            db_session.add(IssueSolution(
                session_id=chat_session.id,
                issue_url=f"https://github.com/acme/widgets/issues/{i}",
                issue_number=i,
                created_at=base + timedelta(minutes=i),
            ))
        db_session.add(IssueSolution(
            session_id=other.id,
            issue_url="https://github.com/acme/other/issues/1",
            created_at=base + timedelta(days=1),
        ))
        await db_session.commit()

        rows = await solver.list_active("user-1", chat_session.id)

        assert len(rows) == ACTIVE_LIST_LIMIT
        assert all(r.session_id == chat_session.id for r in rows)
        assert [r.issue_number for r in rows] == list(range(ACTIVE_LIST_LIMIT + 1, 1, -1))

    async def test_foreign_session_is_not_found(self, solver, store):
        other = await store.create_session("user-2")

        with pytest.raises(NotFoundError):
            await solver.list_active("user-1", other.id)


class TestCanAdvance:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (SolutionStep.FETCHING, SolutionStep.EXPLAINING, True),
            (SolutionStep.EXPLAINING, SolutionStep.PR_CONTEXT, True),
            (SolutionStep.PR_CONTEXT, SolutionStep.PR_CONTEXT, True),
            (SolutionStep.SOLUTION_STEP, SolutionStep.DISCARDED, True),
            (SolutionStep.PR_CONTEXT, SolutionStep.SOLUTION_STEP, False),
            (SolutionStep.COMPLETED, SolutionStep.DISCARDED, False),
            (SolutionStep.DISCARDED, SolutionStep.PR_CONTEXT, False),
        ],
    )
    def test_step_order(self, current, target, allowed):
        assert can_advance(current, target) is allowed
