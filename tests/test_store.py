"""Tests for owner-scoped persistence through the real table models."""

from datetime import timezone

import pytest

from osfit.database.models import ChatSession, IssueSolution, utcnow
from osfit.errors import InvalidTransitionError, NotFoundError


def test_utcnow_is_timezone_aware():
    assert utcnow().tzinfo is timezone.utc


class TestIssueSolutionStore:
    async def test_create_session_and_solution(self, store, session_maker):
        chat_session = await store.create_session("user-1", title="triage")
        row = await store.create_solution(
            session_id=chat_session.id,
            issue_url="https://github.com/acme/widgets/issues/1",
            current_step="fetching",
            issue_number=1,
        )

        async with session_maker() as other:
            stored_session = await other.get(ChatSession, chat_session.id)
            stored_row = await other.get(IssueSolution, row.id)

        assert stored_session.user_id == "user-1"
        assert stored_session.created_at is not None
        assert stored_row.status == "in_progress"
        assert stored_row.created_at is not None
        assert stored_row.updated_at is None

    async def test_update_sets_updated_at(self, store, chat_session):
        row = await store.create_solution(
            session_id=chat_session.id,
            issue_url="https://github.com/acme/widgets/issues/1",
            current_step="fetching",
        )

        row = await store.update_solution(row, current_step="explaining", issue_title="Bug")

        assert row.current_step == "explaining"
        assert row.issue_title == "Bug"
        assert row.updated_at is not None

    async def test_update_on_terminal_row_is_rejected(self, store, chat_session):
        row = await store.create_solution(
            session_id=chat_session.id,
            issue_url="https://github.com/acme/widgets/issues/1",
            current_step="solution_step",
        )
        row = await store.update_solution(row, status="completed", current_step="discarded")

        with pytest.raises(InvalidTransitionError):
            await store.update_solution(row, solution_plan="late plan")

        assert row.solution_plan is None

    async def test_foreign_solution_is_not_found(self, store, chat_session):
        row = await store.create_solution(
            session_id=chat_session.id,
            issue_url="https://github.com/acme/widgets/issues/1",
            current_step="fetching",
        )

        with pytest.raises(NotFoundError):
            await store.get_owned_solution(row.id, "user-2")

    async def test_list_sessions_is_owner_scoped(self, store, chat_session):
        await store.create_session("user-2")

        sessions = await store.list_sessions("user-1")

        assert [s.id for s in sessions] == [chat_session.id]

    async def test_delete_session_removes_solutions(self, store, chat_session, session_maker):
        row = await store.create_solution(
            session_id=chat_session.id,
            issue_url="https://github.com/acme/widgets/issues/1",
            current_step="fetching",
        )

        await store.delete_session(chat_session.id, "user-1")

        async with session_maker() as other:
            assert await other.get(IssueSolution, row.id) is None
            assert await other.get(ChatSession, chat_session.id) is None
