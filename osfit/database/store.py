"""Owner-scoped persistence for chat sessions and issue solutions.

Every read and write goes through a query that joins ``chat_sessions`` on
``user_id``, so a caller can never see or mutate a row from someone else's
session. Missing and foreign rows both raise the same ``NotFoundError``.

Each mutating method commits immediately; a failure later in the same request
leaves earlier writes in place.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from osfit.database.models import ChatSession, IssueSolution, utcnow
from osfit.errors import InvalidTransitionError, NotFoundError
from osfit.schemas import AssistantMode, SolutionStatus


logger = logging.getLogger(__name__)


class IssueSolutionStore:
    """Repository over ``chat_sessions`` and ``issue_solutions``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # Chat sessions
    # =========================================================================

    async def create_session(
        self,
        user_id: str,
        mode: AssistantMode = AssistantMode.ISSUE_SOLVER,
        title: str | None = None,
    ) -> ChatSession:
        chat_session = ChatSession(user_id=user_id, mode=mode.value, title=title)
        self.session.add(chat_session)
        await self.session.commit()
        await self.session.refresh(chat_session)
        return chat_session

    async def get_owned_session(self, session_id: str, user_id: str) -> ChatSession:
        """Return the session if it exists and belongs to ``user_id``."""
        result = await self.session.execute(
            select(ChatSession)
            .where(ChatSession.id == session_id)
            .where(ChatSession.user_id == user_id)
        )
        chat_session = result.scalar_one_or_none()
        if chat_session is None:
            raise NotFoundError("Session")
        return chat_session

    async def list_sessions(self, user_id: str, limit: int = 20) -> Sequence[ChatSession]:
        result = await self.session.execute(
            select(ChatSession)
            .where(ChatSession.user_id == user_id)
            .order_by(ChatSession.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def delete_session(self, session_id: str, user_id: str) -> None:
        """Hard-delete a session and every issue solution in it."""
        await self.get_owned_session(session_id, user_id)

        await self.session.execute(
            delete(IssueSolution).where(IssueSolution.session_id == session_id)
        )
        await self.session.execute(
            delete(ChatSession).where(ChatSession.id == session_id)
        )
        await self.session.commit()
        logger.info(f"Deleted session {session_id}")

    # =========================================================================
    # Issue solutions
    # =========================================================================

    async def create_solution(
        self,
        session_id: str,
        issue_url: str,
        current_step: str,
        issue_number: int | None = None,
        language: str = "en",
    ) -> IssueSolution:
        row = IssueSolution(
            session_id=session_id,
            issue_url=issue_url,
            issue_number=issue_number,
            language=language,
            current_step=current_step,
            status=SolutionStatus.IN_PROGRESS.value,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def get_owned_solution(self, issue_id: str, user_id: str) -> IssueSolution:
        """Return the row if its session belongs to ``user_id``."""
        result = await self.session.execute(
            select(IssueSolution)
            .join(ChatSession, ChatSession.id == IssueSolution.session_id)
            .where(IssueSolution.id == issue_id)
            .where(ChatSession.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Issue")
        return row

    async def update_solution(self, row: IssueSolution, **values: Any) -> IssueSolution:
        """Overwrite columns on an in-progress row.

        The update is conditional on ``status = in_progress``; if the row went
        terminal in the meantime (e.g. discarded from another tab) nothing is
        written and ``InvalidTransitionError`` is raised.
        """
        values["updated_at"] = utcnow()
        result = await self.session.execute(
            update(IssueSolution)
            .where(IssueSolution.id == row.id)
            .where(IssueSolution.status == SolutionStatus.IN_PROGRESS.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if result.rowcount == 0:
            await self.session.refresh(row)
            raise InvalidTransitionError(
                f"Issue is already {row.current_step}; no further changes are allowed"
            )

        await self.session.refresh(row)
        return row

    async def list_for_session(
        self,
        session_id: str,
        user_id: str,
        limit: int = 10,
    ) -> Sequence[IssueSolution]:
        """Most recent rows of an owned session, newest first."""
        await self.get_owned_session(session_id, user_id)

        result = await self.session.execute(
            select(IssueSolution)
            .where(IssueSolution.session_id == session_id)
            .order_by(IssueSolution.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()
