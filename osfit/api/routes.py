"""FastAPI routes for the OSFIT API.

Endpoints:
- POST   /issue-solver          - Fetch and explain a GitHub issue
- PATCH  /issue-solver          - Plan, generate PR, or discard
- GET    /issue-solver          - Latest issue solutions of a session
- POST   /sessions              - Create chat session
- GET    /sessions              - List the caller's sessions
- DELETE /sessions/{id}         - Delete a session and its issue solutions
- POST   /translate             - Translate text

All endpoints except /health require a bearer token.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from osfit.api.auth import get_current_user, get_llm_credentials
from osfit.config import get_settings
from osfit.database.session import get_db
from osfit.database.store import IssueSolutionStore
from osfit.llm.credentials import LLMCredentials
from osfit.llm.router import LanguageModelGateway
from osfit.llm.router import get_gateway as _default_gateway
from osfit.schemas import (
    ChatSessionRead,
    IssueSolutionRead,
    IssueSolverActionRequest,
    IssueSolverCreateRequest,
    IssueSolverListResponse,
    IssueSolverResponse,
    SessionCreateRequest,
    SolverAction,
    TranslateRequest,
)
from osfit.solver.workflow import IssueSolver
from osfit.tools.issues import IssueFetcher, get_issue_fetcher, parse_issue_url
from osfit.tools.translate import LingoTranslator, get_translator


logger = logging.getLogger(__name__)
router = APIRouter()

settings = get_settings()


# =============================================================================
# Dependencies
# =============================================================================

async def get_store(db: AsyncSession = Depends(get_db)) -> IssueSolutionStore:
    return IssueSolutionStore(db)


async def get_fetcher() -> AsyncGenerator[IssueFetcher, None]:
    fetcher = get_issue_fetcher()
    try:
        yield fetcher
    finally:
        await fetcher.close()


def get_gateway() -> LanguageModelGateway:
    return _default_gateway()


def get_language_translator() -> LingoTranslator:
    return get_translator()


async def get_solver(
    store: IssueSolutionStore = Depends(get_store),
    fetcher: IssueFetcher = Depends(get_fetcher),
    gateway: LanguageModelGateway = Depends(get_gateway),
) -> IssueSolver:
    return IssueSolver(
        store=store,
        fetcher=fetcher,
        gateway=gateway,
        max_diff_chars=settings.issue_diff_char_limit,
    )


# =============================================================================
# Health Check
# =============================================================================

@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "environment": settings.environment,
    }


# =============================================================================
# Issue Solver Endpoints
# =============================================================================

@router.post("/issue-solver", response_model=IssueSolverResponse)
async def create_issue_solution(
    request: IssueSolverCreateRequest,
    user_id: str = Depends(get_current_user),
    credentials: LLMCredentials = Depends(get_llm_credentials),
    solver: IssueSolver = Depends(get_solver),
) -> IssueSolverResponse:
    """Fetch a GitHub issue and explain it.

    On an upstream failure the row is kept at the step where it stopped and
    the error is returned; the client may resubmit.
    """
    parse_issue_url(request.issue_url)

    row = await solver.create_and_analyze(
        user_id=user_id,
        session_id=request.session_id,
        issue_url=request.issue_url.strip(),
        credentials=credentials,
        language=request.language,
    )

    return IssueSolverResponse(
        issue=IssueSolutionRead.model_validate(row),
        message="Issue analyzed successfully",
    )


@router.patch("/issue-solver", response_model=IssueSolverResponse)
async def update_issue_solution(
    request: IssueSolverActionRequest,
    user_id: str = Depends(get_current_user),
    credentials: LLMCredentials = Depends(get_llm_credentials),
    solver: IssueSolver = Depends(get_solver),
) -> IssueSolverResponse:
    """Apply a user action to an existing issue solution."""
    if request.action == SolverAction.DISCARD:
        row = await solver.discard(user_id, request.issue_id)
        message = "Issue discarded"
    elif request.action == SolverAction.SOLUTION:
        row = await solver.request_solution_plan(
            user_id,
            request.issue_id,
            credentials=credentials,
            language=request.language,
        )
        message = "Solution plan generated"
    else:
        row = await solver.generate_pull_request(
            user_id,
            request.issue_id,
            request.git_diff,
            credentials=credentials,
            language=request.language,
        )
        message = "PR content generated"

    return IssueSolverResponse(
        issue=IssueSolutionRead.model_validate(row),
        message=message,
    )


@router.get("/issue-solver", response_model=IssueSolverListResponse)
async def list_issue_solutions(
    session_id: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user),
    store: IssueSolutionStore = Depends(get_store),
) -> IssueSolverListResponse:
    """Latest issue solutions of a session, newest first."""
    rows = await store.list_for_session(session_id, user_id, limit=settings.issue_list_limit)
    return IssueSolverListResponse(
        issues=[IssueSolutionRead.model_validate(row) for row in rows]
    )


# =============================================================================
# Session Endpoints
# =============================================================================

@router.post("/sessions")
async def create_session(
    request: SessionCreateRequest | None = None,
    user_id: str = Depends(get_current_user),
    store: IssueSolutionStore = Depends(get_store),
) -> dict:
    """Create a chat session for the caller."""
    request = request or SessionCreateRequest()
    chat_session = await store.create_session(user_id, mode=request.mode, title=request.title)
    logger.info(f"Created session {chat_session.id}")
    return {"session": ChatSessionRead.model_validate(chat_session)}


@router.get("/sessions")
async def list_sessions(
    user_id: str = Depends(get_current_user),
    store: IssueSolutionStore = Depends(get_store),
) -> dict:
    """List the caller's most recent sessions."""
    sessions = await store.list_sessions(user_id, limit=settings.session_list_limit)
    return {"sessions": [ChatSessionRead.model_validate(s) for s in sessions]}


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user),
    store: IssueSolutionStore = Depends(get_store),
) -> dict:
    """Delete a session together with its issue solutions."""
    await store.delete_session(session_id, user_id)
    return {"deleted": session_id}


# =============================================================================
# Translation
# =============================================================================

@router.post("/translate")
async def translate(
    request: TranslateRequest,
    user_id: str = Depends(get_current_user),
    translator: LingoTranslator = Depends(get_language_translator),
) -> dict:
    """Translate text from English into the target language."""
    translated = await translator.translate(request.text, request.target_language)
    return {"translated": translated}
