"""Shared test fixtures: in-memory database, stub fetcher and stub gateway."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "staging")

import pytest
from sqlmodel import SQLModel

import osfit.database.models  # noqa: F401
from osfit.database.session import build_engine, build_session_maker
from osfit.database.store import IssueSolutionStore
from osfit.llm.credentials import LLMCredentials
from osfit.schemas import GitHubIssue
from osfit.solver.workflow import IssueSolver


class StubFetcher:
    """Issue fetcher returning a canned issue or raising a canned error."""

    def __init__(self, issue=None, error=None):
        self.issue = issue
        self.error = error
        self.calls = []

    async def fetch(self, issue_url):
        self.calls.append(issue_url)
        if self.error is not None:
            raise self.error
        return self.issue

    async def close(self):
        pass


class StubGateway:
    """Gateway capturing its inputs; replies with ``reply`` or raises ``error``."""

    def __init__(self, reply="generated text", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.before_reply = None

    async def complete(self, system_prompt, user_message, target_language, credentials):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_message": user_message,
                "target_language": target_language,
                "credentials": credentials,
            }
        )
        if self.before_reply is not None:
            await self.before_reply()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def sample_issue():
    return GitHubIssue(
        title="Bug in parser",
        body="Parsing `a,,b` drops the empty field.",
        number=42,
        url="https://github.com/acme/widgets/issues/42",
        state="open",
        labels=["bug"],
    )


@pytest.fixture
def credentials():
    return LLMCredentials(provider="gemini", api_key="test-key", source="user")


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(db_session):
    return IssueSolutionStore(db_session)


@pytest.fixture
async def chat_session(store):
    return await store.create_session("user-1")


@pytest.fixture
def fetcher(sample_issue):
    return StubFetcher(issue=sample_issue)


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def solver(store, fetcher, gateway):
    return IssueSolver(store=store, fetcher=fetcher, gateway=gateway)
