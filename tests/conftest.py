"""Common fixtures: isolated settings, an in-memory database and fake command runners."""

import json

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import Settings
from db.database import Base
import db.models  # noqa: F401
from services.shell import CommandError, CommandResult


class FakeRunner:
    """Records commands and fails those starting with `fail_on`."""

    def __init__(self, fail_on: tuple[str, ...] | None = None):
        self.calls: list[tuple[tuple[str, ...], str | None]] = []
        self.fail_on = fail_on

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [args for args, _ in self.calls]

    async def __call__(self, args, cwd=None) -> CommandResult:
        args = tuple(args)
        self.calls.append((args, cwd))
        if self.fail_on and args[: len(self.fail_on)] == self.fail_on:
            raise CommandError(CommandResult(args, 1, "", "boom"))
        stdout = ""
        if args[:3] == ("gh", "api", "graphql"):
            stdout = json.dumps({
                "data": {"createRepository": {"repository": {"name": "pkg", "url": "https://github.com/ada/pkg"}}}
            })
        return CommandResult(args, 0, stdout, "")


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing every directory at a temporary location."""
    return Settings(
        _env_file=None,
        GPT_KEY="test-key",
        GPT_MODEL="gpt-test",
        AUTHOR_NAME="Ada Lovelace",
        AUTHOR_URL="https://ada.dev",
        AUTHOR_ORG_NAME="Hero Modules",
        AUTHOR_ORG_URL="https://heroes.dev",
        GITHUB_OWNER_ID="O_kgDOB123",
        GITHUB_USERNAME="ada",
        REPO_VISIBILITY="PUBLIC",
        SHOULD_PUBLISH_TO_NPM=False,
        SCHEMAS_DIR=str(tmp_path / "schemas"),
        STAGING_DIR=str(tmp_path / "hero_modules"),
        PUBLISHED_DIR=str(tmp_path / "published_hero_modules"),
        FUNCTION_GENERATION_DELAY=0,
        LLM_MAX_ATTEMPTS=3,
        LLM_RETRY_BASE_DELAY=15,
        LLM_RETRY_MAX_DELAY=300,
    )


@pytest.fixture
def make_runner():
    """Return the fake command runner class."""
    return FakeRunner


@pytest.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
