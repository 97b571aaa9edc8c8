"""Tests for the publish state machine."""

from pathlib import Path

import pytest
from sqlalchemy import select

from db.models import PackageRecord, StepLog
from models.package import PublishState
from services.publisher import PackageNotFoundError, Publisher


def stage_package(settings, name: str = "demo-strings") -> str:
    package_dir = Path(settings.STAGING_DIR) / name
    (package_dir / "functions").mkdir(parents=True)
    (package_dir / "package.json").write_text("{}")
    return str(package_dir)


async def get_record(session_factory, name: str) -> PackageRecord:
    async with session_factory() as session:
        return await session.get(PackageRecord, name)


async def get_steps(session_factory, name: str) -> list[tuple[str, str]]:
    async with session_factory() as session:
        result = await session.execute(
            select(StepLog).where(StepLog.package_name == name).order_by(StepLog.created_at)
        )
        return [(s.step, s.status) for s in result.scalars().all()]


async def registered_publisher(settings, session_factory, runner, name="demo-strings") -> Publisher:
    publisher = Publisher(settings, session_factory=session_factory, runner=runner)
    await publisher.register(name, "String helpers", stage_package(settings, name), ["a", "b"])
    return publisher


@pytest.mark.asyncio
async def test_full_chain_moves_package(settings, session_factory, make_runner):
    runner = make_runner()
    publisher = await registered_publisher(settings, session_factory, runner)

    assert await publisher.publish("demo-strings")

    commands = runner.commands
    assert commands[0] == ("npm", "run", "test")
    assert commands[1][:3] == ("gh", "api", "graphql")
    assert ("git", "init") in commands
    assert ("git", "branch", "-M", "main") in commands
    assert ("git", "remote", "add", "origin", "https://github.com/ada/demo-strings.git") in commands
    assert commands[-1] == ("git", "push", "-u", "origin", "main")
    assert not any(c[:2] == ("npm", "publish") for c in commands)

    published = Path(settings.PUBLISHED_DIR) / "demo-strings"
    assert published.is_dir()
    assert not (Path(settings.STAGING_DIR) / "demo-strings").exists()

    record = await get_record(session_factory, "demo-strings")
    assert record.state == PublishState.DONE.value
    assert record.last_completed_state == PublishState.MOVE.value
    assert record.package_dir == str(published)
    assert record.functions == ["a", "b"]


@pytest.mark.asyncio
async def test_npm_publish_runs_in_published_dir(settings, session_factory, make_runner):
    settings = settings.model_copy(update={"SHOULD_PUBLISH_TO_NPM": True})
    runner = make_runner()
    publisher = await registered_publisher(settings, session_factory, runner)

    assert await publisher.publish("demo-strings")

    args, cwd = runner.calls[-1]
    assert args == ("npm", "publish", "--access", "public")
    assert cwd == str(Path(settings.PUBLISHED_DIR) / "demo-strings")


@pytest.mark.asyncio
async def test_failed_tests_abandon_chain(settings, session_factory, make_runner):
    runner = make_runner(fail_on=("npm", "run", "test"))
    publisher = await registered_publisher(settings, session_factory, runner)

    assert not await publisher.publish("demo-strings")

    assert runner.commands == [("npm", "run", "test")]
    assert (Path(settings.STAGING_DIR) / "demo-strings").is_dir()
    record = await get_record(session_factory, "demo-strings")
    assert record.state == PublishState.FAILED.value
    assert record.last_completed_state is None
    assert "boom" in record.error
    assert await get_steps(session_factory, "demo-strings") == [("test_run", "failed")]


@pytest.mark.asyncio
async def test_resume_after_failed_push(settings, session_factory, make_runner):
    failing = make_runner(fail_on=("git", "push"))
    publisher = await registered_publisher(settings, session_factory, failing)
    assert not await publisher.publish("demo-strings")

    record = await get_record(session_factory, "demo-strings")
    assert record.last_completed_state == PublishState.REPO_CREATE.value

    retry = make_runner()
    resumed = Publisher(settings, session_factory=session_factory, runner=retry)
    assert await resumed.publish("demo-strings")

    assert ("npm", "run", "test") not in retry.commands
    assert not any(c[:2] == ("gh", "api") for c in retry.commands)
    assert retry.commands[-1] == ("git", "push", "-u", "origin", "main")
    assert (await get_record(session_factory, "demo-strings")).state == PublishState.DONE.value


@pytest.mark.asyncio
async def test_done_package_is_not_republished(settings, session_factory, make_runner):
    runner = make_runner()
    publisher = await registered_publisher(settings, session_factory, runner)
    assert await publisher.publish("demo-strings")
    calls = len(runner.calls)

    assert await publisher.publish("demo-strings")
    assert len(runner.calls) == calls


@pytest.mark.asyncio
async def test_publish_pending_stops_at_first_failure(settings, session_factory, make_runner):
    runner = make_runner(fail_on=("npm", "run", "test"))
    publisher = await registered_publisher(settings, session_factory, runner, "demo-one")
    await publisher.register("demo-two", "Other", stage_package(settings, "demo-two"), ["c"])

    results = await publisher.publish_pending()

    assert len(results) == 1
    assert list(results.values()) == [False]
    assert runner.commands == [("npm", "run", "test")]


@pytest.mark.asyncio
async def test_publish_pending_can_continue_past_failures(settings, session_factory, make_runner):
    settings = settings.model_copy(update={"STOP_ON_PUBLISH_FAILURE": False})
    runner = make_runner(fail_on=("npm", "run", "test"))
    publisher = await registered_publisher(settings, session_factory, runner, "demo-one")
    await publisher.register("demo-two", "Other", stage_package(settings, "demo-two"), ["c"])

    results = await publisher.publish_pending()

    assert results == {"demo-one": False, "demo-two": False}


@pytest.mark.asyncio
async def test_unknown_package(settings, session_factory, make_runner):
    publisher = Publisher(settings, session_factory=session_factory, runner=make_runner())

    with pytest.raises(PackageNotFoundError):
        await publisher.publish("missing")


@pytest.mark.asyncio
async def test_package_without_functions_is_never_published(settings, session_factory, make_runner):
    runner = make_runner()
    publisher = Publisher(settings, session_factory=session_factory, runner=runner)
    await publisher.register(
        "demo-empty", "Nothing survived", stage_package(settings, "demo-empty"), [],
        state=PublishState.FAILED, error="No function survived generation",
    )

    assert not await publisher.publish("demo-empty")
    assert runner.calls == []
    assert (Path(settings.STAGING_DIR) / "demo-empty").is_dir()


@pytest.mark.asyncio
async def test_publish_pending_skips_abandoned_packages(settings, session_factory, make_runner):
    runner = make_runner()
    publisher = Publisher(settings, session_factory=session_factory, runner=runner)
    await publisher.register(
        "demo-empty", "Nothing survived", stage_package(settings, "demo-empty"), [],
        state=PublishState.ABANDONED, error="No function survived generation",
    )
    await publisher.register("demo-full", "String helpers", stage_package(settings, "demo-full"), ["a"])

    results = await publisher.publish_pending()

    assert results == {"demo-full": True}
    assert all(cwd is None or "demo-empty" not in cwd for _, cwd in runner.calls)
    assert (await get_record(session_factory, "demo-empty")).state == PublishState.ABANDONED.value
