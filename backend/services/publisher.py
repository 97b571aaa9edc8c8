import logging
import os
import shutil
import time
from typing import Sequence

from sqlalchemy import select

from config import Settings, get_settings
from db.database import async_session
from db.models import PackageRecord, StepLog
from models.package import PublishState
from services.github_client import GitHubClient, RepositoryCreationError
from services.shell import CommandError, run_command

logger = logging.getLogger("publisher")

STEP_ORDER = [
    PublishState.TEST_RUN,
    PublishState.REPO_CREATE,
    PublishState.GIT_PUSH,
    PublishState.MOVE,
    PublishState.PUBLISH,
]

STEP_ERRORS = (CommandError, RepositoryCreationError, OSError)


class PackageNotFoundError(LookupError):
    pass


class Publisher:
    """
    Runs the publish chain for staged packages, one package and one step at a time.
    The last completed step is committed after every transition so a failed or
    interrupted run resumes where it stopped.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory=None,
        runner=run_command,
        github: GitHubClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory or async_session
        self.run = runner
        self.github = github or GitHubClient(self.settings, runner=runner)

    def steps(self) -> list[PublishState]:
        if self.settings.SHOULD_PUBLISH_TO_NPM:
            return list(STEP_ORDER)
        return [s for s in STEP_ORDER if s != PublishState.PUBLISH]

    def remaining_steps(self, last_completed: str | None) -> list[PublishState]:
        steps = self.steps()
        if not last_completed:
            return steps
        done = [s.value for s in steps]
        if last_completed not in done:
            return steps
        return steps[done.index(last_completed) + 1:]

    async def register(
        self,
        name: str,
        description: str,
        package_dir: str,
        manifest: Sequence[str],
        idea_prompt: str | None = None,
        state: PublishState = PublishState.PENDING,
        error: str | None = None,
    ) -> None:
        """Create or reset the record tracking a staged package."""
        async with self.session_factory() as session:
            record = await session.get(PackageRecord, name)
            if record is None:
                record = PackageRecord(name=name)
                session.add(record)
            record.description = description
            record.idea_prompt = idea_prompt
            record.functions = list(manifest)
            record.package_dir = package_dir
            record.state = state.value
            record.last_completed_state = None
            record.remote_url = None
            record.error = error
            await session.commit()

    async def publish(self, name: str) -> bool:
        """Drive one package through its remaining steps. Returns True when done."""
        async with self.session_factory() as session:
            record = await session.get(PackageRecord, name)
            if record is None:
                raise PackageNotFoundError(name)
            if record.state == PublishState.DONE.value:
                logger.info(f"{name} is already published")
                return True
            if record.state == PublishState.ABANDONED.value or not record.functions:
                logger.warning(f"{name} has no generated functions, not publishing")
                return False

            for step in self.remaining_steps(record.last_completed_state):
                record.state = step.value
                await session.commit()

                start = time.time()
                try:
                    output = await self._run_step(step, record)
                except STEP_ERRORS as e:
                    logger.error(f"[{name}] {step.value} failed: {e}")
                    record.state = PublishState.FAILED.value
                    record.error = str(e)
                    session.add(StepLog(
                        package_name=name,
                        step=step.value,
                        status="failed",
                        error_message=str(e),
                        execution_time=time.time() - start,
                    ))
                    await session.commit()
                    return False

                logger.info(f"[{name}] {step.value} done")
                record.last_completed_state = step.value
                record.error = None
                session.add(StepLog(
                    package_name=name,
                    step=step.value,
                    status="success",
                    output=(output or "")[-2000:],
                    execution_time=time.time() - start,
                ))
                await session.commit()

            record.state = PublishState.DONE.value
            await session.commit()
            logger.info(f"Published {name} from {record.package_dir}")
            return True

    async def publish_pending(self) -> dict[str, bool]:
        """Publish every unfinished package in creation order."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PackageRecord.name)
                .where(PackageRecord.state.not_in([PublishState.DONE.value, PublishState.ABANDONED.value]))
                .order_by(PackageRecord.created_at)
            )
            names = list(result.scalars().all())

        results = {}
        for name in names:
            results[name] = await self.publish(name)
            if not results[name] and self.settings.STOP_ON_PUBLISH_FAILURE:
                logger.error(f"Stopping publish run after {name} failed")
                break
        return results

    async def _run_step(self, step: PublishState, record: PackageRecord) -> str:
        cwd = record.package_dir

        if step == PublishState.TEST_RUN:
            return (await self.run(["npm", "run", "test"], cwd=cwd)).stdout

        if step == PublishState.REPO_CREATE:
            record.remote_url = await self.github.create_repository(
                record.name, record.description or "", cwd=cwd
            )
            return record.remote_url

        if step == PublishState.GIT_PUSH:
            return await self._git_push(record)

        if step == PublishState.MOVE:
            return self._move(record)

        if step == PublishState.PUBLISH:
            return (await self.run(["npm", "publish", "--access", "public"], cwd=cwd)).stdout

        raise ValueError(f"Unknown publish step: {step}")

    async def _git_push(self, record: PackageRecord) -> str:
        cwd = record.package_dir
        remote = record.remote_url or self.github.remote_url(record.name)

        if not os.path.isdir(os.path.join(cwd, ".git")):
            await self.run(["git", "init"], cwd=cwd)
        await self.run(["git", "add", "."], cwd=cwd)
        await self.run(["git", "commit", "--allow-empty", "-m", "Initial commit"], cwd=cwd)
        await self.run(["git", "branch", "-M", "main"], cwd=cwd)

        remotes = (await self.run(["git", "remote"], cwd=cwd)).stdout.split()
        if "origin" in remotes:
            await self.run(["git", "remote", "set-url", "origin", remote], cwd=cwd)
        else:
            await self.run(["git", "remote", "add", "origin", remote], cwd=cwd)

        return (await self.run(["git", "push", "-u", "origin", "main"], cwd=cwd)).stderr

    def _move(self, record: PackageRecord) -> str:
        destination = os.path.join(self.settings.PUBLISHED_DIR, record.name)
        if not os.path.exists(record.package_dir) and os.path.isdir(destination):
            # Moved before the state was committed
            record.package_dir = destination
            return destination

        os.makedirs(self.settings.PUBLISHED_DIR, exist_ok=True)
        shutil.move(record.package_dir, destination)
        record.package_dir = destination
        return destination
