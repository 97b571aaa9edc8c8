import asyncio
import logging
import os
import time
from typing import Callable, Iterable

import openai

from agents.function_agent import FunctionSynthesisAgent
from agents.package_agent import PackageGeneratorAgent
from config import Settings, get_settings
from models.package import Idea, PackageSchema, PublishState
from services.assembler import PackageAssembler
from services.llm_service import LLMRetryError
from services.publisher import Publisher

logger = logging.getLogger("orchestrator")


def _publish_failed(outcome: dict) -> bool:
    return outcome["state"] == PublishState.FAILED.value and outcome["stage"] == "publishing_package"


class PipelineOrchestrator:
    """
    Runs ideas through generate → assemble → publish, strictly one at a time.
    An idea (and every package it yields) is fully published before the next starts.
    """

    STAGES = [
        "proposing_packages",
        "generating_functions",
        "assembling_package",
        "publishing_package",
    ]

    def __init__(
        self,
        llm_service,
        settings: Settings | None = None,
        publisher: Publisher | None = None,
        assembler: PackageAssembler | None = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.llm = llm_service
        self.package_agent = PackageGeneratorAgent(llm_service, self.settings)
        self.function_agent = FunctionSynthesisAgent(llm_service)
        self.assembler = assembler or PackageAssembler(self.settings)
        self.publisher = publisher or Publisher(self.settings)
        self.progress_callbacks: list[Callable] = []
        self._sleep = sleep

    def on_progress(self, callback: Callable):
        self.progress_callbacks.append(callback)

    async def _emit(self, stage: str, status: str, detail: str = "", package: str | None = None):
        for cb in self.progress_callbacks:
            try:
                await cb({"stage": stage, "status": status, "detail": detail, "package": package})
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

    def package_dir(self, name: str) -> str:
        return os.path.join(self.settings.STAGING_DIR, name)

    async def run(self, ideas: Iterable[Idea]) -> dict:
        """Process every idea in order and return a summary of the run."""
        start_time = time.time()
        packages: dict[str, dict] = {}
        dropped: list[str] = []
        stopped = False

        for idea in ideas:
            try:
                outcome = await self.run_idea(idea)
            except (LLMRetryError, openai.OpenAIError, OSError) as e:
                logger.error(f"Idea '{idea.prompt}' failed: {e}")
                await self._emit("error", "failed", str(e))
                dropped.append(idea.prompt)
                continue

            if not outcome:
                dropped.append(idea.prompt)
            packages.update(outcome)
            if any(_publish_failed(p) for p in outcome.values()) and self.settings.STOP_ON_PUBLISH_FAILURE:
                logger.error("Stopping run after a failed publish chain")
                stopped = True
                break

        return {
            "packages": packages,
            "dropped_ideas": dropped,
            "stopped_on_failure": stopped,
            "total_time": time.time() - start_time,
        }

    async def run_idea(self, idea: Idea) -> dict[str, dict]:
        await self._emit("proposing_packages", "running", idea.prompt)
        schemas = await self.package_agent.propose(idea)
        if not schemas:
            await self._emit("proposing_packages", "failed", "No valid package proposal")
            return {}
        await self._emit("proposing_packages", "done", ", ".join(s.name for s in schemas))

        outcome = {}
        for schema in schemas:
            outcome[schema.name] = await self.build_package(schema, idea)
            if _publish_failed(outcome[schema.name]) and self.settings.STOP_ON_PUBLISH_FAILURE:
                break
        return outcome

    async def build_package(self, schema: PackageSchema, idea: Idea) -> dict:
        """Generate, assemble and publish one package."""
        package_dir = self.package_dir(schema.name)
        logger.info(f"Starting to work on {schema.name}")
        self.assembler.scaffold(schema, package_dir)

        await self._emit("generating_functions", "running", package=schema.name)
        manifest = []
        for i, descriptor in enumerate(schema.functions):
            if i:
                await self._sleep(self.settings.FUNCTION_GENERATION_DELAY)
            if await self.function_agent.synthesize(descriptor, schema.meta, package_dir):
                manifest.append(descriptor.function_name)
        await self._emit("generating_functions", "done", f"{len(manifest)}/{len(schema.functions)}", schema.name)

        if not manifest:
            error = "No function survived generation"
            logger.error(f"{schema.name}: {error}")
            await self.publisher.register(
                schema.name, schema.description, package_dir, manifest,
                idea_prompt=idea.prompt, state=PublishState.ABANDONED, error=error,
            )
            return {
                "state": PublishState.ABANDONED.value,
                "stage": "generating_functions",
                "functions": manifest,
                "error": error,
            }

        await self._emit("assembling_package", "running", package=schema.name)
        self.assembler.finalize(package_dir, manifest)
        await self.publisher.register(
            schema.name, schema.description, package_dir, manifest, idea_prompt=idea.prompt
        )
        await self._emit("assembling_package", "done", package=schema.name)

        await self._emit("publishing_package", "running", package=schema.name)
        published = await self.publisher.publish(schema.name)
        state = PublishState.DONE if published else PublishState.FAILED
        await self._emit("publishing_package", "done" if published else "failed", package=schema.name)
        return {"state": state.value, "stage": "publishing_package", "functions": manifest}
