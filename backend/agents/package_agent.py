import json
import logging
import os
from typing import Any

from slugify import slugify

from agents.base_agent import BaseAgent, AgentStatus
from agents.prompts import package_ideas_prompt
from config import Settings, get_settings
from models.package import Idea, PackageSchema, is_js_identifier, validate_packages

logger = logging.getLogger("agent.package_generator")


def normalize_package_name(name: str, prefix: str) -> str:
    """Turn a proposed name into a lowercase npm name that starts with `prefix`."""
    slug = slugify(name)
    prefix_slug = slugify(prefix)
    if prefix_slug and not slug.startswith(prefix_slug):
        slug = f"{prefix_slug}-{slug}" if slug else prefix_slug
    return slug


class PackageGeneratorAgent(BaseAgent):
    """Asks the model for package ideas and persists the validated schemas."""

    def __init__(self, llm_service, settings: Settings | None = None):
        # Malformed answers drop the idea, they are never retried
        super().__init__("package_generator", llm_service, {"max_retries": 0})
        self.settings = settings or get_settings()

    async def run(self, idea: Idea) -> tuple[Idea, Any]:
        prompt = package_ideas_prompt(idea.prompt, idea.number_of_functions, idea.name_prefix)
        return idea, await self.llm.complete_json(prompt)

    async def validate(self, output: tuple[Idea, Any]) -> list[PackageSchema]:
        idea, proposals = output
        if not validate_packages(proposals):
            raise ValueError("Couldn't validate packages")

        schemas = []
        for proposal in proposals:
            schema = PackageSchema(**proposal)
            schema.name = normalize_package_name(schema.name, idea.name_prefix)
            if not schema.name:
                raise ValueError(f"Package name {proposal['name']!r} is empty once normalized")
            for descriptor in schema.functions:
                if not is_js_identifier(descriptor.function_name):
                    raise ValueError(f"Function name {descriptor.function_name!r} is not a JavaScript identifier")
            schemas.append(schema)
        return schemas

    async def propose(self, idea: Idea) -> list[PackageSchema]:
        """Return the validated schemas for an idea, or [] when it was dropped."""
        result = await self.execute(idea)
        if result.status != AgentStatus.SUCCESS:
            logger.error(f"Dropping idea '{idea.prompt}': {result.error}")
            return []

        for schema in result.output:
            self.save_schema(schema)
        return result.output

    def save_schema(self, schema: PackageSchema) -> str | None:
        path = os.path.join(self.settings.SCHEMAS_DIR, f"{schema.name}.json")
        try:
            os.makedirs(self.settings.SCHEMAS_DIR, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(schema.model_dump(), f, indent=2)
        except OSError as e:
            logger.error(f"Could not write schema {path}: {e}")
            return None
        logger.info(f"Saved schema for {schema.name} to {path}")
        return path
