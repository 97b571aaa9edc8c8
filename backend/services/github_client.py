import json
import logging
from typing import Awaitable, Callable, Sequence

from config import Settings, get_settings
from services.shell import CommandResult, run_command

logger = logging.getLogger("github_client")

CREATE_REPOSITORY_MUTATION = """
mutation($name: String!, $ownerId: ID!, $visibility: RepositoryVisibility!, $description: String) {
  createRepository(input: {name: $name, ownerId: $ownerId, visibility: $visibility, description: $description}) {
    repository {
      name
      url
    }
  }
}
"""

Runner = Callable[..., Awaitable[CommandResult]]


class RepositoryCreationError(Exception):
    """Raised when the GraphQL mutation answers with errors."""


class GitHubClient:
    """Creates repositories through the `gh` command-line client."""

    def __init__(self, settings: Settings | None = None, runner: Runner = run_command):
        self.settings = settings or get_settings()
        self.run = runner

    def remote_url(self, name: str) -> str:
        return f"https://github.com/{self.settings.GITHUB_USERNAME}/{name}.git"

    def _command(self, name: str, description: str) -> Sequence[str]:
        return [
            "gh", "api", "graphql",
            "-f", f"query={CREATE_REPOSITORY_MUTATION}",
            "-f", f"name={name}",
            "-f", f"ownerId={self.settings.GITHUB_OWNER_ID}",
            "-f", f"visibility={self.settings.REPO_VISIBILITY}",
            "-f", f"description={description}",
        ]

    async def create_repository(self, name: str, description: str = "", cwd: str | None = None) -> str:
        """Create the remote repository and return its git remote URL."""
        result = await self.run(self._command(name, description), cwd=cwd)

        try:
            payload = json.loads(result.stdout) if result.stdout.strip() else {}
        except json.JSONDecodeError:
            payload = {}

        if payload.get("errors"):
            messages = "; ".join(e.get("message", "") for e in payload["errors"])
            raise RepositoryCreationError(f"Could not create repository {name}: {messages}")

        repository = (payload.get("data") or {}).get("createRepository", {}).get("repository") or {}
        logger.info(f"Created repository {repository.get('url', name)}")
        return self.remote_url(name)
