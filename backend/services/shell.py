import asyncio
import logging
import subprocess
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger("shell")


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandError(Exception):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, result: CommandResult):
        self.result = result
        super().__init__(
            f"`{' '.join(result.args)}` exited with {result.returncode}: "
            f"{(result.stderr or result.stdout).strip()[:500]}"
        )


async def run_command(args: Sequence[str], cwd: str | None = None) -> CommandResult:
    """Run a command to completion off the event loop."""
    logger.info(f"$ {' '.join(args)}" + (f"  (in {cwd})" if cwd else ""))
    try:
        completed = await asyncio.to_thread(
            subprocess.run, list(args), cwd=cwd, capture_output=True, text=True
        )
    except FileNotFoundError as e:
        raise CommandError(CommandResult(tuple(args), 127, "", str(e))) from e

    result = CommandResult(
        args=tuple(args),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if result.returncode != 0:
        raise CommandError(result)
    return result
