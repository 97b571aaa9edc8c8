from abc import ABC, abstractmethod
from pydantic import BaseModel
from typing import Any, Optional
import logging
import time
import asyncio


class AgentStatus:
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"


class AgentResult(BaseModel):
    status: str
    output: Optional[Any] = None
    error: Optional[str] = None
    execution_time_seconds: float = 0.0
    retry_count: int = 0


class BaseAgent(ABC):
    """Base class for the generation agents.

    `execute` wraps `run` with timing and an optional number of re-runs; the
    generators in this project use `max_retries=0`, so a malformed answer is
    reported as a failed result instead of being asked for again.
    """

    def __init__(self, name: str, llm_service=None, config: dict | None = None):
        config = config or {}
        self.name = name
        self.llm = llm_service
        self.config = config
        self.logger = logging.getLogger(f"agent.{name}")
        self.status = AgentStatus.IDLE
        self.max_retries = config.get("max_retries", 0)
        self.retry_delay = config.get("retry_delay", 2.0)

    def describe(self, input_data: Any) -> str:
        """Short label for log lines."""
        return getattr(input_data, "prompt", None) or type(input_data).__name__

    async def execute(self, input_data: Any) -> AgentResult:
        """Run the agent, converting any failure into a failed AgentResult."""
        start = time.time()
        label = self.describe(input_data)
        self.status = AgentStatus.RUNNING

        for attempt in range(self.max_retries + 1):
            try:
                self.logger.info(f"[{self.name}] {label} (attempt {attempt + 1})")
                output = await self.validate(await self.run(input_data))
            except Exception as e:
                self.logger.error(f"[{self.name}] {label} failed: {e}")
                if attempt == self.max_retries:
                    self.status = AgentStatus.FAILED
                    return AgentResult(
                        status=AgentStatus.FAILED,
                        error=str(e),
                        execution_time_seconds=time.time() - start,
                        retry_count=attempt,
                    )
                self.status = AgentStatus.RETRYING
                await asyncio.sleep(self.retry_delay * 2 ** attempt)
                continue

            self.status = AgentStatus.SUCCESS
            return AgentResult(
                status=AgentStatus.SUCCESS,
                output=output,
                execution_time_seconds=time.time() - start,
                retry_count=attempt,
            )

    @abstractmethod
    async def run(self, input_data: Any) -> Any:
        """Core agent logic; implemented by subclasses."""
        ...

    async def validate(self, output: Any) -> Any:
        """Optional validation hook. Override for custom validation."""
        return output
