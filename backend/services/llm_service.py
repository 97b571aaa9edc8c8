import json
import logging
import random
import asyncio
from typing import Any, Awaitable, Callable

import httpx
import openai
from openai import OpenAI
from config import Settings, get_settings

logger = logging.getLogger("llm_service")

MAX_BACKOFF_EXPONENT = 32

RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class LLMRetryError(Exception):
    """Raised when a completion keeps failing after every allowed attempt."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"LLM completion failed after {attempts} attempts: {last_error}")


class LLMService:
    """Chat completion wrapper with a classified retry policy."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: OpenAI | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = settings or get_settings()
        self.client = client or OpenAI(
            base_url=settings.GPT_BASE_URL,
            api_key=settings.GPT_KEY,
            timeout=httpx.Timeout(settings.LLM_TIMEOUT_SECONDS),
            max_retries=0,
        )
        self.model = settings.GPT_MODEL
        self.max_attempts = settings.LLM_MAX_ATTEMPTS
        self.base_delay = settings.LLM_RETRY_BASE_DELAY
        self.max_delay = settings.LLM_RETRY_MAX_DELAY
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the next attempt; never shorter than the base delay."""
        # Exponent capped so unbounded retry never overflows a float
        exponent = min(attempt - 1, MAX_BACKOFF_EXPONENT)
        delay = min(self.max_delay, self.base_delay * (2 ** exponent))
        return max(self.base_delay, delay) + random.uniform(0, self.base_delay)

    async def _create(self, prompt: str) -> str:
        response = await asyncio.to_thread(
            self.client.chat.completions.create,
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.choices[0].message.content or ""

    async def complete(self, prompt: str) -> str:
        """Send a prompt and return the text of the first choice."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._create(prompt)
            except RETRYABLE_ERRORS as e:
                if self.max_attempts and attempt >= self.max_attempts:
                    logger.error(f"LLM completion giving up after {attempt} attempts: {e}")
                    raise LLMRetryError(attempt, e) from e
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"LLM completion failed ({type(e).__name__}: {e}), "
                    f"retrying in {delay:.1f}s (attempt {attempt})"
                )
                await self._sleep(delay)
            except openai.OpenAIError as e:
                logger.error(f"LLM completion error, not retrying: {e}")
                raise

    async def complete_json(self, prompt: str) -> Any:
        """Complete a prompt that must answer with raw JSON."""
        response = await self.complete(prompt)

        # Strip a markdown code block if the model wrapped its answer
        cleaned = response.strip()
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:]
        if cleaned.startswith("```"):
            cleaned = cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"JSON parse error: {e}\nResponse: {cleaned[:500]}")
            raise ValueError(f"LLM returned invalid JSON: {e}")


# Singleton
_llm_service = None


def get_llm_service() -> LLMService:
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
