from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    # LLM (OpenAI-compatible chat completions)
    GPT_KEY: str = ""
    GPT_MODEL: str = "gpt-4"
    GPT_BASE_URL: str | None = None
    LLM_TIMEOUT_SECONDS: float = 120.0
    LLM_MAX_ATTEMPTS: int = 6  # 0 retries forever
    LLM_RETRY_BASE_DELAY: float = 15.0
    LLM_RETRY_MAX_DELAY: float = 300.0
    FUNCTION_GENERATION_DELAY: float = 2.0

    # Author identity (package.json / README)
    AUTHOR_NAME: str = ""
    AUTHOR_URL: str = ""
    AUTHOR_ORG_NAME: str = ""
    AUTHOR_ORG_URL: str = ""

    # GitHub / npm
    GITHUB_OWNER_ID: str = ""
    GITHUB_USERNAME: str = ""
    REPO_VISIBILITY: Literal["PUBLIC", "PRIVATE"] = "PUBLIC"
    SHOULD_PUBLISH_TO_NPM: bool = False
    STOP_ON_PUBLISH_FAILURE: bool = True

    # Storage
    SCHEMAS_DIR: str = "./schemas"
    STAGING_DIR: str = "./hero_modules"
    PUBLISHED_DIR: str = "./published_hero_modules"
    DATABASE_URL: str = "sqlite+aiosqlite:///./hero_factory.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # App
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
