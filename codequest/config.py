"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: project root (parent of the codequest package)
_BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "CodeQuest Learning Platform"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = ""
    DB_INIT_MODE: str = "create_all"  # create_all | off

    # Code Execution
    CODE_EXECUTION_TIMEOUT: int = 5
    CODE_COMPILE_TIMEOUT: int = 30
    CODE_EXECUTION_MEMORY_LIMIT: int = 256
    MAX_CODE_SIZE: int = 50000
    MAX_TEST_CASES: int = 50
    EXECUTION_MAX_PROCESSES: int = 10
    JS_CASE_TIMEOUT_MS: int = 1500
    TEMP_DIR: str = ""

    # Rate Limiting (run-tests endpoints)
    RUN_RATE_LIMIT_PER_MINUTE: int = 30
    RUN_RATE_LIMIT_PER_HOUR: int = 300

    # Text generation (OpenAI-compatible endpoint, Groq by default)
    GROQ_API_KEY_LEARNING: str = ""
    GROQ_SINGLE_QUIZ_API_KEY: str = ""
    LLM_BASE_URL: str = "https://api.groq.com/openai/v1"
    LLM_MODEL: str = "openai/gpt-oss-120b"
    QUIZ_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TIMEOUT_SECONDS: float = 30.0

    # Quiz
    QUIZ_QUESTION_TTL_SECONDS: int = 3600
    QUIZ_XP_PER_CORRECT: int = 2
    QUIZ_XP_CAP: int = 20

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:5173","http://example.com"]
            CORS_ORIGINS=http://localhost:5173,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def _resolve_path(self, value: str, default: str) -> str:
        """Resolve path - use project-relative default if empty or relative"""
        if not value or value.startswith(".."):
            return str(_BASE_DIR / default)
        return value

    def get_temp_dir(self) -> str:
        return self._resolve_path(self.TEMP_DIR, "temp")

    def get_log_file(self) -> str:
        return self._resolve_path(self.LOG_FILE, "logs/app.log")

    def get_database_url(self) -> str:
        """Explicit DATABASE_URL, else a SQLite file next to the project."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{_BASE_DIR / 'codequest.db'}"

    def validate_runtime_settings(self) -> None:
        """
        Validate execution limits in production.

        Raises:
            ValueError: If limits would disable sandbox bounding.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        if self.CODE_EXECUTION_TIMEOUT <= 0 or self.CODE_COMPILE_TIMEOUT <= 0:
            raise ValueError("Execution timeouts must be positive in production.")
        if self.MAX_CODE_SIZE <= 0:
            raise ValueError("MAX_CODE_SIZE must be positive in production.")
        if self.EXECUTION_MAX_PROCESSES <= 0:
            raise ValueError("EXECUTION_MAX_PROCESSES must be positive in production.")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
