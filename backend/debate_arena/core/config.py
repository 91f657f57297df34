from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = Field(default="dev", validation_alias="ENV")
    database_url: str = Field(default="sqlite:///./dev.db", validation_alias="DATABASE_URL")
    cors_origins_raw: Optional[str] = Field(
        default=None,
        validation_alias="CORS_ORIGINS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Judge (OpenAI-compatible chat completions endpoint)
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, validation_alias="OPENAI_BASE_URL")
    judge_model: str = Field(default="gpt-4o-mini", validation_alias="JUDGE_MODEL")
    judge_timeout_seconds: float = Field(default=20.0, gt=0, validation_alias="JUDGE_TIMEOUT_SECONDS")
    judge_max_retries: int = Field(default=1, ge=0, validation_alias="JUDGE_MAX_RETRIES")
    judge_attempts: int = Field(default=2, ge=1, validation_alias="JUDGE_ATTEMPTS")
    fallback_score: float = Field(default=5.0, ge=0, le=10, validation_alias="FALLBACK_SCORE")

    # Debate rules
    max_argument_words: int = Field(default=500, ge=1, validation_alias="MAX_ARGUMENT_WORDS")
    max_argument_chars: int = Field(default=5000, ge=1, validation_alias="MAX_ARGUMENT_CHARS")
    default_max_rounds: int = Field(default=3, ge=1, le=10, validation_alias="DEFAULT_MAX_ROUNDS")
    default_round_time_limit_seconds: int = Field(
        default=120,
        ge=10,
        le=3600,
        validation_alias="DEFAULT_ROUND_TIME_LIMIT_SECONDS",
    )
    transition_max_attempts: int = Field(default=3, ge=1, validation_alias="TRANSITION_MAX_ATTEMPTS")

    @field_validator("openai_api_key", "openai_base_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return str(v).strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Optional[str]) -> str:
        return (v or "INFO").strip().upper()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @staticmethod
    def parse_cors_origins(raw: Optional[str]) -> List[str]:
        if not raw:
            # Default to local frontend for dev
            return ["http://localhost:5173"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return self.parse_cors_origins(self.cors_origins_raw)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
