from functools import lru_cache
from typing import List, Literal
from pathlib import Path
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    ENV: Literal["development", "staging", "production"] = Field("development")
    HOST: str = Field("0.0.0.0")
    PORT: int = Field(5000)
    LOG_LEVEL: str = Field("INFO")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    # Storage: "memory" keeps everything in-process, "sql" uses DATABASE_URL
    STORAGE_BACKEND: Literal["memory", "sql"] = Field("memory")
    DATABASE_URL: str = Field("sqlite:///./anonchat.db")

    # Web sessions live in redis
    REDIS_URL: str = Field("redis://localhost:6379/0")
    SESSION_COOKIE_NAME: str = Field("anonchat_sid")
    SESSION_TTL_SECONDS: int = Field(24 * 60 * 60)

    # Seeded admin account
    ADMIN_USERNAME: str = Field("admin")
    ADMIN_PASSWORD: str = Field("password123")

    # Chat limits
    MAX_MESSAGE_LENGTH: int = Field(5000)
    RECENT_MESSAGES_LIMIT: int = Field(50)
    OUTBOX_MAX_SIZE: int = Field(1000)

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lowercase level names from the environment"""
        return v.upper()

    @property
    def cookie_secure(self) -> bool:
        return self.ENV == "production"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        print("❌ Env validation failed:\n", e.json(indent=2))
        raise
