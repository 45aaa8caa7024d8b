import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


class Settings(BaseModel):
    # Remote banking API
    bank_api_base_url: str = Field(
        default=os.getenv("BANK_API_BASE_URL", "http://localhost:8080")
    )
    bank_api_timeout: float = Field(default=float(os.getenv("BANK_API_TIMEOUT", "15.0")))

    # Cookie security
    secure_cookies: bool = Field(default=_env_bool("SECURE_COOKIES", "true"))

    # Console sessions
    session_ttl_seconds: int = Field(default=int(os.getenv("SESSION_TTL_SECONDS", "28800")))
    session_redis_url: Optional[str] = Field(
        default=os.getenv("SESSION_REDIS_URL") or os.getenv("REDIS_URL")
    )
    # Keep sessions in process memory when Redis is unset or unreachable
    session_in_memory_fallback: bool = Field(
        default=_env_bool("SESSION_IN_MEMORY_FALLBACK", "false")
    )

    # Remote resource cache
    cache_revalidate_after_seconds: float = Field(
        default=float(os.getenv("CACHE_REVALIDATE_AFTER_SECONDS", "30"))
    )
    cache_keep_unused_seconds: float = Field(
        default=float(os.getenv("CACHE_KEEP_UNUSED_SECONDS", "60"))
    )

    # Filter forms wait this long after the last keystroke before re-querying
    filter_debounce_ms: int = Field(default=int(os.getenv("FILTER_DEBOUNCE_MS", "500")))

    login_rate_limit: str = Field(default=os.getenv("LOGIN_RATE_LIMIT", "10/minute"))

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = Field(default=_env_bool("LOG_JSON", "false"))

    @field_validator("bank_api_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("filter_debounce_ms", mode="after")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError("FILTER_DEBOUNCE_MS must not be negative")
        return v

    class Config:
        frozen = True


settings = Settings()
