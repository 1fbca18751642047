from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCAVENGER_",
    )

    # Scavenger API
    api_base_url: str = "https://scavenger.prod.gd.midnighttge.io"
    http_timeout_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # Hash oracle ("module:attribute" of a HashOracle class or factory)
    hash_oracle: str = "scavenger.services.hash_oracle:Argon2Oracle"
    memory_size: int = 1024 * 1024 * 1024  # 1 GiB
    loop_count: int = 8
    instruction_count: int = 256

    # Search
    default_max_iterations: int = 100_000
    workers: int = 1
    progress_interval_seconds: float = 1.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only console (development) and json (production) renderers exist."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @field_validator("workers", "loop_count", "instruction_count", "memory_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


settings = Settings()
