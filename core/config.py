"""App config via env vars"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from core.models import GcMode


class StoreConfig(BaseModel):
    """Explicit configuration handed to a blob store at construction."""

    store_directory: str = ".image-base64"
    store_filename: str = "image-base64.json"
    allocator_max_attempts: int = Field(16, ge=1)
    lock_timeout_seconds: float = Field(10.0, gt=0)

    model_config = {"frozen": True}

    @field_validator("store_directory", "store_filename")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class Settings(BaseSettings):
    # Directory holding the documents (the "vault"); the store lives inside it
    VAULT_ROOT: str = "."

    STORE_DIRECTORY: str = ".image-base64"
    STORE_FILENAME: str = "image-base64.json"

    ALLOCATOR_MAX_ATTEMPTS: int = 16
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # Garbage collection
    GC_MODE: GcMode = GcMode.interactive
    GC_SCHEDULE_SECONDS: float = 0.0  # 0 disables the beat schedule
    GC_SCAN_ON_STARTUP: bool = True
    DOCUMENT_SUFFIX: str = ".md"
    # Open reviews untouched this long are dropped when the next one starts
    REVIEW_SESSION_TTL_SECONDS: float = 3600.0

    REDIS_URL: str = "redis://localhost:6379/0"

    model_config = {"env_prefix": "", "case_sensitive": True, "env_file": ".env"}

    def store_config(self) -> StoreConfig:
        return StoreConfig(
            store_directory=self.STORE_DIRECTORY,
            store_filename=self.STORE_FILENAME,
            allocator_max_attempts=self.ALLOCATOR_MAX_ATTEMPTS,
            lock_timeout_seconds=self.LOCK_TIMEOUT_SECONDS,
        )


settings = Settings()
