"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_TABLE_NAME = "kv_store"
MEMORY_TARGET = ":memory:"


class Settings(BaseSettings):
    """Store settings driven by ``SQLKV_*`` environment variables."""

    # Database Configuration
    database_url: str = Field(default=MEMORY_TARGET)
    table_name: str = Field(default=DEFAULT_TABLE_NAME, min_length=1)
    auth_token: Optional[str] = Field(default=None)
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=5, ge=1, le=100)
    database_max_overflow: int = Field(default=10, ge=0, le=100)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite") and ":///" in v:
            db_path = v.split("///", 1)[1]
            if db_path and db_path != MEMORY_TARGET:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    model_config = {
        "env_prefix": "SQLKV_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
