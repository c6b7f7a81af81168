from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

DATA_DIR = Path(__file__).parent / "data"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # Empty URL means a process-scoped in-memory SQLite database.
    database_url: str = Field(default_factory=lambda: os.getenv("EMBER_DATABASE_URL", "").strip())
    seed_demo: bool = Field(default_factory=lambda: _env_flag("EMBER_SEED_DEMO", True))
    storage_path: Path = Field(
        default_factory=lambda: Path(os.getenv("EMBER_STORAGE_PATH", "").strip() or DATA_DIR / "local_storage.json")
    )
    host: str = Field(default_factory=lambda: os.getenv("EMBER_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("EMBER_PORT", "8001")))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
