# bookverse/config.py
"""
Runtime configuration.

Values come from environment variables, optionally loaded from a ``.env``
file in the working directory. Paths default to locations relative to the
repository root so that ``python -m bookverse.main`` works out of the box.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseModel):
    data_file: Path = BASE_DIR / "data" / "catalog.json"
    static_dir: Path = BASE_DIR / "public"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        origins = os.getenv("BOOKVERSE_CORS_ORIGINS")
        return cls(
            data_file=Path(os.getenv("BOOKVERSE_DATA_FILE") or defaults.data_file),
            static_dir=Path(os.getenv("BOOKVERSE_STATIC_DIR") or defaults.static_dir),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else defaults.cors_origins
            ),
            log_level=(os.getenv("BOOKVERSE_LOG_LEVEL") or defaults.log_level).upper(),
            host=os.getenv("HOST") or defaults.host,
            port=int(os.getenv("PORT") or defaults.port),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
