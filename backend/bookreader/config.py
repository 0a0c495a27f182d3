"""
Reader configuration.

All tunables for the reading engine live here and are passed into the
services at construction time.
"""

import os
import tempfile
from pathlib import Path

from pydantic import BaseModel

ENV_PREFIX = "BOOKREADER_"


class ReaderConfig(BaseModel):
    """Settings shared by the container resolver, ledgers and session."""

    library_dir: Path = Path("books")
    cache_dir: Path = Path(tempfile.gettempdir()) / "bookreader"
    db_path: str = "data/reading_progress.db"
    unzip_command: str = "unzip"

    # Seconds a page must be read before gated features unlock
    unlock_threshold_seconds: int = 20
    tick_interval_seconds: float = 1.0

    # Size-per-page heuristic used before a chapter has been measured
    chars_per_page: int = 2000

    previous_page_lands_on_last_page: bool = False

    @classmethod
    def from_env(cls) -> "ReaderConfig":
        """
        Build a config from BOOKREADER_* environment variables.

        Unset variables keep their defaults.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls(**values)
