"""
Base Database Service Module

Shared SQLite connection handling for the persistence services.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class BaseDatabaseService:
    """
    Base class providing connection management.

    Errors raised inside get_connection roll the transaction back and
    propagate; subclasses decide which failures to log and degrade around.
    """

    def __init__(self, db_path: str = "data/reading_progress.db"):
        """
        Args:
            db_path (str): Path to the SQLite database file. The parent
                directory is created if missing.
        """
        self.db_path = db_path
        self._ensure_data_dir()

    def _ensure_data_dir(self):
        data_dir = os.path.dirname(self.db_path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir)
            logger.info(f"Created data directory: {data_dir}")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()
