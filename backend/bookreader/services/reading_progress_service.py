"""
Reading Progress Service Module

SQLite persistence for per-book reading progress and per-page reading time,
plus the adapter a reader session uses to load and save its own record.
"""

import logging
import sqlite3
from datetime import datetime

from ..models.progress import NavigationPosition, PageReadingRecord, ProgressRecord
from .base_database_service import BaseDatabaseService
from .pagination_ledger import PaginationLedger

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ReadingProgressService(BaseDatabaseService):
    """
    Stores ProgressRecords keyed by book id.

    chapter_index and sub_page are nullable so rows written by older versions,
    which only stored an absolute page, can still be read.
    """

    def __init__(self, db_path: str = "data/reading_progress.db"):
        super().__init__(db_path)
        self._init_tables()

    def _init_tables(self):
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reading_progress (
                    book_id TEXT PRIMARY KEY,
                    chapter_index INTEGER,                   -- NULL in legacy rows
                    sub_page INTEGER,                        -- NULL in legacy rows
                    legacy_absolute_page INTEGER NOT NULL DEFAULT 0,
                    chapter_label TEXT,                      -- display only
                    fragment_or_cfi TEXT,
                    total_pages INTEGER,
                    percent_complete REAL DEFAULT 0.0,       -- 0.0-100.0
                    last_read TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS page_reading_times (
                    book_id TEXT NOT NULL,
                    page_identifier TEXT NOT NULL,           -- "{chapter}-{sub_page}"
                    cumulative_seconds INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (book_id, page_identifier)
                )
            """)

    def get_progress(self, book_id: str) -> ProgressRecord | None:
        """
        Load the progress record for a book.

        Returns:
            ProgressRecord | None: The record, or None if none exists

        Raises:
            sqlite3.Error: If the read fails. A failed read is never reported
                as "no progress".
        """
        with self.get_connection() as conn:
            row = conn.execute(
                """
                SELECT chapter_index, sub_page, legacy_absolute_page, chapter_label,
                       fragment_or_cfi, total_pages, percent_complete, last_read
                FROM reading_progress
                WHERE book_id = ?
                """,
                (book_id,),
            ).fetchone()
            if row is None:
                return None

            time_rows = conn.execute(
                """
                SELECT page_identifier, cumulative_seconds
                FROM page_reading_times
                WHERE book_id = ?
                ORDER BY page_identifier
                """,
                (book_id,),
            ).fetchall()

        return ProgressRecord(
            chapter_index=row["chapter_index"],
            sub_page=row["sub_page"],
            legacy_absolute_page=row["legacy_absolute_page"] or 0,
            chapter_label=row["chapter_label"],
            fragment_or_cfi=row["fragment_or_cfi"],
            total_pages=row["total_pages"],
            percent_complete=row["percent_complete"] or 0.0,
            last_read=self._parse_timestamp(row["last_read"]),
            page_reading_times=[
                PageReadingRecord(
                    page_identifier=time_row["page_identifier"],
                    cumulative_seconds=time_row["cumulative_seconds"],
                )
                for time_row in time_rows
            ],
        )

    def save_progress(self, book_id: str, record: ProgressRecord) -> bool:
        """
        Insert or update a book's progress and reading times in one transaction.

        Returns:
            bool: True if the write succeeded
        """
        try:
            with self.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO reading_progress
                        (book_id, chapter_index, sub_page, legacy_absolute_page,
                         chapter_label, fragment_or_cfi, total_pages,
                         percent_complete, last_read)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(book_id) DO UPDATE SET
                        chapter_index = excluded.chapter_index,
                        sub_page = excluded.sub_page,
                        legacy_absolute_page = excluded.legacy_absolute_page,
                        chapter_label = excluded.chapter_label,
                        fragment_or_cfi = excluded.fragment_or_cfi,
                        total_pages = excluded.total_pages,
                        percent_complete = excluded.percent_complete,
                        last_read = excluded.last_read
                    """,
                    (
                        book_id,
                        record.chapter_index,
                        record.sub_page,
                        record.legacy_absolute_page,
                        record.chapter_label,
                        record.fragment_or_cfi,
                        record.total_pages,
                        record.percent_complete,
                        record.last_read.strftime(TIMESTAMP_FORMAT),
                    ),
                )
                conn.executemany(
                    """
                    INSERT INTO page_reading_times
                        (book_id, page_identifier, cumulative_seconds)
                    VALUES (?, ?, ?)
                    ON CONFLICT(book_id, page_identifier) DO UPDATE SET
                        cumulative_seconds = excluded.cumulative_seconds
                    """,
                    [
                        (book_id, page.page_identifier, page.cumulative_seconds)
                        for page in record.page_reading_times
                    ],
                )
        except sqlite3.Error as e:
            logger.error(f"Error saving progress for {book_id}: {e}")
            return False

        logger.info(
            f"Saved progress for {book_id}: chapter {record.chapter_index}, "
            f"page {record.sub_page} ({record.percent_complete:.1f}%)"
        )
        return True

    def delete_progress(self, book_id: str) -> bool:
        try:
            with self.get_connection() as conn:
                conn.execute("DELETE FROM page_reading_times WHERE book_id = ?", (book_id,))
                cursor = conn.execute(
                    "DELETE FROM reading_progress WHERE book_id = ?", (book_id,)
                )
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting progress for {book_id}: {e}")
            return False

        if deleted:
            logger.info(f"Deleted progress for {book_id}")
        return deleted

    def _parse_timestamp(self, value) -> datetime:
        if not value:
            return datetime.now()
        try:
            return datetime.strptime(str(value), TIMESTAMP_FORMAT)
        except ValueError:
            return datetime.fromisoformat(str(value))


class ProgressStoreAdapter:
    """
    One book's view of the progress store.

    Save failures are logged and reported as False; the session's in-memory
    state stays authoritative until the next successful save.

    Saves are refused until a load has succeeded, so a failed read never
    leads to stored reading times being lowered.
    """

    def __init__(self, service: ReadingProgressService, book_id: str):
        self.service = service
        self.book_id = book_id
        self.is_loaded = False

    def load(self) -> ProgressRecord | None:
        try:
            record = self.service.get_progress(self.book_id)
        except Exception as e:
            logger.error(f"Error loading progress for {self.book_id}: {e}")
            self.is_loaded = False
            return None
        self.is_loaded = True
        return record

    def save(self, record: ProgressRecord) -> bool:
        if not self.is_loaded:
            logger.warning(
                f"Progress for {self.book_id} not saved; stored progress was never loaded"
            )
            return False
        try:
            saved = self.service.save_progress(self.book_id, record)
        except Exception as e:
            logger.error(f"Error saving progress for {self.book_id}: {e}")
            return False
        if not saved:
            logger.warning(f"Progress for {self.book_id} not saved; keeping session state")
        return saved

    @staticmethod
    def resolve_position(
        record: ProgressRecord, ledger: PaginationLedger
    ) -> NavigationPosition:
        """
        Position to resume from.

        Records carrying chapter_index and sub_page are trusted as-is. Legacy
        records only have an absolute page, which is mapped through the
        ledger's current counts.
        """
        if record.has_position:
            return NavigationPosition(record.chapter_index, record.sub_page)

        position = ledger.page_and_chapter(record.legacy_absolute_page)
        logger.info(
            f"Migrating legacy absolute page {record.legacy_absolute_page} to {position}"
        )
        return position
