"""
Reading Time Ledger Module

Accumulates seconds spent per page and answers the time-gate question used to
unlock features that require sustained reading of a page.
"""

import logging
from collections import defaultdict

from ..models.progress import NavigationPosition, PageReadingRecord, page_identifier

logger = logging.getLogger(__name__)


class ReadingTimeLedger:
    """
    Per-page reading time.

    Seconds are first counted in memory by tick() and only become part of the
    persisted cumulative total when flush() is called for that page.
    """

    def __init__(
        self,
        threshold_seconds: int,
        records: list[PageReadingRecord] | None = None,
    ):
        self.threshold_seconds = threshold_seconds
        self._totals: dict[str, int] = {}
        self._elapsed: dict[str, int] = defaultdict(int)
        for record in records or []:
            self._totals[record.page_identifier] = (
                self._totals.get(record.page_identifier, 0) + record.cumulative_seconds
            )

    def tick(self, position: NavigationPosition, seconds: int = 1) -> None:
        self._elapsed[position.page_identifier] += seconds

    def flush(self, position: NavigationPosition) -> PageReadingRecord | None:
        """
        Add the in-memory seconds for a page to its cumulative total.

        Returns:
            PageReadingRecord: The updated record, or None if no time accrued
        """
        identifier = position.page_identifier
        elapsed = self._elapsed.pop(identifier, 0)
        if elapsed <= 0:
            return None

        total = self._totals.get(identifier, 0) + elapsed
        self._totals[identifier] = total
        logger.debug(f"Flushed {elapsed}s for page {identifier} (total {total}s)")
        return PageReadingRecord(page_identifier=identifier, cumulative_seconds=total)

    def elapsed(self, position: NavigationPosition) -> int:
        """Unflushed seconds on a page during the current visit."""
        return self._elapsed.get(position.page_identifier, 0)

    def total_seconds(self, identifier: str) -> int:
        return self._totals.get(identifier, 0)

    def seconds_until_unlock(self, position: NavigationPosition) -> int:
        spent = self.total_seconds(position.page_identifier) + self.elapsed(position)
        return max(0, self.threshold_seconds - spent)

    def is_unlocked(self, identifier: str) -> bool:
        return self.total_seconds(identifier) >= self.threshold_seconds

    def has_been_read(
        self, chapter_index: int, sub_page: int, current: NavigationPosition
    ) -> bool:
        """
        True for pages already passed, or pages that met the time threshold.
        """
        if (chapter_index, sub_page) < tuple(current):
            return True
        return self.is_unlocked(page_identifier(chapter_index, sub_page))

    def records(self) -> list[PageReadingRecord]:
        return [
            PageReadingRecord(page_identifier=identifier, cumulative_seconds=seconds)
            for identifier, seconds in self._totals.items()
        ]
