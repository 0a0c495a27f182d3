"""
Pagination Ledger Module

Keeps one page count per chapter and converts between (chapter, sub-page)
positions and 1-indexed absolute page numbers across the whole book.

Counts come from two places: estimates computed from chapter text size before
anything is rendered, and measurements reported by the renderer after layout.
Both share a single slot per chapter; the last write wins, except that the
estimation pass never replaces a measurement.
"""

import logging
import math
from dataclasses import dataclass

from ..models.progress import NavigationPosition, PageCountProvenance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChapterPageCount:
    count: int
    provenance: PageCountProvenance


class PaginationLedger:
    def __init__(self, chapter_count: int):
        self.chapter_count = chapter_count
        self._counts: dict[int, ChapterPageCount] = {}

    def record_page_count(
        self,
        chapter_index: int,
        count: int,
        provenance: PageCountProvenance = PageCountProvenance.MEASURED,
    ) -> None:
        """Store a chapter's page count, overwriting whatever was there."""
        if not 0 <= chapter_index < self.chapter_count:
            logger.warning(
                f"Ignoring page count for chapter {chapter_index} "
                f"(book has {self.chapter_count} chapters)"
            )
            return
        if count < 1:
            logger.warning(
                f"Page count {count} for chapter {chapter_index} raised to 1"
            )
            count = 1

        previous = self._counts.get(chapter_index)
        self._counts[chapter_index] = ChapterPageCount(count, provenance)
        logger.debug(
            f"Chapter {chapter_index}: {previous.count if previous else None} -> "
            f"{count} ({provenance.value})"
        )

    def estimate_page_counts(self, chapter_sizes: dict[int, int], chars_per_page: int) -> int:
        """
        Pre-calculation pass: estimate every unmeasured chapter from its size.

        Returns:
            int: Number of chapters that received an estimate
        """
        estimated = 0
        for chapter_index, size in chapter_sizes.items():
            if self.provenance_of(chapter_index) is PageCountProvenance.MEASURED:
                continue
            count = max(1, math.ceil(size / chars_per_page))
            self.record_page_count(chapter_index, count, PageCountProvenance.ESTIMATED)
            estimated += 1
        logger.info(
            f"Estimated page counts for {estimated} chapters "
            f"({self.total_pages()} pages total)"
        )
        return estimated

    def page_count(self, chapter_index: int) -> int | None:
        entry = self._counts.get(chapter_index)
        return entry.count if entry else None

    def provenance_of(self, chapter_index: int) -> PageCountProvenance | None:
        entry = self._counts.get(chapter_index)
        return entry.provenance if entry else None

    def is_fully_measured(self) -> bool:
        return all(
            self.provenance_of(index) is PageCountProvenance.MEASURED
            for index in range(self.chapter_count)
        )

    def absolute_page(self, position: NavigationPosition) -> int:
        """
        1-indexed absolute page of a position.

        Chapters before the position without a count contribute nothing.
        """
        before = sum(
            self._counts[index].count
            for index in range(position.chapter_index)
            if index in self._counts
        )
        return before + position.sub_page + 1

    def total_pages(self) -> int:
        """
        Sum of all currently known counts.

        Not stable: it moves as estimates are replaced by measurements.
        """
        return sum(entry.count for entry in self._counts.values())

    def percent_complete(self, position: NavigationPosition) -> float:
        """Approximate percentage read, clamped to 0-100."""
        if self.chapter_count == 0:
            return 0.0
        total = self.total_pages()
        if position.chapter_index not in self._counts:
            # The current chapter counts as one page until it is known
            total += 1
        absolute = self.absolute_page(position)
        total = max(total, absolute)
        return min(100.0, max(0.0, absolute / total * 100.0))

    def page_and_chapter(self, absolute_page: int) -> NavigationPosition:
        """
        Position containing an absolute page.

        Walks chapters in order subtracting known counts. A target beyond the
        known total clamps to the last page of the last chapter with a count.
        """
        remaining = max(absolute_page, 1) - 1
        last_known: NavigationPosition | None = None

        for index in range(self.chapter_count):
            entry = self._counts.get(index)
            if entry is None:
                continue
            if remaining < entry.count:
                return NavigationPosition(index, remaining)
            remaining -= entry.count
            last_known = NavigationPosition(index, entry.count - 1)

        if last_known is None:
            return NavigationPosition(0, 0)
        logger.debug(
            f"Absolute page {absolute_page} beyond known total "
            f"{self.total_pages()}, clamping to {last_known}"
        )
        return last_known
