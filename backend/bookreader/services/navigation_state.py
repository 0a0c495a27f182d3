"""
Navigation State Machine Module

Owns the reader position (chapter index, sub-page) and the requests that can
only be honored once the renderer has measured the current chapter.

Every transition returns an ordered list of effects for the caller to apply
(open content, scroll, flush reading time, persist) instead of triggering
them implicitly.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from ..models.progress import NavigationPosition, PageCountProvenance
from .pagination_ledger import PaginationLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenContent:
    chapter_index: int
    uri: str


@dataclass(frozen=True)
class ScrollToPage:
    page_index: int


@dataclass(frozen=True)
class ScrollToFragment:
    fragment: str


@dataclass(frozen=True)
class FlushReadingTime:
    position: NavigationPosition


@dataclass(frozen=True)
class PersistProgress:
    pass


Effect = OpenContent | ScrollToPage | ScrollToFragment | FlushReadingTime | PersistProgress


@dataclass(frozen=True)
class PendingRestore:
    """A sub-page to apply once the chapter's page count is reported."""

    chapter_index: int
    sub_page: int = 0
    from_end: bool = False

    def target_for(self, page_count: int) -> int:
        if self.from_end:
            return page_count - 1
        return min(max(self.sub_page, 0), page_count - 1)


class NavigationStateMachine:
    def __init__(
        self,
        chapter_count: int,
        uri_for: Callable[[int], str],
        ledger: PaginationLedger,
        previous_page_lands_on_last_page: bool = False,
    ):
        self.chapter_count = chapter_count
        self.uri_for = uri_for
        self.ledger = ledger
        self.previous_page_lands_on_last_page = previous_page_lands_on_last_page

        self._position = NavigationPosition(0, 0)
        # Page count reported for the chapter as currently loaded
        self._loaded_page_count: int | None = None
        self.pending_fragment: str | None = None
        self.pending_restore: PendingRestore | None = None

    @property
    def position(self) -> NavigationPosition:
        return self._position

    @property
    def is_measured(self) -> bool:
        return self._loaded_page_count is not None

    @property
    def chapter_page_count(self) -> int:
        """Sub-pages in the current chapter; 1 until the renderer reports."""
        return self._loaded_page_count or 1

    def start(
        self, position: NavigationPosition | None = None, fragment: str | None = None
    ) -> list[Effect]:
        """Open the first chapter to show, queueing a restore of its sub-page."""
        if self.chapter_count == 0:
            return []

        position = position or NavigationPosition(0, 0)
        chapter_index = min(max(position.chapter_index, 0), self.chapter_count - 1)
        self._position = NavigationPosition(chapter_index, 0)
        self._loaded_page_count = None
        self.pending_fragment = fragment
        self.pending_restore = None
        if position.sub_page > 0:
            self.pending_restore = PendingRestore(chapter_index, position.sub_page)

        logger.debug(f"Starting at {self._position}, pending {self.pending_restore}")
        return [OpenContent(chapter_index, self.uri_for(chapter_index))]

    def next_page(self) -> list[Effect]:
        chapter_index, sub_page = self._position
        if self.chapter_count == 0:
            return []

        if sub_page < self.chapter_page_count - 1:
            return self._move_within_chapter(sub_page + 1)
        if chapter_index < self.chapter_count - 1:
            return self._change_chapter(chapter_index + 1)

        logger.debug(f"nextPage at last page of last chapter ({self._position})")
        return []

    def previous_page(self) -> list[Effect]:
        chapter_index, sub_page = self._position
        if self.chapter_count == 0:
            return []

        if sub_page > 0:
            return self._move_within_chapter(sub_page - 1)
        if chapter_index > 0:
            effects = self._change_chapter(chapter_index - 1)
            if self.previous_page_lands_on_last_page:
                self.pending_restore = PendingRestore(chapter_index - 1, from_end=True)
            return effects

        logger.debug("previousPage at first page of first chapter")
        return []

    def jump_to_chapter(self, index: int, fragment: str | None = None) -> list[Effect]:
        """
        Jump to the start of a chapter, optionally to an anchor inside it.

        Out-of-range indices are ignored.
        """
        if not 0 <= index < self.chapter_count:
            logger.debug(f"jumpToChapter ignored out-of-range index {index}")
            return []

        logger.debug(f"jumpToChapter - index: {index}, fragment: {fragment}")
        if index != self._position.chapter_index:
            effects = self._change_chapter(index)
            self.pending_fragment = fragment
            return effects

        effects = self._move_within_chapter(0) if self._position.sub_page else []
        if fragment:
            if self.is_measured:
                effects.append(ScrollToFragment(fragment))
            else:
                self.pending_fragment = fragment
        return effects

    def restore(self, chapter_index: int, sub_page: int) -> list[Effect]:
        """Move to a saved position, deferring the sub-page until it is measured."""
        if not 0 <= chapter_index < self.chapter_count:
            logger.debug(f"restore ignored out-of-range chapter {chapter_index}")
            return []

        request = PendingRestore(chapter_index, sub_page)
        if chapter_index != self._position.chapter_index:
            effects = self._change_chapter(chapter_index)
            self.pending_restore = request
            return effects

        if not self.is_measured:
            self.pending_restore = request
            return []

        target = request.target_for(self.chapter_page_count)
        if target == self._position.sub_page:
            return []
        return self._move_within_chapter(target)

    def report_page_count(self, chapter_index: int, count: int) -> list[Effect]:
        """
        Record a renderer measurement.

        Reports for a chapter that is no longer current only update the
        ledger. For the current chapter, any queued restore or fragment is
        applied and cleared.
        """
        self.ledger.record_page_count(chapter_index, count, PageCountProvenance.MEASURED)
        if chapter_index != self._position.chapter_index or self.chapter_count == 0:
            logger.debug(
                f"Page count {count} for chapter {chapter_index} recorded "
                f"(current chapter is {self._position.chapter_index})"
            )
            return []

        self._loaded_page_count = self.ledger.page_count(chapter_index)
        page_count = self.chapter_page_count
        sub_page = self._position.sub_page

        restore, self.pending_restore = self.pending_restore, None
        fragment, self.pending_fragment = self.pending_fragment, None

        if restore is not None and restore.chapter_index == chapter_index:
            target = restore.target_for(page_count)
            if target != sub_page:
                return self._move_within_chapter(target)
            return [ScrollToPage(target)]

        if fragment:
            return [ScrollToFragment(fragment)]

        if sub_page >= page_count:
            return self._move_within_chapter(page_count - 1)
        return []

    def _move_within_chapter(self, sub_page: int) -> list[Effect]:
        left = self._position
        self._position = NavigationPosition(left.chapter_index, sub_page)
        return [FlushReadingTime(left), ScrollToPage(sub_page), PersistProgress()]

    def _change_chapter(self, chapter_index: int) -> list[Effect]:
        left = self._position
        self._position = NavigationPosition(chapter_index, 0)
        self._loaded_page_count = None
        self.pending_fragment = None
        self.pending_restore = None
        logger.debug(f"Moving from {left} to chapter {chapter_index}")
        return [
            FlushReadingTime(left),
            OpenContent(chapter_index, self.uri_for(chapter_index)),
            PersistProgress(),
        ]
