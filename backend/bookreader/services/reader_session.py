"""
Reader Session Module

One open book: loads the container and descriptor off the event loop, wires
the ledgers and navigation state machine together, applies navigation effects
to the renderer and progress store, and runs the per-second reading-time tick.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from ..config import ReaderConfig
from ..models.document import DocumentModel
from ..models.progress import NavigationPosition, ProgressRecord
from ..models.reader_responses import ReaderState
from .container_resolver import ContainerResolver
from .epub.epub_content_sizer import EPUBContentSizer
from .epub.epub_document_parser import EPUBDocumentParser
from .epub.toc_resolver import TocResolver
from .exceptions import ReaderError, ResourceNotFoundInManifest
from .navigation_state import (
    Effect,
    FlushReadingTime,
    NavigationStateMachine,
    OpenContent,
    PersistProgress,
    ScrollToFragment,
    ScrollToPage,
)
from .pagination_ledger import PaginationLedger
from .reading_progress_service import ProgressStoreAdapter
from .reading_time_ledger import ReadingTimeLedger
from .renderer import Renderer

logger = logging.getLogger(__name__)


class ReaderSession:
    """
    A single reading session for one book.

    Collaborators are injected; the resolver, parser and sizer default to the
    EPUB implementations built from the config.
    """

    def __init__(
        self,
        book_id: str,
        file_path: str | Path,
        config: ReaderConfig,
        renderer: Renderer,
        progress_store: ProgressStoreAdapter,
        resolver: ContainerResolver | None = None,
        parser: EPUBDocumentParser | None = None,
        sizer: EPUBContentSizer | None = None,
    ):
        self.book_id = book_id
        self.file_path = file_path
        self.config = config
        self.renderer = renderer
        self.progress_store = progress_store
        self.resolver = resolver or ContainerResolver(config)
        self.parser = parser or EPUBDocumentParser()
        self.sizer = sizer or EPUBContentSizer()

        self.is_loading = False
        self.is_loaded = False
        self.is_closed = False
        self.error_message: str | None = None
        self.selected_text = ""

        self.document: DocumentModel | None = None
        self.content_root: Path | None = None
        self.ledger: PaginationLedger | None = None
        self.navigation: NavigationStateMachine | None = None
        self.toc_resolver: TocResolver | None = None
        self.time_ledger = ReadingTimeLedger(config.unlock_threshold_seconds)

        # Navigation requested before the book finished loading
        self._queued_navigation: tuple[int, int, str | None] | None = None
        self._fragment: str | None = None
        self._tick_task: asyncio.Task | None = None
        self._load_task: asyncio.Task | None = None

    # Loading

    async def open(self) -> bool:
        """
        Extract, parse and position the book.

        Concurrent callers wait on the same load.

        Returns:
            bool: True if the book is ready. On failure error_message is set.
        """
        if self._load_task is None:
            self._load_task = asyncio.create_task(self._load())
        return await asyncio.shield(self._load_task)

    async def _load(self) -> bool:
        self.is_loading = True
        self.error_message = None
        try:
            book_file = self.resolver.resolve_file(self.file_path)
            content_root = await asyncio.to_thread(
                self.resolver.resolve, book_file, self.book_id
            )
            document = await asyncio.to_thread(self.parser.parse, book_file)
            sizes = await asyncio.to_thread(
                self.sizer.chapter_sizes, document, content_root
            )
        except (ReaderError, OSError) as e:
            logger.error(f"Error loading book {self.book_id}: {e}")
            self.error_message = f"Failed to load book: {e}"
            return False
        finally:
            self.is_loading = False

        if self.is_closed:
            logger.info(f"Session for {self.book_id} closed while loading; discarding")
            return False

        self._install(document, content_root, sizes)
        return True

    def _install(self, document: DocumentModel, content_root: Path, sizes: dict[int, int]):
        self.document = document
        self.content_root = content_root
        self.ledger = PaginationLedger(document.chapter_count)
        self.ledger.estimate_page_counts(sizes, self.config.chars_per_page)
        self.toc_resolver = TocResolver(document)
        self.navigation = NavigationStateMachine(
            document.chapter_count,
            self.chapter_uri,
            self.ledger,
            previous_page_lands_on_last_page=self.config.previous_page_lands_on_last_page,
        )

        record = self.progress_store.load()
        if record is not None:
            self.time_ledger = ReadingTimeLedger(
                self.config.unlock_threshold_seconds, record.page_reading_times
            )
        self.is_loaded = True

        if document.chapter_count == 0:
            logger.warning(f"No spine items found in {self.book_id}")
            self.error_message = "No chapters found in this book."
            return

        start, fragment = None, None
        if record is not None:
            start = ProgressStoreAdapter.resolve_position(record, self.ledger)
        if self._queued_navigation is not None:
            chapter_index, sub_page, fragment = self._queued_navigation
            self._queued_navigation = None
            if 0 <= chapter_index < document.chapter_count:
                start = NavigationPosition(chapter_index, sub_page)
                logger.debug(f"Applied pending navigation to {start}")
            else:
                fragment = None

        self._fragment = fragment
        self._apply(self.navigation.start(start, fragment))
        logger.info(
            f"Opened {self.book_id} at {self.navigation.position} "
            f"({document.chapter_count} chapters, ~{self.ledger.total_pages()} pages)"
        )

    def chapter_uri(self, chapter_index: int) -> str:
        """file:// URI of a chapter, using the raw idref when the manifest misses."""
        spine_item = self.document.spine[chapter_index]
        relative = self.document.manifest_path(chapter_index)
        if relative is None:
            logger.warning(f"{ResourceNotFoundInManifest(spine_item.idref)}; using idref as path")
            relative = spine_item.idref
        return (Path(self.content_root) / relative).resolve().as_uri()

    # Navigation commands

    @property
    def is_navigable(self) -> bool:
        return self.is_loaded and self.document is not None and self.document.chapter_count > 0

    def next_page(self) -> bool:
        if not self.is_navigable:
            logger.debug(f"next_page ignored; {self.book_id} not ready")
            return False
        self._fragment = None
        self._apply(self.navigation.next_page())
        return True

    def previous_page(self) -> bool:
        if not self.is_navigable:
            logger.debug(f"previous_page ignored; {self.book_id} not ready")
            return False
        self._fragment = None
        self._apply(self.navigation.previous_page())
        return True

    def jump_to_chapter(self, index: int, fragment: str | None = None) -> bool:
        if not self.is_loaded:
            self._queued_navigation = (index, 0, fragment)
            return True
        if not self.is_navigable or not 0 <= index < self.document.chapter_count:
            return False
        self._fragment = fragment
        self._apply(self.navigation.jump_to_chapter(index, fragment))
        return True

    def jump_to_href(self, href: str) -> bool:
        """Jump to a TOC target; unresolvable targets are ignored."""
        if not self.is_navigable:
            return False
        spine_index, fragment = self.toc_resolver.resolve_href(href)
        if spine_index is None:
            logger.info(f"No chapter matches TOC target '{href}'")
            return False
        return self.jump_to_chapter(spine_index, fragment)

    def set_pending_navigation(self, chapter_index: int, page_index: int = 0) -> bool:
        """
        Go to a chapter and sub-page, e.g. a note's saved location.

        Before the book is loaded the request is queued and applied on load.
        """
        if not self.is_loaded:
            self._queued_navigation = (chapter_index, page_index, None)
            return True
        if not self.is_navigable or not 0 <= chapter_index < self.document.chapter_count:
            return False
        self._fragment = None
        self._apply(self.navigation.restore(chapter_index, page_index))
        return True

    # Renderer reports

    def report_page_count(self, chapter_index: int, count: int) -> None:
        if not self.is_navigable:
            logger.debug(f"Page count report ignored; {self.book_id} not ready")
            return
        self._apply(self.navigation.report_page_count(chapter_index, count))

    def report_selected_text(self, text: str) -> None:
        self.selected_text = text

    def clear_selection(self) -> None:
        self.selected_text = ""

    # Reading time

    @property
    def current_page_identifier(self) -> str | None:
        if not self.is_navigable:
            return None
        return self.navigation.position.page_identifier

    def is_unlocked(self, page_identifier: str | None = None) -> bool:
        identifier = page_identifier or self.current_page_identifier
        if identifier is None:
            return False
        return self.time_ledger.is_unlocked(identifier)

    def has_been_read(self, chapter_index: int, sub_page: int) -> bool:
        if not self.is_navigable:
            return False
        return self.time_ledger.has_been_read(
            chapter_index, sub_page, self.navigation.position
        )

    @property
    def is_tracking_time(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    async def start_tracking(self) -> None:
        """Start the per-second tick for the active page (app in foreground)."""
        await self.stop_tracking(flush=False)
        if not self.is_navigable:
            return
        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.debug(f"Started time tracking for {self.book_id}")

    async def stop_tracking(self, flush: bool = True) -> None:
        """Cancel the tick task and optionally flush the active page."""
        task, self._tick_task = self._tick_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.debug(f"Stopped time tracking for {self.book_id}")

        if flush and self.is_navigable:
            self._apply([FlushReadingTime(self.navigation.position), PersistProgress()])

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval_seconds)
            self.time_ledger.tick(self.navigation.position)

    async def close(self) -> None:
        await self.stop_tracking()
        self.is_closed = True
        logger.info(f"Closed session for {self.book_id}")

    # Effects and persistence

    def _apply(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, OpenContent):
                self.renderer.open_content(effect.uri)
            elif isinstance(effect, ScrollToPage):
                self.renderer.scroll_to_page(effect.page_index)
            elif isinstance(effect, ScrollToFragment):
                self.renderer.scroll_to_fragment(effect.fragment)
            elif isinstance(effect, FlushReadingTime):
                self.time_ledger.flush(effect.position)
            elif isinstance(effect, PersistProgress):
                self.save_progress()

    def build_progress_record(self) -> ProgressRecord:
        position = self.navigation.position
        return ProgressRecord(
            chapter_index=position.chapter_index,
            sub_page=position.sub_page,
            legacy_absolute_page=self.ledger.absolute_page(position),
            chapter_label=self.toc_resolver.find_title(position.chapter_index),
            fragment_or_cfi=self._fragment,
            total_pages=self.ledger.total_pages(),
            percent_complete=self.ledger.percent_complete(position),
            last_read=datetime.now(),
            page_reading_times=self.time_ledger.records(),
        )

    def save_progress(self) -> bool:
        if not self.is_navigable:
            return False
        return self.progress_store.save(self.build_progress_record())

    # Snapshots

    def toc_entries(self) -> list[dict]:
        if self.toc_resolver is None:
            return []
        current = self.navigation.position.chapter_index if self.is_navigable else None
        return self.toc_resolver.flatten(current)

    def state(self) -> ReaderState:
        state = ReaderState(
            book_id=self.book_id,
            is_loading=self.is_loading,
            is_loaded=self.is_loaded,
            error_message=self.error_message,
            selected_text=self.selected_text,
            is_tracking_time=self.is_tracking_time,
        )
        if self.document is not None:
            state.title = self.document.title
            state.chapter_count = self.document.chapter_count
        if not self.is_navigable:
            return state

        position = self.navigation.position
        chapter_title = self.toc_resolver.find_title(position.chapter_index)
        state.chapter_index = position.chapter_index
        state.sub_page = position.sub_page
        state.chapter_page_count = self.navigation.chapter_page_count
        state.chapter_title = chapter_title
        state.chapter_uri = self.chapter_uri(position.chapter_index)
        state.page_reference = f"{chapter_title} - Page {position.sub_page + 1}"
        state.absolute_page = self.ledger.absolute_page(position)
        state.total_pages = self.ledger.total_pages()
        state.percent_complete = self.ledger.percent_complete(position)
        state.pages_fully_measured = self.ledger.is_fully_measured()
        state.page_identifier = position.page_identifier
        state.is_unlocked = self.time_ledger.is_unlocked(position.page_identifier)
        state.seconds_on_page = self.time_ledger.elapsed(position)
        state.seconds_until_unlock = self.time_ledger.seconds_until_unlock(position)
        state.pending_fragment = self.navigation.pending_fragment
        return state
