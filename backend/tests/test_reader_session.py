"""
Tests for ReaderSession and ReaderSessionManager.

Tests cover:
- Opening a book end to end (extraction, parsing, estimates, first render)
- Failure states surfaced as a single error message
- Resuming from modern and legacy progress records
- Navigation queued before loading finishes
- Reading-time tracking, flushing and persistence
"""

import asyncio
import sqlite3
from unittest.mock import Mock

import pytest
import pytest_asyncio

from bookreader.models.document import DocumentModel
from bookreader.models.progress import NavigationPosition, PageCountProvenance, ProgressRecord
from bookreader.services.epub.epub_document_parser import EPUBDocumentParser
from bookreader.services.reader_session import ReaderSession
from bookreader.services.reader_session_manager import ReaderSessionManager
from bookreader.services.reading_progress_service import (
    ProgressStoreAdapter,
    ReadingProgressService,
)


class FakeRenderer:
    def __init__(self):
        self.calls = []

    def open_content(self, uri):
        self.calls.append(("open_content", uri))

    def scroll_to_page(self, page_index):
        self.calls.append(("scroll_to_page", page_index))

    def scroll_to_fragment(self, fragment):
        self.calls.append(("scroll_to_fragment", fragment))


@pytest.fixture
def progress_service(config):
    return ReadingProgressService(config.db_path)


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def make_session(config, renderer, progress_service, fake_unzip):
    def factory(file_path="test.epub", book_id="book-1", **kwargs) -> ReaderSession:
        return ReaderSession(
            book_id=book_id,
            file_path=file_path,
            config=config,
            renderer=renderer,
            progress_store=ProgressStoreAdapter(progress_service, book_id),
            **kwargs,
        )

    return factory


@pytest_asyncio.fixture
async def session(make_session, epub_file):
    session = make_session()
    assert await session.open()
    return session


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_renders_first_chapter(self, session, renderer):
        assert session.is_loaded
        assert session.error_message is None
        assert session.navigation.position == NavigationPosition(0, 0)
        assert renderer.calls[0][0] == "open_content"
        assert renderer.calls[0][1].startswith("file://")
        assert renderer.calls[0][1].endswith("text/ch1.xhtml")

    @pytest.mark.asyncio
    async def test_open_estimates_every_chapter(self, session):
        """Chapters of ~1000, ~3000 and ~1000 characters estimate to 1, 2, 1 pages"""
        assert session.ledger.total_pages() == 4
        assert all(
            session.ledger.provenance_of(i) is PageCountProvenance.ESTIMATED
            for i in range(3)
        )

    @pytest.mark.asyncio
    async def test_missing_file_sets_error(self, make_session, epub_file):
        session = make_session(file_path="missing.epub")

        assert not await session.open()
        assert session.error_message.startswith("Failed to load book:")
        assert not session.next_page()

    @pytest.mark.asyncio
    async def test_malformed_document_sets_error(self, make_session, tmp_path):
        broken = tmp_path / "books" / "broken.epub"
        broken.parent.mkdir(exist_ok=True)
        broken.write_text("not a zip")

        session = make_session(file_path=str(broken))

        assert not await session.open()
        assert "Failed to load book" in session.error_message
        assert not session.is_loaded

    @pytest.mark.asyncio
    async def test_empty_spine_reports_no_chapters(self, make_session, epub_file):
        parser = Mock()
        parser.parse.return_value = DocumentModel(title="Empty")
        session = make_session(parser=parser)

        assert await session.open()
        assert session.error_message == "No chapters found in this book."
        assert not session.next_page()
        assert session.state().chapter_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_opens_share_one_load(self, make_session, epub_file, fake_unzip, renderer):
        session = make_session()

        results = await asyncio.gather(session.open(), session.open())

        assert results == [True, True]
        assert len(fake_unzip) == 1
        assert sum(1 for call in renderer.calls if call[0] == "open_content") == 1

    @pytest.mark.asyncio
    async def test_close_while_loading_discards_result(self, make_session, epub_file):
        real_parser = EPUBDocumentParser()
        session = None

        def parse_and_close(path):
            session.is_closed = True
            return real_parser.parse(path)

        parser = Mock()
        parser.parse.side_effect = parse_and_close
        session = make_session(parser=parser)

        assert not await session.open()
        assert not session.is_loaded
        assert session.navigation is None


class TestNavigation:
    @pytest.mark.asyncio
    async def test_navigation_persists_both_encodings(self, session, progress_service):
        session.report_page_count(0, 2)
        session.next_page()
        session.next_page()

        record = progress_service.get_progress("book-1")

        assert (record.chapter_index, record.sub_page) == (1, 0)
        assert record.legacy_absolute_page == 3
        assert record.total_pages == session.ledger.total_pages()
        assert 0 < record.percent_complete <= 100

    @pytest.mark.asyncio
    async def test_jump_to_href_scrolls_to_fragment_after_measurement(self, session, renderer):
        assert session.jump_to_href("text/ch2.xhtml#sec2")
        assert session.navigation.pending_fragment == "sec2"

        session.report_page_count(1, 3)

        assert renderer.calls[-1] == ("scroll_to_fragment", "sec2")
        assert session.navigation.pending_fragment is None

    @pytest.mark.asyncio
    async def test_unresolvable_href_ignored(self, session):
        assert not session.jump_to_href("missing.xhtml")
        assert session.navigation.position == NavigationPosition(0, 0)

    @pytest.mark.asyncio
    async def test_save_failure_does_not_block_navigation(self, make_session, epub_file):
        session = make_session()
        await session.open()
        session.progress_store = Mock()
        session.progress_store.save.return_value = False

        session.next_page()

        assert session.navigation.position == NavigationPosition(1, 0)
        session.progress_store.save.assert_called_once()

    @pytest.mark.asyncio
    async def test_state_snapshot(self, session):
        session.report_page_count(0, 2)
        session.next_page()
        session.report_selected_text("a highlighted phrase")

        state = session.state()

        assert state.chapter_index == 0
        assert state.sub_page == 1
        assert state.chapter_page_count == 2
        assert state.chapter_title == "One"
        assert state.page_reference == "One - Page 2"
        assert state.page_identifier == "0-1"
        assert state.absolute_page == 2
        assert state.selected_text == "a highlighted phrase"

        session.clear_selection()
        assert session.state().selected_text == ""


class TestResume:
    @pytest.mark.asyncio
    async def test_resume_from_saved_position(self, make_session, epub_file, progress_service, renderer):
        progress_service.save_progress(
            "book-1", ProgressRecord(chapter_index=1, sub_page=2, legacy_absolute_page=1)
        )
        session = make_session()

        await session.open()

        assert session.navigation.position == NavigationPosition(1, 0)
        assert renderer.calls[-1][1].endswith("text/ch2.xhtml")

        session.report_page_count(1, 3)

        assert session.navigation.position == NavigationPosition(1, 2)
        assert renderer.calls[-1] == ("scroll_to_page", 2)

    @pytest.mark.asyncio
    async def test_resume_from_legacy_absolute_page(self, make_session, epub_file, progress_service):
        """Absolute page 3 against estimates [1, 2, 1] is chapter 1, page 1"""
        progress_service.save_progress("book-1", ProgressRecord(legacy_absolute_page=3))
        session = make_session()

        await session.open()
        session.report_page_count(1, 2)

        assert session.navigation.position == NavigationPosition(1, 1)
        assert progress_service.get_progress("book-1").has_position

    @pytest.mark.asyncio
    async def test_navigation_queued_before_load(self, make_session, epub_file, renderer):
        session = make_session()
        session.set_pending_navigation(2, 0)

        await session.open()

        assert session.navigation.position == NavigationPosition(2, 0)
        assert sum(1 for call in renderer.calls if call[0] == "open_content") == 1

    @pytest.mark.asyncio
    async def test_jump_queued_before_load_keeps_fragment(self, make_session, epub_file, renderer):
        session = make_session()
        session.jump_to_chapter(1, "sec2")

        await session.open()
        session.report_page_count(1, 2)

        assert renderer.calls[-1] == ("scroll_to_fragment", "sec2")

    @pytest.mark.asyncio
    async def test_reading_times_restored(self, make_session, epub_file, progress_service):
        progress_service.save_progress(
            "book-1",
            ProgressRecord(
                chapter_index=0,
                sub_page=0,
                page_reading_times=[{"page_identifier": "0-0", "cumulative_seconds": 25}],
            ),
        )
        session = make_session()

        await session.open()

        assert session.is_unlocked("0-0")
        assert session.state().is_unlocked


    @pytest.mark.asyncio
    async def test_unreadable_progress_is_not_overwritten(
        self, make_session, epub_file, progress_service, monkeypatch
    ):
        progress_service.save_progress(
            "book-1",
            ProgressRecord(
                chapter_index=2,
                sub_page=0,
                page_reading_times=[{"page_identifier": "0-0", "cumulative_seconds": 15}],
            ),
        )
        stored_get_progress = progress_service.get_progress
        monkeypatch.setattr(
            progress_service,
            "get_progress",
            Mock(side_effect=sqlite3.OperationalError("database is locked")),
        )
        session = make_session()

        await session.open()
        session.time_ledger.tick(NavigationPosition(0, 0), seconds=1)
        session.next_page()

        stored = stored_get_progress("book-1")
        assert stored.chapter_index == 2
        assert [(r.page_identifier, r.cumulative_seconds) for r in stored.page_reading_times] == [
            ("0-0", 15)
        ]
        # The session itself keeps working from its in-memory state
        assert session.navigation.position == NavigationPosition(1, 0)


class TestReadingTime:
    @pytest.mark.asyncio
    async def test_tick_task_accrues_and_stop_flushes(self, session, progress_service):
        await session.start_tracking()
        assert session.is_tracking_time

        await asyncio.sleep(0.1)
        await session.stop_tracking()

        assert not session.is_tracking_time
        assert session.time_ledger.elapsed(NavigationPosition(0, 0)) == 0
        times = progress_service.get_progress("book-1").page_reading_times
        assert times[0].page_identifier == "0-0"
        assert times[0].cumulative_seconds > 0

    @pytest.mark.asyncio
    async def test_stopped_task_no_longer_ticks(self, session):
        await session.start_tracking()
        await asyncio.sleep(0.05)
        await session.stop_tracking()
        total = session.time_ledger.total_seconds("0-0")

        await asyncio.sleep(0.05)

        assert session.time_ledger.total_seconds("0-0") == total
        assert session.time_ledger.elapsed(NavigationPosition(0, 0)) == 0

    @pytest.mark.asyncio
    async def test_leaving_a_page_flushes_its_time(self, session, progress_service):
        session.time_ledger.tick(NavigationPosition(0, 0), seconds=20)

        session.next_page()

        assert session.is_unlocked("0-0")
        assert not session.is_unlocked()
        assert session.has_been_read(0, 0)
        saved = progress_service.get_progress("book-1").page_reading_times
        assert [(r.page_identifier, r.cumulative_seconds) for r in saved] == [("0-0", 20)]

    @pytest.mark.asyncio
    async def test_close_cancels_tracking(self, session):
        await session.start_tracking()

        await session.close()

        assert session.is_closed
        assert not session.is_tracking_time


class TestReaderSessionManager:
    @pytest.mark.asyncio
    async def test_one_session_per_book(self, config, epub_file, fake_unzip):
        manager = ReaderSessionManager(config)

        first = await manager.open("book-1", "test.epub")
        second = await manager.open("book-1", "test.epub")

        assert first is second
        assert "book-1" in manager

    @pytest.mark.asyncio
    async def test_open_during_load_waits_for_it(self, config, epub_file, fake_unzip):
        """Test that a second open while the first is loading gets the loaded session"""
        manager = ReaderSessionManager(config)

        first, second = await asyncio.gather(
            manager.open("book-1", "test.epub"), manager.open("book-1", "test.epub")
        )

        assert first is second
        assert second.is_loaded
        assert second.error_message is None
        assert len(fake_unzip) == 1

    @pytest.mark.asyncio
    async def test_failed_session_replaced_on_reopen(self, config, epub_file, fake_unzip):
        manager = ReaderSessionManager(config)

        failed = await manager.open("book-1", "missing.epub")
        retried = await manager.open("book-1", "test.epub")

        assert failed is not retried
        assert retried.is_loaded

    @pytest.mark.asyncio
    async def test_close_all(self, config, epub_file, fake_unzip):
        manager = ReaderSessionManager(config)
        session = await manager.open("book-1", "test.epub")

        await manager.close_all()

        assert session.is_closed
        assert manager.get("book-1") is None
        assert not await manager.close("book-1")
