"""
Reader Session Manager

Keeps at most one live session per book id so two sessions never write the
same progress record.
"""

import logging
from pathlib import Path
from typing import Callable

from ..config import ReaderConfig
from .reader_session import ReaderSession
from .reading_progress_service import ProgressStoreAdapter, ReadingProgressService
from .renderer import CommandQueueRenderer, Renderer

logger = logging.getLogger(__name__)


class ReaderSessionManager:
    def __init__(
        self,
        config: ReaderConfig,
        progress_service: ReadingProgressService | None = None,
        renderer_factory: Callable[[], Renderer] = CommandQueueRenderer,
    ):
        self.config = config
        self.progress_service = progress_service or ReadingProgressService(config.db_path)
        self.renderer_factory = renderer_factory
        self._sessions: dict[str, ReaderSession] = {}

    def get(self, book_id: str) -> ReaderSession | None:
        return self._sessions.get(book_id)

    def __contains__(self, book_id: str) -> bool:
        return book_id in self._sessions

    async def open(self, book_id: str, file_path: str | Path) -> ReaderSession:
        """
        Open a book, or return its already open session.

        A session whose load failed is replaced on the next open. A session
        that is still loading is awaited rather than returned unloaded.
        """
        session = self._sessions.get(book_id)
        if session is not None and session.error_message is None:
            logger.info(f"Reusing open session for {book_id}")
            await session.open()
            return session
        if session is not None:
            await self.close(book_id)

        session = ReaderSession(
            book_id=book_id,
            file_path=file_path,
            config=self.config,
            renderer=self.renderer_factory(),
            progress_store=ProgressStoreAdapter(self.progress_service, book_id),
        )
        self._sessions[book_id] = session
        await session.open()
        return session

    async def close(self, book_id: str) -> bool:
        session = self._sessions.pop(book_id, None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        for book_id in list(self._sessions):
            await self.close(book_id)
