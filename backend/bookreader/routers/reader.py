"""
Reader Router

HTTP surface over reader sessions. The client plays the rendering surface:
every mutating call returns the new state together with the renderer
commands (open content, scroll) it must execute.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..config import ReaderConfig
from ..models.reader_responses import ReaderResponse, TocEntryResponse
from ..services.reader_session import ReaderSession
from ..services.reader_session_manager import ReaderSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reader", tags=["reader"])


@lru_cache(maxsize=1)
def get_session_manager() -> ReaderSessionManager:
    return ReaderSessionManager(ReaderConfig.from_env())


class OpenBookRequest(BaseModel):
    book_id: str
    file_path: str


class JumpRequest(BaseModel):
    chapter_index: Optional[int] = None
    fragment: Optional[str] = None
    href: Optional[str] = None  # TOC target, used when chapter_index is absent


class RestoreRequest(BaseModel):
    chapter_index: int
    page_index: int = 0


class PageCountReport(BaseModel):
    chapter_index: int
    count: int


class SelectionRequest(BaseModel):
    text: str = ""


def get_session_or_404(
    book_id: str, manager: ReaderSessionManager
) -> ReaderSession:
    session = manager.get(book_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No open session for this book")
    return session


def respond(session: ReaderSession) -> ReaderResponse:
    drain = getattr(session.renderer, "drain", None)
    commands = drain() if drain else []
    return ReaderResponse(state=session.state(), commands=commands)


@router.post("/sessions")
async def open_book(
    request: OpenBookRequest,
    manager: ReaderSessionManager = Depends(get_session_manager),
) -> ReaderResponse:
    """
    Open a book (or return its open session) and position it at saved progress
    """
    session = await manager.open(request.book_id, request.file_path)
    if not session.is_loaded:
        detail = session.error_message or "Book could not be loaded"
        logger.error(f"Failed to open {request.book_id}: {detail}")
        raise HTTPException(status_code=422, detail=detail)
    return respond(session)


@router.get("/sessions/{book_id}")
async def get_state(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> ReaderResponse:
    return respond(get_session_or_404(book_id, manager))


@router.get("/sessions/{book_id}/toc")
async def get_toc(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> List[TocEntryResponse]:
    """
    Flattened table of contents with resolved chapter indices
    """
    session = get_session_or_404(book_id, manager)
    return [TocEntryResponse(**entry) for entry in session.toc_entries()]


@router.post("/sessions/{book_id}/next")
async def next_page(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    session.next_page()
    return respond(session)


@router.post("/sessions/{book_id}/previous")
async def previous_page(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    session.previous_page()
    return respond(session)


@router.post("/sessions/{book_id}/jump")
async def jump(
    book_id: str,
    request: JumpRequest,
    manager: ReaderSessionManager = Depends(get_session_manager),
) -> ReaderResponse:
    """
    Jump to a chapter index, or to a TOC target href
    """
    session = get_session_or_404(book_id, manager)
    if request.chapter_index is not None:
        session.jump_to_chapter(request.chapter_index, request.fragment)
    elif request.href:
        session.jump_to_href(request.href)
    else:
        raise HTTPException(status_code=400, detail="chapter_index or href is required")
    return respond(session)


@router.post("/sessions/{book_id}/restore")
async def restore(
    book_id: str,
    request: RestoreRequest,
    manager: ReaderSessionManager = Depends(get_session_manager),
) -> ReaderResponse:
    """
    Go to a saved chapter/page location (e.g. from a note)
    """
    session = get_session_or_404(book_id, manager)
    session.set_pending_navigation(request.chapter_index, request.page_index)
    return respond(session)


@router.post("/sessions/{book_id}/page-count")
async def report_page_count(
    book_id: str,
    report: PageCountReport,
    manager: ReaderSessionManager = Depends(get_session_manager),
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    session.report_page_count(report.chapter_index, report.count)
    return respond(session)


@router.post("/sessions/{book_id}/selection")
async def report_selection(
    book_id: str,
    request: SelectionRequest,
    manager: ReaderSessionManager = Depends(get_session_manager),
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    if request.text:
        session.report_selected_text(request.text)
    else:
        session.clear_selection()
    return respond(session)


@router.post("/sessions/{book_id}/tracking/start")
async def start_tracking(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    await session.start_tracking()
    return respond(session)


@router.post("/sessions/{book_id}/tracking/stop")
async def stop_tracking(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
) -> ReaderResponse:
    session = get_session_or_404(book_id, manager)
    await session.stop_tracking()
    return respond(session)


@router.get("/sessions/{book_id}/unlocked")
async def is_unlocked(
    book_id: str,
    page_identifier: Optional[str] = Query(
        None, description="Page to check; defaults to the current page"
    ),
    manager: ReaderSessionManager = Depends(get_session_manager),
):
    session = get_session_or_404(book_id, manager)
    identifier = page_identifier or session.current_page_identifier
    return {
        "page_identifier": identifier,
        "is_unlocked": session.is_unlocked(identifier),
    }


@router.delete("/sessions/{book_id}")
async def close_book(
    book_id: str, manager: ReaderSessionManager = Depends(get_session_manager)
):
    if not await manager.close(book_id):
        raise HTTPException(status_code=404, detail="No open session for this book")
    return {"message": "Session closed", "book_id": book_id}
