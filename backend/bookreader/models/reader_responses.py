from pydantic import BaseModel


class RendererCommand(BaseModel):
    command: str  # "open_content" | "scroll_to_page" | "scroll_to_fragment"
    uri: str | None = None
    page_index: int | None = None
    fragment: str | None = None


class ReaderState(BaseModel):
    """Snapshot of an open reader session."""

    book_id: str
    title: str = ""
    is_loading: bool = False
    is_loaded: bool = False
    error_message: str | None = None

    chapter_index: int = 0
    sub_page: int = 0
    chapter_count: int = 0
    chapter_page_count: int = 1
    chapter_title: str | None = None
    chapter_uri: str | None = None
    page_reference: str | None = None  # "Chapter 3 - Page 12", for notes

    absolute_page: int = 0
    total_pages: int = 0
    percent_complete: float = 0.0
    pages_fully_measured: bool = False

    page_identifier: str | None = None
    is_unlocked: bool = False
    seconds_on_page: int = 0
    seconds_until_unlock: int = 0
    is_tracking_time: bool = False

    pending_fragment: str | None = None
    selected_text: str = ""


class TocEntryResponse(BaseModel):
    label: str
    href: str | None = None
    level: int = 1
    spine_index: int | None = None
    fragment: str | None = None
    is_current: bool = False


class ReaderResponse(BaseModel):
    """State after a command plus the renderer commands it produced."""

    state: ReaderState
    commands: list[RendererCommand] = []
