from datetime import datetime
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field


class PageCountProvenance(str, Enum):
    ESTIMATED = "estimated"
    MEASURED = "measured"


class NavigationPosition(NamedTuple):
    """(chapter, sub-page) pair; tuples order lexicographically."""

    chapter_index: int
    sub_page: int

    @property
    def page_identifier(self) -> str:
        return page_identifier(self.chapter_index, self.sub_page)


def page_identifier(chapter_index: int, sub_page: int) -> str:
    """Stable reading-time key for a page, independent of absolute numbering."""
    return f"{chapter_index}-{sub_page}"


class PageReadingRecord(BaseModel):
    page_identifier: str
    cumulative_seconds: int = 0


class ProgressRecord(BaseModel):
    """
    Persisted reading progress for a single document.

    chapter_index and sub_page are authoritative. Records written before they
    existed only carry legacy_absolute_page and are migrated on load.
    """

    chapter_index: int | None = None
    sub_page: int | None = None
    legacy_absolute_page: int = 0
    chapter_label: str | None = None
    fragment_or_cfi: str | None = None  # advisory only
    total_pages: int | None = None
    percent_complete: float = 0.0
    last_read: datetime = Field(default_factory=datetime.now)
    page_reading_times: list[PageReadingRecord] = Field(default_factory=list)

    @property
    def has_position(self) -> bool:
        return self.chapter_index is not None and self.sub_page is not None
