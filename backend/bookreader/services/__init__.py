"""
Services Package

The reading engine: container extraction, pagination and navigation state,
reading-time tracking, progress persistence and the session that ties them
together.
"""

from .base_database_service import BaseDatabaseService
from .container_resolver import ContainerResolver
from .navigation_state import NavigationStateMachine
from .pagination_ledger import PaginationLedger
from .reader_session import ReaderSession
from .reader_session_manager import ReaderSessionManager
from .reading_progress_service import ProgressStoreAdapter, ReadingProgressService
from .reading_time_ledger import ReadingTimeLedger

__all__ = [
    "BaseDatabaseService",
    "ContainerResolver",
    "NavigationStateMachine",
    "PaginationLedger",
    "ProgressStoreAdapter",
    "ReaderSession",
    "ReaderSessionManager",
    "ReadingProgressService",
    "ReadingTimeLedger",
]
