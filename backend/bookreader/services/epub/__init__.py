# EPUB Service Components
from .epub_content_sizer import EPUBContentSizer
from .epub_document_parser import EPUBDocumentParser
from .toc_resolver import TocResolver

__all__ = [
    "EPUBContentSizer",
    "EPUBDocumentParser",
    "TocResolver",
]
