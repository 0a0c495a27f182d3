"""
EPUB Content Sizer Module

Measures the visible text size of each chapter so page counts can be
estimated before the renderer has laid anything out.
"""

import logging
from pathlib import Path

from bs4 import BeautifulSoup

from ...models.document import DocumentModel

logger = logging.getLogger(__name__)


class EPUBContentSizer:
    """Counts visible characters per spine item from the extracted files."""

    def chapter_sizes(self, document: DocumentModel, content_root: Path) -> dict[int, int]:
        """
        Return {spine_index: visible character count}.

        Unreadable chapters are reported with size 0.
        """
        sizes: dict[int, int] = {}
        for index, spine_item in enumerate(document.spine):
            relative = document.manifest_path(index) or spine_item.idref
            sizes[index] = self._text_length(content_root / relative)
        return sizes

    def _text_length(self, chapter_file: Path) -> int:
        try:
            html = chapter_file.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read chapter {chapter_file}: {e}")
            return 0

        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "head"]):
            tag.decompose()
        text = soup.get_text(separator=" ")
        return len(" ".join(text.split()))
