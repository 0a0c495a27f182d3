"""
TOC Resolver Module

Maps table of contents entries onto spine positions. Package descriptors from
different producers disagree about how hrefs are rooted, so matching runs
through a ladder of increasingly loose path comparisons and accepts the first
spine item (in reading order) that satisfies any of them.
"""

import logging
import posixpath
from urllib.parse import unquote

from ...models.document import DocumentModel, TocNode

logger = logging.getLogger(__name__)


def paths_match(manifest_path: str, toc_path: str) -> bool:
    """
    Tolerant path comparison between a manifest path and a TOC path.

    Accepts exact equality, either path being a suffix of the other, or equal
    file names.
    """
    if not manifest_path or not toc_path:
        return False
    return (
        manifest_path == toc_path
        or manifest_path.endswith(toc_path)
        or toc_path.endswith(manifest_path)
        or posixpath.basename(manifest_path) == posixpath.basename(toc_path)
    )


class TocResolver:
    """Resolves TOC entries and chapter titles against a parsed document."""

    def __init__(self, document: DocumentModel):
        self.document = document

    def resolve(self, entry: TocNode) -> tuple[int | None, str | None]:
        """
        Resolve a TOC entry to (spine_index, fragment).

        Returns (None, None) when the entry has no target or no spine item
        matches.
        """
        if not entry.target:
            logger.debug(f"spine_index - no item path for '{entry.label}'")
            return None, None
        return self.resolve_href(entry.target)

    def resolve_href(self, href: str) -> tuple[int | None, str | None]:
        """Resolve a raw "path#fragment" target to (spine_index, fragment)."""
        path, sep, fragment = href.partition("#")
        toc_path = unquote(path)
        fragment = fragment if sep and fragment else None

        for index in range(self.document.chapter_count):
            manifest_path = self.document.manifest_path(index)
            if manifest_path is None:
                continue
            if paths_match(manifest_path, toc_path):
                logger.debug(
                    f"spine_index - matched at index {index}: "
                    f"'{manifest_path}' ~ '{toc_path}'"
                )
                return index, fragment

        logger.debug(f"spine_index - no match found for '{toc_path}'")
        return None, None

    def is_current_chapter(self, entry: TocNode, current_chapter: int) -> bool:
        return self.resolve(entry)[0] == current_chapter

    def find_title(self, spine_index: int) -> str:
        """
        Label of the first TOC node (depth-first) pointing at a spine item.

        Falls back to "Chapter N" with N the 1-indexed spine position.
        """
        fallback = f"Chapter {spine_index + 1}"
        if not 0 <= spine_index < self.document.chapter_count:
            return fallback

        spine_path = self.document.manifest_path(spine_index)
        if spine_path is None:
            return fallback

        for node, _ in self.document.toc.walk():
            path, _ = node.split_target()
            if path is not None and unquote(path) == spine_path:
                return node.label or fallback
        return fallback

    def flatten(self, current_chapter: int | None = None) -> list[dict]:
        """
        Flattened TOC for chapter lists, in depth-first order.

        Entries whose target does not resolve keep spine_index None.
        """
        entries = []
        for node, level in self.document.toc.walk():
            spine_index, fragment = self.resolve(node)
            entries.append(
                {
                    "label": node.label or "",
                    "href": node.target,
                    "level": level,
                    "spine_index": spine_index,
                    "fragment": fragment,
                    "is_current": spine_index is not None
                    and spine_index == current_chapter,
                }
            )
        return entries
