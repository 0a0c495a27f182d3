import logging
from pathlib import Path

from ebooklib import epub

from ...models.document import DocumentModel, ManifestEntry, SpineItem, TocNode
from ..exceptions import MalformedDocument

logger = logging.getLogger(__name__)


class EPUBDocumentParser:
    """Builds a DocumentModel (spine, manifest, toc) from an EPUB file."""

    def parse(self, book_file: Path) -> DocumentModel:
        """
        Parse the package descriptor of an EPUB.

        An empty spine is not an error here; callers report it as "no
        chapters".

        Raises:
            MalformedDocument: If the container or descriptor cannot be read
        """
        try:
            book = epub.read_epub(str(book_file))
        except Exception as e:
            logger.error(f"Error parsing EPUB {book_file}: {e}")
            raise MalformedDocument(str(e)) from e

        manifest = {
            item.get_id(): ManifestEntry(
                id=item.get_id(),
                path=item.get_name(),
                media_type=getattr(item, "media_type", "") or "",
            )
            for item in book.get_items()
            if item.get_id()
        }
        spine = [self._spine_item(entry) for entry in book.spine]
        toc = TocNode(children=self._toc_nodes(book.toc or []))

        document = DocumentModel(
            title=self._title(book), spine=spine, manifest=manifest, toc=toc
        )
        logger.info(
            f"Parsed {book_file.name}: {len(spine)} spine items, "
            f"{len(manifest)} manifest entries, {len(toc.children)} top-level TOC entries"
        )
        return document

    def _spine_item(self, entry) -> SpineItem:
        # ebooklib keeps spine entries as (idref, linear) tuples
        if isinstance(entry, tuple):
            idref, linear = entry[0], entry[1] if len(entry) > 1 else "yes"
        else:
            idref, linear = entry, "yes"
        return SpineItem(idref=idref, linear=linear not in ("no", False))

    def _toc_nodes(self, toc_items) -> list[TocNode]:
        """Convert ebooklib's toc (Links and (Section, children) tuples)."""
        nodes = []
        for item in toc_items:
            if isinstance(item, tuple):
                section, children = item
                nodes.append(
                    TocNode(
                        label=self._label(section),
                        target=self._href(section),
                        children=self._toc_nodes(children),
                    )
                )
            elif isinstance(item, list):
                nodes.extend(self._toc_nodes(item))
            else:
                nodes.append(TocNode(label=self._label(item), target=self._href(item)))
        return nodes

    def _label(self, item) -> str:
        return str(getattr(item, "title", "") or "")

    def _href(self, item) -> str | None:
        href = getattr(item, "href", None)
        if href is None and hasattr(item, "get_name"):
            href = item.get_name()
        return href or None

    def _title(self, book) -> str:
        try:
            titles = book.get_metadata("DC", "title")
        except Exception:
            return ""
        return str(titles[0][0]) if titles else ""
