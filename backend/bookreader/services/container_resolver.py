"""
Container Resolver Module

Locates a book file, unpacks it into a per-book cache directory and finds the
content root (the directory that holds the package descriptor).
"""

import logging
import shutil
import subprocess
from pathlib import Path

from ..config import ReaderConfig
from .exceptions import (
    ContentRootNotFound,
    DocumentNotFound,
    ExtractionFailed,
    InvalidDocumentId,
)

logger = logging.getLogger(__name__)

PACKAGE_DESCRIPTOR_SUFFIX = ".opf"


class ContainerResolver:
    """
    Resolves a book file to an extracted content root.

    Extraction happens at most once per document id: if the cache directory
    already exists it is reused as-is.
    """

    def __init__(self, config: ReaderConfig):
        self.library_dir = Path(config.library_dir)
        self.cache_dir = Path(config.cache_dir)
        self.unzip_command = config.unzip_command

    def resolve_file(self, file_path: str | Path) -> Path:
        """
        Resolve a stored book path to a file on disk.

        Absolute paths are used as-is; relative paths are taken relative to the
        library directory.

        Raises:
            DocumentNotFound: If the file does not exist
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = self.library_dir / path
            logger.debug(f"Resolved relative path '{file_path}' to: {path}")

        if not path.is_file():
            raise DocumentNotFound(path)
        return path

    def cache_dir_for(self, document_id: str) -> Path:
        """
        Cache directory for a document id.

        Raises:
            InvalidDocumentId: If the id does not name a single directory
                directly under the cache root
        """
        cache_root = self.cache_dir.resolve()
        if not document_id or (cache_root / document_id).resolve().parent != cache_root:
            logger.warning(f"Rejected document id {document_id!r}")
            raise InvalidDocumentId(document_id)
        return self.cache_dir / document_id

    def resolve(
        self, file_path: str | Path, document_id: str, require_descriptor: bool = False
    ) -> Path:
        """
        Extract the book if needed and return its content root.

        Args:
            file_path: Absolute or library-relative path to the book file
            document_id: Stable identifier used to name the cache directory
            require_descriptor: Raise instead of falling back to the extraction
                root when no package descriptor is found

        Returns:
            Path: Directory containing the package descriptor

        Raises:
            DocumentNotFound: If the book file is missing
            InvalidDocumentId: If document_id would escape the cache directory
            ExtractionFailed: If unpacking the container fails
            ContentRootNotFound: Only when require_descriptor is True
        """
        book_dir = self.cache_dir_for(document_id)
        book_file = self.resolve_file(file_path)

        if not book_dir.exists():
            book_dir.mkdir(parents=True)
            try:
                self.extract(book_file, book_dir)
            except ExtractionFailed:
                # A half-written cache would be reused on the next open
                shutil.rmtree(book_dir, ignore_errors=True)
                raise
        else:
            logger.debug(f"Reusing extracted cache for {document_id}: {book_dir}")

        content_root = self.find_content_root(book_dir)
        if content_root is not None:
            logger.info(f"Content root for {document_id}: {content_root}")
            return content_root

        if require_descriptor:
            raise ContentRootNotFound(book_dir)

        logger.warning(
            f"No {PACKAGE_DESCRIPTOR_SUFFIX} descriptor under {book_dir}, "
            "falling back to extraction root"
        )
        return book_dir

    def extract(self, book_file: Path, destination: Path) -> None:
        """
        Unpack a container into destination with the external unzip tool.

        Raises:
            ExtractionFailed: On a non-zero exit status or missing tool
        """
        args = [self.unzip_command, "-o", "-q", str(book_file), "-d", str(destination)]
        logger.info(f"Extracting {book_file.name} into {destination}")
        try:
            result = subprocess.run(args, capture_output=True, text=True)
        except OSError as e:
            # Same status a shell reports for a missing command
            raise ExtractionFailed(127, str(e)) from e

        if result.returncode != 0:
            logger.error(
                f"Extraction of {book_file.name} failed ({result.returncode}): "
                f"{result.stderr.strip()}"
            )
            raise ExtractionFailed(result.returncode, result.stderr.strip())

    def find_content_root(self, root: Path) -> Path | None:
        """
        Return the directory of the first package descriptor under root.

        Hidden files and directories are skipped. Directories are walked in
        sorted order so the result is deterministic.
        """
        for path in sorted(root.rglob("*")):
            relative = path.relative_to(root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if path.is_file() and path.suffix.lower() == PACKAGE_DESCRIPTOR_SUFFIX:
                return path.parent
        return None
