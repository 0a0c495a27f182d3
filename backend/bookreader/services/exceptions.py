"""
Reader error types.

Fatal errors (missing file, extraction, malformed descriptor) propagate to the
session boundary. The remaining kinds are recoverable and are normally logged
and degraded around rather than raised to the user.
"""


class ReaderError(Exception):
    """Base class for all errors raised while opening or reading a document."""


class DocumentNotFound(ReaderError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Book file not found at: {path}")


class ExtractionFailed(ReaderError):
    """The container could not be unpacked."""

    def __init__(self, exit_code: int, message: str = ""):
        self.exit_code = exit_code
        detail = f": {message}" if message else ""
        super().__init__(f"Unzip failed with exit code {exit_code}{detail}")


class MalformedDocument(ReaderError):
    """The package descriptor is unparsable or structurally invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to parse EPUB: {reason}")


class ContentRootNotFound(ReaderError):
    def __init__(self, root):
        self.root = root
        super().__init__(f"No package descriptor found under {root}")


class ResourceNotFoundInManifest(ReaderError):
    def __init__(self, idref: str):
        self.idref = idref
        super().__init__(f"Spine item '{idref}' has no manifest entry")


class InvalidDocumentId(ReaderError):
    """The document id cannot name a directory inside the cache."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Invalid document id: {document_id!r}")
