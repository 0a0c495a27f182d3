from pydantic import BaseModel, Field


class SpineItem(BaseModel):
    """Reading-order entry; its position in the spine is its identity."""

    idref: str
    linear: bool = True


class ManifestEntry(BaseModel):
    id: str
    path: str  # relative to the content root
    media_type: str = ""


class TocNode(BaseModel):
    """
    Table of contents node.

    The root node has no label and no target. Targets keep the raw
    "path#fragment" form found in the descriptor.
    """

    label: str | None = None
    target: str | None = None
    children: list["TocNode"] = Field(default_factory=list)

    def split_target(self) -> tuple[str | None, str | None]:
        """Split the target on the first '#' into (path, fragment)."""
        if not self.target:
            return None, None
        path, sep, fragment = self.target.partition("#")
        return path, (fragment if sep and fragment else None)

    def walk(self):
        """Yield (node, level) depth-first, skipping the root itself."""
        stack = [(child, 1) for child in reversed(self.children)]
        while stack:
            node, level = stack.pop()
            yield node, level
            stack.extend((child, level + 1) for child in reversed(node.children))


class DocumentModel(BaseModel):
    """Parsed package descriptor: spine, manifest and table of contents."""

    title: str = ""
    spine: list[SpineItem] = Field(default_factory=list)
    manifest: dict[str, ManifestEntry] = Field(default_factory=dict)
    toc: TocNode = Field(default_factory=TocNode)

    @property
    def chapter_count(self) -> int:
        return len(self.spine)

    def manifest_path(self, spine_index: int) -> str | None:
        """Manifest path of a spine item, or None when the idref is unknown."""
        entry = self.manifest.get(self.spine[spine_index].idref)
        return entry.path if entry else None
