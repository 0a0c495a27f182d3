"""
Shared fixtures: small EPUBs written with ebooklib and a stand-in for the
external unzip process.
"""

import subprocess
import zipfile
from pathlib import Path

import pytest
from ebooklib import epub

from bookreader.config import ReaderConfig

CHAPTERS = [
    ("ch1", "text/ch1.xhtml", "One", 1),
    ("ch2", "text/ch2.xhtml", "Two", 3),
    ("ch3", "text/ch3.xhtml", "Three", 1),
]


def write_epub(path: Path, chapters=CHAPTERS, with_toc: bool = True) -> Path:
    """
    Write an EPUB whose chapters hold roughly `paragraphs` x 1000 characters.

    The TOC nests chapter two (with an anchor) and three under a section.
    """
    book = epub.EpubBook()
    book.set_identifier("test-book")
    book.set_title("Test Book")
    book.set_language("en")

    items = []
    for uid, file_name, title, paragraphs in chapters:
        item = epub.EpubHtml(uid=uid, title=title, file_name=file_name, lang="en")
        body = "".join(f"<p id='p{i}'>{'x' * 1000}</p>" for i in range(paragraphs))
        item.content = f"<html><body><h1 id='sec2'>{title}</h1>{body}</body></html>"
        book.add_item(item)
        items.append(item)

    if with_toc and len(items) >= 3:
        book.toc = (
            epub.Link(items[0].file_name, items[0].title, "toc-1"),
            (
                epub.Section("Part Two", items[1].file_name),
                (
                    epub.Link(f"{items[1].file_name}#sec2", "Two, second half", "toc-2b"),
                    epub.Link(items[2].file_name, items[2].title, "toc-3"),
                ),
            ),
        )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = items

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def epub_file(tmp_path) -> Path:
    library = tmp_path / "books"
    library.mkdir()
    return write_epub(library / "test.epub")


@pytest.fixture
def config(tmp_path) -> ReaderConfig:
    return ReaderConfig(
        library_dir=tmp_path / "books",
        cache_dir=tmp_path / "cache",
        db_path=str(tmp_path / "data" / "reading_progress.db"),
        tick_interval_seconds=0.01,
    )


@pytest.fixture
def fake_unzip(monkeypatch):
    """Replace the unzip process with an in-process extraction."""
    calls = []

    def run(args, **kwargs):
        calls.append(args)
        source, destination = args[3], args[5]
        try:
            with zipfile.ZipFile(source) as archive:
                archive.extractall(destination)
        except zipfile.BadZipFile as e:
            return subprocess.CompletedProcess(args, 9, stdout="", stderr=str(e))
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

    monkeypatch.setattr("bookreader.services.container_resolver.subprocess.run", run)
    return calls


@pytest.fixture
def epub_factory(tmp_path):
    """Write additional EPUBs: epub_factory(name, chapters=..., with_toc=...)."""

    def factory(name: str, **kwargs) -> Path:
        return write_epub(tmp_path / name, **kwargs)

    return factory
