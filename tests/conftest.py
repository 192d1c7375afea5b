"""In-memory stand-ins for the network, readability, Chromium and ebooklib."""

from __future__ import annotations

from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from percollate.errors import ExtractionFailed, FetchFailed, RenderFailed
from percollate.model import Article


def page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


class FakeFetcher:
    def __init__(self, pages: dict[str, str]):
        self.pages = pages
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise FetchFailed(url, "HTTP 404 Not Found")
        return self.pages[url]


class FakeExtractor:
    """Uses the page <title> and the whole <body>; a body without text fails."""

    def extract(self, html: str, url: str) -> Article:
        soup = BeautifulSoup(html, "lxml")
        if soup.body is None or not soup.body.get_text(strip=True):
            raise ExtractionFailed(url, "could not identify the main content")
        title = soup.title.string.strip() if soup.title and soup.title.string else ""
        return Article(url=url, title=title, content=soup.body.decode_contents())


class FakeRenderer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.fragments = []

    async def render_pdf(self, source: Path, target: Path, fragments) -> None:
        self.fragments.append(fragments)
        Path(target).write_bytes(b"%PDF-1.7\n")
        if self.fail:
            raise RenderFailed("Could not render PDF: Target page, context or browser has been closed")
        Path(target).write_bytes(b"%PDF-1.7\n" + Path(source).read_bytes())

    async def body_html(self, source: Path) -> str:
        if self.fail:
            raise RenderFailed("Could not render HTML: net::ERR_FILE_NOT_FOUND")
        soup = BeautifulSoup(Path(source).read_text(encoding="utf-8"), "lxml")
        return soup.body.decode_contents()


class FakeEpubWriter:
    def __init__(self):
        self.calls: list[tuple[str, str, Path]] = []

    def write(self, title: str, body_html: str, target: Path) -> None:
        self.calls.append((title, body_html, Path(target)))
        Path(target).write_text(body_html, encoding="utf-8")


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def epub_writer():
    return FakeEpubWriter()


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    """Run with the temporary directory as cwd so default output names land there."""

    monkeypatch.chdir(tmp_path)
    return tmp_path
