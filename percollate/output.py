from __future__ import annotations

import logging
import os
import re
import tempfile
import time
import unicodedata
from pathlib import Path
from typing import Protocol, Sequence

from ebooklib import epub
from lxml import etree
from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError

from .errors import RenderFailed, WriteFailed
from .model import Article, BundleOptions, ComposedDocument, OutputFormat, PrintFragments

logger = logging.getLogger("percollate.output")

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
UNTITLED = "Untitled page"

_NO_SANDBOX_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


def slugify(value: str, fallback: str = UNTITLED) -> str:
    """Filesystem-safe slug made of lowercase ASCII letters, digits and dashes."""

    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    normalized = SLUG_PATTERN.sub("-", normalized.lower()).strip("-")
    if normalized:
        return normalized
    return SLUG_PATTERN.sub("-", fallback.lower()).strip("-")


def batch_name(fmt: OutputFormat, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"percollate-{now_ms}.{fmt.extension}"


def output_path(
    articles: Sequence[Article],
    fmt: OutputFormat,
    options: BundleOptions,
    now_ms: int | None = None,
) -> Path:
    """Explicit ``--output`` first, then the page title, then a timestamped batch name."""

    if options.output:
        return Path(options.output)
    if len(articles) == 1:
        return Path(f"{slugify(articles[0].title or UNTITLED)}.{fmt.extension}")
    return Path(batch_name(fmt, now_ms))


class Renderer(Protocol):
    async def render_pdf(self, source: Path, target: Path, fragments: PrintFragments) -> None: ...

    async def body_html(self, source: Path) -> str: ...


class PlaywrightRenderer:
    """A single headless Chromium shared by every artifact of one invocation.

    The browser is closed on leaving the ``async with`` block, whether or not
    rendering failed.
    """

    def __init__(self, playwright: Playwright, *, sandbox: bool = False) -> None:
        self._playwright = playwright
        self._sandbox = sandbox
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self) -> PlaywrightRenderer:
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=None if self._sandbox else _NO_SANDBOX_ARGS,
            )
            # Emulate a retina display so raster content is rendered at @2x.
            self._context = await self._browser.new_context(
                viewport={"width": 1920, "height": 1080},
                device_scale_factor=2,
            )
        except PlaywrightError as exc:
            await self.close()
            raise RenderFailed(f"Could not launch the staging browser: {exc.message}") from exc
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            logger.info("Closing staging browser")
            browser, self._browser, self._context = self._browser, None, None
            await browser.close()

    async def _open(self, source: Path) -> Page:
        if self._context is None:
            raise RuntimeError("PlaywrightRenderer used outside of 'async with'")
        page = await self._context.new_page()
        await page.goto(source.resolve().as_uri(), wait_until="load")
        logger.info("Loaded temporary HTML file: %s", source.resolve().as_uri())
        return page

    async def render_pdf(self, source: Path, target: Path, fragments: PrintFragments) -> None:
        try:
            page = await self._open(source)
            try:
                await page.pdf(
                    path=str(target),
                    prefer_css_page_size=True,
                    print_background=True,
                    display_header_footer=True,
                    header_template=fragments.header,
                    footer_template=fragments.footer,
                )
            finally:
                await page.close()
        except PlaywrightError as exc:
            raise RenderFailed(f"Could not render PDF: {exc.message}") from exc

    async def body_html(self, source: Path) -> str:
        try:
            page = await self._open(source)
            try:
                return await page.evaluate("() => document.body.innerHTML")
            finally:
                await page.close()
        except PlaywrightError as exc:
            raise RenderFailed(f"Could not render HTML: {exc.message}") from exc


class EpubWriter:
    def __init__(self, language: str = "en") -> None:
        self.language = language

    def write(self, title: str, body_html: str, target: Path) -> None:
        title = title or UNTITLED

        book = epub.EpubBook()
        book.set_identifier(f"percollate-{slugify(title)}")
        book.set_title(title)
        book.set_language(self.language)

        chapter = epub.EpubHtml(title=title, file_name="content.xhtml", lang=self.language)
        chapter.content = body_html
        book.add_item(chapter)

        book.toc = (chapter,)
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = ["nav", chapter]

        try:
            epub.write_epub(str(target), book, {})
        except (epub.EpubException, etree.LxmlError) as exc:
            raise RenderFailed(f"Could not assemble EPUB: {exc}") from exc


def _stage(document: ComposedDocument) -> Path:
    with tempfile.NamedTemporaryFile(
        "w", suffix=".html", prefix="percollate-", delete=False, encoding="utf-8"
    ) as f:
        f.write(document.html)
    staged = Path(f.name)
    logger.info("Temporary HTML file: %s", staged.as_uri())
    return staged


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)


async def write_artifact(
    document: ComposedDocument,
    fmt: OutputFormat,
    target: Path,
    *,
    renderer: Renderer,
    epub_writer: EpubWriter,
    fragments: PrintFragments,
) -> Path:
    """Render ``document`` as ``fmt`` and move the result to ``target``.

    Output is written to a hidden ``.part`` sibling first, so ``target`` only
    appears once it is complete.
    """

    target = Path(target)
    partial = target.with_name(f".{target.name}.part")
    staged: Path | None = None
    try:
        staged = _stage(document)
        target.parent.mkdir(parents=True, exist_ok=True)

        if fmt is OutputFormat.PDF:
            await renderer.render_pdf(staged, partial, fragments)
        else:
            body = await renderer.body_html(staged)
            if fmt is OutputFormat.EPUB:
                epub_writer.write(document.articles[0].title, body, partial)
            else:
                partial.write_text(body, encoding="utf-8")

        os.replace(partial, target)
    except OSError as exc:
        raise WriteFailed(str(target), exc.strerror or str(exc)) from exc
    finally:
        _discard(partial)
        if staged is not None:
            _discard(staged)

    logger.info("Saved %s: %s", fmt.value.upper(), target)
    return target
