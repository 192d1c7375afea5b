"""Readability wrapper that turns an enhanced page into an :class:`Article`."""

from __future__ import annotations

import logging
import re
from typing import Protocol

from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from .enhancements import ANCHOR_CLASS, NO_HREF_CLASS, enhance_page
from .errors import ExtractionFailed
from .model import Article

logger = logging.getLogger("percollate.extract")

# Classes the enhancement passes put on elements they intend to keep.
PRESERVED_CLASSES = (NO_HREF_CLASS, ANCHOR_CLASS)

_BYLINE_META = (
    {"name": "author"},
    {"property": "article:author"},
    {"name": "byl"},
)
_EXCERPT_META = (
    {"name": "description"},
    {"property": "og:description"},
    {"name": "twitter:description"},
)


class Extractor(Protocol):
    def extract(self, html: str, url: str) -> Article: ...


def clean_page(html: str, url: str) -> str:
    """Parse fetched markup, run the enhancement passes and serialize it back."""

    soup = BeautifulSoup(html, "lxml")
    enhance_page(soup, url)
    return str(soup)


def _meta_content(soup: BeautifulSoup, candidates) -> str | None:
    for attrs in candidates:
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content") and tag["content"].strip():
            return tag["content"].strip()
    return None


def keyword_pattern(classes: tuple[str, ...]) -> re.Pattern:
    """Match a ``class`` attribute value containing one of ``classes`` as a whole class."""

    names = "|".join(re.escape(name) for name in classes)
    return re.compile(rf"(?:^|\s)(?:{names})(?:\s|$)")


class ReadabilityExtractor:
    """Main-content extraction with readability-lxml.

    readability-lxml keeps ``class`` attributes on the elements it returns.
    ``positive_keywords`` only raises the score of candidate blocks carrying
    one of the marker classes, so paragraphs full of neutralized links are not
    dropped as link farms.
    """

    def __init__(self, preserve_classes: tuple[str, ...] = PRESERVED_CLASSES) -> None:
        self.preserve_classes = preserve_classes
        self.positive_keywords = keyword_pattern(preserve_classes)

    def extract(self, html: str, url: str) -> Article:
        document = Document(html, url=url, positive_keywords=self.positive_keywords)
        try:
            content = document.summary(html_partial=True)
            title = document.short_title()
        except Unparseable as exc:
            raise ExtractionFailed(url, f"could not identify the main content: {exc}") from exc

        if not BeautifulSoup(content, "lxml").get_text(strip=True):
            raise ExtractionFailed(url, "could not identify the main content")

        soup = BeautifulSoup(html, "lxml")
        if not title and soup.title and soup.title.string:
            title = soup.title.string.strip()

        logger.debug("Extracted %r (%d chars) from %s", title, len(content), url)
        return Article(
            url=url,
            title=title or "",
            content=content,
            byline=_meta_content(soup, _BYLINE_META),
            excerpt=_meta_content(soup, _EXCERPT_META),
        )
