from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

from bs4 import BeautifulSoup

VERSION = "0.1.0"


@dataclass(frozen=True)
class Article:
    url: str
    title: str
    content: str
    byline: str | None = None
    excerpt: str | None = None


class OutputFormat(str, Enum):
    PDF = "pdf"
    EPUB = "epub"
    HTML = "html"

    @property
    def extension(self) -> str:
        return self.value


@dataclass
class BundleOptions:
    individual: bool = False
    output: str | None = None
    style: str | None = None
    css: str | None = None
    template: str | None = None
    sandbox: bool = False

    @classmethod
    def coerce(cls, options: BundleOptions | Mapping[str, Any] | None) -> BundleOptions:
        """Accept either options or a plain mapping with the same keys (unknown keys ignored)."""

        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known})


@dataclass(frozen=True)
class PrintFragments:
    header: str
    footer: str


@dataclass(frozen=True)
class ComposedDocument:
    html: str
    style: str
    articles: tuple[Article, ...]

    def dom(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "lxml")
