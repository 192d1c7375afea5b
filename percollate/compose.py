from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Sequence

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from .errors import NoContent
from .model import Article, BundleOptions, ComposedDocument

logger = logging.getLogger("percollate.compose")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_STYLESHEET = TEMPLATES_DIR / "default.css"
DEFAULT_TEMPLATE = TEMPLATES_DIR / "default.html"


@functools.lru_cache(maxsize=None)
def _environment(search_path: Path) -> Environment:
    # Article markup and the stylesheet go in verbatim; titles, bylines and URLs are escaped.
    return Environment(
        loader=FileSystemLoader(str(search_path)),
        autoescape=True,
        keep_trailing_newline=True,
    )


def stylesheet_path(options: BundleOptions) -> Path:
    return Path(options.style).resolve() if options.style else DEFAULT_STYLESHEET


def template_path(options: BundleOptions) -> Path:
    return Path(options.template).resolve() if options.template else DEFAULT_TEMPLATE


def load_style(options: BundleOptions) -> str:
    return stylesheet_path(options).read_text(encoding="utf-8") + (options.css or "")


def load_template(options: BundleOptions) -> str:
    return template_path(options).read_text(encoding="utf-8")


def _item(article: Article) -> dict:
    return {
        "url": article.url,
        "title": article.title,
        "byline": article.byline,
        "excerpt": article.excerpt,
        "content": Markup(article.content),
    }


def compose(
    articles: Sequence[Article],
    style: str,
    template: str,
    *,
    search_path: Path = TEMPLATES_DIR,
    stylesheet: Path | None = None,
) -> ComposedDocument:
    """Render the articles, in order, into one HTML document.

    ``{% include %}`` and ``{% extends %}`` in ``template`` resolve against
    ``search_path``. Templates also get ``stylesheet``, the path the style was
    read from, for those that link it instead of inlining ``style``.
    """

    if not articles:
        raise NoContent()

    html = _environment(search_path).from_string(template).render(
        items=[_item(a) for a in articles],
        style=Markup(style),
        stylesheet=str(stylesheet or DEFAULT_STYLESHEET),
    )
    logger.debug("Composed %d article(s) into %d chars of HTML", len(articles), len(html))
    return ComposedDocument(html=html, style=style, articles=tuple(articles))


def article_contents(html: str) -> list[str]:
    soup = BeautifulSoup(html, "lxml")
    return [el.decode_contents() for el in soup.select(".article__content")]
