"""DOM rewrites applied to a fetched page before readability runs.

Every pass takes the parsed page and the URL it was fetched from, mutates the
tree in place and can be re-applied safely. ``relative_to_absolute_uris`` has
to run first: the passes after it read ``href``/``src`` to decide what to do.
"""

from __future__ import annotations

import re
from typing import Callable, Iterator
from urllib.parse import unquote, urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

Enhancement = Callable[[BeautifulSoup, str], None]

NO_HREF_CLASS = "no-href"
ANCHOR_CLASS = "anchor"

_IMAGE_PATH_RE = re.compile(r"\.(jpe?g|png|gif|svg|webp|bmp|avif)$", re.IGNORECASE)
_SRCSET_URL_RE = re.compile(r"[\s,]*(\S*)")
_SRCSET_DESCRIPTORS_RE = re.compile(r"([^,]*),?")

_URI_ATTRIBUTES = (
    ("a", "href"),
    ("area", "href"),
    ("img", "src"),
    ("source", "src"),
    ("video", "src"),
    ("video", "poster"),
    ("audio", "src"),
    ("iframe", "src"),
)

_WIKIPEDIA_CHROME = (
    ".mw-editsection",
    ".mw-jump-link",
    ".navbox",
    ".vertical-navbox",
    "#toc",
    ".noprint",
)


def _absolute(base: str, value: str) -> str | None:
    value = value.strip()
    # In-page fragments stay relative so they keep pointing inside the bundle.
    if not value or value.startswith("#"):
        return None
    try:
        return urljoin(base, value)
    except ValueError:
        return None


def _base_url(soup: BeautifulSoup, url: str) -> str:
    base = soup.find("base", href=True)
    if base is None:
        return url
    return _absolute(url, base["href"]) or url


def _srcset_candidates(srcset: str) -> Iterator[tuple[str, str]]:
    """Yield ``(url, descriptors)`` pairs following the HTML srcset grammar.

    A URL runs up to the next whitespace, so commas inside it (``data:`` URIs,
    CDN transform paths) belong to the URL. A URL ending in a comma has no
    descriptors.
    """

    pos = 0
    while True:
        match = _SRCSET_URL_RE.match(srcset, pos)
        src, pos = match.group(1), match.end()
        if not src:
            return
        if src.endswith(","):
            yield src.rstrip(","), ""
            continue
        match = _SRCSET_DESCRIPTORS_RE.match(srcset, pos)
        pos = match.end()
        yield src, match.group(1).strip()


def _absolute_srcset(base: str, srcset: str) -> str:
    candidates = []
    for src, descriptors in _srcset_candidates(srcset):
        src = _absolute(base, src) or src
        candidates.append(f"{src} {descriptors}" if descriptors else src)
    return ", ".join(candidates)


def _sole_child_element(tag: Tag) -> Tag | None:
    """The only element child of ``tag``, provided no text sits next to it."""

    found = None
    for child in tag.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, Tag):
            if found is not None:
                return None
            found = child
        elif isinstance(child, NavigableString) and child.strip():
            return None
    return found


def _add_class(tag: Tag, name: str) -> None:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    if name not in classes:
        tag["class"] = [*classes, name]


def _is_image_url(href: str) -> bool:
    try:
        path = urlparse(href).path
    except ValueError:
        return False
    return bool(_IMAGE_PATH_RE.search(path))


def relative_to_absolute_uris(soup: BeautifulSoup, url: str) -> None:
    base = _base_url(soup, url)

    for tag_name, attr in _URI_ATTRIBUTES:
        for el in soup.find_all(tag_name, attrs={attr: True}):
            absolute = _absolute(base, el[attr])
            if absolute is not None and absolute != el[attr]:
                el[attr] = absolute

    for el in soup.find_all(["img", "source"], attrs={"srcset": True}):
        el["srcset"] = _absolute_srcset(base, el["srcset"])


def images_at_full_size(soup: BeautifulSoup, url: str) -> None:
    """Replace ``<a href=big.png><img src=thumb.png></a>`` with the full-size image.

    The thumbnail's width/height/srcset would otherwise keep the printed
    image at thumbnail resolution.
    """

    for img in soup.select("a > img"):
        anchor = img.parent
        if _sole_child_element(anchor) is not img:
            continue
        href = (anchor.get("href") or "").strip()
        if not href or not _is_image_url(href):
            continue

        img["src"] = href
        for attr in ("width", "height", "srcset"):
            img.attrs.pop(attr, None)
        img.extract()
        anchor.replace_with(img)


def single_img_to_figure(soup: BeautifulSoup, url: str) -> None:
    for p in soup.find_all("p"):
        img = _sole_child_element(p)
        if img is None or img.name != "img":
            continue

        figure = soup.new_tag("figure")
        figure.append(img.extract())

        caption = (img.get("title") or img.get("alt") or "").strip()
        if caption:
            figcaption = soup.new_tag("figcaption")
            figcaption.string = caption
            figure.append(figcaption)

        p.replace_with(figure)


def _has_destination(href: str, targets: set[str], page_url: str) -> bool:
    if not href or href.lower().startswith("javascript:"):
        return False

    if href.startswith("#"):
        fragment = href[1:]
    else:
        try:
            target_url, fragment = urldefrag(href)
        except ValueError:
            # Unparseable hrefs are left as they are.
            return True
        if not fragment or target_url != urldefrag(page_url).url:
            return True

    return bool(fragment) and unquote(fragment) in targets


def no_useless_href(soup: BeautifulSoup, url: str) -> None:
    """Strip links that lead nowhere, keeping their text.

    Stripped links get the ``no-href`` class, and in-page targets get the
    ``anchor`` class. The extractor is told to preserve both.
    """

    targets = {str(el["id"]) for el in soup.find_all(id=True)}
    targets.update(str(a["name"]) for a in soup.find_all("a", attrs={"name": True}))

    for a in soup.find_all("a"):
        if a.get("id") or a.get("name"):
            _add_class(a, ANCHOR_CLASS)

        href = (a.get("href") or "").strip()
        if _has_destination(href, targets, url):
            continue

        for attr in ("href", "target", "rel", "onclick"):
            a.attrs.pop(attr, None)
        _add_class(a, NO_HREF_CLASS)


def wikipedia_specific(soup: BeautifulSoup, url: str) -> None:
    host = (urlparse(url).hostname or "").lower()
    if host != "wikipedia.org" and not host.endswith(".wikipedia.org"):
        return

    for el in soup.select(", ".join(_WIKIPEDIA_CHROME)):
        # Nested matches go away with their ancestor.
        if not el.decomposed:
            el.decompose()


ENHANCEMENTS: tuple[Enhancement, ...] = (
    relative_to_absolute_uris,
    images_at_full_size,
    single_img_to_figure,
    no_useless_href,
    wikipedia_specific,
)


def enhance_page(soup: BeautifulSoup, url: str) -> None:
    for enhancement in ENHANCEMENTS:
        enhancement(soup, url)
