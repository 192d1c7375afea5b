"""Page header/footer fragments for the PDF renderer.

Chromium only accepts header and footer templates as self-contained HTML, so the
``.header-template`` / ``.footer-template`` rules of the stylesheet are copied
into the ``style`` attribute of each fragment's first element.
"""

from __future__ import annotations

import logging

import cssutils
from bs4 import BeautifulSoup

from .model import ComposedDocument, PrintFragments

logger = logging.getLogger("percollate.print_fragments")

# cssutils reports every property it does not know about; the stylesheet is user input.
cssutils.log.setLevel(logging.CRITICAL)

HEADER_SELECTOR = ".header-template"
FOOTER_SELECTOR = ".footer-template"
EMPTY_FRAGMENT = "<span></span>"


def parse_stylesheet(css_text: str) -> cssutils.css.CSSStyleSheet:
    return cssutils.parseString(css_text, validate=False)


def get_style_attribute_value(sheet: cssutils.css.CSSStyleSheet, selector: str) -> str:
    """Declarations of every top-level rule listing ``selector``, as a style attribute value.

    Rules are taken in stylesheet order, so extra CSS appended to the default
    stylesheet ends up later in the attribute and wins.
    """

    declarations = []
    for rule in sheet.cssRules:
        if rule.type != rule.STYLE_RULE:
            continue
        selectors = [s.selectorText.strip() for s in rule.selectorList]
        if selector not in selectors:
            continue

        for prop in rule.style.getProperties(all=True):
            declaration = f"{prop.name}: {prop.value}"
            if prop.priority:
                declaration += f" !{prop.priority}"
            declarations.append(declaration)
    return "; ".join(declarations)


def _fragment(document: BeautifulSoup, selector: str) -> BeautifulSoup:
    template = document.select_one(selector)
    markup = template.decode_contents() if template is not None else EMPTY_FRAGMENT
    return BeautifulSoup(markup, "html.parser")


def _inline(fragment: BeautifulSoup, declarations: str) -> str:
    first = fragment.find(True)
    if first is not None and declarations:
        existing = (first.get("style") or "").strip()
        # Existing inline style comes last so it wins over the stylesheet.
        first["style"] = f"{declarations}; {existing}" if existing else declarations
    return str(fragment)


def extract_print_fragments(
    document: ComposedDocument,
    sheet: cssutils.css.CSSStyleSheet,
) -> PrintFragments:
    dom = document.dom()
    header = _inline(_fragment(dom, HEADER_SELECTOR), get_style_attribute_value(sheet, HEADER_SELECTOR))
    footer = _inline(_fragment(dom, FOOTER_SELECTOR), get_style_attribute_value(sheet, FOOTER_SELECTOR))
    return PrintFragments(header=header, footer=footer)
