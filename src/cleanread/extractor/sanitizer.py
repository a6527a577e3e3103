"""
Allow-list sanitizer for the main-content subtree.

Tags outside the allow-list are unwrapped (their text survives) except for
executable or form elements, which are dropped with their content.
Attributes outside the allow-list are removed, as are ``javascript:`` URLs.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable

from bs4 import BeautifulSoup, Comment, Tag

ALLOWED_TAGS: FrozenSet[str] = frozenset(
    {
        "p", "h1", "h2", "h3", "h4", "h5", "h6",
        "ul", "ol", "li", "blockquote", "pre", "code",
        "strong", "em", "a", "img", "figure", "figcaption",
        "table", "thead", "tbody", "tr", "th", "td",
        "hr", "br", "sub", "sup", "del", "s", "strike", "iframe",
    }
)

ALLOWED_ATTRIBUTES: FrozenSet[str] = frozenset(
    {
        "href", "src", "alt", "title", "class", "id",
        "data-src", "data-original", "data-lazy-src", "data-language", "data-lang",
        "width", "height", "loading", "cite", "colspan", "rowspan",
    }
)

DROPPED_WITH_CONTENT: FrozenSet[str] = frozenset(
    {"script", "style", "noscript", "template", "form", "button", "input", "select", "textarea", "object", "embed"}
)

BLOCK_CONTAINERS: FrozenSet[str] = frozenset(
    {"div", "section", "article", "main", "header", "footer", "aside", "nav", "dl", "dt", "dd", "details", "summary"}
)

URL_ATTRIBUTES = ("href", "src", "cite", "data-src", "data-original", "data-lazy-src")

DEFAULT_PRESERVED_CLASSES: FrozenSet[str] = frozenset({"markdown", "content", "article", "post"})

_CODE_CLASS = re.compile(r"^(language-|lang-|brush:)", re.IGNORECASE)
_MATH_CLASS = re.compile(r"math|latex|katex|mathjax", re.IGNORECASE)


def _is_math_span(el: Tag) -> bool:
    return el.name == "span" and any(_MATH_CLASS.search(c) for c in el.get("class") or ())


def _keep_class(name: str, preserved: FrozenSet[str]) -> bool:
    return name in preserved or bool(_CODE_CLASS.match(name)) or bool(_MATH_CLASS.search(name))


def _clean_attributes(el: Tag, preserved: FrozenSet[str]) -> None:
    for attribute in list(el.attrs):
        lowered = attribute.lower()
        if lowered not in ALLOWED_ATTRIBUTES and not lowered.startswith("data-"):
            del el.attrs[attribute]

    for attribute in URL_ATTRIBUTES:
        value = el.get(attribute)
        if isinstance(value, str) and value.strip().lower().startswith(("javascript:", "vbscript:")):
            del el.attrs[attribute]

    classes = el.get("class")
    if classes is not None:
        kept = [c for c in classes if _keep_class(c, preserved)]
        if kept:
            el["class"] = kept
        else:
            del el.attrs["class"]


def sanitize(root: Tag, preserve_classes: Iterable[str] = ()) -> Tag:
    """Sanitize ``root`` in place against the allow-list and return it."""
    preserved = DEFAULT_PRESERVED_CLASSES | frozenset(preserve_classes)

    for comment in root.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for el in root.find_all(True):
        if el.decomposed:
            continue
        if el.name in DROPPED_WITH_CONTENT:
            el.decompose()
            continue
        if el.name not in ALLOWED_TAGS and not _is_math_span(el):
            if el.name in BLOCK_CONTAINERS:
                # Keep block boundaries visible once the wrapper is gone
                el.insert_before("\n")
                el.insert_after("\n")
            el.unwrap()
            continue
        _clean_attributes(el, preserved)

    return root


def sanitize_html(html: str, preserve_classes: Iterable[str] = ()) -> str:
    """Sanitize a markup fragment and return the cleaned markup."""
    soup = BeautifulSoup(html or "", "lxml")
    sanitize(soup, preserve_classes)
    return str(soup).strip()
