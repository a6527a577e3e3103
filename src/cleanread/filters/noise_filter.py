"""
Noise filter: removes page chrome from a parsed document and boilerplate
phrases from converted text.

Structural filtering works on a BeautifulSoup tree in place:
1. Categorized selector library (navigation, sidebar, social, comments, ads,
   recommendations, footer, interactive overlays, hidden elements)
2. Optional density pass for link-farm style blocks (aggressive mode)
3. Bounded fixed-point sweep of empty elements

Nodes that wrap substantive embedded content (code, tables, images with more
than 100 characters of text) are never removed by a selector match.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

import soupsieve
import structlog
from bs4 import BeautifulSoup, Tag

from cleanread.protocols import ExtractionOptions, SiteRule

logger = structlog.get_logger(__name__)

# ============================================================================
# Selector library
# ============================================================================

NOISE_SELECTORS: Dict[str, Tuple[str, ...]] = {
    "navigation": (
        "nav", "header", ".header", ".nav", ".navbar", ".menu",
        ".breadcrumb", ".breadcrumbs", "#nav", "#header", ".top-bar",
    ),
    "sidebar": (
        "aside", ".sidebar", ".side-bar", ".widget", ".widgets",
        ".related-posts", ".popular-posts", ".recent-posts",
        ".tag-cloud", ".categories", ".archive", ".toc", ".table-of-contents",
    ),
    "social": (
        ".share", ".sharing", ".social-share", ".social-media",
        ".follow-us", ".subscribe", ".newsletter", ".email-subscription",
        ".wechat", ".weixin", ".qr-code", ".qrcode",
    ),
    "comments": (
        ".comments", ".comment-section", ".disqus", "#disqus_thread",
        ".giscus", ".utterances", "#comment", ".comment-list",
        ".fb-comments", ".remark42",
    ),
    "ads": (
        ".ad", ".ads", ".advertisement", ".sponsored", ".promotion",
        ".affiliate", ".banner", ".popup", ".modal", ".overlay",
        ".google-ad", ".adsbygoogle", '[id*="google_ads"]',
    ),
    "recommendations": (
        ".recommend", ".recommended", ".related", ".similar",
        ".you-may-like", ".more-articles", ".read-more",
        ".next-article", ".prev-article", ".pagination",
        ".post-navigation", ".nav-links",
    ),
    "footer": (
        "footer", ".footer", ".copyright", ".legal", ".privacy-policy",
        ".terms-of-use", ".site-info", ".site-footer", ".bottom-bar",
    ),
    "interactive": (
        ".cookie-consent", ".gdpr", ".popup-overlay", ".modal-backdrop",
        ".loading", ".spinner", ".back-to-top", ".scroll-top",
        ".floating-button", ".fixed-bar",
    ),
    "hidden": (
        "[hidden]", ".hidden", ".invisible", ".sr-only", ".screen-reader",
        '[style*="display: none"]', '[style*="display:none"]',
        '[style*="visibility: hidden"]', '[style*="visibility:hidden"]',
        '[aria-hidden="true"]', ".d-none", ".hide",
    ),
}

AGGRESSIVE_SELECTORS: Tuple[str, ...] = (
    "div:has(> script)",
    "div:has(> iframe)",
    "section:has(.sponsored)",
)

PROTECTED_CONTENT_SELECTOR = "pre, code, table, img"
PROTECTED_TEXT_LENGTH = 100

DENSITY_EXEMPT_SELECTOR = "img, code, pre, table, blockquote"

VOID_ELEMENTS = frozenset(
    {"br", "hr", "img", "input", "meta", "link", "area", "base", "col", "embed", "param", "source", "track", "wbr"}
)
MEDIA_ELEMENTS = frozenset({"img", "video", "audio", "iframe", "canvas", "svg", "picture", "source", "object", "embed"})
MEDIA_SELECTOR = "img, video, audio, iframe, canvas, svg, picture, object, embed"
TABLE_STRUCTURE = frozenset({"table", "thead", "tbody", "tfoot", "tr", "td", "th", "colgroup", "col"})
NEVER_REMOVED = frozenset({"html", "head", "body"})

MAX_EMPTY_SWEEPS = 10

# ============================================================================
# Text noise patterns
# ============================================================================

TEXT_NOISE_PATTERNS: Tuple[Pattern[str], ...] = (
    # Chinese boilerplate
    re.compile(r"^(推荐阅读|相关文章|延伸阅读|热门文章|猜你喜欢|相关阅读)[：:]\s*", re.MULTILINE),
    re.compile(r"(关注|扫码|微信|公众号|二维码|订阅|分享|收藏|点赞|在看)[^\n]{0,30}"),
    re.compile(r"(本文来源|文章来源|原文链接|本文链接)[：:][^\n]*"),
    re.compile(r"(版权声明|免责声明|侵权投诉|法律顾问)[^\n]{0,50}"),
    re.compile(r"(相关推荐)[：:][^\n]*"),
    re.compile(r"(\d{1,2}分钟阅读|阅读\s*\d+|浏览\s*\d+)[^\n]*"),
    re.compile(r"(编辑：|作者：|来源：|原标题：)[^\n]*"),
    re.compile(r"(点击|戳|查看|访问)[^\n]{0,20}(原文|链接|这里|此处)[^\n]*"),
    # English boilerplate
    re.compile(r"^(Related Articles?|Recommended|You May Also Like|More from)[：:]\s*", re.MULTILINE | re.IGNORECASE),
    re.compile(r"\b(Share this|Follow us|Subscribe to|Sign up for)\b[^\n]*", re.IGNORECASE),
    re.compile(r"\b(Advertisement|Sponsored|Promoted|Partner Content)\b[^\n]*", re.IGNORECASE),
    re.compile(r"\b(Originally published|Updated on|Posted on)\b[^\n]*", re.IGNORECASE),
    re.compile(r"\b(Editor['’]s note|About the author)\b[^\n]*", re.IGNORECASE),
    # Generic
    re.compile(r"\[?\b(Read more|Learn more|Continue reading|Click here)\b\]?[^\n]*", re.IGNORECASE),
    re.compile(r"\[?\b(Back to top|Scroll to top)\b\]?[^\n]*", re.IGNORECASE),
    re.compile(r"^\s*\[?Top\]?\s*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"<!--.*?-->", re.DOTALL),
    re.compile(r"\[\s*\d{1,2}\s*\](?!\()"),
    re.compile(r"^[ \t]*Photo by\s+.*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*Image:.*$", re.MULTILINE | re.IGNORECASE),
)

_FENCE_LINE = re.compile(r"^\s*```")


class NoiseFilter:
    """
    Rule-driven structural and textual noise removal.

    The instance only caches compiled selector lists; it holds no per-document
    state and can be shared between concurrent extractions.
    """

    def __init__(self) -> None:
        self._selector_cache: Dict[Tuple, List[str]] = {}

    # ------------------------------------------------------------------
    # Structural filtering
    # ------------------------------------------------------------------

    def filter(
        self,
        document: BeautifulSoup,
        options: Optional[ExtractionOptions] = None,
        site_rule: Optional[SiteRule] = None,
    ) -> BeautifulSoup:
        """Remove noise from ``document`` in place and return it."""
        options = options or ExtractionOptions()

        if site_rule and site_rule.transform:
            site_rule.transform(document)

        selectors = self._selectors_for(options, site_rule)
        removed = self._remove_nodes(document, selectors, options.preserve_classes)

        density_removed = 0
        if options.aggressive_noise_removal:
            density_removed = self._remove_low_density_blocks(document)

        root = document.body or document
        swept = self._clean_empty_nodes(root)

        if site_rule and site_rule.content_callback:
            site_rule.content_callback(document)

        logger.debug(
            "Noise filter applied",
            selectors=len(selectors),
            removed=removed,
            density_removed=density_removed,
            empty_removed=swept,
            aggressive=options.aggressive_noise_removal,
        )
        return document

    def _selectors_for(self, options: ExtractionOptions, site_rule: Optional[SiteRule]) -> List[str]:
        extra = tuple(site_rule.remove_selectors) if site_rule else ()
        cache_key = (
            options.aggressive_noise_removal,
            options.preserve_comments,
            options.keep_recommendations,
            options.custom_selectors,
            extra,
        )
        selectors = self._selector_cache.get(cache_key)
        if selectors is None:
            selectors = self.build_selector_list(options, extra)
            self._selector_cache[cache_key] = selectors
        return selectors

    @staticmethod
    def build_selector_list(options: ExtractionOptions, extra_selectors: Iterable[str] = ()) -> List[str]:
        """Assemble the de-duplicated selector list for a set of options."""
        selectors: List[str] = []
        for category in ("navigation", "sidebar", "social", "ads", "footer", "interactive", "hidden"):
            selectors.extend(NOISE_SELECTORS[category])

        if not options.preserve_comments:
            selectors.extend(NOISE_SELECTORS["comments"])

        if not options.keep_recommendations:
            selectors.extend(NOISE_SELECTORS["recommendations"])

        if options.aggressive_noise_removal:
            selectors.extend(AGGRESSIVE_SELECTORS)

        selectors.extend(extra_selectors)
        selectors.extend(options.custom_selectors)

        return list(dict.fromkeys(selectors))

    def _remove_nodes(self, document: BeautifulSoup, selectors: List[str], preserve_classes: frozenset) -> int:
        removed = 0
        for selector in selectors:
            try:
                nodes = document.select(selector)
            except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError) as e:
                logger.debug("Skipping invalid selector", selector=selector, error=str(e))
                continue

            for node in nodes:
                if node.decomposed or node.name in NEVER_REMOVED:
                    continue
                if self._is_preserved(node, preserve_classes) or self.contains_valid_content(node):
                    continue
                node.decompose()
                removed += 1
        return removed

    @staticmethod
    def _is_preserved(node: Tag, preserve_classes: frozenset) -> bool:
        if not preserve_classes:
            return False
        if preserve_classes.intersection(node.get("class") or ()):
            return True
        return any(
            preserve_classes.intersection(child.get("class") or ())
            for child in node.find_all(class_=True)
        )

    @staticmethod
    def contains_valid_content(node: Tag) -> bool:
        """True when ``node`` wraps code, a table or an image and carries real text."""
        if node.select_one(PROTECTED_CONTENT_SELECTOR) is None:
            return False
        return len(node.get_text()) > PROTECTED_TEXT_LENGTH

    @staticmethod
    def _remove_low_density_blocks(document: BeautifulSoup) -> int:
        removed = 0
        for block in document.select("p, div"):
            if block.decomposed:
                continue
            text = block.get_text()
            words = len(text.split())
            commas = text.count(",")
            tags = len(block.find_all(True))

            # Lots of words, little punctuation and a dense tag structure
            if words > 50 and commas < 2 and tags > words / 10:
                if block.select_one(DENSITY_EXEMPT_SELECTOR) is None:
                    block.decompose()
                    removed += 1
        return removed

    @staticmethod
    def _clean_empty_nodes(root: Tag) -> int:
        removed = 0
        for _ in range(MAX_EMPTY_SWEEPS):
            changed = False
            for node in root.find_all(True):
                if node.decomposed:
                    continue
                name = node.name
                if name in VOID_ELEMENTS or name in MEDIA_ELEMENTS or name in TABLE_STRUCTURE:
                    continue
                if node.get_text().strip() or node.select_one(MEDIA_SELECTOR) is not None:
                    continue
                node.decompose()
                removed += 1
                changed = True
            if not changed:
                break
        return removed

    # ------------------------------------------------------------------
    # Text post-processing
    # ------------------------------------------------------------------

    def post_process_text(self, text: str) -> str:
        """Strip boilerplate phrases and normalize document formatting."""
        segments = []
        for is_code, segment in _split_fenced(text):
            if is_code:
                segments.append(segment)
                continue
            for pattern in TEXT_NOISE_PATTERNS:
                segment = pattern.sub("", segment)
            segments.append(_normalize_prose(segment))

        cleaned = "".join(segments)
        cleaned = _tidy_code_fences(cleaned)
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    def clear_cache(self) -> None:
        self._selector_cache.clear()


def _split_fenced(text: str) -> List[Tuple[bool, str]]:
    """Split text into alternating prose and fenced-code segments, fences included in code."""
    segments: List[Tuple[bool, str]] = []
    buffer: List[str] = []
    in_code = False
    for line in text.splitlines(keepends=True):
        if _FENCE_LINE.match(line):
            if in_code:
                buffer.append(line)
                segments.append((True, "".join(buffer)))
                buffer = []
                in_code = False
                continue
            if buffer:
                segments.append((False, "".join(buffer)))
            buffer = [line]
            in_code = True
            continue
        buffer.append(line)
    if buffer:
        # An unterminated fence is still treated as code
        segments.append((in_code, "".join(buffer)))
    return segments


def _normalize_prose(text: str) -> str:
    text = re.sub(r"(\n---\n){2,}", "\n---\n", text)
    # Empty list items
    text = re.sub(r"^[ \t]*[-*+][ \t]*$", "", text, flags=re.MULTILINE)
    # "-item" -> "- item"
    text = re.sub(r"^([ \t]*)([-+])(?=[^\s\-+])", r"\1\2 ", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n{3,}", "\n\n", text)
    # "##Heading" -> "## Heading"
    text = re.sub(r"^(#{1,6})([^#\s])", r"\1 \2", text, flags=re.MULTILINE)
    # Orphan footnote markers
    text = re.sub(r"^[ \t]*\[\d+\][ \t]*$", "", text, flags=re.MULTILINE)
    # Tighten list spacing
    text = re.sub(r"^([-*+]\s.+)\n{2,}(?=[-*+]\s)", r"\1\n", text, flags=re.MULTILINE)
    # Empty link targets
    text = re.sub(r"\[([^\]]+)\]\(\s*\)", r"\1", text)
    return text


def _tidy_code_fences(text: str) -> str:
    """Normalize ``language-x`` fence tags and drop blank lines hugging fence bodies."""
    lines = text.split("\n")
    out: List[str] = []
    in_code = False
    for line in lines:
        if _FENCE_LINE.match(line):
            if not in_code:
                line = re.sub(r"```language-(\w+)", r"```\1", line)
                out.append(line)
                in_code = True
            else:
                while out and not out[-1].strip() and not _FENCE_LINE.match(out[-1]):
                    out.pop()
                out.append(line)
                in_code = False
            continue
        if in_code and not line.strip() and out and _FENCE_LINE.match(out[-1]):
            continue
        out.append(line)
    return "\n".join(out)
