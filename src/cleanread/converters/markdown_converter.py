"""
Markup-to-document converter built on markdownify.

Element rules (images, code blocks, links, tables, quotes, math spans,
strikethrough, sub/superscript, figure captions) are implemented as
``convert_<tag>`` overrides on a markdownify ``MarkdownConverter`` subclass.
The conversion is pure: no network access, and the same input tree always
yields the same text.
"""

from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple, Union

from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter

from cleanread.utils.urls import clean_tracking_params, resolve_url

TABLE_SIMPLIFIED_NOTICE = "> ⚠️ The original table contained merged cells and was converted to a simplified layout."

LAZY_IMAGE_ATTRIBUTES = ("data-src", "data-original", "data-lazy-src", "src")
MATH_CLASS_MARKERS = ("math", "latex", "katex", "mathjax")

_CODE_CLASS_LANGUAGE = re.compile(r"language-(\w+)|lang-(\w+)|brush:\s*(\w+)", re.IGNORECASE)
_MARKDOWN_SPECIAL = re.compile(r"([\\`*_{}\[\]()#+\-.!|])")

# Plain-text rendering placeholders (private-use code points)
_CODE_MARK = "\ue000"
_BREAK_MARK = "\ue001"
_CODE_PLACEHOLDER = re.compile(rf"{_CODE_MARK}(\d+){_CODE_MARK}")
_TEXT_BLOCK_TAGS = [
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "figure", "figcaption",
    "table", "tr", "ul", "ol", "hr", "div", "section", "article", "main",
]

# Ordered content sniffers; the first match wins.
LANGUAGE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("python", re.compile(r"^(def |import |from |class .*:|print\(|# |if __name__)", re.MULTILINE)),
    ("javascript", re.compile(r"^(const |let |var |function |=> |console\.|document\.|window\.)", re.MULTILINE)),
    ("typescript", re.compile(r"^(interface |type |: string|: number|: boolean|export class)", re.MULTILINE)),
    ("java", re.compile(r"^(public class|private |protected |System\.out|import java\.)", re.MULTILINE)),
    ("html", re.compile(r"^(<div|<span|<p>|<img|<!DOCTYPE)", re.MULTILINE | re.IGNORECASE)),
    ("css", re.compile(r"^(\.[a-z]|#[a-z]|@media|@import|body\s*\{)", re.MULTILINE)),
    ("bash", re.compile(r"^(\$ |sudo |apt |npm |git |curl |wget |echo )", re.MULTILINE)),
    ("json", re.compile(r"^\s*[{\[][\s\S]*[\"'][\s\S]*[\"']\s*:")),
    ("yaml", re.compile(r"^([a-z_]+:\s|-\s+[a-z]|---\s*$)", re.MULTILINE)),
    ("sql", re.compile(r"^(SELECT|INSERT|UPDATE|DELETE|CREATE TABLE|FROM|WHERE)", re.MULTILINE | re.IGNORECASE)),
    ("rust", re.compile(r"^(fn |let mut |impl |struct |use |mod |cargo)", re.MULTILINE)),
    ("go", re.compile(r"^(package |func |import \(\s*\"|\tgo )", re.MULTILINE)),
)

# Line-number decorations, stripped only when every non-empty line carries one
_LINE_NUMBER_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^\s*\d+[:.)]\s"),
    re.compile(r"^\s*\d+\s*\|\s"),
    re.compile(r"^\s*\d+\s+"),
)


def detect_language(code: str) -> str:
    """Guess a fence language from the code itself; empty string when unsure."""
    for language, pattern in LANGUAGE_PATTERNS:
        if pattern.search(code):
            return language
    return ""


def strip_line_numbers(code: str) -> str:
    lines = code.split("\n")
    content_lines = [line for line in lines if line.strip()]
    if content_lines:
        for pattern in _LINE_NUMBER_PATTERNS:
            if all(pattern.match(line) for line in content_lines):
                lines = [pattern.sub("", line, count=1) for line in lines]
                break
    return "\n".join(line.rstrip() for line in lines).strip("\n")


def escape_markdown(text: str) -> str:
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


def _chomp(text: str) -> Tuple[str, str, str]:
    """Split surrounding whitespace off inline text so markers hug the content."""
    prefix = " " if text and text[0] == " " else ""
    suffix = " " if text and text[-1] == " " else ""
    return prefix, suffix, text.strip()


def _class_string(el: Tag) -> str:
    classes = el.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


class _RuleConverter(MarkdownConverter):
    """markdownify converter with the extraction rule set applied."""

    def __init__(self, base_url: Optional[str] = None, **options):
        super().__init__(**options)
        self.base_url = base_url

    def _resolve(self, url: str) -> str:
        return resolve_url(url.strip(), self.base_url)

    # -- inline ---------------------------------------------------------

    def _wrap(self, text: str, opening: str, closing: Optional[str] = None) -> str:
        prefix, suffix, text = _chomp(text or "")
        if not text:
            return ""
        return f"{prefix}{opening}{text}{closing if closing is not None else opening}{suffix}"

    def convert_em(self, el, text, *args, **kwargs):
        return self._wrap(text, "_")

    convert_i = convert_em

    def convert_strong(self, el, text, *args, **kwargs):
        return self._wrap(text, "**")

    convert_b = convert_strong

    def convert_del(self, el, text, *args, **kwargs):
        return self._wrap(text, "~~")

    convert_s = convert_del
    convert_strike = convert_del

    def convert_sup(self, el, text, *args, **kwargs):
        return self._wrap(text, "<sup>", "</sup>")

    def convert_sub(self, el, text, *args, **kwargs):
        return self._wrap(text, "<sub>", "</sub>")

    def convert_span(self, el, text, *args, **kwargs):
        class_string = _class_string(el).lower()
        if any(marker in class_string for marker in MATH_CLASS_MARKERS):
            content = el.get_text().strip()
            return f"${content}$" if content else ""
        return text

    def convert_a(self, el, text, *args, **kwargs):
        href = (el.get("href") or "").strip()
        text = (text or "").strip()

        if not href or href.startswith("#") or href.lower().startswith("javascript:"):
            return text

        href = clean_tracking_params(self._resolve(href))

        if not text or text == href or text == (el.get("href") or "").strip():
            return f"<{href}>"

        title = (el.get("title") or "").strip()
        if title:
            title = title.replace('"', '\\"')
            return f'[{text}]({href} "{title}")'
        return f"[{text}]({href})"

    def convert_img(self, el, text, *args, **kwargs):
        src = ""
        for attribute in LAZY_IMAGE_ATTRIBUTES:
            value = (el.get(attribute) or "").strip()
            if value:
                src = value
                break

        if not src or src.startswith(("data:image", "blob:")):
            return ""

        src = self._resolve(src)
        alt = escape_markdown((el.get("alt") or "").strip())
        title = escape_markdown((el.get("title") or "").strip())

        target = src
        if title:
            target += f' "{title}"'

        width = (el.get("width") or "").strip()
        height = (el.get("height") or "").strip()
        if width.isdigit() and height.isdigit():
            target += f" ={width}x{height}"

        return f"![{alt}]({target})"

    # -- blocks ---------------------------------------------------------

    def convert_pre(self, el, text, *args, **kwargs):
        code_el = el.find("code")
        source = code_el if code_el is not None else el
        code = strip_line_numbers(source.get_text())
        if not code:
            return ""
        language = self._code_language(el, code_el, code)
        return f"\n\n```{language}\n{code}\n```\n\n"

    def _code_language(self, pre: Tag, code_el: Optional[Tag], code: str) -> str:
        candidates = [code_el, pre] if code_el is not None else [pre]
        for node in candidates:
            match = _CODE_CLASS_LANGUAGE.search(_class_string(node))
            if match:
                return next(group for group in match.groups() if group).lower()
        for node in candidates:
            for attribute in ("data-language", "data-lang"):
                value = (node.get(attribute) or "").strip()
                if value:
                    return value.lower()
        return detect_language(code)

    def convert_blockquote(self, el, text, *args, **kwargs):
        text = (text or "").strip()
        if not text:
            return ""
        lines = [f"> {line}" if line.strip() else ">" for line in text.split("\n")]
        quoted = "\n".join(lines)
        cite = (el.get("cite") or "").strip()
        if cite:
            quoted += f"\n> — <{self._resolve(cite)}>"
        return f"\n\n{quoted}\n\n"

    def convert_figcaption(self, el, text, *args, **kwargs):
        text = (text or "").strip()
        if not text:
            return ""
        return f"\n\n*{text}*\n\n"

    def convert_hr(self, el, text, *args, **kwargs):
        return "\n\n---\n\n"

    def convert_table(self, el, text, *args, **kwargs):
        converted = super().convert_table(el, text, *args, **kwargs)
        if el.select_one("[colspan], [rowspan]") is not None:
            converted = converted.rstrip("\n") + f"\n\n{TABLE_SIMPLIFIED_NOTICE}\n\n"
        return converted


class DocumentConverter:
    """
    Converts sanitized markup into the canonical document dialect
    (ATX headings, fenced code, ``-`` bullets) or into plain text.
    """

    def __init__(self) -> None:
        self._options = {
            "heading_style": "ATX",
            "bullets": "-",
            "code_language": "",
            "newline_style": "backslash",
        }

    def convert(self, html: Union[str, Tag], base_url: Optional[str] = None) -> str:
        """Convert markup (string or parsed tree) to markdown."""
        soup = html if isinstance(html, Tag) else BeautifulSoup(html or "", "lxml")
        converter = _RuleConverter(base_url=base_url, **self._options)
        markdown = converter.convert_soup(soup)
        return _tidy(markdown)

    def convert_to_text(self, html: Union[str, Tag]) -> str:
        """
        Plain-text rendition.

        Block elements become paragraphs separated by blank lines, inline
        whitespace is collapsed, ``<br>`` becomes a line break and code blocks
        keep their own line structure.
        """
        # Work on a private copy; the caller's tree is left as it was
        soup = BeautifulSoup(str(html) if isinstance(html, Tag) else (html or ""), "lxml")

        code_blocks: List[str] = []
        for pre in soup.find_all("pre"):
            code_blocks.append(strip_line_numbers(pre.get_text()))
            pre.replace_with(f"\n\n{_CODE_MARK}{len(code_blocks) - 1}{_CODE_MARK}\n\n")
        for br in soup.find_all("br"):
            br.replace_with(_BREAK_MARK)
        for block in soup.find_all(_TEXT_BLOCK_TAGS):
            block.insert_before("\n\n")
            block.insert_after("\n\n")

        blocks: List[str] = []
        for chunk in re.split(r"\n\s*\n", soup.get_text()):
            text = " ".join(chunk.split())
            if not text:
                continue
            placeholder = _CODE_PLACEHOLDER.fullmatch(text)
            if placeholder:
                code = code_blocks[int(placeholder.group(1))]
                if code:
                    blocks.append(code)
                continue
            text = re.sub(rf"\s*{_BREAK_MARK}\s*", "\n", text).strip()
            if text:
                blocks.append(text)
        return "\n\n".join(blocks)


def _tidy(markdown: str) -> str:
    markdown = re.sub(r"[ \t]+\n", "\n", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()
