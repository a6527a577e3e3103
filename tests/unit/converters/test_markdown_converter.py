"""
Unit tests for the markdownify-based DocumentConverter and its helpers.
"""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from cleanread.converters.markdown_converter import (
    TABLE_SIMPLIFIED_NOTICE,
    DocumentConverter,
    detect_language,
    escape_markdown,
    strip_line_numbers,
)


@pytest.fixture
def converter():
    return DocumentConverter()


class TestBasicConversion:
    """Headings, emphasis and code blocks."""

    def test_heading_strong_and_fenced_code(self, converter):
        html = '<h1>T</h1><p>Hello <strong>world</strong></p><pre><code class="language-js">let x=1;</code></pre>'
        markdown = converter.convert(html)

        assert "# T" in markdown
        assert "Hello **world**" in markdown
        assert "```js\nlet x=1;\n```" in markdown

    def test_conversion_is_deterministic(self, converter):
        html = "<h2>Sub</h2><ul><li>one</li><li>two</li></ul>"
        assert converter.convert(html) == converter.convert(html)

    def test_bullets_and_emphasis(self, converter):
        markdown = converter.convert("<ul><li>one</li><li><em>two</em></li></ul>")
        assert "- one" in markdown
        assert "- _two_" in markdown

    def test_accepts_parsed_tree(self, converter):
        soup = BeautifulSoup("<p>Parsed <strong>tree</strong></p>", "lxml")
        assert converter.convert(soup) == "Parsed **tree**"

    def test_strikethrough_and_scripts(self, converter):
        markdown = converter.convert("<p>H<sub>2</sub>O, x<sup>2</sup> and <del>old</del></p>")
        assert "H<sub>2</sub>O" in markdown
        assert "x<sup>2</sup>" in markdown
        assert "~~old~~" in markdown

    def test_math_span(self, converter):
        markdown = converter.convert('<p>Energy <span class="math">E=mc^2</span> holds.</p>')
        assert "$E=mc^2$" in markdown

    def test_figcaption_and_rule(self, converter):
        markdown = converter.convert("<figure><figcaption>A caption</figcaption></figure><hr><p>After</p>")
        assert "*A caption*" in markdown
        assert "---" in markdown


class TestCodeBlocks:
    """Fence language detection and line-number cleanup."""

    def test_language_from_data_attribute(self, converter):
        markdown = converter.convert('<pre data-lang="Ruby"><code>puts 1</code></pre>')
        assert markdown.startswith("```ruby\n")

    def test_language_detected_from_content(self, converter):
        markdown = converter.convert("<pre>def main():\n    return 1</pre>")
        assert markdown.startswith("```python\n")
        assert "    return 1" in markdown

    def test_line_numbers_stripped(self, converter):
        markdown = converter.convert('<pre><code class="language-text">1  first\n2  second</code></pre>')
        assert "```text\nfirst\nsecond\n```" in markdown

    def test_empty_pre_dropped(self, converter):
        assert "```" not in converter.convert("<pre>   </pre><p>Body</p>")


class TestLinksAndImages:
    """Link resolution, tracking cleanup and image rules."""

    def test_relative_link_resolved_and_tracking_removed(self, converter):
        markdown = converter.convert(
            '<p><a href="/docs?utm_source=feed&amp;id=7">Docs</a></p>', base_url="https://example.com/a/"
        )
        assert "[Docs](https://example.com/docs?id=7)" in markdown

    def test_fragment_and_javascript_links_become_text(self, converter):
        markdown = converter.convert('<p><a href="#top">Jump</a> <a href="javascript:void(0)">Run</a></p>')
        assert "Jump" in markdown
        assert "Run" in markdown
        assert "](" not in markdown

    def test_bare_url_link_becomes_autolink(self, converter):
        markdown = converter.convert('<p><a href="https://example.com/x">https://example.com/x</a></p>')
        assert "<https://example.com/x>" in markdown

    def test_link_title_kept(self, converter):
        markdown = converter.convert('<p><a href="https://example.com/" title="Home page">Home</a></p>')
        assert '[Home](https://example.com/ "Home page")' in markdown

    def test_lazy_image_with_dimensions(self, converter):
        markdown = converter.convert(
            '<p><img data-src="/img/a.png" src="data:image/gif;base64,R0lG" alt="Diagram" width="640" height="480"></p>',
            base_url="https://example.com/post",
        )
        assert "![Diagram](https://example.com/img/a.png =640x480)" in markdown

    def test_inline_data_image_dropped(self, converter):
        markdown = converter.convert('<p>Text<img src="data:image/png;base64,AAAA" alt="x"></p>')
        assert "![" not in markdown

    def test_protocol_relative_image(self, converter):
        markdown = converter.convert('<p><img src="//cdn.example.com/a.png" alt="A"></p>')
        assert "![A](https://cdn.example.com/a.png)" in markdown


class TestBlocks:
    """Quotes and tables."""

    def test_blockquote_with_cite(self, converter):
        markdown = converter.convert(
            '<blockquote cite="https://source.example/q"><p>Quoted words</p></blockquote>'
        )
        assert "> Quoted words" in markdown
        assert "> — <https://source.example/q>" in markdown

    def test_merged_cell_table_gets_notice(self, converter):
        html = '<table><tr><th colspan="2">Head</th></tr><tr><td>a</td><td>b</td></tr></table>'
        assert TABLE_SIMPLIFIED_NOTICE in converter.convert(html)

    def test_simple_table_has_no_notice(self, converter):
        html = "<table><tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr></table>"
        markdown = converter.convert(html)
        assert TABLE_SIMPLIFIED_NOTICE not in markdown
        assert "| A | B |" in markdown


class TestPlainText:
    """convert_to_text block handling."""

    def test_blocks_become_paragraphs(self, converter):
        text = converter.convert_to_text("<h1>T</h1><p>Hello <b>world</b></p><ul><li>one</li><li>two</li></ul>")
        assert text == "T\n\nHello world\n\none\n\ntwo"

    def test_line_breaks_and_code(self, converter):
        text = converter.convert_to_text("<p>line one<br>line two</p><pre>if x:\n    y()</pre>")
        assert text == "line one\nline two\n\nif x:\n    y()"


class TestHelpers:
    """Module-level helpers."""

    @pytest.mark.parametrize(
        "code, language",
        [
            ("def foo():\n    return 1", "python"),
            ("const x = 1;", "javascript"),
            ("SELECT * FROM users", "sql"),
            ("package main\n\nfunc main() {}", "go"),
            ("just some words", ""),
        ],
    )
    def test_detect_language(self, code, language):
        assert detect_language(code) == language

    def test_strip_line_numbers_requires_every_line(self):
        assert strip_line_numbers("1  foo\n2  bar") == "foo\nbar"
        assert strip_line_numbers("1  foo\nbar") == "1  foo\nbar"

    def test_escape_markdown(self):
        assert escape_markdown("a*b_c[d]") == "a\\*b\\_c\\[d\\]"
