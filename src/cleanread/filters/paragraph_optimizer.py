"""
Paragraph optimizer: merges paragraphs that markup split in the middle of a
sentence or a quotation.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

import structlog
from bs4 import BeautifulSoup, NavigableString, Tag

logger = structlog.get_logger(__name__)

SHORT_PARAGRAPH_LENGTH = 50

_SOFT_ENDING = re.compile(r"[，：；,\-:;]$")
_TERMINAL_ENDING = re.compile(r"[.!?。！？]$")
_LOWERCASE_START = re.compile(r"^[a-z一-龥]")
_QUOTE_ENDING = re.compile(r"[\"'”’]$")
_QUOTE_START = re.compile(r"^[\"'“‘]")
_SENTENCE_PUNCTUATION = re.compile(r"[.!?。！？]")


class ParagraphOptimizer:
    """Merges adjacent ``<p>`` siblings that belong to the same sentence."""

    def optimize(self, document: BeautifulSoup) -> BeautifulSoup:
        paragraphs: List[Tag] = document.find_all("p")
        merged = 0

        i = 0
        while i < len(paragraphs) - 1:
            current = paragraphs[i]
            following = paragraphs[i + 1]

            if current.decomposed or following.decomposed or current.find_next_sibling() is not following:
                i += 1
                continue

            current_text = current.get_text().strip()
            following_text = following.get_text().strip()

            if self.should_merge(current_text, following_text):
                self._merge_into(current, following)
                del paragraphs[i + 1]
                merged += 1
                # Re-check the grown paragraph against its new neighbour
                continue
            i += 1

        if merged:
            logger.debug("Paragraphs merged", merged=merged)
        return document

    @staticmethod
    def should_merge(current: str, following: str) -> bool:
        """Decide whether two adjacent paragraph texts form one paragraph."""
        if not current or not following:
            return False

        has_open_ending = bool(_SOFT_ENDING.search(current)) or not _TERMINAL_ENDING.search(current)
        starts_lower = bool(_LOWERCASE_START.match(following))
        both_short = len(current) < SHORT_PARAGRAPH_LENGTH and len(following) < SHORT_PARAGRAPH_LENGTH

        if has_open_ending and starts_lower and both_short:
            return True
        return bool(_QUOTE_ENDING.search(current)) and bool(_QUOTE_START.match(following))

    @staticmethod
    def _merge_into(target: Tag, source: Tag) -> None:
        # Move children so inline markup (links, emphasis) survives the merge
        last = target.contents[-1] if target.contents else None
        if isinstance(last, NavigableString):
            stripped = last.rstrip()
            if stripped != last:
                last.replace_with(stripped)

        first = source.contents[0] if source.contents else None
        if isinstance(first, NavigableString):
            stripped = first.lstrip()
            if stripped != first:
                first.replace_with(stripped)

        target.append(" ")
        for child in list(source.contents):
            target.append(child.extract())
        source.decompose()

    @staticmethod
    def analyze_paragraph_quality(text: str) -> Dict[str, Any]:
        """Score a paragraph from 0 to 100 and list what is wrong with it."""
        issues: List[str] = []
        score = 100

        if len(text) < 20:
            issues.append("too short")
            score -= 20
        elif len(text) > 500:
            issues.append("too long")
            score -= 10

        if not _SENTENCE_PUNCTUATION.search(text) and len(text) > 50:
            issues.append("missing punctuation")
            score -= 15

        if not re.search(r"\s", text) and len(text) > 30:
            issues.append("missing spaces")
            score -= 10

        return {"score": max(0, score), "issues": issues}
