"""
Content Cleaner
===============

HTML text extraction utilities for feed item bodies.

This module provides:
- Plain text extraction from HTML bodies
- First-image lookup used by the thumbnail chain
"""

import re
import html
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..utils.logging import get_logger_for_component


class ContentCleaner:
    """HTML content cleaner for feed item descriptions."""

    # HTML elements removed together with their content
    DANGEROUS_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "form",
        "noscript",
        "canvas",
    }

    WHITESPACE_PATTERN = re.compile(r"\s+", re.MULTILINE)
    DATA_URL_PATTERN = re.compile(r"^\s*data:", re.IGNORECASE)

    def __init__(self, logger=None):
        self.logger = logger or get_logger_for_component("content_cleaner")
        self.parser = "html.parser"  # Built-in parser, no external deps

    def extract_text_only(self, html_content: Optional[str]) -> str:
        """
        Extract only text content from HTML, removing all markup.

        Args:
            html_content: HTML content to process

        Returns:
            Plain text content with all HTML removed
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)

        for element in soup(list(self.DANGEROUS_ELEMENTS)):
            element.decompose()

        text = soup.get_text(separator=" ", strip=True)
        text = html.unescape(text)
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def first_image_src(
        self, html_content: Optional[str], base_url: Optional[str] = None
    ) -> Optional[str]:
        """
        Return the ``src`` of the first ``<img>`` in the HTML, if any.

        Inline ``data:`` images are skipped. Relative sources are resolved
        against ``base_url`` when one is given.
        """
        if not html_content or "<img" not in html_content.lower():
            return None

        soup = BeautifulSoup(html_content, self.parser)

        for img_tag in soup.find_all("img", src=True):
            src = img_tag.get("src", "").strip()
            if not src or self.DATA_URL_PATTERN.match(src):
                continue

            if base_url and not urlparse(src).netloc and not src.startswith("//"):
                src = urljoin(base_url, src)

            return src

        return None


_default_cleaner: Optional[ContentCleaner] = None


def _cleaner() -> ContentCleaner:
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = ContentCleaner()
    return _default_cleaner


# Convenience functions for common operations
def extract_plain_text(html_content: Optional[str]) -> str:
    """Quick function to extract plain text from HTML."""
    return _cleaner().extract_text_only(html_content)


def first_image_src(html_content: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Quick function to find the first image in HTML content."""
    return _cleaner().first_image_src(html_content, base_url)
