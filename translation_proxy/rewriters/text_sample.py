"""
Visible text sampling for a parsed document.

Kept apart from the rewriting pipeline: nothing in the relay consumes the
sample. It is the input a page language detector would need.
"""
import re
from typing import Iterable, List

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, PreformattedString, Tag

IGNORED_TAGS = frozenset({"script", "style", "var", "kbd", "samp", "code"})

TEXT_LIMIT = 10000
TRIM_THRESHOLD = 300
HEADER_SHARE = 0.2
FOOTER_SHARE = 0.2


def _collect(nodes: Iterable[PageElement], chunks: List[str], size: int, limit: int) -> int:
    for node in nodes:
        if size >= limit:
            break
        if isinstance(node, Tag):
            if node.name.lower() not in IGNORED_TAGS:
                size = _collect(node.children, chunks, size, limit)
        elif isinstance(node, NavigableString) and not isinstance(node, PreformattedString):
            text = f" {node} "
            chunks.append(text)
            size += len(text)
    return size


def extract_visible_text(soup: BeautifulSoup, limit: int = TEXT_LIMIT) -> str:
    """
    Depth-first visible text of the document, whitespace compressed, with the
    likely header and footer cut off.

    Args:
        soup: Parsed document
        limit: Maximum number of characters collected before trimming

    Returns:
        The trimmed text sample
    """
    chunks: List[str] = []
    _collect(soup.children, chunks, 0, limit)
    text = "".join(chunks)[:limit]
    text = re.sub(r"\s+", " ", text)

    cut_top = len(text) > TRIM_THRESHOLD
    cut_bottom = cut_top and len(text) != limit
    if cut_top:
        text = text[int(len(text) * HEADER_SHARE):]
    if cut_bottom:
        text = text[: int(len(text) * (1 - FOOTER_SHARE))]
    return text
