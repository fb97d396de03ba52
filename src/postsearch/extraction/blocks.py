"""Plaintext extraction for Leaflet's block-structured documents."""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping, Sequence

from postsearch.models import ContentFormat, ExtractedContent, Heading
from postsearch.extraction.markdown import count_words

_EXHAUSTED = object()

LEAFLET_CONTENT_TYPE = "pub.leaflet.content"

TEXT_BLOCK = "pub.leaflet.blocks.text"
HEADER_BLOCK = "pub.leaflet.blocks.header"
IMAGE_BLOCK = "pub.leaflet.blocks.image"
QUOTE_BLOCKS = frozenset({"pub.leaflet.blocks.quote", "pub.leaflet.blocks.blockquote"})
LIST_BLOCKS = frozenset({"pub.leaflet.blocks.unorderedList", "pub.leaflet.blocks.orderedList"})

DEFAULT_HEADER_LEVEL = 2
PARAGRAPH_SEPARATOR = "\n\n"


def _string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _unwrap(wrapper: Mapping[str, Any]) -> Mapping[str, Any]:
    # Blocks arrive as {"$type": "...#block", "block": {...}}.
    inner = wrapper.get("block")
    return inner if isinstance(inner, Mapping) else wrapper


def collect_list_items(items: Sequence[Any], output: List[str]) -> None:
    """Append list item plaintext to ``output`` depth-first, in document order.

    Nesting depth is unbounded in stored records, so the walk keeps its own
    stack of sibling iterators instead of recursing.
    """

    stack: List[Iterator[Any]] = [iter(items)]
    while stack:
        item = next(stack[-1], _EXHAUSTED)
        if item is _EXHAUSTED:
            stack.pop()
            continue
        if not isinstance(item, Mapping):
            continue
        content = item.get("content")
        if isinstance(content, Mapping):
            text = _string(content.get("plaintext"))
            if text:
                output.append(text)
        children = item.get("children")
        if isinstance(children, list) and children:
            stack.append(iter(children))


def _header_level(block: Mapping[str, Any]) -> int:
    level = block.get("level")
    if isinstance(level, int) and not isinstance(level, bool) and 1 <= level <= 6:
        return level
    return DEFAULT_HEADER_LEVEL


def extract_from_blocks(content: Mapping[str, Any]) -> ExtractedContent:
    """Walk pages then blocks, collecting text meant for semantic embedding.

    Code blocks and unrecognized block kinds contribute nothing.
    """

    pages = content.get("pages")
    if not isinstance(pages, list):
        return ExtractedContent.failed(ContentFormat.BLOCKS)

    headings: List[Heading] = []
    parts: List[str] = []

    for page in pages:
        if not isinstance(page, Mapping):
            continue
        blocks = page.get("blocks")
        if not isinstance(blocks, list):
            continue
        for wrapper in blocks:
            if not isinstance(wrapper, Mapping):
                continue
            block = _unwrap(wrapper)
            block_type = block.get("$type")

            if block_type == TEXT_BLOCK or block_type in QUOTE_BLOCKS:
                text = _string(block.get("plaintext"))
                if text:
                    parts.append(text)
            elif block_type == HEADER_BLOCK:
                text = _string(block.get("plaintext"))
                if text:
                    headings.append(Heading(text=text, level=_header_level(block)))
                    parts.append(text)
            elif block_type == IMAGE_BLOCK:
                alt = _string(block.get("alt"))
                if alt:
                    parts.append(f"[Image: {alt}]")
            elif block_type in LIST_BLOCKS:
                children = block.get("children")
                if isinstance(children, list):
                    collect_list_items(children, parts)

    text = PARAGRAPH_SEPARATOR.join(parts).strip()
    if not text:
        return ExtractedContent.failed(ContentFormat.BLOCKS)
    return ExtractedContent(
        text=text,
        headings=tuple(headings),
        word_count=count_words(text),
        format=ContentFormat.BLOCKS,
        success=True,
    )
