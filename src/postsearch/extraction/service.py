"""Post record extraction: collection dispatch and the generic fallback."""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Callable, Mapping

from bs4 import BeautifulSoup

from postsearch.extraction.blocks import LEAFLET_CONTENT_TYPE, extract_from_blocks
from postsearch.extraction.markdown import count_words, extract_from_markdown
from postsearch.metrics.observability import PipelineMetrics, get_logger
from postsearch.models import ContentFormat, ExtractedContent

GREENGALE_DOCUMENT = "app.greengale.document"
GREENGALE_ENTRY = "app.greengale.blog.entry"
WHITEWIND_ENTRY = "com.whtwnd.blog.entry"
SITE_STANDARD_DOCUMENT = "site.standard.document"

CONTENT_REF_TYPE = "app.greengale.document#contentRef"

GENERIC_TEXT_FIELDS = ("text", "body", "markdown", "plaintext", "content")

_HTML_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_MARKDOWN_HINTS = ("#", "*", "[")

_logger = get_logger("extraction")


def _extract_markdown_record(record: Mapping[str, Any]) -> ExtractedContent:
    content = record.get("content")
    return extract_from_markdown(content if isinstance(content, str) else "")


def extract_from_text_content(text: str) -> ExtractedContent:
    """Use a producer-supplied plaintext field verbatim."""

    stripped = text.strip()
    if not stripped:
        return ExtractedContent.failed(ContentFormat.TEXT_CONTENT)
    return ExtractedContent(
        text=stripped,
        word_count=count_words(stripped),
        format=ContentFormat.TEXT_CONTENT,
        success=True,
    )


def strip_html(text: str) -> str:
    soup = BeautifulSoup(text, "html.parser")
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()


def extract_from_generic(content: Mapping[str, Any]) -> ExtractedContent:
    """Best-effort extraction for content unions we have no strategy for."""

    for field_name in GENERIC_TEXT_FIELDS:
        value = content.get(field_name)
        if not isinstance(value, str) or not value.strip():
            continue
        text = value
        if _HTML_TAG.search(text):
            text = strip_html(text)
        if any(hint in text for hint in _MARKDOWN_HINTS):
            return dataclasses.replace(extract_from_markdown(text), format=ContentFormat.UNKNOWN)
        text = text.strip()
        if not text:
            return ExtractedContent.failed()
        return ExtractedContent(text=text, word_count=count_words(text), format=ContentFormat.UNKNOWN, success=True)

    blocks = content.get("blocks")
    if isinstance(blocks, list) and blocks:
        texts = []
        for block in blocks:
            if not isinstance(block, Mapping):
                continue
            value = block.get("text") or block.get("plaintext")
            if isinstance(value, str) and value:
                texts.append(value)
        text = "\n\n".join(texts).strip()
        if text:
            return ExtractedContent(text=text, word_count=count_words(text), format=ContentFormat.UNKNOWN, success=True)

    return ExtractedContent.failed()


def _extract_site_standard(record: Mapping[str, Any]) -> ExtractedContent:
    text_content = record.get("textContent")
    if isinstance(text_content, str) and text_content.strip():
        return extract_from_text_content(text_content)

    content = record.get("content")
    if not isinstance(content, Mapping):
        return ExtractedContent.failed()

    content_type = content.get("$type")
    if content_type == LEAFLET_CONTENT_TYPE:
        return extract_from_blocks(content)
    if content_type == CONTENT_REF_TYPE:
        # The body lives in another record; the caller must resolve it and re-extract.
        return ExtractedContent.failed()
    return extract_from_generic(content)


_COLLECTION_STRATEGIES: Mapping[str, Callable[[Mapping[str, Any]], ExtractedContent]] = {
    GREENGALE_DOCUMENT: _extract_markdown_record,
    GREENGALE_ENTRY: _extract_markdown_record,
    WHITEWIND_ENTRY: _extract_markdown_record,
    SITE_STANDARD_DOCUMENT: _extract_site_standard,
}

SUPPORTED_COLLECTIONS = frozenset(_COLLECTION_STRATEGIES)


def is_content_reference(record: Mapping[str, Any]) -> bool:
    """Return True when the record points at another record instead of carrying its body."""

    content = record.get("content")
    return isinstance(content, Mapping) and content.get("$type") == CONTENT_REF_TYPE


def extract_content(record: Mapping[str, Any], collection: str) -> ExtractedContent:
    """Extract plaintext from a post record. Never raises for malformed input."""

    strategy = _COLLECTION_STRATEGIES.get(collection)
    if strategy is None or not isinstance(record, Mapping):
        _logger.debug("extraction.unsupported", collection=collection)
        extracted = ExtractedContent.failed()
    else:
        try:
            extracted = strategy(record)
        except (TypeError, ValueError, AttributeError, RecursionError) as exc:
            _logger.warning("extraction.malformed", collection=collection, error=str(exc))
            extracted = ExtractedContent.failed()
    PipelineMetrics.observe_extraction(extracted.format.value, extracted.success)
    return extracted
