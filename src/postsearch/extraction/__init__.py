"""Plaintext extraction from post records."""

from .blocks import extract_from_blocks
from .markdown import count_words, extract_from_markdown, strip_inline_formatting
from .service import (
    SUPPORTED_COLLECTIONS,
    extract_content,
    extract_from_generic,
    extract_from_text_content,
    is_content_reference,
)

__all__ = [
    "SUPPORTED_COLLECTIONS",
    "count_words",
    "extract_content",
    "extract_from_blocks",
    "extract_from_generic",
    "extract_from_markdown",
    "extract_from_text_content",
    "is_content_reference",
    "strip_inline_formatting",
]
