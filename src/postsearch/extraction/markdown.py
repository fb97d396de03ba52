"""Markdown to plaintext conversion for embedding."""

from __future__ import annotations

import re
from typing import List

from postsearch.models import ContentFormat, ExtractedContent, Heading

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_HORIZONTAL_RULE = re.compile(r"[-*_]{3,}")
_BULLET = re.compile(r"^\s*[-*+]\s+")
_ORDERED = re.compile(r"^\s*\d+\.\s+")
_BLOCKQUOTE = re.compile(r"^>\s*")
_BLANK_RUNS = re.compile(r"\n{3,}")

_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
# Order matters: the widest emphasis markers are removed first.
_UNWRAP = (
    re.compile(r"\*\*\*([^*]+)\*\*\*"),
    re.compile(r"\*\*([^*]+)\*\*"),
    re.compile(r"\*([^*]+)\*"),
    re.compile(r"___([^_]+)___"),
    re.compile(r"__([^_]+)__"),
    re.compile(r"_([^_]+)_"),
    re.compile(r"`([^`]+)`"),
    re.compile(r"~~([^~]+)~~"),
)
_INLINE_MATH = re.compile(r"\$[^$]+\$")

CODE_FENCE = "```"
MATH_FENCE = "$$"


def count_words(text: str) -> int:
    return len(text.split())


def strip_inline_formatting(text: str) -> str:
    """Remove inline markdown syntax, keeping the readable text."""

    text = _IMAGE.sub(lambda match: f"[Image: {match.group(1)}]" if match.group(1) else "", text)
    text = _LINK.sub(r"\1", text)
    for pattern in _UNWRAP:
        text = pattern.sub(r"\1", text)
    text = _INLINE_MATH.sub("", text)
    return text.strip()


def extract_from_markdown(markdown: str) -> ExtractedContent:
    """Convert markdown into searchable plaintext plus its heading outline.

    Fenced code and display math are dropped entirely. Heading text stays in
    the body so it remains searchable, and is also recorded in the outline at
    its marker depth.
    """

    headings: List[Heading] = []
    output: List[str] = []
    in_code = False
    in_math = False

    for line in markdown.split("\n"):
        if line.startswith(CODE_FENCE):
            in_code = not in_code
            continue
        if in_code:
            continue
        if line.startswith(MATH_FENCE):
            in_math = not in_math
            continue
        if in_math:
            continue

        heading = _HEADING.match(line)
        if heading:
            text = strip_inline_formatting(heading.group(2))
            if text:
                headings.append(Heading(text=text, level=len(heading.group(1))))
                output.append(text)
            continue

        if _HORIZONTAL_RULE.fullmatch(line.strip()):
            continue

        processed = _BULLET.sub("", line, count=1)
        processed = _ORDERED.sub("", processed, count=1)
        processed = _BLOCKQUOTE.sub("", processed, count=1)
        processed = strip_inline_formatting(processed)
        if processed:
            output.append(processed)

    text = _BLANK_RUNS.sub("\n\n", "\n".join(output)).strip()
    return ExtractedContent(
        text=text,
        headings=tuple(headings),
        word_count=count_words(text),
        format=ContentFormat.MARKDOWN,
        success=bool(text),
    )
