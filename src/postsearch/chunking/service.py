"""Heading-aware chunking of extracted post text."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence

from postsearch.models import ContentChunk, ExtractedContent

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token count for English text: about four characters per token."""

    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class ChunkingConfig:
    """Token budget for chunking."""

    max_tokens: int = 800
    min_tokens: int = 100
    overlap_tokens: int = 50

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.min_tokens < 0 or self.overlap_tokens < 0:
            raise ValueError("min_tokens and overlap_tokens must not be negative")


@dataclass
class _Section:
    heading: str | None = None
    lines: List[str] = field(default_factory=list)


@dataclass
class _Draft:
    text: str
    heading: str | None


def overlap_lines(lines: Sequence[str], target_tokens: int) -> List[str]:
    """Return the trailing lines whose combined estimate stays within ``target_tokens``."""

    result: List[str] = []
    tokens = 0
    for line in reversed(lines):
        line_tokens = estimate_tokens(line)
        if tokens + line_tokens > target_tokens:
            break
        result.append(line)
        tokens += line_tokens
    result.reverse()
    return result


class HeadingChunker:
    """Split long posts into retrieval-sized chunks along heading boundaries.

    Short posts become a single chunk carrying the title and subtitle. Longer
    posts are cut into sections at lines matching an extracted heading, and
    sections are packed greedily up to ``max_tokens``. Each new chunk starts
    with a few trailing lines of the previous one so hits near a boundary
    keep their context. A section that alone exceeds the budget is emitted
    oversized rather than split mid-sentence.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def chunk(
        self,
        extracted: ExtractedContent,
        title: str | None = None,
        subtitle: str | None = None,
    ) -> List[ContentChunk]:
        config = self._config
        if estimate_tokens(extracted.text) <= config.max_tokens:
            text = "\n\n".join(part for part in (title, subtitle, extracted.text) if part)
            return [ContentChunk(text=text, chunk_index=0, total_chunks=1)]

        sections = self._split_sections(extracted, title, subtitle)
        drafts = self._pack(sections)
        total = len(drafts)
        return [
            ContentChunk(text=draft.text, chunk_index=index, total_chunks=total, heading=draft.heading)
            for index, draft in enumerate(drafts)
        ]

    @staticmethod
    def _split_sections(extracted: ExtractedContent, title: str | None, subtitle: str | None) -> List[_Section]:
        heading_texts = {heading.text for heading in extracted.headings}
        sections: List[_Section] = []
        current = _Section()
        if title:
            current.lines.append(title)
        if subtitle:
            current.lines.append(subtitle)

        for line in extracted.text.split("\n"):
            stripped = line.strip()
            if stripped in heading_texts and current.lines:
                sections.append(current)
                current = _Section(heading=stripped, lines=[line])
            else:
                current.lines.append(line)

        if current.lines:
            sections.append(current)
        return sections

    def _pack(self, sections: Sequence[_Section]) -> List[_Draft]:
        config = self._config
        drafts: List[_Draft] = []
        current: List[str] = []
        current_heading: str | None = None

        for section in sections:
            section_tokens = estimate_tokens("\n".join(section.lines))
            current_tokens = estimate_tokens("\n".join(current))
            if current_tokens + section_tokens > config.max_tokens and current_tokens >= config.min_tokens:
                drafts.append(_Draft(text="\n".join(current).strip(), heading=current_heading))
                current = overlap_lines(current, config.overlap_tokens) + list(section.lines)
                current_heading = section.heading
            else:
                current.extend(section.lines)
                if current_heading is None and section.heading:
                    current_heading = section.heading

        remainder = "\n".join(current).strip()
        if remainder:
            if estimate_tokens(remainder) >= config.min_tokens or not drafts:
                drafts.append(_Draft(text=remainder, heading=current_heading))
            else:
                drafts[-1].text += "\n\n" + remainder
        return drafts


def chunk_by_headings(
    extracted: ExtractedContent,
    title: str | None = None,
    subtitle: str | None = None,
    config: ChunkingConfig | None = None,
) -> List[ContentChunk]:
    """Convenience helper wrapping :class:`HeadingChunker`."""

    return HeadingChunker(config).chunk(extracted, title, subtitle)
