"""
segmenter.py — Section Segmenter.

Splits sanitized report text into top-level sections. A section starts at
every line beginning with "# " (a level-1 heading); deeper headings never
split, and "# " lines inside fenced code blocks are ignored.

Text before the first level-1 heading is kept as an untitled section, so
no content is ever lost. Must only be called on settled (non-streaming)
text; the settle controller in pipeline.py enforces that.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_H1_RE = re.compile(r"^# (.*)$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


@dataclass(frozen=True)
class RawSection:
    """One top-level section before classification and block parsing.

    Attributes:
        index: Position in the document, starting at 0.
        title: Text after the "# " marker, or None for an untitled preamble.
        body: Everything below the heading line.
        source: The full section text including its heading line.
    """

    index: int
    title: Optional[str]
    body: str
    source: str


def _split_points(lines: list[str]) -> list[int]:
    points = []
    fence = None
    for i, line in enumerate(lines):
        match = _FENCE_RE.match(line)
        if match:
            marker = match.group(1)[0]
            if fence is None:
                fence = marker
            elif marker == fence:
                fence = None
            continue
        if fence is None and _H1_RE.match(line):
            points.append(i)
    return points


def segment(text: str) -> list[RawSection]:
    """Split text into sections at level-1 headings.

    Args:
        text: Sanitized report text.

    Returns:
        Sections in source order. Empty or whitespace-only input gives [].
        Input without any level-1 heading gives exactly one untitled section.
    """
    if not text or not text.strip():
        return []

    lines = text.split("\n")
    points = _split_points(lines)

    chunks: list[tuple[Optional[str], list[str]]] = []
    if not points or points[0] > 0:
        preamble = lines[: points[0]] if points else lines
        if "\n".join(preamble).strip():
            chunks.append((None, preamble))

    for n, start in enumerate(points):
        end = points[n + 1] if n + 1 < len(points) else len(lines)
        chunks.append((_H1_RE.match(lines[start]).group(1), lines[start:end]))

    sections = []
    for index, (title, chunk) in enumerate(chunks):
        source = "\n".join(chunk).strip("\n")
        body = "\n".join(chunk[1:] if title is not None else chunk).strip("\n")
        sections.append(RawSection(index=index, title=title, body=body, source=source))

    logger.debug("Segmented report into %d sections", len(sections))
    return sections
