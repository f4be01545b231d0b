"""
pipeline.py — Raw text to Document, and the settle controller.

    raw text ─▶ sanitize ─▶ segment ─▶ classify ─▶ parse blocks ─▶ Document

build_document() is a pure function of its inputs. ReportStream wraps it
for streaming sources: while text is still arriving it only records the
latest text; each settle event (streaming flag false) rebuilds the whole
Document from scratch. There is no incremental re-parse.
"""

import logging
from typing import Any, Iterable, Optional

from cab_report.classifier import classify, display_title
from cab_report.model import (
    Document,
    Section,
    coerce_icp,
    coerce_members,
    coerce_personas,
)
from cab_report.parser import BlockParser
from cab_report.sanitizer import is_truncated, sanitize
from cab_report.segmenter import segment
from cab_report.settings import DEFAULT_SETTINGS, ReportSettings

logger = logging.getLogger(__name__)


def build_document(
    raw_text: Any,
    *,
    board_members: Optional[Iterable] = None,
    personas: Optional[Iterable] = None,
    icp_profile: Any = None,
    settings: ReportSettings = DEFAULT_SETTINGS,
    parser: Optional[BlockParser] = None,
) -> Document:
    """Build a Document from raw report text and resolved side data.

    Args:
        raw_text: Report text as produced by the generation collaborator.
        board_members: BoardMember objects or camelCase dicts.
        personas: PersonaBreakdown objects or camelCase dicts.
        icp_profile: ICPProfile object or camelCase dict.
        settings: Renderer settings.
        parser: Block parser to reuse; built from settings when None.

    Returns:
        A new, immutable Document. Never raises for any text input.
    """
    parser = parser or BlockParser(settings.parser, settings.cells)

    text = sanitize(raw_text, settings.sanitizer.max_chars)
    raw_sections = segment(text)

    sections = []
    for raw in raw_sections:
        kind = classify(raw.title, raw.body)
        sections.append(Section(
            id=f"section-{raw.index + 1}",
            index=raw.index,
            title=raw.title.strip() if raw.title is not None else None,
            kind=kind,
            label=display_title(raw.title, kind),
            blocks=parser.parse(raw.body),
            source=raw.source,
        ))

    logger.info(
        "Document built -- %d chars | %d sections | %s",
        len(text), len(sections),
        ", ".join(s.kind.value for s in sections) or "empty",
    )
    return Document(
        sections=tuple(sections),
        board_members=coerce_members(board_members),
        personas=coerce_personas(personas),
        icp_profile=coerce_icp(icp_profile),
        truncated=is_truncated(text),
    )


class ReportStream:
    """Settle controller for a report that arrives incrementally.

    Call update() every time the source text or streaming flag changes.
    `document` is the last settled Document (None before the first settle);
    `live_text` is always the latest sanitized text, for a streaming preview.
    """

    def __init__(self, settings: ReportSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self._parser = BlockParser(settings.parser, settings.cells)
        self._side: dict[str, Any] = {}
        self._settled_text: Optional[str] = None
        self.live_text = ""
        self.is_streaming = False
        self.document: Optional[Document] = None
        self.rebuilds = 0

    def update(self, text: Any, is_streaming: bool) -> Optional[Document]:
        """Record new text; rebuild the Document only on a settle event.

        Args:
            text: Full report text so far.
            is_streaming: True while more text may still arrive.

        Returns:
            The current settled Document (unchanged while streaming).
        """
        text = "" if text is None else str(text)
        self.is_streaming = bool(is_streaming)
        self.live_text = sanitize(text, self.settings.sanitizer.max_chars)

        if self.is_streaming:
            return self.document
        if self.document is not None and text == self._settled_text:
            return self.document

        self.document = build_document(
            text, settings=self.settings, parser=self._parser, **self._side
        )
        self._settled_text = text
        self.rebuilds += 1
        return self.document

    def set_side_data(self, board_members=None, personas=None, icp_profile=None) -> None:
        """Attach side data; the settled Document is updated without reparsing."""
        self._side = {
            "board_members": board_members,
            "personas": personas,
            "icp_profile": icp_profile,
        }
        if self.document is not None:
            self.document = self.document.with_side_data(**self._side)
