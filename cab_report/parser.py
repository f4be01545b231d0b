"""
parser.py — Document / Block Parser.

Converts the body of one section into model blocks using markdown-it-py
(CommonMark + GFM pipe tables) for tokenizing, then walks the syntax tree
into cab_report.model types.

The parser is total: it never raises for any input string.
    - Every top-level construct is converted inside its own guard; a
      construct that fails to convert is kept as literal source text.
    - Lists and block quotes nested deeper than max_depth are kept as the
      literal source lines of the container that crossed the limit.
    - Long paragraphs (many sentences and many characters) are split into
      smaller paragraphs of a few sentences each.
    - Table separator rows never become data rows.
"""

import logging
import re
from typing import Optional

from markdown_it.tree import SyntaxTreeNode

from cab_report.cells import process_cell
from cab_report.errors import StructuralParseFailure
from cab_report.inline import make_markdown, merge_text, plain_text, runs_from_inline
from cab_report.model import (
    Blockquote,
    Cell,
    CodeBlock,
    Heading,
    ListBlock,
    ListItem,
    Paragraph,
    Rule,
    Table,
    Text,
    literal,
)
from cab_report.settings import DEFAULT_SETTINGS, CellPolicy, ParserSettings

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE_RE = re.compile(r"\s+")
_SEPARATOR_CELL_RE = re.compile(r"^[\s|\-:]*$")
_ALIGN_RE = re.compile(r"text-align:\s*(left|right|center)")


def is_separator_row(cells: list[str]) -> bool:
    """True for a row made only of pipes, dashes, colons and whitespace."""
    return (
        bool(cells)
        and all(_SEPARATOR_CELL_RE.match(c) for c in cells)
        and any("-" in c for c in cells)
    )


class BlockParser:
    """Section body -> tuple of blocks.

    Args:
        settings: Depth cap and paragraph-split thresholds.
        policy: Table cell heuristics passed to the cell post-processor.
    """

    def __init__(
        self,
        settings: ParserSettings = DEFAULT_SETTINGS.parser,
        policy: CellPolicy = DEFAULT_SETTINGS.cells,
    ):
        self.settings = settings
        self.policy = policy
        self.md = make_markdown(settings.max_depth)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse(self, body: str) -> tuple:
        """Parse a section body.

        Args:
            body: Sanitized section text (heading line already removed).

        Returns:
            Tuple of blocks. Never raises; unparseable content comes back
            as literal paragraphs.
        """
        if not body or not body.strip():
            return ()

        lines = body.split("\n")
        try:
            root = SyntaxTreeNode(self.md.parse(body))
        except Exception as exc:
            logger.warning("Tokenizer failed, keeping section as literal text: %s", exc)
            return (literal(body),)

        blocks = []
        for node in root.children:
            try:
                blocks.extend(self._block(node, lines, depth=0))
            except Exception as exc:
                logger.warning(
                    "Could not convert %s at lines %s, keeping literal text: %s",
                    node.type, node.map, exc,
                )
                source = self._source(node, lines)
                if source.strip():
                    blocks.append(literal(source))
        return tuple(blocks)

    # ------------------------------------------------------------------
    # Block conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _source(node: SyntaxTreeNode, lines: list[str]) -> str:
        if node.map:
            start, end = node.map
            return "\n".join(lines[start:end])
        return node.content or ""

    def _inline(self, node: SyntaxTreeNode) -> tuple:
        for child in node.children:
            if child.type == "inline":
                return runs_from_inline(child)
        return ()

    def _block(self, node: SyntaxTreeNode, lines: list[str], depth: int) -> list:
        kind = node.type

        if kind == "heading":
            return [Heading(level=int(node.tag[1:]), runs=self._inline(node))]

        if kind == "paragraph":
            return self._paragraphs(self._inline(node))

        if kind in ("bullet_list", "ordered_list"):
            if depth + 1 > self.settings.max_depth:
                return [literal(self._source(node, lines))]
            return [self._list(node, lines, depth + 1)]

        if kind == "blockquote":
            if depth + 1 > self.settings.max_depth:
                return [literal(self._source(node, lines))]
            inner = []
            for child in node.children:
                inner.extend(self._block(child, lines, depth + 1))
            return [Blockquote(blocks=tuple(inner))]

        if kind in ("fence", "code_block"):
            language = (node.info or "").strip().split(" ")[0] if kind == "fence" else ""
            return [CodeBlock(text=node.content.rstrip("\n"), language=language)]

        if kind == "hr":
            return [Rule()]

        if kind == "table":
            return [self._table(node)]

        if kind == "html_block":
            return [literal(node.content.rstrip("\n"))]

        raise StructuralParseFailure(f"unsupported block type '{kind}'")

    def _list(self, node: SyntaxTreeNode, lines: list[str], depth: int) -> ListBlock:
        ordered = node.type == "ordered_list"
        start = 1
        if ordered:
            try:
                start = int(node.attrGet("start") or 1)
            except (TypeError, ValueError):
                start = 1

        items = []
        for item in node.children:
            children = list(item.children)
            runs: tuple = ()
            if children and children[0].type == "paragraph":
                runs = self._inline(children.pop(0))
            nested = []
            for child in children:
                nested.extend(self._block(child, lines, depth))
            items.append(ListItem(runs=runs, blocks=tuple(nested)))
        return ListBlock(ordered=ordered, items=tuple(items), start=start)

    def _table(self, node: SyntaxTreeNode) -> Table:
        header_raw: list[str] = []
        align: list[Optional[str]] = []
        rows_raw: list[list[str]] = []

        for part in node.children:
            for tr in part.children:
                cells = [self._cell_source(c) for c in tr.children]
                if part.type == "thead":
                    header_raw = cells
                    for c in tr.children:
                        match = _ALIGN_RE.search(str(c.attrGet("style") or ""))
                        align.append(match.group(1) if match else None)
                elif not is_separator_row(cells):
                    rows_raw.append(cells)

        if not header_raw:
            raise StructuralParseFailure("table without a header row")

        def cell(raw: str) -> Cell:
            return Cell(blocks=process_cell(raw, self.policy, self.md))

        return Table(
            header=tuple(cell(c) for c in header_raw),
            rows=tuple(tuple(cell(c) for c in row) for row in rows_raw),
            align=tuple(align),
        )

    @staticmethod
    def _cell_source(node: SyntaxTreeNode) -> str:
        for child in node.children:
            if child.type == "inline":
                return child.content or ""
        return ""

    # ------------------------------------------------------------------
    # Long paragraph splitting
    # ------------------------------------------------------------------

    def _paragraphs(self, runs: tuple) -> list:
        text = plain_text(runs).strip()
        # an unterminated tail is a fragment, not a sentence
        sentences = sum(1 for s in _SENTENCE_SPLIT_RE.split(text) if s[-1:] in ".!?")
        if (
            sentences < self.settings.split_min_sentences
            or len(text) <= self.settings.split_min_chars
        ):
            return [Paragraph(runs=runs)]

        groups = split_sentences(runs, self.settings.split_group_size)
        return [Paragraph(runs=g) for g in groups]


def split_sentences(runs: tuple, group_size: int) -> list[tuple]:
    """Cut a run tuple into groups of at most group_size sentences.

    Only whitespace inside top-level Text runs is a cut point, so bold,
    italic, code and link runs are never broken apart.
    """
    groups: list[list] = []
    current: list = []
    count = 0
    prev_tail = ""

    for run in runs:
        if not isinstance(run, Text):
            current.append(run)
            prev_tail = plain_text((run,))[-1:] or prev_tail
            continue

        text, pos = run.text, 0
        for match in _WHITESPACE_RE.finditer(text):
            before = text[match.start() - 1] if match.start() else prev_tail
            if before not in (".", "!", "?"):
                continue
            count += 1
            if count == group_size:
                current.append(Text(text[pos:match.start()]))
                groups.append(current)
                current, count, pos = [], 0, match.end()
        current.append(Text(text[pos:]))
        prev_tail = text[-1:] or prev_tail

    groups.append(current)

    out = []
    for group in groups:
        trimmed = _trim(merge_text(group))
        if trimmed:
            out.append(trimmed)
    return out or [tuple(runs)]


def _trim(runs: tuple) -> tuple:
    runs = list(runs)
    if runs and isinstance(runs[0], Text):
        runs[0] = Text(runs[0].text.lstrip())
    if runs and isinstance(runs[-1], Text):
        runs[-1] = Text(runs[-1].text.rstrip())
    return merge_text(runs)


_default_parser: Optional[BlockParser] = None


def parse_blocks(body: str, parser: Optional[BlockParser] = None) -> tuple:
    """Parse a section body with the given (or a shared default) parser."""
    global _default_parser
    if parser is None:
        if _default_parser is None:
            _default_parser = BlockParser()
        parser = _default_parser
    return parser.parse(body)
