"""
cells.py — Table Cell Post-Processor.

Generated tables pack a lot into one cell: several lines joined with <br>,
little bullet lists, and bold everywhere. Every cell goes through
process_cell(), which:

    1. Splits the cell on <br> markers (raw or entity-escaped)
    2. Turns "- item" / "1. item" segments into a nested list
    3. Strips all emphasis when bold dominates the cell (over-bold)
    4. Bolds the leading phrase of plain list items (lead-bold)

Thresholds live in settings.CellPolicy so they can be tuned or disabled.
"""

import logging
import re
from typing import Optional

from markdown_it import MarkdownIt

from cab_report.inline import (
    BREAK_RE,
    has_strong,
    make_markdown,
    merge_text,
    parse_inline,
    strip_emphasis,
    strong_chars,
    text_chars,
)
from cab_report.model import LineBreak, ListBlock, ListItem, Paragraph, Strong, Text
from cab_report.settings import DEFAULT_SETTINGS, CellPolicy

logger = logging.getLogger(__name__)

_CELL_MARKER_RE = re.compile(r"^\s*(?:([-*+•])|(\d{1,3})[.)])\s+(.*)$", re.DOTALL)

_default_md: Optional[MarkdownIt] = None


def _markdown() -> MarkdownIt:
    global _default_md
    if _default_md is None:
        _default_md = make_markdown()
    return _default_md


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def _join_lines(md: MarkdownIt, lines: list[str]) -> tuple:
    runs = []
    for i, line in enumerate(lines):
        if i:
            runs.append(LineBreak())
        runs.extend(parse_inline(md, line))
    return merge_text(runs)


def _structure(raw: str) -> list:
    """Split a cell into paragraph and list groups.

    Returns a list of ("p", lines) and ("list", ordered, start, items) tuples,
    where each list item is a list of lines (continuations included).
    """
    groups: list = []
    for segment in BREAK_RE.split(raw):
        segment = segment.strip()
        if not segment:
            continue
        match = _CELL_MARKER_RE.match(segment)
        if match:
            ordered = match.group(2) is not None
            current = groups[-1] if groups else None
            if current is None or current[0] != "list" or current[1] != ordered:
                start = int(match.group(2)) if ordered else 1
                groups.append(("list", ordered, start, []))
            groups[-1][3].append([match.group(3).strip()])
        elif groups and groups[-1][0] == "list":
            groups[-1][3][-1].append(segment)
        elif groups and groups[-1][0] == "p":
            groups[-1][1].append(segment)
        else:
            groups.append(("p", [segment]))
    return groups


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def is_over_bold(runs_list: list[tuple], ratio: float) -> bool:
    """True when bold characters exceed `ratio` of the cell's total length.

    Both counts include whitespace, so spacing in plain text lowers the share.
    """
    total = sum(text_chars(r) for r in runs_list)
    if not total:
        return False
    bold = sum(strong_chars(r) for r in runs_list)
    return bold / total > ratio


def lead_bold(runs: tuple, max_chars: int, min_words: int) -> tuple:
    """Wrap the leading words of a list item in Strong.

    The bolded phrase is the longest run of whole leading words whose
    length is at most max_chars; the final word always stays plain. Items
    shorter than min_words, items that already contain bold, and items whose
    first run is not plain text are returned unchanged.
    """
    if not runs or has_strong(runs) or not isinstance(runs[0], Text):
        return runs
    first = runs[0].text
    words = first.split()
    total_words = len(words) + sum(
        len(r.text.split()) for r in runs[1:] if isinstance(r, Text)
    )
    if total_words < min_words:
        return runs

    take = 0
    for k in range(1, len(words) + 1):
        if len(" ".join(words[:k])) > max_chars:
            break
        take = k
    take = min(take, total_words - 1)
    if take <= 0:
        return runs

    pattern = r"(\s*)(" + r"\s+".join(re.escape(w) for w in words[:take]) + ")"
    match = re.match(pattern, first)
    if match is None:
        return runs
    rebuilt = [
        Text(match.group(1)),
        Strong((Text(match.group(2)),)),
        Text(first[match.end():]),
    ]
    return merge_text(rebuilt + list(runs[1:]))


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def process_cell(
    raw: str,
    policy: CellPolicy = DEFAULT_SETTINGS.cells,
    md: Optional[MarkdownIt] = None,
) -> tuple:
    """Turn the raw text of one table cell into blocks.

    Args:
        raw: Cell text as written in the table row (pipes already removed).
        policy: Heuristic thresholds.
        md: Parser to use for inline markup; a shared default when None.

    Returns:
        Tuple of Paragraph / ListBlock blocks. Empty cell gives ().
    """
    md = md or _markdown()
    groups = _structure(raw or "")
    if not groups:
        return ()

    built = []
    for group in groups:
        if group[0] == "p":
            built.append(("p", _join_lines(md, group[1])))
        else:
            _, ordered, start, items = group
            built.append(("list", ordered, start, [_join_lines(md, lines) for lines in items]))

    all_runs = []
    for group in built:
        all_runs.extend([group[1]] if group[0] == "p" else group[3])

    stripped = policy.strip_over_bold and is_over_bold(all_runs, policy.over_bold_ratio)
    if stripped:
        logger.debug("Cell is over-bold; emphasis removed")

    blocks = []
    for group in built:
        if group[0] == "p":
            runs = strip_emphasis(group[1]) if stripped else group[1]
            blocks.append(Paragraph(runs=runs))
            continue
        _, ordered, start, items = group
        out_items = []
        for runs in items:
            if stripped:
                runs = strip_emphasis(runs)
            elif policy.lead_bold:
                runs = lead_bold(runs, policy.lead_bold_max_chars, policy.lead_bold_min_words)
            out_items.append(ListItem(runs=runs))
        blocks.append(ListBlock(ordered=ordered, items=tuple(out_items), start=start))
    return tuple(blocks)
