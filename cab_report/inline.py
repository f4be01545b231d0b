"""
inline.py — Inline run parsing and run-level helpers.

Wraps markdown-it-py for inline syntax (bold, italic, code spans, links) and
converts its syntax tree into the immutable run tuples of cab_report.model.
Literal `<br>` markers (raw or entity-escaped) become LineBreak runs, since
raw HTML is disabled in the parser and would otherwise survive as text.

Shared by the block parser and the table cell post-processor.
"""

import re
from typing import Iterable

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from cab_report.model import Code, Emphasis, LineBreak, Link, Strong, Text

BREAK_RE = re.compile(r"<br\s*/?>|&lt;br\s*/?&gt;", re.IGNORECASE)


def make_markdown(max_depth: int = 20) -> MarkdownIt:
    """Build the markdown-it parser used for every document.

    CommonMark plus GFM pipe tables and strikethrough, raw HTML disabled.
    Token nesting is allowed well past max_depth so that the block parser
    (not markdown-it) decides where to stop and fall back to literal text.

    Args:
        max_depth: Container nesting depth the block parser will honour.

    Returns:
        Configured MarkdownIt instance.
    """
    md = MarkdownIt("commonmark", {"html": False, "maxNesting": max(100, 4 * max_depth + 20)})
    md.enable(["table", "strikethrough"])
    return md


# ---------------------------------------------------------------------------
# Syntax tree -> runs
# ---------------------------------------------------------------------------

def runs_from_inline(node: SyntaxTreeNode) -> tuple:
    """Convert an `inline` syntax-tree node into a tuple of runs."""
    return split_breaks(merge_text(_convert(node.children)))


def _convert(children: Iterable[SyntaxTreeNode]) -> list:
    out = []
    for child in children:
        kind = child.type
        if kind in ("text", "text_special", "html_inline"):
            out.append(Text(child.content))
        elif kind == "softbreak":
            out.append(Text("\n"))
        elif kind == "hardbreak":
            out.append(LineBreak())
        elif kind == "strong":
            out.append(Strong(tuple(merge_text(_convert(child.children)))))
        elif kind == "em":
            out.append(Emphasis(tuple(merge_text(_convert(child.children)))))
        elif kind == "code_inline":
            out.append(Code(child.content))
        elif kind == "link":
            href = str(child.attrGet("href") or "")
            out.append(Link(href, tuple(merge_text(_convert(child.children)))))
        elif kind == "image":
            alt = child.content or plain_text(_convert(child.children))
            if alt:
                out.append(Text(alt))
        elif child.children:
            # strikethrough and anything else with content: keep the text
            out.extend(_convert(child.children))
        elif child.content:
            out.append(Text(child.content))
    return out


def parse_inline(md: MarkdownIt, text: str) -> tuple:
    """Parse a single line/paragraph of inline markup into runs."""
    if not text:
        return ()
    root = SyntaxTreeNode(md.parseInline(text))
    runs = []
    for node in root.children:
        runs.extend(runs_from_inline(node))
    return tuple(runs)


# ---------------------------------------------------------------------------
# Run helpers
# ---------------------------------------------------------------------------

def merge_text(runs: Iterable) -> tuple:
    """Join adjacent Text runs and drop empty ones."""
    out = []
    for run in runs:
        if isinstance(run, Text):
            if not run.text:
                continue
            if out and isinstance(out[-1], Text):
                out[-1] = Text(out[-1].text + run.text)
                continue
        out.append(run)
    return tuple(out)


def split_breaks(runs: Iterable) -> tuple:
    """Replace literal `<br>` markers inside Text runs with LineBreak runs."""
    out = []
    for run in runs:
        if isinstance(run, Text):
            parts = BREAK_RE.split(run.text)
            for i, part in enumerate(parts):
                if i:
                    out.append(LineBreak())
                if part:
                    out.append(Text(part))
        elif isinstance(run, Strong):
            out.append(Strong(split_breaks(run.children)))
        elif isinstance(run, Emphasis):
            out.append(Emphasis(split_breaks(run.children)))
        elif isinstance(run, Link):
            out.append(Link(run.href, split_breaks(run.children)))
        else:
            out.append(run)
    return tuple(out)


def plain_text(runs: Iterable) -> str:
    """Visible text of a run tuple; line breaks become newlines."""
    parts = []
    for run in runs:
        if isinstance(run, (Text, Code)):
            parts.append(run.text)
        elif isinstance(run, LineBreak):
            parts.append("\n")
        elif isinstance(run, (Strong, Emphasis, Link)):
            parts.append(plain_text(run.children))
    return "".join(parts)


def strip_emphasis(runs: Iterable) -> tuple:
    """Remove Strong and Emphasis wrappers, keeping their text."""
    out = []
    for run in runs:
        if isinstance(run, (Strong, Emphasis)):
            out.extend(strip_emphasis(run.children))
        elif isinstance(run, Link):
            out.append(Link(run.href, strip_emphasis(run.children)))
        else:
            out.append(run)
    return merge_text(out)


def has_strong(runs: Iterable) -> bool:
    for run in runs:
        if isinstance(run, Strong):
            return True
        if isinstance(run, (Emphasis, Link)) and has_strong(run.children):
            return True
    return False


def strong_chars(runs: Iterable) -> int:
    """Count the characters, whitespace included, that sit inside a Strong run."""
    total = 0
    for run in runs:
        if isinstance(run, Strong):
            total += len(plain_text(run.children))
        elif isinstance(run, (Emphasis, Link)):
            total += strong_chars(run.children)
    return total


def text_chars(runs: Iterable) -> int:
    """Count every character of a run tuple's plain text, whitespace included."""
    return len(plain_text(runs))

