"""
sanitizer.py — Content Sanitizer.

Turns arbitrary raw report text into text that is safe to parse:

    1. Line endings normalised to LF
    2. Control characters removed (TAB and LF survive)
    3. Bullet / number markers glued onto the end of a sentence moved to
       their own line
    4. A blank line inserted between paragraph text and a list that starts
       directly beneath it
    5. Length ceiling enforced with a visible truncation marker

Each step is a pure rule in SANITIZE_RULES, applied in order. The whole
function is total and idempotent: sanitize(sanitize(x)) == sanitize(x).
"""

import logging
import re
from typing import Any, Callable

from cab_report.settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n... (content truncated)"

_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_NEWLINE_RE = re.compile(r"\r\n?")

# A marker that follows sentence-ending punctuation on the same line.
_INLINE_MARKER_RE = re.compile(r"(?<=[.!?])[ \t]+(?=(?:[-*+]|\d{1,2}[.)])[ \t]+\S)")

_MARKER_LINE_RE = re.compile(r"^(?:[-*+]|\d{1,9}[.)])[ \t]+\S")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_BLOCK_START_RE = re.compile(r"^(?:#{1,6}(?:[ \t]|$)|>|\||[ \t])")
_RULE_LINE_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_INDENTED_CODE_RE = re.compile(r"^(?: {4}|\t)")


# ---------------------------------------------------------------------------
# Line-aware rules
# ---------------------------------------------------------------------------

def _map_prose_lines(text: str, fn: Callable[[list[str], int], str]) -> str:
    """Apply fn to every line outside code; fn sees all lines + index.

    Code is fenced code, or an indented block (four spaces or a tab) that
    starts after a blank line. Lines indented under a paragraph are
    continuation text and still go through fn.
    """
    lines = text.split("\n")
    out = []
    fence = None
    indented = False
    for i, line in enumerate(lines):
        match = _FENCE_RE.match(line)
        if fence is None and match:
            fence = match.group(1)[0]
            out.append(line)
            continue
        if fence is not None:
            if match and match.group(1)[0] == fence:
                fence = None
            out.append(line)
            continue
        if line.strip() and _INDENTED_CODE_RE.match(line):
            indented = indented or i == 0 or not lines[i - 1].strip()
        else:
            indented = False
        if indented:
            out.append(line)
            continue
        out.append(fn(lines, i))
    return "\n".join(out)


def _is_list_line(line: str) -> bool:
    return bool(_MARKER_LINE_RE.match(line)) and not _RULE_LINE_RE.match(line)


def _promote_line(lines: list[str], i: int) -> str:
    line = lines[i]
    if line.lstrip().startswith("|"):
        return line
    return _INLINE_MARKER_RE.sub("\n", line)


def _separate_line(lines: list[str], i: int) -> str:
    line = lines[i]
    if i == 0 or not _is_list_line(line):
        return line
    prev = lines[i - 1]
    if not prev.strip() or _is_list_line(prev) or _BLOCK_START_RE.match(prev):
        return line
    if _RULE_LINE_RE.match(prev) or _FENCE_RE.match(prev):
        return line
    return "\n" + line


def normalize_newlines(text: str) -> str:
    return _NEWLINE_RE.sub("\n", text)


def strip_controls(text: str) -> str:
    return _CONTROL_RE.sub("", text)


def promote_inline_markers(text: str) -> str:
    """Move `- item` / `2. item` that trails a sentence onto its own line."""
    return _map_prose_lines(text, _promote_line)


def separate_lists(text: str) -> str:
    """Ensure a blank line between a paragraph and a list directly below it."""
    return _map_prose_lines(text, _separate_line)


SANITIZE_RULES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("normalize_newlines", normalize_newlines),
    ("strip_controls", strip_controls),
    ("promote_inline_markers", promote_inline_markers),
    ("separate_lists", separate_lists),
)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def _apply_rules(text: str) -> str:
    for _name, rule in SANITIZE_RULES:
        text = rule(text)
    return text


def truncate(text: str, max_chars: int) -> str:
    """Cut text at max_chars and append TRUNCATION_MARKER.

    The cut can leave a last line that reads differently from the whole
    line ("- - -" cut to "- -" is a list item, not a rule). The kept part is
    re-run through SANITIZE_RULES and re-cut until it no longer changes, so
    a truncated result is itself sanitized. Each round adds a line break,
    which bounds the loop by max_chars.

    Text that already ends in the marker with a body within max_chars is
    returned unchanged.
    """
    if len(text) <= max_chars:
        return text
    if is_truncated(text) and len(text) - len(TRUNCATION_MARKER) <= max_chars:
        return text
    logger.warning("Report text truncated from %d to %d characters", len(text), max_chars)
    kept = text[:max_chars]
    while True:
        settled = _apply_rules(kept)[:max_chars]
        if settled == kept:
            break
        kept = settled
    return kept + TRUNCATION_MARKER


def is_truncated(text: str) -> bool:
    return text.endswith(TRUNCATION_MARKER)


def sanitize(raw: Any, max_chars: int = DEFAULT_SETTINGS.sanitizer.max_chars) -> str:
    """Normalise raw report text for parsing.

    Total: None becomes "", any other non-string is coerced with str().
    Idempotent: running it on its own output changes nothing.

    Args:
        raw: Raw report text as received from the generation collaborator.
        max_chars: Length ceiling; longer input is truncated and marked.

    Returns:
        Sanitized text, at most max_chars + len(TRUNCATION_MARKER) long.
    """
    if raw is None:
        return ""
    text = raw if isinstance(raw, str) else str(raw)

    # A truncated output re-truncates to itself: same prefix, same marker.
    return truncate(_apply_rules(text), max_chars)
