"""
classifier.py — Section Classifier.

Assigns every section exactly one SectionKind from its heading (when the
heading is usable) or from keywords in its body. Both are ordered rule
lists evaluated first-match-wins; GENERIC is the total fallback, so
classification never fails.

Also owns the display label for a section: the cleaned heading, or a fixed
label per kind when the heading is missing or unusable.
"""

import re
from typing import Callable, Optional

from cab_report.model import SectionKind

MAX_TITLE_CHARS = 50

KIND_LABELS: dict[SectionKind, str] = {
    SectionKind.EXECUTIVE_SUMMARY: "Executive Dashboard",
    SectionKind.KEY_FINDINGS: "Key Research Findings & Facts",
    SectionKind.DEEP_DIVE: "Deep Dive Analysis",
    SectionKind.ROAST_AND_GOLD: "The Roast & The Gold",
    SectionKind.TRANSCRIPT: "Raw Board Transcript",
    SectionKind.GENERIC: "Analysis Section",
}

_PRICING_TITLE_RE = re.compile(r"pricing strategy recommendations", re.IGNORECASE)
_PRICING_SUFFIX = " (How We Win)"

_TABLE_ROW_RE = re.compile(r"^\s*\|.*\|", re.MULTILINE)


def _has(*words: str) -> Callable[[str], bool]:
    return lambda text: any(w in text for w in words)


# Ordered (predicate, kind) rules. Inputs are lower-cased before matching.
TITLE_RULES: tuple[tuple[Callable[[str], bool], SectionKind], ...] = (
    (_has("executive", "dashboard"), SectionKind.EXECUTIVE_SUMMARY),
    (_has("key research", "findings"), SectionKind.KEY_FINDINGS),
    (_has("deep dive", "analysis"), SectionKind.DEEP_DIVE),
    (_has("roast", "gold"), SectionKind.ROAST_AND_GOLD),
    (_has("transcript"), SectionKind.TRANSCRIPT),
)

BODY_RULES: tuple[tuple[Callable[[str], bool], SectionKind], ...] = (
    (lambda b: bool(_TABLE_ROW_RE.search(b)) and "status" in b, SectionKind.EXECUTIVE_SUMMARY),
    (_has("key research", "findings"), SectionKind.KEY_FINDINGS),
    (lambda b: "roast" in b and "gold" in b, SectionKind.ROAST_AND_GOLD),
    (_has("deep dive", "analysis", "pricing tier", "pricing model"), SectionKind.DEEP_DIVE),
    (_has("transcript"), SectionKind.TRANSCRIPT),
)


def clean_title(raw_title: Optional[str]) -> Optional[str]:
    """Strip emphasis markup from a heading; None if it is not usable.

    A heading is unusable when nothing is left after cleaning or when it
    is longer than MAX_TITLE_CHARS (usually a sentence the model wrote on
    the heading line by mistake).
    """
    if raw_title is None:
        return None
    title = raw_title.replace("**", "").replace("__", "")
    title = re.sub(r"\s+#+\s*$", "", title)
    title = title.strip().strip("*_").strip()
    if not title or len(title) > MAX_TITLE_CHARS:
        return None
    return title


def _first_match(rules, text: str) -> SectionKind:
    lowered = text.lower()
    for predicate, kind in rules:
        if predicate(lowered):
            return kind
    return SectionKind.GENERIC


def classify(raw_title: Optional[str], body: str) -> SectionKind:
    """Classify one section.

    Deterministic and total: the same (title, body) always gives the same
    kind, and every input gives some kind.

    Args:
        raw_title: Heading text as segmented (may be None).
        body: Section body text.

    Returns:
        SectionKind.
    """
    title = clean_title(raw_title)
    if title is not None:
        return _first_match(TITLE_RULES, title)
    return _first_match(BODY_RULES, body or "")


def display_title(raw_title: Optional[str], kind: SectionKind) -> str:
    """Label shown in the section header."""
    title = clean_title(raw_title)
    if title is None:
        return KIND_LABELS[kind]
    if _PRICING_TITLE_RE.search(title) and _PRICING_SUFFIX.strip() not in title:
        title += _PRICING_SUFFIX
    return title
