"""
theme.py — Section styling shared by every renderer.

One SectionStyle per SectionKind: header band colours, title colour and an
icon name. The interactive view, the HTML export and the PDF export all
read from here, so a section looks the same wherever it is shown.
"""

from dataclasses import dataclass
from typing import Optional

from cab_report.model import Heading, SectionKind


@dataclass(frozen=True)
class SectionStyle:
    icon: str
    background: str
    border: str
    title: str


SECTION_STYLES: dict[SectionKind, SectionStyle] = {
    SectionKind.EXECUTIVE_SUMMARY: SectionStyle("layout-dashboard", "EFF6FF", "DBEAFE", "577AFF"),
    SectionKind.KEY_FINDINGS: SectionStyle("search", "ECFEFF", "CFFAFE", "577AFF"),
    SectionKind.DEEP_DIVE: SectionStyle("file-text", "EEF2FF", "E0E7FF", "31458F"),
    SectionKind.ROAST_AND_GOLD: SectionStyle("message-square", "FFF7ED", "FFEDD5", "577AFF"),
    SectionKind.TRANSCRIPT: SectionStyle("file-text", "FAF5FF", "F3E8FF", "577AFF"),
    SectionKind.GENERIC: SectionStyle("file-text", "FFFFFF", "EEF2FF", "383535"),
}

# Callout colours for "The Roast" / "The Gold" sub-headings.
CALLOUTS: dict[str, tuple[str, str]] = {
    "roast": ("FEF2F2", "DC2626"),
    "gold": ("FFFBEB", "D97706"),
}


def section_style(kind: SectionKind) -> SectionStyle:
    return SECTION_STYLES.get(kind, SECTION_STYLES[SectionKind.GENERIC])


def heading_variant(heading: Heading) -> Optional[str]:
    """"roast" or "gold" for level-3 callout headings, otherwise None."""
    if heading.level != 3:
        return None
    text = heading.text.lower()
    if "the roast" in text:
        return "roast"
    if "the gold" in text:
        return "gold"
    return None
