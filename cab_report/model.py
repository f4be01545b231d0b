"""
model.py — Document / Block Model.

The single intermediate structure consumed by every renderer. A settle event
produces a brand-new Document; nothing in here is ever mutated after
construction (frozen dataclasses, tuples instead of lists).

Hierarchy:
    Document
      ├── sections: Section(kind, label, blocks, source)
      │     └── blocks: Heading | Paragraph | ListBlock | Table | Blockquote
      │                 | CodeBlock | Rule
      └── side data: BoardMember, PersonaBreakdown, ICPProfile

Inline content is a tuple of runs: Text, Strong, Emphasis, Code, Link,
LineBreak.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Union


class SectionKind(str, Enum):
    """Closed set of section categories; drives styling only."""

    EXECUTIVE_SUMMARY = "executive_summary"
    KEY_FINDINGS = "key_findings"
    DEEP_DIVE = "deep_dive"
    ROAST_AND_GOLD = "roast_and_gold"
    TRANSCRIPT = "transcript"
    GENERIC = "generic"


# ---------------------------------------------------------------------------
# Inline runs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Strong:
    children: tuple = ()


@dataclass(frozen=True)
class Emphasis:
    children: tuple = ()


@dataclass(frozen=True)
class Code:
    text: str


@dataclass(frozen=True)
class Link:
    href: str
    children: tuple = ()


@dataclass(frozen=True)
class LineBreak:
    pass


Run = Union[Text, Strong, Emphasis, Code, Link, LineBreak]


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Heading:
    level: int
    runs: tuple = ()

    @property
    def text(self) -> str:
        from cab_report.inline import plain_text
        return plain_text(self.runs)


@dataclass(frozen=True)
class Paragraph:
    """A run of inline content.

    literal=True marks source text that could not be parsed structurally;
    renderers must show it verbatim (a single Text run) instead of dropping it.
    """

    runs: tuple = ()
    literal: bool = False


@dataclass(frozen=True)
class ListItem:
    runs: tuple = ()
    blocks: tuple = ()  # nested lists and any further block content


@dataclass(frozen=True)
class ListBlock:
    ordered: bool
    items: tuple = ()
    start: int = 1


@dataclass(frozen=True)
class Cell:
    blocks: tuple = ()


@dataclass(frozen=True)
class Table:
    header: tuple = ()
    rows: tuple = ()
    align: tuple = ()  # per column: "left" | "center" | "right" | None

    @property
    def width(self) -> int:
        return max([len(self.header)] + [len(r) for r in self.rows])


@dataclass(frozen=True)
class Blockquote:
    blocks: tuple = ()


@dataclass(frozen=True)
class CodeBlock:
    text: str
    language: str = ""


@dataclass(frozen=True)
class Rule:
    pass


Block = Union[Heading, Paragraph, ListBlock, Table, Blockquote, CodeBlock, Rule]


def literal(text: str) -> Paragraph:
    """Literal-text fallback block for source that failed to parse."""
    return Paragraph(runs=(Text(text),), literal=True)


# ---------------------------------------------------------------------------
# Side data (resolved by the generation collaborator)
# ---------------------------------------------------------------------------

def _str_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if v is not None and str(v).strip())


@dataclass(frozen=True)
class BoardMember:
    id: str
    name: str
    role: str = ""
    company_type: str = ""
    expertise: str = ""
    archetype: str = ""
    avatar_style: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoardMember":
        name = str(data.get("name", "")).strip()
        return cls(
            id=str(data.get("id") or name),
            name=name,
            role=str(data.get("role", "")),
            company_type=str(data.get("companyType", data.get("company_type", ""))),
            expertise=str(data.get("expertise", "")),
            archetype=str(data.get("personalityArchetype", data.get("archetype", ""))),
            avatar_style=str(data.get("avatarStyle", data.get("avatar_style", "")) or ""),
        )


@dataclass(frozen=True)
class DecisionStage:
    label: str
    description: str = ""
    lists: tuple = ()  # (heading, items) pairs

    @property
    def is_empty(self) -> bool:
        return not self.description and not any(items for _, items in self.lists)


@dataclass(frozen=True)
class PersonaBreakdown:
    name: str
    title: str = ""
    buyer_type: str = ""
    age_range: str = ""
    channels: tuple = ()
    titles: tuple = ()
    other_info: tuple = ()
    attributes: tuple = ()
    jobs_to_be_done: tuple = ()
    decision_stages: tuple = ()
    challenges: tuple = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersonaBreakdown":
        process = data.get("decisionMakingProcess") or {}
        research = process.get("research") or {}
        evaluation = process.get("evaluation") or {}
        purchase = process.get("purchase") or {}
        stages = (
            DecisionStage(
                "Research",
                str(research.get("description", "")),
                (("Sources", _str_tuple(research.get("sources"))),),
            ),
            DecisionStage(
                "Evaluation",
                str(evaluation.get("description", "")),
                (("Factors", _str_tuple(evaluation.get("factors"))),),
            ),
            DecisionStage(
                "Purchase",
                str(purchase.get("description", "")),
                (
                    ("Purchase factors", _str_tuple(purchase.get("purchaseFactors"))),
                    ("Hesitations", _str_tuple(purchase.get("hesitations"))),
                ),
            ),
        )
        return cls(
            name=str(data.get("personaName", data.get("name", ""))),
            title=str(data.get("personaTitle", data.get("title", ""))),
            buyer_type=str(data.get("buyerType", "")),
            age_range=str(data.get("ageRange", "")),
            channels=_str_tuple(data.get("preferredCommunicationChannels")),
            titles=_str_tuple(data.get("titles")),
            other_info=_str_tuple(data.get("otherRelevantInfo")),
            attributes=_str_tuple(data.get("attributes")),
            jobs_to_be_done=_str_tuple(data.get("jobsToBeDone")),
            decision_stages=tuple(s for s in stages if not s.is_empty),
            challenges=_str_tuple(data.get("challenges")),
        )


@dataclass(frozen=True)
class Signal:
    category: str
    description: str = ""
    trigger_question: str = ""


@dataclass(frozen=True)
class TitleGroup:
    department: str
    roles: tuple = ()


ICP_EXTRA_LISTS = (
    ("psychographics", "Psychographics"),
    ("buyingTriggers", "Buying Triggers"),
    ("languagePatterns", "Language Patterns"),
    ("narrativeFrames", "Narrative Frames"),
    ("objections", "Objections"),
    ("copyAngles", "Copy Angles"),
    ("leadBehavioralPatterns", "Lead Behavioral Patterns"),
)


@dataclass(frozen=True)
class ICPProfile:
    use_case_fit: tuple = ()
    signals: tuple = ()
    titles: tuple = ()
    extras: tuple = ()  # (label, items) pairs, only non-empty lists

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ICPProfile":
        signals = tuple(
            Signal(
                category=str(s.get("category", "")),
                description=str(s.get("description", "")),
                trigger_question=str(s.get("triggerQuestion", "") or ""),
            )
            for s in data.get("signalsAndAttributes") or []
            if isinstance(s, dict)
        )
        titles = tuple(
            TitleGroup(str(t.get("department", "")), _str_tuple(t.get("roles")))
            for t in data.get("titles") or []
            if isinstance(t, dict)
        )
        extras = tuple(
            (label, _str_tuple(data.get(key)))
            for key, label in ICP_EXTRA_LISTS
            if _str_tuple(data.get(key))
        )
        return cls(
            use_case_fit=_str_tuple(data.get("useCaseFit")),
            signals=signals,
            titles=titles,
            extras=extras,
        )


# ---------------------------------------------------------------------------
# Sections and the document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Section:
    id: str
    index: int
    title: Optional[str]
    kind: SectionKind
    label: str
    blocks: tuple = ()
    source: str = ""


@dataclass(frozen=True)
class Document:
    sections: tuple = ()
    board_members: tuple = ()
    personas: tuple = ()
    icp_profile: Optional[ICPProfile] = None
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.sections

    @property
    def has_side_data(self) -> bool:
        return bool(self.board_members or self.personas or self.icp_profile)

    def with_side_data(
        self,
        board_members=None,
        personas=None,
        icp_profile=None,
    ) -> "Document":
        """Return a copy with side data attached; sections are reused as-is."""
        return replace(
            self,
            board_members=coerce_members(board_members),
            personas=coerce_personas(personas),
            icp_profile=coerce_icp(icp_profile),
        )


def is_renderable(document: Any) -> bool:
    """True for a Document whose sections are all Section objects with a SectionKind.

    Renderers treat anything else as a missing document and show the
    blocking placeholder instead of walking it.
    """
    if not isinstance(document, Document) or not isinstance(document.sections, tuple):
        return False
    return all(
        isinstance(s, Section) and isinstance(s.kind, SectionKind)
        for s in document.sections
    )


def coerce_members(items) -> tuple:
    """Accept BoardMember objects or raw dicts; skip anything else."""
    out = []
    for item in items or ():
        if isinstance(item, BoardMember):
            out.append(item)
        elif isinstance(item, dict):
            out.append(BoardMember.from_dict(item))
    return tuple(out)


def coerce_personas(items) -> tuple:
    out = []
    for item in items or ():
        if isinstance(item, PersonaBreakdown):
            out.append(item)
        elif isinstance(item, dict):
            out.append(PersonaBreakdown.from_dict(item))
    return tuple(out)


def coerce_icp(item) -> Optional[ICPProfile]:
    if item is None or isinstance(item, ICPProfile):
        return item
    if isinstance(item, dict):
        return ICPProfile.from_dict(item)
    return None
