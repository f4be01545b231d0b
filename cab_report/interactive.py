"""
interactive.py — Interactive Renderer.

Turns a Document into a ViewNode tree for a live UI: one node per section,
side-data panels ahead of the sections, and plain `type` / `props` /
`children` nodes that serialise straight to JSON (see ViewNode.to_dict).

Each section and each side-data panel is drawn inside a fault boundary. A
fault replaces only that unit with a `section_fallback` node carrying a
bounded preview of its raw text; the rest of the report renders normally.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from cab_report.boundary import guarded, preview
from cab_report.errors import RenderFault
from cab_report.model import (
    Blockquote,
    CodeBlock,
    Document,
    Emphasis,
    Heading,
    LineBreak,
    Link,
    ListBlock,
    Paragraph,
    Rule,
    Section,
    Strong,
    Table,
    Text,
    Code,
    is_renderable,
)
from cab_report.pipeline import ReportStream
from cab_report.settings import DEFAULT_SETTINGS, ReportSettings
from cab_report.telemetry import TelemetryReporter
from cab_report.theme import heading_variant, section_style

logger = logging.getLogger(__name__)

NO_CONTENT_MESSAGE = "No content to display"
MISSING_DOCUMENT_MESSAGE = "Report data is unavailable. Please regenerate the report."


@dataclass
class ViewNode:
    type: str
    props: dict[str, Any] = field(default_factory=dict)
    children: list["ViewNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.props:
            out["props"] = dict(self.props)
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out

    def find_all(self, node_type: str) -> list["ViewNode"]:
        """Depth-first list of descendant nodes (self included) of one type."""
        found = [self] if self.type == node_type else []
        for child in self.children:
            found.extend(child.find_all(node_type))
        return found


class InteractiveRenderer:
    """Document -> ViewNode tree.

    Args:
        settings: Renderer settings (preview limit, persona limit, product).
        telemetry: Reporter for section faults; logging only when None.
    """

    name = "interactive"

    def __init__(
        self,
        settings: ReportSettings = DEFAULT_SETTINGS,
        telemetry: Optional[TelemetryReporter] = None,
    ):
        self.settings = settings
        self.telemetry = telemetry

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def render(self, document: Optional[Document]) -> ViewNode:
        """Render a settled Document.

        A missing or invalid document gives a single blocking placeholder;
        an empty one gives the explicit no-content state.
        """
        if not is_renderable(document):
            logger.warning("No valid document to render (got %s)", type(document).__name__)
            return ViewNode("placeholder", {"reason": "missing", "message": MISSING_DOCUMENT_MESSAGE})

        root = ViewNode("report", {
            "title": self.settings.product.title,
            "product": self.settings.product.name,
            "truncated": document.truncated,
        })
        root.children.extend(self._panels(document))

        if document.is_empty:
            root.children.append(ViewNode("empty", {"message": NO_CONTENT_MESSAGE}))
            return root

        root.children.append(ViewNode("toc", {}, [
            ViewNode("toc_entry", {"target": s.id, "label": s.label, "kind": s.kind.value})
            for s in document.sections
        ]))
        for section in document.sections:
            root.children.append(self.render_section(section))
        return root

    def render_stream(self, stream: ReportStream) -> ViewNode:
        """Render a ReportStream: live text while streaming, else the settled view."""
        if stream.is_streaming:
            return ViewNode("report", {"streaming": True}, [
                ViewNode("streaming", {"text": stream.live_text}),
            ])
        if stream.document is None and not stream.live_text.strip():
            return ViewNode("placeholder", {"reason": "empty", "message": NO_CONTENT_MESSAGE})
        return self.render(stream.document)

    def render_section(self, section: Section) -> ViewNode:
        section_id = str(getattr(section, "id", "section-?"))
        label = str(getattr(section, "label", ""))
        source = getattr(section, "source", "")
        if not isinstance(source, str):
            source = ""
        return guarded(
            lambda: self._section(section),
            lambda exc: self._fallback(section_id, label, source, exc),
            {
                "renderer": self.name,
                "section_id": section_id,
                "kind": str(getattr(getattr(section, "kind", None), "value", "")),
            },
            self.telemetry,
        )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _section(self, section: Section) -> ViewNode:
        style = section_style(section.kind)
        return ViewNode(
            "section",
            {
                "id": section.id,
                "kind": section.kind.value,
                "label": section.label,
                "icon": style.icon,
                "background": f"#{style.background}",
                "border": f"#{style.border}",
                "title_color": f"#{style.title}",
            },
            self._blocks(section.blocks),
        )

    def _fallback(self, unit_id: str, label: str, source: str, exc: BaseException) -> ViewNode:
        text, truncated = preview(source, self.settings.render.fallback_preview_chars)
        return ViewNode("section_fallback", {
            "id": unit_id,
            "label": label,
            "error": type(exc).__name__,
            "text": text,
            "truncated": truncated,
        })

    # ------------------------------------------------------------------
    # Blocks and runs
    # ------------------------------------------------------------------

    def _blocks(self, blocks) -> list[ViewNode]:
        return [self._block(b) for b in blocks]

    def _block(self, block) -> ViewNode:
        if isinstance(block, Heading):
            return ViewNode(
                "heading",
                {"level": block.level, "variant": heading_variant(block)},
                self._runs(block.runs),
            )
        if isinstance(block, Paragraph):
            return ViewNode("paragraph", {"literal": block.literal}, self._runs(block.runs))
        if isinstance(block, ListBlock):
            items = [
                ViewNode("list_item", {}, self._runs(item.runs) + self._blocks(item.blocks))
                for item in block.items
            ]
            return ViewNode("list", {"ordered": block.ordered, "start": block.start}, items)
        if isinstance(block, Table):
            return self._table(block)
        if isinstance(block, Blockquote):
            return ViewNode("blockquote", {}, self._blocks(block.blocks))
        if isinstance(block, CodeBlock):
            return ViewNode("code_block", {"language": block.language, "text": block.text})
        if isinstance(block, Rule):
            return ViewNode("rule")
        raise RenderFault(f"cannot render block {type(block).__name__}", block)

    def _table(self, table: Table) -> ViewNode:
        width = table.width

        def cell(c, column: int, header: bool) -> ViewNode:
            role = None
            if not header and width > 1:
                role = "lead" if column == 0 else "accent" if column == width - 1 else None
            align = table.align[column] if column < len(table.align) else None
            return ViewNode(
                "table_cell",
                {"header": header, "column": column, "role": role, "align": align},
                self._blocks(c.blocks),
            )

        head = ViewNode("table_row", {}, [cell(c, i, True) for i, c in enumerate(table.header)])
        body = [
            ViewNode("table_row", {}, [cell(c, i, False) for i, c in enumerate(row)])
            for row in table.rows
        ]
        return ViewNode("table", {"columns": width}, [
            ViewNode("table_head", {}, [head]),
            ViewNode("table_body", {}, body),
        ])

    def _runs(self, runs) -> list[ViewNode]:
        out = []
        for run in runs:
            if isinstance(run, Text):
                out.append(ViewNode("text", {"text": run.text}))
            elif isinstance(run, Strong):
                out.append(ViewNode("strong", {}, self._runs(run.children)))
            elif isinstance(run, Emphasis):
                out.append(ViewNode("emphasis", {}, self._runs(run.children)))
            elif isinstance(run, Code):
                out.append(ViewNode("code", {"text": run.text}))
            elif isinstance(run, Link):
                out.append(ViewNode("link", {"href": run.href}, self._runs(run.children)))
            elif isinstance(run, LineBreak):
                out.append(ViewNode("line_break"))
            else:
                raise RenderFault(f"cannot render inline run {type(run).__name__}", run)
        return out

    # ------------------------------------------------------------------
    # Side-data panels
    # ------------------------------------------------------------------

    def _panels(self, document: Document) -> list[ViewNode]:
        panels = []
        if document.board_members:
            panels.append(self._guard_panel("board-roster", "Board Roster",
                                            lambda: self._roster(document)))
        if document.personas:
            panels.append(self._guard_panel("personas", "Persona Breakdowns",
                                            lambda: self._personas(document)))
        if document.icp_profile is not None:
            panels.append(self._guard_panel("icp-profile", "Ideal Customer Profile",
                                            lambda: self._icp(document)))
        return panels

    def _guard_panel(self, panel_id: str, label: str, build) -> ViewNode:
        return guarded(
            build,
            lambda exc: self._fallback(panel_id, label, "", exc),
            {"renderer": self.name, "section_id": panel_id},
            self.telemetry,
        )

    def _roster(self, document: Document) -> ViewNode:
        members = [
            ViewNode("board_member", {
                "id": m.id,
                "name": m.name,
                "role": m.role,
                "company_type": m.company_type,
                "archetype": m.archetype,
                "expertise": m.expertise,
            })
            for m in document.board_members
        ]
        return ViewNode("board_roster", {"id": "board-roster", "count": len(members)}, members)

    def _personas(self, document: Document) -> ViewNode:
        limit = self.settings.render.persona_limit
        shown = document.personas[:limit]
        nodes = []
        for p in shown:
            stages = [
                ViewNode("decision_stage", {
                    "label": s.label,
                    "description": s.description,
                    "lists": [{"label": label, "items": list(items)} for label, items in s.lists if items],
                })
                for s in p.decision_stages
            ]
            nodes.append(ViewNode("persona", {
                "name": p.name,
                "title": p.title,
                "buyer_type": p.buyer_type,
                "age_range": p.age_range,
                "channels": list(p.channels),
                "titles": list(p.titles),
                "other_info": list(p.other_info),
                "attributes": list(p.attributes),
                "jobs_to_be_done": list(p.jobs_to_be_done),
                "challenges": list(p.challenges),
            }, stages))
        return ViewNode("personas", {
            "id": "personas",
            "count": len(shown),
            "total": len(document.personas),
        }, nodes)

    def _icp(self, document: Document) -> ViewNode:
        icp = document.icp_profile
        return ViewNode("icp_profile", {
            "id": "icp-profile",
            "use_case_fit": list(icp.use_case_fit),
            "signals": [
                {"category": s.category, "description": s.description,
                 "trigger_question": s.trigger_question}
                for s in icp.signals
            ],
            "titles": [{"department": t.department, "roles": list(t.roles)} for t in icp.titles],
            "extras": [{"label": label, "items": list(items)} for label, items in icp.extras],
        })
