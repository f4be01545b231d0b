"""
pdf_export.py — Static PDF / print Exporter.

Lays the same Document out as a multi-page A4 PDF using ReportLab (platypus
layout engine):

    Page 1:   Cover — product title, product name, generation time
    Page 2+:  Board roster, persona and ICP summaries (when present),
              then every report section with a coloured header band

Section isolation works as in the other renderers, with one extra step: a
section's flowables are first laid out in a throwaway document, so layout
errors (a table row taller than the page, for example) are caught by the
section's fault boundary instead of aborting the whole build.
"""

import html
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import (
    BaseDocTemplate,
    Frame,
    Indenter,
    NextPageTemplate,
    PageBreak,
    PageTemplate,
    Paragraph,
    Preformatted,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.platypus.flowables import HRFlowable

from cab_report.boundary import guarded, preview
from cab_report.errors import RenderFault
from cab_report.html_export import export_filename
from cab_report.model import (
    Blockquote,
    Code,
    CodeBlock,
    Document,
    Emphasis,
    Heading,
    LineBreak,
    Link,
    ListBlock,
    Paragraph as ParagraphBlock,
    Rule,
    Section,
    Strong,
    Table as TableBlock,
    Text,
    is_renderable,
)
from cab_report.settings import DEFAULT_SETTINGS, BrandSettings, ReportSettings
from cab_report.telemetry import TelemetryReporter
from cab_report.theme import CALLOUTS, heading_variant, section_style

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = A4
MARGIN = 1.8 * cm
CONTENT_W = PAGE_W - 2 * MARGIN
CONTENT_H = PAGE_H - 3.4 * cm

_SAFE_HREF_RE = re.compile(r"^(?:https?:|mailto:)", re.IGNORECASE)
_CODE_LINE_CHARS = 95


def _hex(h: str):
    """Convert a hex colour string to ReportLab Color."""
    h = h.lstrip("#")
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return colors.Color(r / 255, g / 255, b / 255)


def _x(text: str) -> str:
    """Escape text for ReportLab paragraph markup."""
    return html.escape(text, quote=False)


# ---------------------------------------------------------------------------
# Stylesheet
# ---------------------------------------------------------------------------

def _build_styles(brand: BrandSettings) -> dict[str, ParagraphStyle]:
    """Create all paragraph styles used in the export.

    Args:
        brand: Brand colours from settings.

    Returns:
        Dict of named ParagraphStyle objects.
    """
    navy = _hex(brand.navy)
    text_col = _hex(brand.text)

    styles = {}
    styles["cover_title"] = ParagraphStyle(
        "cover_title", fontName="Helvetica-Bold", fontSize=28, leading=34,
        textColor=colors.white, alignment=TA_LEFT, spaceAfter=6,
    )
    styles["cover_subtitle"] = ParagraphStyle(
        "cover_subtitle", fontName="Helvetica", fontSize=14,
        textColor=_hex(brand.accent_pale), spaceAfter=4,
    )
    styles["cover_meta"] = ParagraphStyle(
        "cover_meta", fontName="Helvetica-Bold", fontSize=11,
        textColor=_hex(brand.accent_light), leading=16,
    )
    styles["section_title"] = ParagraphStyle(
        "section_title", fontName="Helvetica-Bold", fontSize=15, leading=19, textColor=navy,
    )
    styles["panel_title"] = ParagraphStyle(
        "panel_title", fontName="Helvetica-Bold", fontSize=13, textColor=navy,
        spaceBefore=6, spaceAfter=6,
    )
    for level, size in zip(range(1, 7), (15, 13, 12, 11, 10, 10)):
        styles[f"h{level}"] = ParagraphStyle(
            f"h{level}", fontName="Helvetica-Bold", fontSize=size, leading=size + 4,
            textColor=navy, spaceBefore=8, spaceAfter=4,
        )
    for name, (bg, fg) in CALLOUTS.items():
        styles[f"callout_{name}"] = ParagraphStyle(
            f"callout_{name}", parent=styles["h3"], textColor=_hex(fg), backColor=_hex(bg),
            borderPadding=(4, 6, 4, 6), spaceBefore=12, spaceAfter=8,
        )
    styles["body"] = ParagraphStyle(
        "body", fontName="Helvetica", fontSize=9.5, leading=14, textColor=text_col, spaceAfter=6,
    )
    styles["literal"] = ParagraphStyle(
        "literal", parent=styles["body"], fontName="Courier", fontSize=8.5, leading=11,
        backColor=_hex(brand.paper),
    )
    styles["code"] = ParagraphStyle(
        "code", fontName="Courier", fontSize=8, leading=10.5, textColor=_hex(brand.tint),
        backColor=_hex(brand.ink), borderPadding=6, spaceBefore=6, spaceAfter=10,
    )
    styles["cell"] = ParagraphStyle(
        "cell", fontName="Helvetica", fontSize=8.5, leading=12, textColor=text_col,
    )
    styles["cell_lead"] = ParagraphStyle("cell_lead", parent=styles["cell"],
                                         fontName="Helvetica-Bold", textColor=_hex(brand.ink))
    styles["cell_accent"] = ParagraphStyle("cell_accent", parent=styles["cell"],
                                           textColor=_hex(brand.accent))
    styles["table_header"] = ParagraphStyle(
        "table_header", fontName="Helvetica-Bold", fontSize=8.5, leading=11,
        textColor=colors.white,
    )
    styles["fallback_note"] = ParagraphStyle(
        "fallback_note", parent=styles["body"], fontName="Helvetica-Oblique",
        textColor=colors.Color(0.73, 0.11, 0.11),
    )
    styles["notice"] = ParagraphStyle(
        "notice", parent=styles["body"], textColor=_hex(brand.muted), alignment=TA_CENTER,
    )
    return styles


# ---------------------------------------------------------------------------
# Page templates (header/footer)
# ---------------------------------------------------------------------------

class _HeaderFooterCanvas:
    """Draws the running header and footer on every page except the cover."""

    def __init__(self, settings: ReportSettings, stamp: str):
        self.brand = settings.brand
        self.product = settings.product
        self.stamp = stamp

    def draw_header_footer(self, canvas, doc):
        if doc.page == 1:
            return

        canvas.saveState()
        canvas.setFillColor(_hex(self.brand.navy))
        canvas.rect(0, PAGE_H - 1.2 * cm, PAGE_W, 1.2 * cm, fill=1, stroke=0)

        canvas.setFont("Helvetica-Bold", 9)
        canvas.setFillColor(colors.white)
        canvas.drawString(MARGIN, PAGE_H - 0.85 * cm, self.product.title)
        canvas.setFont("Helvetica", 9)
        canvas.drawRightString(PAGE_W - MARGIN, PAGE_H - 0.85 * cm, self.product.name)

        canvas.setStrokeColor(_hex(self.brand.navy))
        canvas.setLineWidth(0.5)
        canvas.line(MARGIN, 1.2 * cm, PAGE_W - MARGIN, 1.2 * cm)

        canvas.setFont("Helvetica", 7.5)
        canvas.setFillColor(colors.grey)
        canvas.drawRightString(PAGE_W - MARGIN, 0.7 * cm, f"Page {doc.page}")
        canvas.drawString(MARGIN, 0.7 * cm, f"Generated {self.stamp}")
        canvas.restoreState()


# ---------------------------------------------------------------------------
# Runs and blocks -> flowables
# ---------------------------------------------------------------------------

def _markup(runs, brand: BrandSettings) -> str:
    out = []
    for run in runs:
        if isinstance(run, Text):
            out.append(_x(run.text))
        elif isinstance(run, Strong):
            out.append(f"<b>{_markup(run.children, brand)}</b>")
        elif isinstance(run, Emphasis):
            out.append(f"<i>{_markup(run.children, brand)}</i>")
        elif isinstance(run, Code):
            out.append(f'<font face="Courier">{_x(run.text)}</font>')
        elif isinstance(run, Link):
            inner = _markup(run.children, brand)
            href = run.href.strip().replace('"', "%22")
            if _SAFE_HREF_RE.match(href):
                out.append(f'<a href="{_x(href)}" color="#{brand.accent}">{inner}</a>')
            else:
                out.append(inner)
        elif isinstance(run, LineBreak):
            out.append("<br/>")
        else:
            raise RenderFault(f"cannot export inline run {type(run).__name__}", run)
    return "".join(out)


class _FlowableBuilder:
    """Converts model blocks into ReportLab flowables."""

    def __init__(self, styles: dict[str, ParagraphStyle], brand: BrandSettings):
        self.styles = styles
        self.brand = brand
        self._indent_styles: dict[tuple[str, int], ParagraphStyle] = {}

    def _indented(self, base: str, depth: int) -> ParagraphStyle:
        key = (base, depth)
        if key not in self._indent_styles:
            parent = self.styles[base]
            self._indent_styles[key] = ParagraphStyle(
                f"{base}_list_{depth}", parent=parent,
                leftIndent=parent.leftIndent + 14 * depth, bulletIndent=parent.leftIndent + 14 * depth - 10,
                spaceAfter=2,
            )
        return self._indent_styles[key]

    def blocks(self, blocks, base: str = "body", depth: int = 0) -> list:
        out = []
        for block in blocks:
            out.extend(self.block(block, base, depth))
        return out

    def block(self, block, base: str = "body", depth: int = 0) -> list:
        if isinstance(block, Heading):
            variant = heading_variant(block)
            style = self.styles[f"callout_{variant}"] if variant else self.styles[f"h{block.level}"]
            return [Paragraph(_markup(block.runs, self.brand), style)]
        if isinstance(block, ParagraphBlock):
            if block.literal:
                text = _x("".join(r.text for r in block.runs if isinstance(r, Text)))
                return [Paragraph(text.replace("\n", "<br/>"), self.styles["literal"])]
            return [Paragraph(_markup(block.runs, self.brand), self.styles[base])]
        if isinstance(block, ListBlock):
            return self._list(block, base, depth + 1)
        if isinstance(block, TableBlock):
            return [self._table(block), Spacer(1, 0.25 * cm)]
        if isinstance(block, Blockquote):
            return [Indenter(left=14)] + self.blocks(block.blocks, base, depth) + [Indenter(left=-14)]
        if isinstance(block, CodeBlock):
            return [Preformatted(block.text, self.styles["code"], maxLineLength=_CODE_LINE_CHARS)]
        if isinstance(block, Rule):
            return [HRFlowable(width="100%", thickness=0.6, color=_hex(self.brand.tint),
                               spaceBefore=6, spaceAfter=6)]
        raise RenderFault(f"cannot export block {type(block).__name__}", block)

    def _list(self, block: ListBlock, base: str, depth: int) -> list:
        style = self._indented(base, depth)
        out = []
        for n, item in enumerate(block.items, start=block.start):
            bullet = f"{n}." if block.ordered else "•"
            out.append(Paragraph(_markup(item.runs, self.brand), style, bulletText=bullet))
            out.extend(self.blocks(item.blocks, base, depth))
        return out

    def _cell(self, cell, style_name: str) -> list:
        flows = self.blocks(cell.blocks, base=style_name)
        return flows or [Paragraph("", self.styles[style_name])]

    def _table(self, table: TableBlock) -> Table:
        width = table.width

        def style_for(col: int) -> str:
            if width > 1 and col == 0:
                return "cell_lead"
            if width > 1 and col == width - 1:
                return "cell_accent"
            return "cell"

        header = [self._cell(c, "table_header") for c in table.header]
        header += [[Paragraph("", self.styles["table_header"])] for _ in range(width - len(header))]
        data = [header]
        for row in table.rows:
            cells = [self._cell(c, style_for(i)) for i, c in enumerate(row)]
            cells += [[Paragraph("", self.styles["cell"])] for _ in range(width - len(cells))]
            data.append(cells)

        t = Table(data, colWidths=[CONTENT_W / width] * width, repeatRows=1)
        ts = TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), _hex(self.brand.navy)),
            ("GRID", (0, 0), (-1, -1), 0.4, _hex(self.brand.tint)),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
            ("LEFTPADDING", (0, 0), (-1, -1), 5),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ])
        for row_idx in range(2, len(data), 2):
            ts.add("BACKGROUND", (0, row_idx), (-1, row_idx), _hex(self.brand.paper))
        t.setStyle(ts)
        return t


# ---------------------------------------------------------------------------
# Page content builders
# ---------------------------------------------------------------------------

def _cover(settings: ReportSettings, styles: dict, stamp: str, document) -> list:
    brand = settings.brand
    count = len(document.sections) if is_renderable(document) else 0
    cover_content = [
        Spacer(1, 5 * cm),
        Paragraph(_x(settings.product.title), styles["cover_title"]),
        Paragraph(_x(settings.product.name), styles["cover_subtitle"]),
        Spacer(1, 0.5 * cm),
        HRFlowable(width=CONTENT_W, thickness=1.5, color=_hex(brand.accent), spaceAfter=10),
        Paragraph(f"Generated: {_x(stamp)}", styles["cover_meta"]),
        Paragraph(f"Sections: {count}", styles["cover_meta"]),
    ]
    cover_table = Table([[cover_content]], colWidths=[PAGE_W], rowHeights=[PAGE_H])
    cover_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, 0), _hex(brand.navy)),
        ("LEFTPADDING", (0, 0), (0, 0), MARGIN + 0.5 * cm),
        ("TOPPADDING", (0, 0), (0, 0), 0),
        ("VALIGN", (0, 0), (0, 0), "TOP"),
    ]))
    return [cover_table, NextPageTemplate("Content"), PageBreak()]


def _section_flowables(section: Section, builder: _FlowableBuilder, styles: dict) -> list:
    style = section_style(section.kind)
    title = ParagraphStyle(f"title_{section.kind.value}", parent=styles["section_title"],
                           textColor=_hex(style.title))
    band = Table([[Paragraph(_x(section.label), title)]], colWidths=[CONTENT_W])
    band.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), _hex(style.background)),
        ("LINEBELOW", (0, 0), (-1, -1), 1, _hex(style.border)),
        ("TOPPADDING", (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ("LEFTPADDING", (0, 0), (-1, -1), 10),
    ]))
    return [band, Spacer(1, 0.3 * cm)] + builder.blocks(section.blocks) + [Spacer(1, 0.6 * cm)]


def _fallback_flowables(label: str, source: str, styles: dict, limit: int) -> list:
    text, truncated = preview(source, limit)
    return [
        Paragraph(_x(label), styles["section_title"]),
        Paragraph("This section could not be formatted. Raw content is shown below.",
                  styles["fallback_note"]),
        Preformatted(text + ("\n..." if truncated else ""), styles["literal"],
                     maxLineLength=_CODE_LINE_CHARS),
        Spacer(1, 0.6 * cm),
    ]


def _roster_flowables(document: Document, styles: dict, brand: BrandSettings) -> list:
    data = [[Paragraph(h, styles["table_header"]) for h in ("Name", "Role", "Company", "Archetype")]]
    for m in document.board_members:
        data.append([
            Paragraph(_x(m.name), styles["cell_lead"]),
            Paragraph(_x(m.role), styles["cell"]),
            Paragraph(_x(m.company_type), styles["cell"]),
            Paragraph(_x(m.archetype), styles["cell_accent"]),
        ])
    t = Table(data, colWidths=[CONTENT_W * w for w in (0.24, 0.28, 0.24, 0.24)], repeatRows=1)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), _hex(brand.navy)),
        ("GRID", (0, 0), (-1, -1), 0.4, _hex(brand.tint)),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return [Paragraph("Board Roster", styles["panel_title"]), t, Spacer(1, 0.5 * cm)]


def _bullets(items, style) -> list:
    return [Paragraph(_x(i), style, bulletText="•") for i in items]


def _persona_flowables(document: Document, styles: dict, limit: int) -> list:
    item_style = ParagraphStyle("persona_item", parent=styles["body"], leftIndent=14,
                                bulletIndent=4, spaceAfter=2)
    out = [Paragraph("Persona Breakdowns", styles["panel_title"])]
    for p in document.personas[:limit]:
        out.append(Paragraph(f"{_x(p.name)} &#183; {_x(p.title)}" if p.title else _x(p.name),
                             styles["h3"]))
        meta = " | ".join(v for v in (p.buyer_type, p.age_range and f"Age {p.age_range}") if v)
        if meta:
            out.append(Paragraph(_x(meta), styles["body"]))
        for label, items in (("Jobs to be done", p.jobs_to_be_done), ("Challenges", p.challenges),
                             ("Attributes", p.attributes), ("Channels", p.channels)):
            if items:
                out.append(Paragraph(label, styles["h5"]))
                out.extend(_bullets(items, item_style))
        for stage in p.decision_stages:
            out.append(Paragraph(_x(stage.label), styles["h5"]))
            if stage.description:
                out.append(Paragraph(_x(stage.description), styles["body"]))
            for label, items in stage.lists:
                out.extend(_bullets([f"{label}: {i}" for i in items], item_style))
    out.append(Spacer(1, 0.5 * cm))
    return out


def _icp_flowables(document: Document, styles: dict) -> list:
    icp = document.icp_profile
    item_style = ParagraphStyle("icp_item", parent=styles["body"], leftIndent=14,
                                bulletIndent=4, spaceAfter=2)
    out = [Paragraph("Ideal Customer Profile", styles["panel_title"])]
    if icp.use_case_fit:
        out.append(Paragraph("Use Case Fit", styles["h5"]))
        out.extend(_bullets(icp.use_case_fit, item_style))
    if icp.signals:
        out.append(Paragraph("Signals &amp; Attributes", styles["h5"]))
        out.extend(_bullets(
            [f"{s.category}: {s.description}" + (f" ({s.trigger_question})" if s.trigger_question else "")
             for s in icp.signals],
            item_style,
        ))
    for group in icp.titles:
        out.append(Paragraph(_x(group.department), styles["h5"]))
        out.extend(_bullets(group.roles, item_style))
    for label, items in icp.extras:
        out.append(Paragraph(_x(label), styles["h5"]))
        out.extend(_bullets(items, item_style))
    out.append(Spacer(1, 0.5 * cm))
    return out


# ---------------------------------------------------------------------------
# Document assembly
# ---------------------------------------------------------------------------

def _make_doc(target, on_page=None) -> BaseDocTemplate:
    doc = BaseDocTemplate(
        target,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=1.6 * cm,
        bottomMargin=1.8 * cm,
    )
    cover_frame = Frame(0, 0, PAGE_W, PAGE_H, leftPadding=0, rightPadding=0,
                        topPadding=0, bottomPadding=0)
    content_frame = Frame(MARGIN, 1.8 * cm, CONTENT_W, CONTENT_H)
    kwargs = {"onPage": on_page} if on_page else {}
    doc.addPageTemplates([
        PageTemplate(id="Cover", frames=[cover_frame]),
        PageTemplate(id="Content", frames=[content_frame], **kwargs),
    ])
    return doc


def _trial_layout(flowables: list) -> None:
    """Lay flowables out in a scratch document; raises on layout errors."""
    doc = BaseDocTemplate(io.BytesIO(), pagesize=A4)
    doc.addPageTemplates([PageTemplate(id="Trial", frames=[Frame(MARGIN, 1.8 * cm, CONTENT_W, CONTENT_H)])])
    doc.build(flowables)


def render_pdf(
    document: Optional[Document],
    settings: ReportSettings = DEFAULT_SETTINGS,
    telemetry: Optional[TelemetryReporter] = None,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render a Document as PDF bytes.

    Args:
        document: Settled Document. None gives a cover plus a placeholder notice.
        settings: Renderer settings.
        telemetry: Reporter for section faults.
        generated_at: Timestamp shown on the cover and footer; now when None.

    Returns:
        PDF file content.
    """
    generated_at = generated_at or datetime.now()
    stamp = generated_at.strftime("%A, %d %B %Y at %H:%M")
    brand = settings.brand
    limit = settings.render.fallback_preview_chars
    styles = _build_styles(brand)
    builder = _FlowableBuilder(styles, brand)

    def unit(unit_id: str, label: str, source: str, make) -> list:
        def build() -> list:
            _trial_layout(make())
            return make()
        return guarded(
            build,
            lambda exc: _fallback_flowables(label, source, styles, limit),
            {"renderer": "pdf", "section_id": unit_id},
            telemetry,
        )

    story = _cover(settings, styles, stamp, document)

    if not is_renderable(document):
        logger.warning("No valid document to export (got %s)", type(document).__name__)
        story.append(Paragraph("Report data is unavailable. Please regenerate the report.",
                               styles["notice"]))
    else:
        if document.board_members:
            story += unit("board-roster", "Board Roster", "",
                          lambda: _roster_flowables(document, styles, brand))
        if document.personas:
            story += unit("personas", "Persona Breakdowns", "",
                          lambda: _persona_flowables(document, styles, settings.render.persona_limit))
        if document.icp_profile is not None:
            story += unit("icp-profile", "Ideal Customer Profile", "",
                          lambda: _icp_flowables(document, styles))
        if document.is_empty:
            story.append(Paragraph("No content to display", styles["notice"]))
        for section in document.sections:
            story += unit(section.id, section.label, section.source,
                          lambda s=section: _section_flowables(s, builder, styles))
        if document.truncated:
            story.append(Paragraph("This report was truncated for display.", styles["notice"]))

    hf = _HeaderFooterCanvas(settings, stamp)

    def on_page(canvas, doc):
        hf.draw_header_footer(canvas, doc)

    buf = io.BytesIO()
    doc = _make_doc(buf, on_page)
    doc.build(story)
    return buf.getvalue()


def export_pdf(
    document: Optional[Document],
    output_dir: Optional[str] = None,
    settings: ReportSettings = DEFAULT_SETTINGS,
    telemetry: Optional[TelemetryReporter] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Assemble and write the PDF export.

    Args:
        document: Settled Document.
        output_dir: Target directory; settings.paths.output_dir when None.
        settings: Renderer settings.
        telemetry: Reporter for section faults.
        now: Export time used for the filename and cover.

    Returns:
        Path to the generated PDF file.
    """
    now = now or datetime.now()
    out_dir = Path(output_dir or settings.paths.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / export_filename(settings.product.export_prefix, now, "pdf")

    output_path.write_bytes(render_pdf(document, settings, telemetry, now))
    logger.info("PDF export saved to %s", output_path)
    return output_path
