"""
html_export.py — Static HTML Exporter.

Writes the whole report as one self-contained HTML file:

    - All CSS inline in a single <style> element; no <script>, no <link>,
      no external fonts or images, so the file opens anywhere offline
    - Board roster, persona breakdowns and ICP profile as <details> panels
    - Table of contents, then one <section> per report section with a
      coloured header band per section kind and a back-to-top link
    - Every text node and attribute value escaped; markup is kept
      XML-well-formed (self-closed void elements, numeric entities only)

Each section is drawn inside the same fault boundary the interactive view
uses: a failing section becomes an escaped raw-text preview.
"""

import html
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from cab_report.boundary import guarded, preview
from cab_report.errors import RenderFault
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
    Paragraph,
    Rule,
    Section,
    Strong,
    Table,
    Text,
    is_renderable,
)
from cab_report.settings import DEFAULT_SETTINGS, ReportSettings
from cab_report.telemetry import TelemetryReporter
from cab_report.theme import CALLOUTS, heading_variant, section_style

logger = logging.getLogger(__name__)

ICON_GLYPHS = {
    "layout-dashboard": "&#9638;",
    "search": "&#9906;",
    "file-text": "&#9636;",
    "message-square": "&#9993;",
}

_SAFE_HREF_RE = re.compile(r"^(?:https?:|mailto:|#|/|\./|\.\./|[^:]*$)", re.IGNORECASE)


def _e(text) -> str:
    return html.escape(str(text), quote=True)


def export_filename(prefix: str, now: Optional[datetime] = None, ext: str = "html") -> str:
    """`<prefix>_Report_<YYYYMMDD>_<HHMMSS>.<ext>` for the given time."""
    now = now or datetime.now()
    return f"{prefix}_Report_{now:%Y%m%d}_{now:%H%M%S}.{ext}"


# ---------------------------------------------------------------------------
# Stylesheet
# ---------------------------------------------------------------------------

def _build_css(settings: ReportSettings) -> str:
    b = settings.brand
    callouts = "".join(
        f".callout-{name}{{background:#{bg};border-left:4px solid #{fg};color:#{fg};"
        f"padding:8px 12px;border-radius:4px;}}"
        for name, (bg, fg) in CALLOUTS.items()
    )
    return f"""
        *{{box-sizing:border-box;}}
        body{{font-family:'Segoe UI',Arial,sans-serif;background:#{b.paper};color:#{b.text};
              margin:0;line-height:1.6;font-size:15px;}}
        .masthead{{background:#{b.navy};color:#fff;padding:28px 36px;}}
        .masthead h1{{margin:0 0 4px;font-size:24px;}}
        .masthead p{{margin:0;color:#{b.accent_pale};font-size:13px;}}
        main{{max-width:1040px;margin:0 auto;padding:24px;}}
        .notice{{background:#fff;border:1px solid #{b.tint};border-radius:8px;padding:18px;
                 color:#{b.muted};text-align:center;}}
        .panel{{background:#fff;border:1px solid #{b.tint};border-radius:8px;margin:0 0 14px;
                padding:0 16px;}}
        .panel summary{{cursor:pointer;font-weight:600;color:#{b.navy};padding:12px 0;}}
        .persona{{border-top:1px solid #{b.tint};padding:8px 0;}}
        .persona summary{{font-weight:600;color:#{b.deep};padding:6px 0;}}
        .meta{{color:#{b.muted};font-size:13px;}}
        .toc{{background:#fff;border:1px solid #{b.tint};border-radius:8px;padding:12px 20px;
              margin:0 0 20px;}}
        .toc h2{{font-size:15px;margin:4px 0;color:#{b.navy};}}
        .toc a{{color:#{b.accent};text-decoration:none;}}
        .section{{background:#fff;border:1px solid #{b.tint};border-radius:10px;margin:0 0 22px;
                  overflow:hidden;}}
        .section-head{{display:flex;align-items:center;gap:10px;padding:14px 20px;
                       border-bottom:1px solid;}}
        .section-head h2{{margin:0;font-size:19px;}}
        .icon{{font-size:18px;}}
        .section-body{{padding:8px 22px 12px;}}
        .section-body h3,.section-body h4,.section-body h5,.section-body h6{{color:#{b.navy};}}
        .literal,.raw{{white-space:pre-wrap;font-family:Consolas,monospace;font-size:13px;
                       background:#{b.paper};padding:10px;border-radius:4px;}}
        .fallback-note{{color:#B91C1C;font-size:13px;}}
        .table-wrap{{overflow-x:auto;margin:12px 0;}}
        table{{border-collapse:collapse;width:100%;font-size:14px;}}
        th{{background:#{b.navy};color:#fff;text-align:left;padding:8px 10px;}}
        td{{border-bottom:1px solid #{b.tint};padding:8px 10px;vertical-align:top;}}
        tr:nth-child(even) td{{background:#{b.paper};}}
        td ul,td ol{{margin:0;padding-left:18px;}}
        td.lead{{font-weight:600;color:#{b.ink};}}
        td.accent{{color:#{b.accent};}}
        blockquote{{border-left:3px solid #{b.accent_light};margin:10px 0;padding:2px 14px;
                    color:#{b.muted};}}
        pre{{background:#{b.ink};color:#{b.tint};padding:12px;border-radius:6px;overflow-x:auto;}}
        code{{font-family:Consolas,monospace;font-size:13px;}}
        a{{color:#{b.accent};}}
        hr{{border:none;border-top:1px solid #{b.tint};margin:18px 0;}}
        .back{{text-align:right;font-size:12px;margin:4px 0 0;}}
        footer{{text-align:center;padding:18px;color:#{b.muted};font-size:12px;}}
        {callouts}
        @media print{{.panel,.toc,.back{{display:none;}}.section{{break-inside:avoid;}}}}
    """


# ---------------------------------------------------------------------------
# Runs and blocks
# ---------------------------------------------------------------------------

def _runs(runs) -> str:
    out = []
    for run in runs:
        if isinstance(run, Text):
            out.append(_e(run.text))
        elif isinstance(run, Strong):
            out.append(f"<strong>{_runs(run.children)}</strong>")
        elif isinstance(run, Emphasis):
            out.append(f"<em>{_runs(run.children)}</em>")
        elif isinstance(run, Code):
            out.append(f"<code>{_e(run.text)}</code>")
        elif isinstance(run, Link):
            if _SAFE_HREF_RE.match(run.href.strip()):
                out.append(f'<a href="{_e(run.href)}">{_runs(run.children)}</a>')
            else:
                out.append(_runs(run.children))
        elif isinstance(run, LineBreak):
            out.append("<br />")
        else:
            raise RenderFault(f"cannot export inline run {type(run).__name__}", run)
    return "".join(out)


def _blocks(blocks) -> str:
    return "\n".join(_block(b) for b in blocks)


def _block(block) -> str:
    if isinstance(block, Heading):
        tag = f"h{min(block.level + 1, 6)}"
        variant = heading_variant(block)
        cls = f' class="callout callout-{variant}"' if variant else ""
        return f"<{tag}{cls}>{_runs(block.runs)}</{tag}>"
    if isinstance(block, Paragraph):
        if block.literal:
            return f'<p class="literal">{_runs(block.runs)}</p>'
        return f"<p>{_runs(block.runs)}</p>"
    if isinstance(block, ListBlock):
        items = "".join(
            f"<li>{_runs(item.runs)}{_blocks(item.blocks)}</li>" for item in block.items
        )
        if block.ordered:
            start = f' start="{block.start}"' if block.start != 1 else ""
            return f"<ol{start}>{items}</ol>"
        return f"<ul>{items}</ul>"
    if isinstance(block, Table):
        return _table(block)
    if isinstance(block, Blockquote):
        return f"<blockquote>{_blocks(block.blocks)}</blockquote>"
    if isinstance(block, CodeBlock):
        cls = f' class="language-{_e(block.language)}"' if block.language else ""
        return f"<pre><code{cls}>{_e(block.text)}</code></pre>"
    if isinstance(block, Rule):
        return "<hr />"
    raise RenderFault(f"cannot export block {type(block).__name__}", block)


def _cell_html(cell) -> str:
    # a lone paragraph renders inline to keep rows compact
    if len(cell.blocks) == 1 and isinstance(cell.blocks[0], Paragraph) and not cell.blocks[0].literal:
        return _runs(cell.blocks[0].runs)
    return _blocks(cell.blocks)


def _table(table: Table) -> str:
    width = table.width

    def style(col: int) -> str:
        align = table.align[col] if col < len(table.align) else None
        return f' style="text-align:{align}"' if align else ""

    head = "".join(f"<th{style(i)}>{_cell_html(c)}</th>" for i, c in enumerate(table.header))
    rows = []
    for row in table.rows:
        cells = []
        for i, c in enumerate(row):
            cls = ""
            if width > 1 and i == 0:
                cls = ' class="lead"'
            elif width > 1 and i == width - 1:
                cls = ' class="accent"'
            cells.append(f"<td{cls}{style(i)}>{_cell_html(c)}</td>")
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return (
        f'<div class="table-wrap"><table><thead><tr>{head}</tr></thead>'
        f"<tbody>{''.join(rows)}</tbody></table></div>"
    )


# ---------------------------------------------------------------------------
# Sections and panels
# ---------------------------------------------------------------------------

def _section(section: Section) -> str:
    style = section_style(section.kind)
    glyph = ICON_GLYPHS.get(style.icon, "&#9636;")
    return f"""
    <section id="{_e(section.id)}" class="section kind-{section.kind.value}">
        <div class="section-head" style="background:#{style.background};border-color:#{style.border};">
            <span class="icon" style="color:#{style.title};">{glyph}</span>
            <h2 style="color:#{style.title};">{_e(section.label)}</h2>
        </div>
        <div class="section-body">
{_blocks(section.blocks)}
        </div>
        <p class="back"><a href="#top">Back to top</a></p>
    </section>"""


def _fallback(unit_id: str, label: str, source: str, limit: int) -> str:
    text, truncated = preview(source, limit)
    more = "\n..." if truncated else ""
    return f"""
    <section id="{_e(unit_id)}" class="section section-fallback">
        <div class="section-head"><h2>{_e(label)}</h2></div>
        <div class="section-body">
            <p class="fallback-note">This section could not be formatted. Raw content is shown below.</p>
            <pre class="raw">{_e(text + more)}</pre>
        </div>
    </section>"""


def _list_html(items) -> str:
    items = [i for i in items if i]
    if not items:
        return ""
    return "<ul>" + "".join(f"<li>{_e(i)}</li>" for i in items) + "</ul>"


def _roster(document: Document) -> str:
    rows = "".join(
        f"<tr><td class=\"lead\">{_e(m.name)}</td><td>{_e(m.role)}</td>"
        f"<td>{_e(m.company_type)}</td><td class=\"accent\">{_e(m.archetype)}</td></tr>"
        for m in document.board_members
    )
    count = len(document.board_members)
    return f"""
    <details class="panel" id="board-roster">
        <summary>Board Roster ({count} member{'s' if count != 1 else ''})</summary>
        <div class="table-wrap"><table>
            <thead><tr><th>Name</th><th>Role</th><th>Company</th><th>Archetype</th></tr></thead>
            <tbody>{rows}</tbody>
        </table></div>
    </details>"""


def _personas(document: Document, limit: int) -> str:
    blocks = []
    for p in document.personas[:limit]:
        stages = ""
        for stage in p.decision_stages:
            lists = "".join(
                f"<p class=\"meta\">{_e(label)}</p>{_list_html(items)}"
                for label, items in stage.lists if items
            )
            desc = f"<p>{_e(stage.description)}</p>" if stage.description else ""
            stages += f"<h4>{_e(stage.label)}</h4>{desc}{lists}"
        fields = [
            ("Channels", p.channels), ("Titles", p.titles), ("Attributes", p.attributes),
            ("Jobs to be done", p.jobs_to_be_done), ("Challenges", p.challenges),
            ("Other relevant info", p.other_info),
        ]
        body = "".join(
            f"<h4>{_e(label)}</h4>{_list_html(items)}" for label, items in fields if items
        )
        meta = " | ".join(_e(v) for v in (p.buyer_type, p.age_range and f"Age {p.age_range}") if v)
        blocks.append(f"""
        <details class="persona">
            <summary>{_e(p.name)}{' &#183; ' + _e(p.title) if p.title else ''}</summary>
            <p class="meta">{meta}</p>
            {body}
            {stages}
        </details>""")
    shown = min(limit, len(document.personas))
    return f"""
    <details class="panel" id="personas">
        <summary>Persona Breakdowns ({shown} of {len(document.personas)})</summary>
        {''.join(blocks)}
    </details>"""


def _icp(document: Document) -> str:
    icp = document.icp_profile
    signals = "".join(
        f"<tr><td class=\"lead\">{_e(s.category)}</td><td>{_e(s.description)}</td>"
        f"<td class=\"accent\">{_e(s.trigger_question)}</td></tr>"
        for s in icp.signals
    )
    signals_html = (
        '<h4>Signals &amp; Attributes</h4><div class="table-wrap"><table><thead><tr>'
        "<th>Category</th><th>Description</th><th>Trigger question</th></tr></thead>"
        f"<tbody>{signals}</tbody></table></div>"
    ) if signals else ""
    titles = "".join(
        f"<h4>{_e(t.department)}</h4>{_list_html(t.roles)}" for t in icp.titles
    )
    extras = "".join(f"<h4>{_e(label)}</h4>{_list_html(items)}" for label, items in icp.extras)
    use_case = f"<h4>Use Case Fit</h4>{_list_html(icp.use_case_fit)}" if icp.use_case_fit else ""
    return f"""
    <details class="panel" id="icp-profile">
        <summary>Ideal Customer Profile</summary>
        {use_case}{signals_html}{titles}{extras}
    </details>"""


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def render_html(
    document: Optional[Document],
    settings: ReportSettings = DEFAULT_SETTINGS,
    telemetry: Optional[TelemetryReporter] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a Document as one self-contained HTML page.

    Args:
        document: Settled Document. None gives a page with a placeholder notice.
        settings: Renderer settings (brand colours, product names, limits).
        telemetry: Reporter for section faults.
        generated_at: Timestamp printed in the masthead; now when None.

    Returns:
        HTML text.
    """
    generated_at = generated_at or datetime.now()
    product = settings.product
    limit = settings.render.fallback_preview_chars

    def unit(unit_id: str, label: str, source: str, build) -> str:
        return guarded(
            build,
            lambda exc: _fallback(unit_id, label, source, limit),
            {"renderer": "html", "section_id": unit_id},
            telemetry,
        )

    parts = []
    if not is_renderable(document):
        logger.warning("No valid document to export (got %s)", type(document).__name__)
        parts.append('<p class="notice">Report data is unavailable. Please regenerate the report.</p>')
    else:
        if document.board_members:
            parts.append(unit("board-roster", "Board Roster", "", lambda: _roster(document)))
        if document.personas:
            parts.append(unit("personas", "Persona Breakdowns", "",
                              lambda: _personas(document, settings.render.persona_limit)))
        if document.icp_profile is not None:
            parts.append(unit("icp-profile", "Ideal Customer Profile", "", lambda: _icp(document)))

        if document.is_empty:
            parts.append('<p class="notice">No content to display</p>')
        else:
            toc = "".join(
                f'<li><a href="#{_e(s.id)}">{_e(s.label)}</a></li>' for s in document.sections
            )
            parts.append(f'<nav class="toc"><h2>Contents</h2><ol>{toc}</ol></nav>')
            for section in document.sections:
                parts.append(unit(
                    section.id, section.label, section.source,
                    lambda s=section: _section(s),
                ))
        if document.truncated:
            parts.append('<p class="notice">This report was truncated for display.</p>')

    stamp = generated_at.strftime("%d %B %Y at %H:%M")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width,initial-scale=1.0" />
    <title>{_e(product.title)} &#8211; {_e(product.name)}</title>
    <style>{_build_css(settings)}</style>
</head>
<body>
    <header class="masthead" id="top">
        <h1>{_e(product.title)}</h1>
        <p>{_e(product.name)} &#160;|&#160; Generated {_e(stamp)}</p>
    </header>
    <main>
{''.join(parts)}
    </main>
    <footer>{_e(product.name)} &#160;|&#160; {_e(product.title)} &#160;|&#160; {_e(stamp)}</footer>
</body>
</html>
"""


def export_html(
    document: Optional[Document],
    output_dir: Optional[str] = None,
    settings: ReportSettings = DEFAULT_SETTINGS,
    telemetry: Optional[TelemetryReporter] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Write the HTML export to disk.

    Args:
        document: Settled Document.
        output_dir: Target directory; settings.paths.output_dir when None.
        settings: Renderer settings.
        telemetry: Reporter for section faults.
        now: Export time used for the filename and masthead.

    Returns:
        Path to the written .html file.
    """
    now = now or datetime.now()
    out_dir = Path(output_dir or settings.paths.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / export_filename(settings.product.export_prefix, now, "html")

    output_path.write_text(render_html(document, settings, telemetry, now), encoding="utf-8")
    logger.info("HTML export saved to %s", output_path)
    return output_path
