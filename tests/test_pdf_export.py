"""
test_pdf_export.py — Unit tests for the PDF exporter.

Tests cover:
    - PDF bytes for full, empty and missing documents
    - Side-data panels and every block type render without error
    - Fault isolation, including layout errors caught by the trial layout
    - Neighbours of a failing section still laid out; malformed entries rejected
    - Writing the file with the export filename
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cab_report.model import (
    Cell,
    Document,
    LineBreak,
    Paragraph,
    Section,
    SectionKind,
    Table,
    Text,
)
from cab_report import pdf_export
from cab_report.pdf_export import _hex, _markup, export_pdf, render_pdf
from cab_report.pipeline import build_document
from cab_report.settings import DEFAULT_SETTINGS
from cab_report.telemetry import RecordingTelemetry


NOW = datetime(2024, 3, 5, 9, 7, 3)

REPORT = """# Executive Dashboard
| Metric | Trend | Status |
|---|:-:|---|
| NPS | up | **Green**<br>- stable<br>- rising |

# The Roast & The Gold
### The Roast
Onboarding is slow & <clunky>.
### The Gold
See [docs](https://example.com) and `code`.

# Deep Dive
1. one
   - nested
2. two

> quoted

```
print("x")
```

---
"""

SIDE = {
    "board_members": [{"id": "m1", "name": "Dana", "role": "CFO", "companyType": "SaaS"}],
    "personas": [{
        "personaName": "Ops Olivia",
        "personaTitle": "Head of Ops",
        "jobsToBeDone": ["Cut manual work"],
        "decisionMakingProcess": {"research": {"description": "Peers", "sources": ["Forums"]}},
    }],
    "icp_profile": {
        "useCaseFit": ["SaaS"],
        "signalsAndAttributes": [{"category": "Growth", "description": "Hiring"}],
        "titles": [{"department": "Ops", "roles": ["COO"]}],
        "objections": ["Price"],
    },
}


def _tall_table_section() -> Section:
    lines = []
    for i in range(400):
        lines += [Text(f"line {i}"), LineBreak()]
    table = Table(
        header=(Cell((Paragraph(runs=(Text("Notes"),)),)),),
        rows=((Cell((Paragraph(runs=tuple(lines)),)),),),
    )
    return Section(
        id="section-1", index=0, title="Tall", kind=SectionKind.GENERIC,
        label="Tall", blocks=(table,), source="| Notes |\n|---|\n| very tall |",
    )


class TestHelpers:
    """Tests for colour and markup helpers."""

    def test_hex(self):
        c = _hex("#FF0000")
        assert (c.red, c.green, c.blue) == (1.0, 0.0, 0.0)

    def test_markup_escapes_text(self):
        assert _markup((Text("a < b & c"),), DEFAULT_SETTINGS.brand) == "a &lt; b &amp; c"

    def test_markup_line_break(self):
        assert _markup((Text("a"), LineBreak(), Text("b")), DEFAULT_SETTINGS.brand) == "a<br/>b"


class TestRenderPdf:
    """Tests for render_pdf()."""

    def test_full_document(self):
        data = render_pdf(build_document(REPORT, **SIDE), generated_at=NOW)
        assert data.startswith(b"%PDF")

    def test_empty_document(self):
        assert render_pdf(build_document(""), generated_at=NOW).startswith(b"%PDF")

    def test_missing_document(self):
        assert render_pdf(None, generated_at=NOW).startswith(b"%PDF")

    def test_no_faults_for_valid_document(self):
        recorder = RecordingTelemetry()
        render_pdf(build_document(REPORT, **SIDE), telemetry=recorder, generated_at=NOW)
        assert recorder.reports == []

    def test_bad_block_isolated(self):
        recorder = RecordingTelemetry()
        broken = Section(
            id="section-1", index=0, title="Broken", kind=SectionKind.GENERIC,
            label="Broken", blocks=(object(),), source="raw <source>",
        )
        good = build_document("# Next Steps\nShip it.").sections[0]
        data = render_pdf(Document(sections=(broken, good)), telemetry=recorder, generated_at=NOW)
        assert data.startswith(b"%PDF")
        assert len(recorder.reports) == 1
        assert recorder.reports[0]["context"]["renderer"] == "pdf"

    def test_neighbours_of_failing_section_render(self, monkeypatch):
        built = []
        real = pdf_export._section_flowables

        def spy(section, builder, styles):
            built.append(section.id)
            return real(section, builder, styles)

        monkeypatch.setattr(pdf_export, "_section_flowables", spy)
        recorder = RecordingTelemetry()
        first, _, third = build_document(REPORT).sections
        broken = Section(
            id="section-2", index=1, title="Broken", kind=SectionKind.GENERIC,
            label="Broken", blocks=(object(),), source="raw",
        )
        data = render_pdf(Document(sections=(first, broken, third)),
                          telemetry=recorder, generated_at=NOW)
        assert data.startswith(b"%PDF")
        assert [r["context"]["section_id"] for r in recorder.reports] == ["section-2"]
        # trial layout plus the real one for each healthy section
        assert built.count("section-1") == 2
        assert built.count("section-3") == 2

    def test_malformed_section_entry(self, monkeypatch):
        built = []
        monkeypatch.setattr(pdf_export, "_section_flowables",
                            lambda section, builder, styles: built.append(section) or [])
        good = build_document("# Next Steps\nShip it.").sections[0]
        data = render_pdf(Document(sections=(good, None)), generated_at=NOW)
        assert data.startswith(b"%PDF")
        assert built == []

    def test_layout_error_isolated(self):
        recorder = RecordingTelemetry()
        data = render_pdf(Document(sections=(_tall_table_section(),)),
                          telemetry=recorder, generated_at=NOW)
        assert data.startswith(b"%PDF")
        assert len(recorder.reports) == 1
        assert recorder.reports[0]["context"]["section_id"] == "section-1"


class TestExportPdf:
    """Tests for export_pdf()."""

    def test_writes_file(self, tmp_path):
        path = export_pdf(build_document(REPORT), str(tmp_path), now=NOW)
        assert path.name == "The_Zulu_Method_CAB_Report_20240305_090703.pdf"
        assert path.read_bytes().startswith(b"%PDF")

    @pytest.mark.parametrize("doc", [None, Document()])
    def test_degenerate_documents_still_written(self, tmp_path, doc):
        assert export_pdf(doc, str(tmp_path), now=NOW).exists()
