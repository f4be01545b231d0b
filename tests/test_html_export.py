"""
test_html_export.py — Unit tests for the static HTML exporter.

Tests cover:
    - Export filename format
    - Self-contained output: no scripts, no external resources
    - Escaping of report text and unsafe links
    - Well-formed markup (parsed as XML)
    - Section fallbacks with intact neighbours
    - Empty, missing and malformed documents
    - Side-data panels
    - Writing the file to disk
"""

import sys
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cab_report.html_export import export_filename, export_html, render_html
from cab_report.model import Document, Link, Paragraph, Section, SectionKind, Text
from cab_report.pipeline import build_document
from cab_report.telemetry import RecordingTelemetry


NOW = datetime(2024, 3, 5, 9, 7, 3)

REPORT = """# Executive Dashboard
| Metric | Status |
|---|---|
| NPS | **Green**<br>- stable<br>- rising |

# The Roast & The Gold
### The Roast
Onboarding <script>alert(1)</script> is slow & clunky.
### The Gold
See [the docs](https://example.com/docs) and [this](javascript:alert(1)).

# Deep Dive
1. one
   - nested
2. two

> quoted

```python
print("<x>")
```

---
"""

SIDE = {
    "board_members": [{"id": "m1", "name": "Dana <CFO>", "role": "Finance"}],
    "personas": [{"personaName": "Ops Olivia", "jobsToBeDone": ["Cut manual work"]}],
    "icp_profile": {"useCaseFit": ["SaaS"], "signalsAndAttributes": [{"category": "Growth"}]},
}


def _parse(page: str) -> ET.Element:
    body = page.split("\n", 1)[1]
    return ET.fromstring(body)


@pytest.fixture
def page():
    return render_html(build_document(REPORT, **SIDE), generated_at=NOW)


class TestFilename:
    """Tests for export_filename()."""

    def test_default_prefix(self):
        name = export_filename("The_Zulu_Method_CAB", NOW)
        assert name == "The_Zulu_Method_CAB_Report_20240305_090703.html"

    def test_other_extension(self):
        assert export_filename("X", NOW, "pdf") == "X_Report_20240305_090703.pdf"


class TestSelfContained:
    """The page must open offline with nothing but the file."""

    def test_doctype_and_charset(self, page):
        assert page.startswith("<!DOCTYPE html>")
        assert '<meta charset="UTF-8" />' in page

    def test_no_scripts_or_external_resources(self, page):
        lowered = page.lower()
        assert "<script" not in lowered
        assert "<link" not in lowered
        assert "@import" not in lowered
        assert "src=" not in lowered

    def test_single_style_element(self, page):
        assert page.count("<style>") == 1


class TestEscaping:
    """Tests for text and link escaping."""

    def test_script_text_escaped(self, page):
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in page

    def test_ampersand_escaped(self, page):
        assert "slow &amp; clunky" in page

    def test_side_data_escaped(self, page):
        assert "Dana &lt;CFO&gt;" in page

    def test_safe_link_kept(self, page):
        assert '<a href="https://example.com/docs">the docs</a>' in page

    def test_unsafe_markdown_link_not_linked(self, page):
        assert 'href="javascript' not in page

    def test_unsafe_link_run_rendered_as_text(self):
        section = Section(
            id="section-1", index=0, title="Links", kind=SectionKind.GENERIC, label="Links",
            blocks=(Paragraph(runs=(Link("javascript:alert(1)", (Text("click"),)),)),),
        )
        page = render_html(Document(sections=(section,)), generated_at=NOW)
        assert "<p>click</p>" in page
        assert "javascript" not in page

    def test_code_block_escaped(self, page):
        assert "print(&quot;&lt;x&gt;&quot;)" in page


class TestStructure:
    """Tests for the page layout."""

    def test_well_formed(self, page):
        root = _parse(page)
        assert root.tag == "html"

    def test_one_section_per_report_section(self, page):
        root = _parse(page)
        sections = [s for s in root.iter("section") if "section-fallback" not in s.get("class", "")]
        assert [s.get("id") for s in sections] == ["section-1", "section-2", "section-3"]

    def test_toc_links(self, page):
        root = _parse(page)
        nav = next(root.iter("nav"))
        assert [a.get("href") for a in nav.iter("a")] == ["#section-1", "#section-2", "#section-3"]

    def test_callout_classes(self, page):
        assert 'class="callout callout-roast"' in page
        assert 'class="callout callout-gold"' in page

    def test_cell_roles(self, page):
        assert '<td class="lead">NPS</td>' in page
        assert '<td class="accent">' in page

    def test_cell_list_rendered(self, page):
        assert "<li>stable</li>" in page

    def test_nested_list_and_blocks(self, page):
        root = _parse(page)
        assert list(root.iter("ol"))
        assert list(root.iter("blockquote"))
        assert list(root.iter("hr"))
        code = next(root.iter("pre")).find("code")
        assert code.get("class") == "language-python"

    def test_side_data_panels(self, page):
        root = _parse(page)
        ids = [d.get("id") for d in root.iter("details") if d.get("id")]
        assert ids == ["board-roster", "personas", "icp-profile"]


class TestStates:
    """Tests for fallbacks and document states."""

    def test_fallback_section(self):
        recorder = RecordingTelemetry()
        broken = Section(
            id="section-1", index=0, title="Broken", kind=SectionKind.GENERIC,
            label="Broken", blocks=(object(),), source="raw <b>source</b>",
        )
        good = Section(
            id="section-2", index=1, title="Next Steps", kind=SectionKind.GENERIC,
            label="Next Steps", blocks=(Paragraph(runs=(Text("Ship it."),)),),
        )
        page = render_html(Document(sections=(broken, good)), telemetry=recorder, generated_at=NOW)
        assert 'class="section section-fallback"' in page
        assert "raw &lt;b&gt;source&lt;/b&gt;" in page
        assert "Ship it." in page
        assert len(recorder.reports) == 1
        _parse(page)

    def test_neighbours_of_failing_section_render(self):
        recorder = RecordingTelemetry()
        first, second, third = build_document(REPORT).sections
        broken = Section(
            id="section-2", index=1, title="Broken", kind=SectionKind.GENERIC,
            label="Broken", blocks=(object(),), source="raw",
        )
        page = render_html(Document(sections=(first, broken, third)),
                           telemetry=recorder, generated_at=NOW)
        root = _parse(page)
        classes = {s.get("id"): s.get("class") for s in root.iter("section")}
        assert classes["section-1"] == "section kind-executive_summary"
        assert classes["section-2"] == "section section-fallback"
        assert classes["section-3"].startswith("section kind-")
        assert len(recorder.reports) == 1

    @pytest.mark.parametrize("entry", [
        None,
        Section(id="section-1", index=0, title="X", kind="generic", label="X"),
    ])
    def test_malformed_section_entry(self, entry):
        good = build_document("# Next Steps\nShip it.").sections[0]
        page = render_html(Document(sections=(good, entry)), generated_at=NOW)
        assert "Report data is unavailable" in page
        assert "Ship it." not in page
        _parse(page)

    def test_empty_document(self):
        page = render_html(build_document(""), generated_at=NOW)
        assert "No content to display" in page
        _parse(page)

    def test_missing_document(self):
        page = render_html(None, generated_at=NOW)
        assert "Report data is unavailable" in page
        _parse(page)

    def test_truncated_notice(self):
        page = render_html(Document(truncated=True), generated_at=NOW)
        assert "This report was truncated for display." in page


class TestExport:
    """Tests for export_html()."""

    def test_writes_file(self, tmp_path):
        path = export_html(build_document(REPORT), str(tmp_path), now=NOW)
        assert path == tmp_path / "The_Zulu_Method_CAB_Report_20240305_090703.html"
        assert path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "out"
        path = export_html(None, str(target), now=NOW)
        assert path.exists()
