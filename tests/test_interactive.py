"""
test_interactive.py — Unit tests for the interactive view tree renderer.

Tests cover:
    - Placeholder for a missing document or malformed section entries
    - Explicit empty state
    - Section nodes, table of contents, callout heading variants
    - Table cell roles and alignment
    - Fault isolation: a failing section becomes a fallback, siblings render
    - Side-data panels and the persona limit
    - Streaming preview and JSON serialisation
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cab_report.interactive import NO_CONTENT_MESSAGE, InteractiveRenderer
from cab_report.model import Document, Paragraph, Section, SectionKind, Text
from cab_report.pipeline import ReportStream, build_document
from cab_report.settings import ReportSettings, RenderSettings
from cab_report.telemetry import RecordingTelemetry


REPORT = """# Executive Dashboard
| Metric | Trend | Status |
|---|:-:|---|
| NPS | up | Green |

# The Roast & The Gold
### The Roast
Onboarding is slow.
### The Gold
Support is loved.
"""


def _broken_section(source: str = "raw text of the broken section") -> Section:
    return Section(
        id="section-9",
        index=8,
        title="Broken",
        kind=SectionKind.GENERIC,
        label="Broken",
        blocks=(Paragraph(runs=(Text("ok"),)), object()),
        source=source,
    )


@pytest.fixture
def recorder():
    return RecordingTelemetry()


@pytest.fixture
def renderer(recorder):
    return InteractiveRenderer(telemetry=recorder)


class TestDocumentStates:
    """Tests for missing, empty and populated documents."""

    def test_missing_document_placeholder(self, renderer):
        node = renderer.render(None)
        assert node.type == "placeholder"
        assert node.props["reason"] == "missing"

    def test_invalid_document_placeholder(self, renderer):
        assert renderer.render({"sections": []}).type == "placeholder"

    def test_non_section_entry_placeholder(self, renderer, recorder):
        good = build_document(REPORT).sections
        node = renderer.render(Document(sections=(good[0], None, good[1])))
        assert node.type == "placeholder"
        assert node.props["reason"] == "missing"
        assert recorder.reports == []

    def test_untyped_section_kind_placeholder(self, renderer):
        section = Section(id="section-1", index=0, title="X", kind="generic", label="X")
        assert renderer.render(Document(sections=(section,))).type == "placeholder"

    def test_empty_document_message(self, renderer):
        node = renderer.render(build_document(""))
        assert node.type == "report"
        empty = node.find_all("empty")
        assert len(empty) == 1
        assert empty[0].props["message"] == NO_CONTENT_MESSAGE
        assert node.find_all("section") == []

    def test_sections_and_toc(self, renderer):
        node = renderer.render(build_document(REPORT))
        sections = node.find_all("section")
        assert [s.props["id"] for s in sections] == ["section-1", "section-2"]
        entries = node.find_all("toc_entry")
        assert [e.props["target"] for e in entries] == ["section-1", "section-2"]
        assert sections[0].props["icon"] == "layout-dashboard"

    def test_truncated_flag_exposed(self, renderer):
        doc = Document(truncated=True)
        assert renderer.render(doc).props["truncated"] is True


class TestBlocks:
    """Tests for block-level nodes."""

    def test_callout_variants(self, renderer):
        node = renderer.render(build_document(REPORT))
        variants = [h.props["variant"] for h in node.find_all("heading")]
        assert variants == ["roast", "gold"]

    def test_table_cell_roles(self, renderer):
        node = renderer.render(build_document(REPORT))
        body_row = node.find_all("table_body")[0].children[0]
        roles = [c.props["role"] for c in body_row.children]
        assert roles == ["lead", None, "accent"]
        head_row = node.find_all("table_head")[0].children[0]
        assert all(c.props["role"] is None for c in head_row.children)

    def test_table_alignment(self, renderer):
        node = renderer.render(build_document(REPORT))
        cells = node.find_all("table_body")[0].children[0].children
        assert [c.props["align"] for c in cells] == [None, "center", None]


class TestFaultIsolation:
    """A failing section never takes the page down."""

    def test_fallback_replaces_only_failing_section(self, renderer, recorder):
        good = build_document(REPORT).sections[0]
        doc = Document(sections=(good, _broken_section()))
        node = renderer.render(doc)
        assert len(node.find_all("section")) == 1
        fallbacks = node.find_all("section_fallback")
        assert len(fallbacks) == 1
        assert fallbacks[0].props["id"] == "section-9"
        assert fallbacks[0].props["error"] == "RenderFault"
        assert fallbacks[0].props["text"] == "raw text of the broken section"
        assert len(recorder.reports) == 1
        assert recorder.reports[0]["context"]["section_id"] == "section-9"

    def test_neighbours_of_failing_section_render(self, renderer, recorder):
        first, second = build_document(REPORT).sections
        doc = Document(sections=(first, _broken_section(), second))
        node = renderer.render(doc)
        assert [s.props["id"] for s in node.find_all("section")] == ["section-1", "section-2"]
        assert [f.props["id"] for f in node.find_all("section_fallback")] == ["section-9"]
        entries = node.find_all("toc_entry")
        assert [e.props["target"] for e in entries] == ["section-1", "section-9", "section-2"]
        assert len(recorder.reports) == 1

    def test_fallback_preview_capped(self, renderer):
        doc = Document(sections=(_broken_section("x" * 6000),))
        fallback = renderer.render(doc).find_all("section_fallback")[0]
        assert len(fallback.props["text"]) == 5000
        assert fallback.props["truncated"] is True

    def test_preview_limit_configurable(self, recorder):
        settings = ReportSettings(render=RenderSettings(fallback_preview_chars=10))
        node = InteractiveRenderer(settings, recorder).render(Document(sections=(_broken_section(),)))
        assert node.find_all("section_fallback")[0].props["text"] == "raw text o"

    def test_failing_panel_isolated(self, renderer, recorder, monkeypatch):
        def boom(document):
            raise ValueError("bad roster")

        monkeypatch.setattr(renderer, "_roster", boom)
        doc = build_document(REPORT, board_members=[{"id": "m1", "name": "Dana"}])
        node = renderer.render(doc)
        assert node.find_all("section_fallback")[0].props["id"] == "board-roster"
        assert len(node.find_all("section")) == 2
        assert len(recorder.reports) == 1


class TestPanels:
    """Tests for side-data panels."""

    def test_no_panels_without_side_data(self, renderer):
        node = renderer.render(build_document(REPORT))
        assert node.find_all("board_roster") == []
        assert node.find_all("personas") == []

    def test_persona_limit(self, renderer):
        personas = [{"personaName": f"P{i}"} for i in range(7)]
        node = renderer.render(build_document(REPORT, personas=personas))
        panel = node.find_all("personas")[0]
        assert panel.props["count"] == 5
        assert panel.props["total"] == 7
        assert len(panel.children) == 5

    def test_roster_and_icp(self, renderer):
        doc = build_document(
            REPORT,
            board_members=[{"id": "m1", "name": "Dana", "role": "CFO"}],
            icp_profile={"useCaseFit": ["SaaS"], "objections": ["Price"]},
        )
        node = renderer.render(doc)
        assert node.find_all("board_member")[0].props["role"] == "CFO"
        icp = node.find_all("icp_profile")[0]
        assert icp.props["extras"] == [{"label": "Objections", "items": ["Price"]}]


class TestStream:
    """Tests for render_stream()."""

    def test_streaming_shows_live_text(self, renderer):
        stream = ReportStream()
        stream.update("# Exec\npartial", is_streaming=True)
        node = renderer.render_stream(stream)
        assert node.props["streaming"] is True
        assert node.children[0].props["text"] == "# Exec\npartial"

    def test_nothing_yet_is_placeholder(self, renderer):
        node = renderer.render_stream(ReportStream())
        assert node.type == "placeholder"
        assert node.props["reason"] == "empty"

    def test_settled_stream_renders_document(self, renderer):
        stream = ReportStream()
        stream.update(REPORT, is_streaming=False)
        node = renderer.render_stream(stream)
        assert len(node.find_all("section")) == 2

    def test_tree_is_json_serialisable(self, renderer):
        doc = build_document(REPORT, personas=[{"personaName": "P"}])
        text = json.dumps(renderer.render(doc).to_dict())
        assert '"type": "report"' in text
