"""
test_pipeline.py — Unit tests for document building and the settle controller.

Tests cover:
    - build_document() section ids, kinds, labels and truncation flag
    - Side data coercion from camelCase dicts
    - ReportStream: no rebuild while streaming, one rebuild per settle,
      no rebuild for an unchanged settle, side data without reparsing
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from cab_report.model import BoardMember, ICPProfile, PersonaBreakdown, SectionKind
from cab_report.pipeline import ReportStream, build_document
from cab_report.settings import ReportSettings, SanitizerSettings


REPORT = """# Executive Dashboard
| Metric | Status |
|---|---|
| NPS | Green |

# Key Research Findings
- Buyers want proof of ROI before a pilot

# The Roast & The Gold
### The Roast
Onboarding is slow.
### The Gold
Support is loved.
"""

MEMBER = {
    "id": "m1",
    "name": "Dana Reyes",
    "role": "VP Sales",
    "companyType": "SaaS",
    "personalityArchetype": "Skeptic",
}

PERSONA = {
    "personaName": "Ops Olivia",
    "personaTitle": "Head of Operations",
    "buyerType": "Economic buyer",
    "jobsToBeDone": ["Cut manual work"],
    "decisionMakingProcess": {
        "research": {"description": "Peers first", "sources": ["Slack groups"]},
        "evaluation": {},
    },
}

ICP = {
    "useCaseFit": ["Mid-market SaaS"],
    "signalsAndAttributes": [{"category": "Growth", "description": "Hiring", "triggerQuestion": "Why now?"}],
    "titles": [{"department": "Ops", "roles": ["COO"]}],
    "objections": ["Too expensive"],
    "copyAngles": [],
}


class TestBuildDocument:
    """Tests for build_document()."""

    def test_sections_in_source_order(self):
        doc = build_document(REPORT)
        assert [s.kind for s in doc.sections] == [
            SectionKind.EXECUTIVE_SUMMARY,
            SectionKind.KEY_FINDINGS,
            SectionKind.ROAST_AND_GOLD,
        ]
        assert [s.id for s in doc.sections] == ["section-1", "section-2", "section-3"]

    def test_labels_and_titles(self):
        doc = build_document(REPORT)
        assert doc.sections[0].title == "Executive Dashboard"
        assert doc.sections[0].label == "Executive Dashboard"

    def test_empty_text_gives_empty_document(self):
        doc = build_document("")
        assert doc.is_empty
        assert doc.truncated is False

    def test_none_text_gives_empty_document(self):
        assert build_document(None).is_empty

    def test_truncated_flag(self):
        settings = ReportSettings(sanitizer=SanitizerSettings(max_chars=20))
        doc = build_document(REPORT, settings=settings)
        assert doc.truncated is True

    def test_same_input_same_document(self):
        assert build_document(REPORT) == build_document(REPORT)

    def test_side_data_coerced(self):
        doc = build_document(REPORT, board_members=[MEMBER], personas=[PERSONA], icp_profile=ICP)
        assert doc.board_members == (
            BoardMember(id="m1", name="Dana Reyes", role="VP Sales",
                        company_type="SaaS", archetype="Skeptic"),
        )
        persona = doc.personas[0]
        assert isinstance(persona, PersonaBreakdown)
        assert persona.name == "Ops Olivia"
        assert [s.label for s in persona.decision_stages] == ["Research"]
        assert isinstance(doc.icp_profile, ICPProfile)
        assert doc.icp_profile.extras == (("Objections", ("Too expensive",)),)
        assert doc.has_side_data

    def test_junk_side_data_skipped(self):
        doc = build_document(REPORT, board_members=["nope", None], icp_profile=42)
        assert doc.board_members == ()
        assert doc.icp_profile is None
        assert not doc.has_side_data


class TestReportStream:
    """Tests for the settle controller."""

    def test_no_document_while_streaming(self):
        stream = ReportStream()
        assert stream.update("# Exec", is_streaming=True) is None
        assert stream.update("# Executive Dashboard\nhi", is_streaming=True) is None
        assert stream.rebuilds == 0
        assert stream.live_text == "# Executive Dashboard\nhi"

    def test_settle_builds_once(self):
        stream = ReportStream()
        stream.update("# Exec", is_streaming=True)
        doc = stream.update(REPORT, is_streaming=False)
        assert doc is not None
        assert stream.rebuilds == 1
        assert doc == build_document(REPORT)

    def test_unchanged_settle_reuses_document(self):
        stream = ReportStream()
        first = stream.update(REPORT, is_streaming=False)
        second = stream.update(REPORT, is_streaming=False)
        assert first is second
        assert stream.rebuilds == 1

    def test_streaming_keeps_last_settled_document(self):
        stream = ReportStream()
        settled = stream.update(REPORT, is_streaming=False)
        assert stream.update(REPORT + "\nmore", is_streaming=True) is settled
        assert stream.rebuilds == 1

    def test_changed_settle_rebuilds_from_scratch(self):
        stream = ReportStream()
        stream.update(REPORT, is_streaming=False)
        doc = stream.update("# Transcript\nline", is_streaming=False)
        assert stream.rebuilds == 2
        assert [s.kind for s in doc.sections] == [SectionKind.TRANSCRIPT]

    def test_side_data_attached_without_reparse(self):
        stream = ReportStream()
        doc = stream.update(REPORT, is_streaming=False)
        stream.set_side_data(board_members=[MEMBER])
        assert stream.rebuilds == 1
        assert stream.document.sections is doc.sections
        assert stream.document.board_members[0].name == "Dana Reyes"

    def test_side_data_before_settle_used_on_build(self):
        stream = ReportStream()
        stream.set_side_data(personas=[PERSONA])
        doc = stream.update(REPORT, is_streaming=False)
        assert doc.personas[0].name == "Ops Olivia"
