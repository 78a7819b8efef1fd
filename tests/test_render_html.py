"""Tests for the report renderer (qlens.stages.render_html)."""

from __future__ import annotations

import re
from typing import Any

import pytest

from qlens.config import QLensSettings
from qlens.llm.structured import AnalysisReport
from qlens.stages.render_html import (
    ARCHETYPE_CONTAINER_ID,
    EMOTION_CONTAINER_ID,
    SECTION_ORDER,
    SECTION_TITLES,
    render_app_page,
    render_report_html,
    report_section_keys,
)
from qlens.workspace import Workspace

_SECTION_RE = re.compile(r'data-section="(\w+)"')


class TestSectionOrder:
    def test_fixed_order(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert _SECTION_RE.findall(html) == list(SECTION_ORDER)

    def test_section_keys_match_render(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert _SECTION_RE.findall(html) == report_section_keys(sample_report)

    def test_personas_omitted_when_empty(self, report_dict: dict[str, Any]) -> None:
        report_dict["participantPersonas"]["data"] = []
        report = AnalysisReport.model_validate(report_dict)

        keys = report_section_keys(report)
        html = render_report_html(report)

        assert "participantPersonas" not in keys
        assert len(keys) == len(SECTION_ORDER) - 1
        assert SECTION_TITLES["participantPersonas"] not in html

    def test_titles_rendered(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        positions = [html.index(f">{SECTION_TITLES[k]}</h2>") for k in SECTION_ORDER]
        assert positions == sorted(positions)

    def test_wrapped_in_report_content(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report, title="Acme Q3")
        assert html.startswith('<div id="report-content"')
        assert "<h1>Acme Q3</h1>" in html


class TestCommentary:
    def test_chart_sections_have_how_to_read(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert html.count("How to read this chart:") == 3

    def test_objective_and_insights_for_commentary_sections(
        self, sample_report: AnalysisReport
    ) -> None:
        html = render_report_html(sample_report)
        # every section except the two summaries carries commentary
        assert html.count('class="commentary-objective"') == len(SECTION_ORDER) - 2
        assert "Summarise the themes." in html

    def test_key_insights_paragraphs(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert "<p>The emotional arc shifts after the pricing reveal.</p>" in html
        assert "<p>Trust recovers late.</p>" in html


class TestContent:
    def test_swot_quadrants(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        for label in ("Strengths", "Weaknesses", "Opportunities", "Threats"):
            assert f"<h3>{label}</h3>" in html
        assert "Clear value proposition" in html

    def test_chart_containers_present(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert html.count(f'id="{ARCHETYPE_CONTAINER_ID}"') == 1
        assert html.count(f'id="{EMOTION_CONTAINER_ID}"') == 1

    def test_static_svg_charts(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert '<svg class="pie"' in html
        assert '<svg class="line"' in html
        assert '<svg class="graph"' in html
        assert html.count('<circle class="node"') == 4
        assert html.count('<line class="edge"') == 2

    def test_unresolved_graph_edge_not_drawn(self, report_dict: dict[str, Any]) -> None:
        report_dict["insightGraph"]["data"]["connections"].append(
            {"from": "Pricing", "to": "Ghost theme", "relationship": "haunts"}
        )
        html = render_report_html(AnalysisReport.model_validate(report_dict))
        assert html.count('<line class="edge"') == 2
        assert "haunts" not in html

    def test_sentiment_badges(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert 'class="badge sentiment-negative"' in html
        assert 'class="badge sentiment-mixed"' in html

    def test_contradiction_pair(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert "I&#x27;d pay for this." in html
        assert "I never pay for apps." in html

    def test_agentic_subsections(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report)
        assert "Stuck moments" in html
        assert "Anchoring" in html
        assert "a maze" in html

    def test_empty_charts_show_placeholder(self, report_dict: dict[str, Any]) -> None:
        report_dict["archetypeMapping"]["data"] = []
        report_dict["emotionTrajectory"]["data"] = []
        report_dict["insightGraph"]["data"]["themes"] = []
        html = render_report_html(AnalysisReport.model_validate(report_dict))
        assert "No archetype data." in html
        assert "No emotion data." in html
        assert "No themes to connect." in html


class TestEscaping:
    def test_user_text_escaped(self, report_dict: dict[str, Any]) -> None:
        payload = '<script>alert("x")</script>'
        report_dict["narrativeSummary"] = payload
        report_dict["topThemes"]["data"][0]["theme"] = payload
        report_dict["archetypeMapping"]["data"][0]["name"] = payload
        report_dict["insightGraph"]["data"]["themes"][0] = payload
        report_dict["insightGraph"]["data"]["connections"][0]["from"] = payload
        html = render_report_html(AnalysisReport.model_validate(report_dict))
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_title_escaped(self, sample_report: AnalysisReport) -> None:
        html = render_report_html(sample_report, title="R&D <draft>")
        assert "R&amp;D &lt;draft&gt;" in html


class TestAppPage:
    def test_empty_workspace(self, settings: QLensSettings) -> None:
        html = render_app_page(Workspace(settings))
        assert 'id="analysis-form"' in html
        assert "No transcript loaded." in html
        assert 'id="report-content"' not in html
        assert 'data-status="none"' in html

    def test_populated_workspace(self, settings: QLensSettings, sample_report: AnalysisReport) -> None:
        workspace = Workspace(settings)
        workspace.upload("session.txt", b"P1: hello")
        workspace.state.succeed(sample_report)

        html = render_app_page(workspace)

        assert "Loaded session.txt" in html
        assert 'id="report-content"' in html
        assert 'data-status="populated"' in html
        assert re.search(r'id="download-link"[^>]*href="/api/report/download">', html)

    def test_loading_disables_submit(self, settings: QLensSettings) -> None:
        workspace = Workspace(settings)
        workspace.state.start()
        html = render_app_page(workspace)
        assert re.search(r'id="analyze-button"[^>]*disabled', html)

    @pytest.mark.parametrize("message", ["Failed to read the file."])
    def test_upload_error_shown(self, settings: QLensSettings, message: str) -> None:
        workspace = Workspace(settings)
        workspace.inputs.upload_error = message
        html = render_app_page(workspace)
        assert message in html
