"""Render an analysis report as HTML with static SVG charts."""

from __future__ import annotations

import logging
from html import escape
from pathlib import Path
from typing import TYPE_CHECKING

import jinja2

from qlens.analysis.charts import (
    EmotionPlot,
    GraphLayout,
    PieSlice,
    emotion_polyline,
    emotion_series,
    graph_layout,
    pie_arcs,
    pie_series,
)
from qlens.llm.structured import AnalysisReport, Commentary

if TYPE_CHECKING:
    from qlens.workspace import Workspace

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Theme assets (qlens/theme/)
# ---------------------------------------------------------------------------

_THEME_DIR = Path(__file__).resolve().parent.parent / "theme"
_CSS_FILE = _THEME_DIR / "report.css"

# Lazy-loaded cache so the file I/O only happens once per process.
_css_cache: str | None = None


def get_report_css() -> str:
    global _css_cache  # noqa: PLW0603
    if _css_cache is None:
        _css_cache = _CSS_FILE.read_text(encoding="utf-8").strip()
    return _css_cache


# ---------------------------------------------------------------------------
# Jinja2 template environment
# ---------------------------------------------------------------------------

_TEMPLATE_DIR = _THEME_DIR / "templates"
_jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,  # Values are escaped with _esc() before they reach a template
    keep_trailing_newline=True,
)

# ---------------------------------------------------------------------------
# Section registry
# ---------------------------------------------------------------------------

SECTION_ORDER: tuple[str, ...] = (
    "executiveSummary",
    "narrativeSummary",
    "archetypeMapping",
    "emotionTrajectory",
    "topThemes",
    "insightGraph",
    "participantPersonas",
    "contradictionFinder",
    "agenticAnalysis",
    "actionableRecommendations",
)

SECTION_TITLES: dict[str, str] = {
    "executiveSummary": "Executive Summary",
    "narrativeSummary": "Narrative Summary",
    "archetypeMapping": "Archetype Split",
    "emotionTrajectory": "Emotion Trajectory",
    "topThemes": "Top Themes",
    "insightGraph": "Insight Graph Analysis",
    "participantPersonas": "Participant Personas",
    "contradictionFinder": "Contradiction Finder",
    "agenticAnalysis": "Agentic Analysis",
    "actionableRecommendations": "Actionable Recommendations",
}

ARCHETYPE_CONTAINER_ID = "archetype-chart-container"
EMOTION_CONTAINER_ID = "emotion-chart-container"

_SENTIMENT_CLASSES = {
    "Positive": "sentiment-positive",
    "Negative": "sentiment-negative",
    "Neutral": "sentiment-neutral",
    "Mixed": "sentiment-mixed",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def report_section_keys(report: AnalysisReport) -> list[str]:
    """Section keys in the order they are rendered.

    Participant personas are omitted when the model returned none.
    """
    keys = list(SECTION_ORDER)
    if not report.participant_personas.data:
        keys.remove("participantPersonas")
    return keys


def render_report_html(report: AnalysisReport, title: str = "Q-Lens AI Report") -> str:
    """Render the ``#report-content`` fragment for *report*.

    Used both for the in-app report pane and as the body of the exported
    document.
    """
    renderers = {
        "executiveSummary": _render_executive_summary,
        "narrativeSummary": _render_narrative_summary,
        "archetypeMapping": _render_archetype_mapping,
        "emotionTrajectory": _render_emotion_trajectory,
        "topThemes": _render_top_themes,
        "insightGraph": _render_insight_graph,
        "participantPersonas": _render_participant_personas,
        "contradictionFinder": _render_contradiction_finder,
        "agenticAnalysis": _render_agentic_analysis,
        "actionableRecommendations": _render_actionable_recommendations,
    }
    commentaries: dict[str, Commentary] = {
        "archetypeMapping": report.archetype_mapping.commentary,
        "emotionTrajectory": report.emotion_trajectory.commentary,
        "topThemes": report.top_themes.commentary,
        "insightGraph": report.insight_graph.commentary,
        "participantPersonas": report.participant_personas.commentary,
        "contradictionFinder": report.contradiction_finder.commentary,
        "agenticAnalysis": report.agentic_analysis.commentary,
        "actionableRecommendations": report.actionable_recommendations.commentary,
    }

    section_tmpl = _jinja_env.get_template("section.html")
    parts: list[str] = []
    _w = parts.append
    for key in report_section_keys(report):
        commentary = commentaries.get(key)
        _w(section_tmpl.render(
            key=key,
            title=_esc(SECTION_TITLES[key]),
            commentary=_render_commentary(commentary) if commentary is not None else "",
            body=renderers[key](report),
        ))

    logger.debug("Rendered %d report sections", len(parts))
    return _jinja_env.get_template("report.html").render(
        title=_esc(title),
        sections="".join(parts),
    )


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _esc(text: str) -> str:
    """HTML-escape user-supplied text."""
    return escape(text)


def _paragraphs(text: str) -> str:
    """Model prose → ``<p>`` blocks; blank lines split paragraphs."""
    blocks = [b.strip() for b in text.replace("\r\n", "\n").split("\n\n")]
    return "".join(
        f"<p>{'<br>'.join(_esc(line) for line in block.splitlines())}</p>\n"
        for block in blocks
        if block
    )


def _bullets(items: list[str], css_class: str = "") -> str:
    if not items:
        return ""
    cls = f' class="{css_class}"' if css_class else ""
    return f"<ul{cls}>" + "".join(f"<li>{_esc(i)}</li>" for i in items) + "</ul>\n"


def _quote(text: str) -> str:
    return f'<blockquote class="quote">“{_esc(text)}”</blockquote>\n'


def _render_commentary(commentary: Commentary) -> str:
    how_to_read = getattr(commentary, "how_to_read", None)
    return _jinja_env.get_template("commentary.html").render(
        objective=_esc(commentary.objective),
        how_to_read=_esc(how_to_read) if how_to_read else "",
        key_insights=_paragraphs(commentary.key_insights),
    )


# ---------------------------------------------------------------------------
# Section bodies
# ---------------------------------------------------------------------------


def _render_executive_summary(report: AnalysisReport) -> str:
    summary = report.executive_summary
    swot = summary.swot
    parts: list[str] = []
    _w = parts.append
    _w(f'<div class="summary-text">\n{_paragraphs(summary.summary)}</div>\n')
    _w('<div class="swot-grid">\n')
    for css, label, items in (
        ("swot-strengths", "Strengths", swot.strengths),
        ("swot-weaknesses", "Weaknesses", swot.weaknesses),
        ("swot-opportunities", "Opportunities", swot.opportunities),
        ("swot-threats", "Threats", swot.threats),
    ):
        _w(f'<div class="swot-cell {css}"><h3>{label}</h3>{_bullets(items)}</div>\n')
    _w("</div>\n")
    _w('<div class="strategic-recommendations">\n<h3>Strategic recommendations</h3>\n')
    _w(_paragraphs(summary.strategic_recommendations))
    _w("</div>\n")
    return "".join(parts)


def _render_narrative_summary(report: AnalysisReport) -> str:
    return f'<div class="narrative">\n{_paragraphs(report.narrative_summary)}</div>\n'


def _render_archetype_mapping(report: AnalysisReport) -> str:
    archetypes = report.archetype_mapping.data
    slices = pie_series(archetypes)
    parts: list[str] = []
    _w = parts.append
    _w(f'<div id="{ARCHETYPE_CONTAINER_ID}" class="chart-container chart-pie">\n')
    _w(_render_pie_svg(slices))
    _w("</div>\n")
    _w('<div class="archetype-list">\n')
    for archetype, sl in zip(archetypes, slices):
        _w('<article class="card archetype">\n')
        _w(
            f'<h3><span class="swatch" style="background:{sl.color}"></span>'
            f"{_esc(archetype.name)} "
            f'<span class="percentage">{archetype.percentage:g}%</span></h3>\n'
        )
        _w(f"<p>{_esc(archetype.description)}</p>\n")
        for q in archetype.quotes:
            _w(_quote(q))
        _w("</article>\n")
    _w("</div>\n")
    return "".join(parts)


def _render_emotion_trajectory(report: AnalysisReport) -> str:
    plot = emotion_polyline(emotion_series(report.emotion_trajectory.data))
    parts: list[str] = []
    _w = parts.append
    _w(f'<div id="{EMOTION_CONTAINER_ID}" class="chart-container chart-line">\n')
    _w(_render_emotion_svg(plot))
    _w("</div>\n")
    if plot.points:
        _w('<ol class="emotion-points">\n')
        for p in plot.points:
            _w(
                f'<li value="{p.point.segment}"><span class="emotion-label">'
                f"{_esc(p.point.emotion)}</span> {_quote(p.point.quote)}</li>\n"
            )
        _w("</ol>\n")
    return "".join(parts)


def _render_top_themes(report: AnalysisReport) -> str:
    parts: list[str] = ['<div class="theme-list">\n']
    _w = parts.append
    for theme in report.top_themes.data:
        css = _SENTIMENT_CLASSES.get(theme.sentiment, "sentiment-neutral")
        _w('<article class="card theme">\n')
        _w(
            f"<h3>{_esc(theme.theme)} "
            f'<span class="badge {css}">{_esc(theme.sentiment)}</span></h3>\n'
        )
        for q in theme.supporting_quotes:
            _w(_quote(q))
        _w("</article>\n")
    _w("</div>\n")
    return "".join(parts)


def _render_insight_graph(report: AnalysisReport) -> str:
    graph = report.insight_graph.data
    layout = graph_layout(graph)
    parts: list[str] = []
    _w = parts.append
    _w('<div class="chart-container chart-graph">\n')
    _w(_render_graph_svg(layout))
    _w("</div>\n")
    if layout.edges:
        _w('<ul class="graph-connections">\n')
        for edge in layout.edges:
            _w(
                f"<li><strong>{_esc(edge.source)}</strong> → "
                f"<strong>{_esc(edge.target)}</strong>: {_esc(edge.relationship)}</li>\n"
            )
        _w("</ul>\n")
    _w(f'<div class="graph-summary">\n{_paragraphs(graph.summary)}</div>\n')
    return "".join(parts)


def _render_participant_personas(report: AnalysisReport) -> str:
    parts: list[str] = ['<div class="persona-list">\n']
    _w = parts.append
    for persona in report.participant_personas.data:
        _w('<article class="card persona">\n')
        _w(f"<h3>{_esc(persona.persona_name)}</h3>\n")
        _w(f"<p>{_esc(persona.description)}</p>\n")
        _w(_bullets(persona.key_characteristics, "characteristics"))
        for q in persona.representative_quotes:
            _w(_quote(q))
        _w("</article>\n")
    _w("</div>\n")
    return "".join(parts)


def _render_contradiction_finder(report: AnalysisReport) -> str:
    parts: list[str] = ['<div class="contradiction-list">\n']
    _w = parts.append
    for item in report.contradiction_finder.data:
        first, second = item.contradictory_quotes
        _w('<article class="card contradiction">\n')
        _w(f"<h3>{_esc(item.topic)}</h3>\n")
        _w(f'<div class="contradiction-pair">{_quote(first)}{_quote(second)}</div>\n')
        _w(f"<p>{_esc(item.analysis)}</p>\n")
        _w("</article>\n")
    _w("</div>\n")
    return "".join(parts)


def _render_agentic_analysis(report: AnalysisReport) -> str:
    agentic = report.agentic_analysis
    parts: list[str] = []
    _w = parts.append
    _w(f'<div class="agentic-summary">\n{_paragraphs(agentic.summary)}</div>\n')
    if agentic.stuck_moments:
        _w('<h3>Stuck moments</h3>\n<ul class="stuck-moments">\n')
        for m in agentic.stuck_moments:
            _w(
                f"<li>{_quote(m.quote)}"
                f'<p class="suggestion"><strong>Try asking:</strong> {_esc(m.suggestion)}</p></li>\n'
            )
        _w("</ul>\n")
    if agentic.cognitive_biases:
        _w('<h3>Cognitive biases</h3>\n<ul class="cognitive-biases">\n')
        for b in agentic.cognitive_biases:
            _w(f"<li><strong>{_esc(b.bias)}</strong>{_quote(b.quote)}<p>{_esc(b.explanation)}</p></li>\n")
        _w("</ul>\n")
    if agentic.key_metaphors:
        _w('<h3>Key metaphors</h3>\n<ul class="key-metaphors">\n')
        for k in agentic.key_metaphors:
            _w(f"<li><strong>{_esc(k.metaphor)}</strong>{_quote(k.quote)}<p>{_esc(k.meaning)}</p></li>\n")
        _w("</ul>\n")
    return "".join(parts)


def _render_actionable_recommendations(report: AnalysisReport) -> str:
    parts: list[str] = ['<div class="recommendation-list">\n']
    _w = parts.append
    for rec in report.actionable_recommendations.data:
        _w('<article class="card recommendation">\n')
        _w(f'<p class="area">{_esc(rec.area)}</p>\n')
        _w(f"<h3>{_esc(rec.recommendation)}</h3>\n")
        _w(f"<p>{_esc(rec.reasoning)}</p>\n")
        _w("</article>\n")
    _w("</div>\n")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Static SVG charts
# ---------------------------------------------------------------------------


def _render_pie_svg(slices: list[PieSlice]) -> str:
    arcs = pie_arcs(slices)
    if not arcs:
        return '<p class="chart-empty">No archetype data.</p>\n'
    parts: list[str] = [
        '<svg class="pie" viewBox="0 0 240 240" role="img" aria-label="Archetype split">\n'
    ]
    _w = parts.append
    for arc in arcs:
        _w(
            f'<path d="{arc.path}" fill="{arc.slice.color}" stroke="#fff" stroke-width="1">'
            f"<title>{_esc(arc.slice.name)}: {arc.slice.value:g}%</title></path>\n"
        )
    _w("</svg>\n")
    _w('<ul class="chart-legend">\n')
    for arc in arcs:
        _w(
            f'<li><span class="swatch" style="background:{arc.slice.color}"></span>'
            f"{_esc(arc.slice.name)} ({arc.slice.value:g}%)</li>\n"
        )
    _w("</ul>\n")
    return "".join(parts)


def _render_emotion_svg(plot: EmotionPlot) -> str:
    if not plot.points:
        return '<p class="chart-empty">No emotion data.</p>\n'
    parts: list[str] = [
        f'<svg class="line" viewBox="0 0 {plot.width:g} {plot.height:g}" role="img" '
        'aria-label="Emotion trajectory">\n'
    ]
    _w = parts.append
    left, right = plot.left, plot.right
    for tick in plot.y_ticks:
        _w(
            f'<line class="grid" x1="{left:.2f}" y1="{tick.position:.2f}" '
            f'x2="{right:.2f}" y2="{tick.position:.2f}"/>\n'
        )
        if tick.label:
            _w(
                f'<text class="axis-label" x="{left - 8:.2f}" y="{tick.position + 4:.2f}" '
                f'text-anchor="end">{_esc(tick.label)}</text>\n'
            )
    for tick in plot.x_ticks:
        _w(
            f'<text class="axis-label" x="{tick.position:.2f}" y="{plot.height - 15:.2f}" '
            f'text-anchor="middle">{_esc(tick.label)}</text>\n'
        )
    _w(f'<polyline class="trajectory" fill="none" points="{plot.polyline}"/>\n')
    for p in plot.points:
        _w(
            f'<circle class="point" cx="{p.x:.2f}" cy="{p.y:.2f}" r="4">'
            f"<title>Segment {p.point.segment}: {_esc(p.point.emotion)} — "
            f"{_esc(p.point.quote)}</title></circle>\n"
        )
    _w("</svg>\n")
    return "".join(parts)


def _render_graph_svg(layout: GraphLayout) -> str:
    if not layout.nodes:
        return '<p class="chart-empty">No themes to connect.</p>\n'
    parts: list[str] = [
        f'<svg class="graph" viewBox="0 0 {layout.width:g} {layout.height:g}" role="img" '
        'aria-label="Insight graph">\n'
        "<defs>"
        '<marker id="graph-arrow" viewBox="0 0 10 10" refX="9" refY="5" '
        'markerWidth="6" markerHeight="6" orient="auto-start-reverse">'
        '<path d="M 0 0 L 10 5 L 0 10 z"/></marker>'
        "</defs>\n"
    ]
    _w = parts.append
    for edge in layout.edges:
        _w(
            f'<line class="edge" x1="{edge.x1:.2f}" y1="{edge.y1:.2f}" '
            f'x2="{edge.x2:.2f}" y2="{edge.y2:.2f}" marker-end="url(#graph-arrow)">'
            f"<title>{_esc(edge.relationship)}</title></line>\n"
        )
    for node in layout.nodes:
        _w(
            f'<circle class="node" cx="{node.x:.2f}" cy="{node.y:.2f}" '
            f'r="{layout.node_radius:g}"/>\n'
        )
        tx = node.x + node.label_dx
        ty = node.y + node.label_dy
        _w(
            f'<text class="node-label" x="{tx:.2f}" y="{ty:.2f}" '
            f'text-anchor="{node.text_anchor}" font-size="{layout.font_size:g}">'
        )
        for i, line in enumerate(node.lines):
            dy = 0 if i == 0 else layout.line_spacing
            _w(f'<tspan x="{tx:.2f}" dy="{dy:g}">{_esc(line)}</tspan>')
        _w("</text>\n")
    _w("</svg>\n")
    return "".join(parts)


# ---------------------------------------------------------------------------
# App page
# ---------------------------------------------------------------------------


def render_app_page(workspace: Workspace, title: str = "Q-Lens AI Report") -> str:
    """Render the two-pane workspace page (inputs left, report right)."""
    inputs = workspace.inputs
    state = workspace.state
    report_markup = render_report_html(state.report, title) if state.report is not None else ""
    if inputs.transcript and inputs.filename:
        transcript_status = f"Loaded {_esc(inputs.filename)}"
    else:
        transcript_status = "No transcript loaded."
    return _jinja_env.get_template("app.html").render(
        title=_esc(title),
        css=get_report_css(),
        app_js=_get_app_js(),
        transcript_status=transcript_status,
        upload_error=_esc(inputs.upload_error or ""),
        context=_esc(inputs.context),
        custom_prompt=_esc(inputs.custom_prompt),
        status=state.status.value,
        loading=state.is_loading,
        error=_esc(state.error or ""),
        can_export=workspace.can_export,
        report_markup=report_markup,
    )


_app_js_cache: str | None = None


def _get_app_js() -> str:
    global _app_js_cache  # noqa: PLW0603
    if _app_js_cache is None:
        _app_js_cache = (_THEME_DIR / "js" / "app.js").read_text(encoding="utf-8").strip()
    return _app_js_cache
