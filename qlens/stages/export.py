"""Package a rendered report as a single self-contained HTML file.

The exported document carries three things: the rendered markup (static
SVG charts included), the report JSON in one ``application/json`` data
island, and a small inline script that re-draws the archetype and emotion
charts with Chart.js.  Chart.js is the only external resource.  If it
cannot be loaded the static charts stay and a short notice is shown.
"""

from __future__ import annotations

import json
import logging

from qlens.llm.structured import AnalysisReport
from qlens.stages.render_html import _THEME_DIR, _esc, _jinja_env, get_report_css

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "Q-Lens-AI-Report.html"
EXPORT_MEDIA_TYPE = "text/html"
CHART_JS_URL = "https://cdn.jsdelivr.net/npm/chart.js@4.4.1/dist/chart.umd.min.js"
DATA_ISLAND_ID = "report-data"
CHART_NOTICE = "Could not load interactive charts."

# Characters that could end the <script> element or open a comment
_ISLAND_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
}

# Lazy-loaded cache so the file I/O only happens once per process.
_hydrate_js_cache: str | None = None


def _get_hydrate_js() -> str:
    global _hydrate_js_cache  # noqa: PLW0603
    if _hydrate_js_cache is None:
        _hydrate_js_cache = (_THEME_DIR / "js" / "hydrate.js").read_text(encoding="utf-8").strip()
    return _hydrate_js_cache


def encode_data_island(report: AnalysisReport) -> str:
    """Serialise *report* as JSON that is safe inside a ``<script>`` element."""
    raw = json.dumps(report.to_json_dict(), ensure_ascii=False, separators=(",", ":"))
    for char, replacement in _ISLAND_ESCAPES.items():
        raw = raw.replace(char, replacement)
    return raw


def export_report(
    report_markup: str,
    report: AnalysisReport,
    title: str = "Q-Lens AI Report",
) -> bytes:
    """Build the downloadable document; returns UTF-8 bytes.

    ``report_markup`` is embedded verbatim.  It is normally the output of
    :func:`~qlens.stages.render_html.render_report_html` for the same
    *report*.
    """
    document = _jinja_env.get_template("document.html").render(
        title=_esc(title),
        css=get_report_css(),
        markup=report_markup,
        report_json=encode_data_island(report),
        chart_js_url=CHART_JS_URL,
        hydrate_js=_get_hydrate_js(),
    )
    data = document.encode("utf-8")
    logger.info("Exported report: %d bytes", len(data))
    return data
