"""Chart-ready series derived from report sections.

Pure arithmetic with no I/O.  Every function here is total:
malformed or empty input degrades to an empty or neutral result instead of
raising.  The renderer turns these records into SVG; the export's hydration
script re-derives the pie and emotion series on its own.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from qlens.llm.structured import Archetype, EmotionPoint, InsightGraph

# ---------------------------------------------------------------------------
# Archetype pie
# ---------------------------------------------------------------------------

PALETTE: tuple[str, ...] = (
    "#38BDF8",
    "#818CF8",
    "#F472B6",
    "#FBBF24",
    "#4ADE80",
    "#A78BFA",
)


@dataclass(frozen=True)
class PieSlice:
    name: str
    value: float
    color: str


@dataclass(frozen=True)
class PieArc:
    """One slice projected onto an SVG circle."""

    slice: PieSlice
    path: str


def palette_color(index: int) -> str:
    """Colour for the *index*-th series item, wrapping around the palette."""
    return PALETTE[index % len(PALETTE)]


def pie_series(archetypes: Sequence[Archetype]) -> list[PieSlice]:
    """One slice per archetype, value = percentage unchanged."""
    return [
        PieSlice(name=a.name, value=a.percentage, color=palette_color(i))
        for i, a in enumerate(archetypes)
    ]


def pie_arcs(
    slices: Sequence[PieSlice],
    cx: float = 120.0,
    cy: float = 120.0,
    radius: float = 96.0,
) -> list[PieArc]:
    """SVG paths for *slices*, clockwise from 12 o'clock.

    Slices are proportional to their share of the total, so percentages
    that don't add up to 100 still fill the circle.  Zero-valued slices get
    no arc.
    """
    total = sum(s.value for s in slices if s.value > 0)
    if total <= 0:
        return []

    arcs: list[PieArc] = []
    angle = -math.pi / 2
    for s in slices:
        if s.value <= 0:
            continue
        sweep = 2 * math.pi * s.value / total
        if sweep >= 2 * math.pi - 1e-9:
            # A single full slice: two half-circle arcs
            path = (
                f"M {cx:.2f} {cy - radius:.2f} "
                f"A {radius:.2f} {radius:.2f} 0 1 1 {cx:.2f} {cy + radius:.2f} "
                f"A {radius:.2f} {radius:.2f} 0 1 1 {cx:.2f} {cy - radius:.2f} Z"
            )
        else:
            x0 = cx + radius * math.cos(angle)
            y0 = cy + radius * math.sin(angle)
            x1 = cx + radius * math.cos(angle + sweep)
            y1 = cy + radius * math.sin(angle + sweep)
            large = 1 if sweep > math.pi else 0
            path = (
                f"M {cx:.2f} {cy:.2f} L {x0:.2f} {y0:.2f} "
                f"A {radius:.2f} {radius:.2f} 0 {large} 1 {x1:.2f} {y1:.2f} Z"
            )
        arcs.append(PieArc(slice=s, path=path))
        angle += sweep
    return arcs


# ---------------------------------------------------------------------------
# Emotion trajectory
# ---------------------------------------------------------------------------

EMOTION_VALUES: dict[str, int] = {
    "hopeful": 5,
    "curiosity": 5,
    "trust": 4,
    "positive": 4,
    "confident": 4,
    "neutral": 3,
    "cautious": 3,
    "skepticism": 3,
    "anxiety": 2,
    "frustrated": 2,
    "negative": 2,
    "resigned": 1,
    "angry": 1,
}
NEUTRAL_VALUE = 3

EMOTION_DOMAIN: tuple[int, int] = (0, 6)
EMOTION_TICKS: tuple[int, ...] = (1, 2, 3, 4, 5)
EMOTION_AXIS_LABELS: dict[int, str] = {1: "Negative", 2: "", 3: "Neutral", 4: "", 5: "Positive"}


@dataclass(frozen=True)
class EmotionSeriesPoint:
    segment: int
    emotion: str
    quote: str
    value: int


@dataclass(frozen=True)
class PlotPoint:
    x: float
    y: float
    point: EmotionSeriesPoint


@dataclass(frozen=True)
class AxisTick:
    value: float
    label: str
    position: float


@dataclass
class EmotionPlot:
    """The emotion series projected into an SVG viewport."""

    width: float
    height: float
    left: float
    right: float
    points: list[PlotPoint] = field(default_factory=list)
    y_ticks: list[AxisTick] = field(default_factory=list)
    x_ticks: list[AxisTick] = field(default_factory=list)

    @property
    def polyline(self) -> str:
        return " ".join(f"{p.x:.2f},{p.y:.2f}" for p in self.points)


def emotion_value(label: str) -> int:
    """Ordinal 1–5 for an emotion label; unknown labels are neutral (3)."""
    return EMOTION_VALUES.get(label.strip().lower(), NEUTRAL_VALUE)


def emotion_series(points: Sequence[EmotionPoint]) -> list[EmotionSeriesPoint]:
    return [
        EmotionSeriesPoint(
            segment=p.segment,
            emotion=p.emotion,
            quote=p.quote,
            value=emotion_value(p.emotion),
        )
        for p in points
    ]


def axis_label(value: int) -> str:
    """Y-axis label: only 1, 3 and 5 are named."""
    return EMOTION_AXIS_LABELS.get(value, "")


def emotion_polyline(
    series: Sequence[EmotionSeriesPoint],
    width: float = 560.0,
    height: float = 260.0,
    margin_left: float = 70.0,
    margin_right: float = 30.0,
    margin_top: float = 10.0,
    margin_bottom: float = 40.0,
) -> EmotionPlot:
    """Project *series* in segment order onto an SVG plot area."""
    plot_w = width - margin_left - margin_right
    plot_h = height - margin_top - margin_bottom
    lo, hi = EMOTION_DOMAIN

    def _y(value: float) -> float:
        return margin_top + (hi - value) / (hi - lo) * plot_h

    ordered = sorted(series, key=lambda p: p.segment)
    n = len(ordered)
    points: list[PlotPoint] = []
    x_ticks: list[AxisTick] = []
    for i, sp in enumerate(ordered):
        x = margin_left + (plot_w / 2 if n == 1 else i * plot_w / (n - 1))
        points.append(PlotPoint(x=x, y=_y(sp.value), point=sp))
        x_ticks.append(AxisTick(value=sp.segment, label=str(sp.segment), position=x))

    y_ticks = [AxisTick(value=v, label=axis_label(v), position=_y(v)) for v in EMOTION_TICKS]
    return EmotionPlot(
        width=width,
        height=height,
        left=margin_left,
        right=width - margin_right,
        points=points,
        y_ticks=y_ticks,
        x_ticks=x_ticks,
    )


# ---------------------------------------------------------------------------
# Insight graph
# ---------------------------------------------------------------------------

GRAPH_WIDTH = 500
GRAPH_HEIGHT = 300
GRAPH_NODE_RADIUS = 8
GRAPH_FONT_SIZE = 11
GRAPH_ARROW_MARGIN = 2
GRAPH_LABEL_GAP = 5
GRAPH_MAX_LINE_CHARS = 20


@dataclass(frozen=True)
class GraphNode:
    label: str
    x: float
    y: float
    angle: float  # radians, SVG convention (y down)
    text_anchor: str  # "start", "end" or "middle"
    label_dx: float
    label_dy: float
    lines: tuple[str, ...]


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    relationship: str
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass
class GraphLayout:
    width: float = GRAPH_WIDTH
    height: float = GRAPH_HEIGHT
    radius: float = 0.0
    node_radius: float = GRAPH_NODE_RADIUS
    font_size: float = GRAPH_FONT_SIZE
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    @property
    def line_spacing(self) -> float:
        return self.font_size + 2


def node_angle(index: int, n: int) -> float:
    """Angle of node *index* of *n*: 12 o'clock start, clockwise on screen."""
    return index * (2 * math.pi / n) - math.pi / 2


def wrap_label(text: str, max_chars: int = GRAPH_MAX_LINE_CHARS) -> tuple[str, ...]:
    """Greedily pack words into lines of at most *max_chars* characters.

    A single word longer than the budget gets a line to itself.
    """
    words = text.split()
    if not words:
        return ()
    lines: list[str] = []
    current = words[0]
    for word in words[1:]:
        if len(current) + 1 + len(word) > max_chars:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}"
    lines.append(current)
    return tuple(lines)


def label_placement(angle: float, node_radius: float = GRAPH_NODE_RADIUS,
                    font_size: float = GRAPH_FONT_SIZE) -> tuple[str, float, float]:
    """Return ``(text_anchor, dx, dy)`` for a node label.

    Buckets use the clockwise bearing from 12 o'clock: right side labels
    start to the right, left side labels end to the left, top labels sit
    centred above and bottom labels centred below.
    """
    bearing = (math.degrees(angle) + 90) % 360
    offset = node_radius + GRAPH_LABEL_GAP
    if 10 < bearing < 170:
        return "start", offset, font_size / 3
    if 190 < bearing < 350:
        return "end", -offset, font_size / 3
    if bearing <= 10 or bearing >= 350:
        return "middle", 0.0, -offset
    return "middle", 0.0, offset + GRAPH_LABEL_GAP


def graph_layout(
    graph: InsightGraph,
    width: float = GRAPH_WIDTH,
    height: float = GRAPH_HEIGHT,
) -> GraphLayout:
    """Place theme nodes on a circle and keep only resolvable edges."""
    cx, cy = width / 2, height / 2
    radius = min(cx, cy) * 0.7
    layout = GraphLayout(width=width, height=height, radius=radius)

    themes = list(dict.fromkeys(graph.themes))
    n = len(themes)
    if n == 0:
        return layout

    line_spacing = layout.line_spacing
    by_label: dict[str, GraphNode] = {}
    for i, label in enumerate(themes):
        angle = node_angle(i, n)
        anchor, dx, dy = label_placement(angle, layout.node_radius, layout.font_size)
        lines = wrap_label(label)
        # centre multi-line labels vertically on the node
        dy -= (len(lines) - 1) * line_spacing / 2
        node = GraphNode(
            label=label,
            x=cx + radius * math.cos(angle),
            y=cy + radius * math.sin(angle),
            angle=angle,
            text_anchor=anchor,
            label_dx=dx,
            label_dy=dy,
            lines=lines,
        )
        layout.nodes.append(node)
        by_label[label] = node

    inset = layout.node_radius + GRAPH_ARROW_MARGIN
    for conn in graph.connections:
        source = by_label.get(conn.source)
        target = by_label.get(conn.target)
        if source is None or target is None:
            continue
        dx = target.x - source.x
        dy = target.y - source.y
        dist = math.hypot(dx, dy)
        if dist > inset:
            x2 = target.x - dx / dist * inset
            y2 = target.y - dy / dist * inset
        else:
            x2, y2 = target.x, target.y
        layout.edges.append(
            GraphEdge(
                source=source.label,
                target=target.label,
                relationship=conn.relationship,
                x1=source.x,
                y1=source.y,
                x2=x2,
                y2=y2,
            )
        )
    return layout
