"""Pydantic models for the structured analysis report.

These models are the output contract: their JSON schema (camelCase keys)
is sent with the generation request, and the response is validated against
them before anything reaches the renderer.  Every analytical section carries
``data`` plus a ``commentary`` block; chart-backed sections additionally
require ``howToRead``.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

EMOTION_LABELS: tuple[str, ...] = (
    "Hopeful",
    "Curiosity",
    "Trust",
    "Positive",
    "Confident",
    "Neutral",
    "Cautious",
    "Skepticism",
    "Anxiety",
    "Frustrated",
    "Negative",
    "Resigned",
    "Angry",
)

SENTIMENT_LABELS: tuple[str, ...] = ("Positive", "Negative", "Neutral", "Mixed")

Sentiment = Literal["Positive", "Negative", "Neutral", "Mixed"]

_EMOTION_CANONICAL = {label.lower(): label for label in EMOTION_LABELS}
_SENTIMENT_CANONICAL = {label.lower(): label for label in SENTIMENT_LABELS}


class ReportModel(BaseModel):
    """Base for every report model: camelCase on the wire, immutable in memory."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Commentary
# ---------------------------------------------------------------------------


class Commentary(ReportModel):
    """Executive commentary attached to an analytical section."""

    objective: str = Field(
        description=(
            "A concise, one-sentence explanation of what this analysis section "
            "aims to achieve for a business leader."
        )
    )
    key_insights: str = Field(
        description=(
            "A bulleted or paragraph summary of the most critical, actionable "
            "insights derived from this section's data, written for an "
            "executive audience."
        )
    )


class ChartCommentary(Commentary):
    """Commentary for chart-backed sections, with a reading guide."""

    how_to_read: str = Field(
        description=(
            "A brief, simple explanation of how to interpret the chart or graph "
            "(e.g. 'The x-axis represents time...')."
        )
    )


# ---------------------------------------------------------------------------
# Executive summary
# ---------------------------------------------------------------------------


class SWOTAnalysis(ReportModel):
    strengths: list[str] = Field(
        min_length=1,
        description="2-3 key strengths or positive sentiments identified.",
    )
    weaknesses: list[str] = Field(
        min_length=1,
        description="2-3 key weaknesses, risks, or negative sentiments identified.",
    )
    opportunities: list[str] = Field(
        min_length=1,
        description="2-3 potential market or product opportunities suggested by the participants.",
    )
    threats: list[str] = Field(
        min_length=1,
        description="2-3 potential competitive or market threats highlighted.",
    )


class ExecutiveSummary(ReportModel):
    """High-level synthesis for C-suite readers."""

    summary: str = Field(
        description=(
            "A 3-4 sentence paragraph summarizing the most critical findings and "
            "overall sentiment of the focus group."
        )
    )
    swot: SWOTAnalysis = Field(description="A SWOT analysis based on the transcript.")
    strategic_recommendations: str = Field(
        description="A final, high-level strategic recommendation based on the entire analysis."
    )


# ---------------------------------------------------------------------------
# Agentic analysis
# ---------------------------------------------------------------------------


class StuckMoment(ReportModel):
    quote: str
    suggestion: str = Field(description="A follow-up question the moderator could have asked.")


class CognitiveBias(ReportModel):
    bias: str
    quote: str
    explanation: str


class KeyMetaphor(ReportModel):
    metaphor: str
    quote: str
    meaning: str


class AgenticAnalysis(ReportModel):
    """Moderation gaps, biases and metaphors spotted in the discussion."""

    summary: str = Field(
        description=(
            "A brief summary of the key findings from the agentic analysis, "
            "highlighting the most impactful biases, metaphors, and stuck moments."
        )
    )
    stuck_moments: list[StuckMoment] = Field(
        description="Identifies moments where probing failed."
    )
    cognitive_biases: list[CognitiveBias] = Field(
        description="Detects cognitive biases like anchoring, social proof, etc."
    )
    key_metaphors: list[KeyMetaphor] = Field(
        description="Flags recurring symbols and metaphors."
    )
    commentary: Commentary


# ---------------------------------------------------------------------------
# Emotion trajectory
# ---------------------------------------------------------------------------


class EmotionPoint(ReportModel):
    segment: int = Field(
        ge=1,
        description="Sequential order of the emotional phase (1, 2, 3...).",
    )
    emotion: str = Field(
        description="The dominant emotion for this segment.",
        json_schema_extra={"enum": list(EMOTION_LABELS)},
    )
    quote: str = Field(description="A verbatim quote that best represents this emotion.")

    @field_validator("emotion", mode="before")
    @classmethod
    def _canonical_emotion(cls, v: object) -> object:
        """Normalise label case; keep unknown labels (they plot as neutral)."""
        if not isinstance(v, str):
            return v
        canonical = _EMOTION_CANONICAL.get(v.strip().lower())
        if canonical is None:
            logger.warning("Unknown emotion label %r, plotting as neutral", v)
            return v
        return canonical


class EmotionTrajectory(ReportModel):
    data: list[EmotionPoint] = Field(
        description=(
            "Charts the emotional journey of the group through 5-7 key sequential "
            "phases. Each phase must have a representative quote."
        )
    )
    commentary: ChartCommentary

    @field_validator("data")
    @classmethod
    def _ordered_unique_segments(cls, v: list[EmotionPoint]) -> list[EmotionPoint]:
        ordered = sorted(v, key=lambda p: p.segment)
        seen: set[int] = set()
        for point in ordered:
            if point.segment in seen:
                raise ValueError(f"duplicate emotion segment {point.segment}")
            seen.add(point.segment)
        return ordered


# ---------------------------------------------------------------------------
# Archetypes
# ---------------------------------------------------------------------------


class Archetype(ReportModel):
    name: str = Field(
        description="Name of the archetype (e.g., Explorer, Caregiver, Skeptic)."
    )
    percentage: float = Field(
        ge=0,
        le=100,
        description="Percentage of the group embodying this archetype.",
    )
    description: str = Field(
        description="A brief description of the archetype in the context of the discussion."
    )
    quotes: list[str] = Field(description="Key quotes that map to this archetype.")


class ArchetypeMapping(ReportModel):
    data: list[Archetype] = Field(
        description=(
            "Maps participant statements to Jungian archetypes. "
            "The sum of percentages should be 100."
        )
    )
    commentary: ChartCommentary


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------


class InsightTheme(ReportModel):
    theme: str
    supporting_quotes: list[str]
    sentiment: Sentiment

    @field_validator("sentiment", mode="before")
    @classmethod
    def _tolerant_sentiment(cls, v: object) -> object:
        """Unknown sentiment labels degrade to Neutral instead of failing."""
        if not isinstance(v, str):
            return v
        canonical = _SENTIMENT_CANONICAL.get(v.strip().lower())
        if canonical is None:
            logger.warning("Unknown theme sentiment %r, using Neutral", v)
            return "Neutral"
        return canonical


class TopThemes(ReportModel):
    data: list[InsightTheme] = Field(description="The top 5 most salient themes discussed.")
    commentary: Commentary


# ---------------------------------------------------------------------------
# Insight graph
# ---------------------------------------------------------------------------


class InsightConnection(ReportModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    relationship: str = Field(
        description="Describes the link (e.g., 'leads to', 'causes', 'is associated with')."
    )


class InsightGraph(ReportModel):
    themes: list[str]
    connections: list[InsightConnection]
    summary: str = Field(description="A summary of the causal or correlational paths discovered.")

    @field_validator("themes")
    @classmethod
    def _distinct_themes(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class InsightGraphSection(ReportModel):
    data: InsightGraph = Field(
        description="A linguistic knowledge graph linking themes, emotions, and rationales."
    )
    commentary: ChartCommentary


# ---------------------------------------------------------------------------
# Contradictions, recommendations, personas
# ---------------------------------------------------------------------------


class Contradiction(ReportModel):
    topic: str
    contradictory_quotes: list[str] = Field(min_length=2, max_length=2)
    analysis: str = Field(description="An analysis of why this contradiction is significant.")


class ContradictionFinder(ReportModel):
    data: list[Contradiction] = Field(
        description="Identifies key contradictions in participant statements."
    )
    commentary: Commentary


class ActionableRecommendation(ReportModel):
    area: str = Field(
        description="Business area for the recommendation (e.g., 'Marketing', 'Product Development')."
    )
    recommendation: str
    reasoning: str = Field(
        description="The 'why' behind the recommendation, linked to specific findings."
    )


class ActionableRecommendations(ReportModel):
    data: list[ActionableRecommendation] = Field(
        description="Provides strategic, actionable recommendations based on the analysis."
    )
    commentary: Commentary


class ParticipantPersona(ReportModel):
    persona_name: str = Field(
        description="A descriptive name for the persona (e.g., 'The Pragmatic Planner')."
    )
    description: str = Field(
        description=(
            "A detailed profile of this persona, including their core motivations, "
            "fears, and role in the group dynamic."
        )
    )
    key_characteristics: list[str] = Field(
        description="3-5 bullet points summarizing the persona's key traits."
    )
    representative_quotes: list[str] = Field(
        description="Two or three verbatim quotes that strongly represent this persona's viewpoint."
    )


class ParticipantPersonas(ReportModel):
    data: list[ParticipantPersona] = Field(
        description=(
            "Synthesizes 2-4 distinct participant personas based on recurring "
            "attitudes, beliefs, and emotional responses."
        )
    )
    commentary: Commentary


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class AnalysisReport(ReportModel):
    """The full structured report returned by one generation call."""

    executive_summary: ExecutiveSummary = Field(
        description=(
            "A high-level summary for C-suite executives, synthesizing all "
            "findings into strategic insights."
        )
    )
    narrative_summary: str = Field(
        description=(
            "A group narrative summary weaving together all findings into a "
            "cohesive story about the focus group's collective mindset."
        )
    )
    agentic_analysis: AgenticAnalysis
    emotion_trajectory: EmotionTrajectory
    archetype_mapping: ArchetypeMapping
    top_themes: TopThemes
    insight_graph: InsightGraphSection
    contradiction_finder: ContradictionFinder
    actionable_recommendations: ActionableRecommendations
    participant_personas: ParticipantPersonas

    def to_json_dict(self) -> dict[str, Any]:
        """Wire-format (camelCase) dict, as embedded in exports."""
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Schema as data
# ---------------------------------------------------------------------------

_DROP_KEYS = frozenset({"title", "default", "additionalProperties"})


def flatten_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Inline ``$ref`` pointers and simplify a Pydantic JSON schema.

    Structured-output endpoints (Gemini in particular) reject ``$defs``,
    ``title`` and nullable ``anyOf`` unions.  This returns a new dict with:

    - every ``#/$defs/...`` reference replaced by the definition itself
      (sibling keys such as ``description`` are kept)
    - ``anyOf: [X, {"type": "null"}]`` collapsed to ``X``
    - ``title``, ``default`` and ``additionalProperties`` removed

    The input is not mutated.
    """
    defs = schema.get("$defs", {})

    def _resolve(node: Any) -> Any:
        if isinstance(node, list):
            return [_resolve(item) for item in node]
        if not isinstance(node, dict):
            return node

        if "$ref" in node:
            ref_name = node["$ref"].rsplit("/", 1)[-1]
            merged = copy.deepcopy(defs[ref_name])
            for key, value in node.items():
                if key != "$ref":
                    merged[key] = value
            return _resolve(merged)

        if "anyOf" in node:
            variants = [v for v in node["anyOf"] if v != {"type": "null"}]
            if len(variants) == 1:
                simplified = {k: v for k, v in node.items() if k != "anyOf"}
                simplified.update(variants[0])
                return _resolve(simplified)

        out: dict[str, Any] = {}
        for key, value in node.items():
            if key == "$defs" or key in _DROP_KEYS:
                continue
            if key == "properties" and isinstance(value, dict):
                # property names are data, not schema keywords
                out[key] = {name: _resolve(prop) for name, prop in value.items()}
            else:
                out[key] = _resolve(value)
        return out

    return _resolve(schema)


def report_response_schema() -> dict[str, Any]:
    """The JSON schema shipped with every generation request."""
    return flatten_schema(AnalysisReport.model_json_schema(by_alias=True))
