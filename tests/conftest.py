"""Shared test fixtures for Q-Lens tests."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import pytest

from qlens.config import QLensSettings
from qlens.llm.structured import AnalysisReport


def _chart_commentary(topic: str) -> dict[str, str]:
    return {
        "objective": f"Show the {topic}.",
        "howToRead": f"Read the {topic} left to right.",
        "keyInsights": f"The {topic} shifts after the pricing reveal.\n\nTrust recovers late.",
    }


def _commentary(topic: str) -> dict[str, str]:
    return {
        "objective": f"Summarise the {topic}.",
        "keyInsights": f"The {topic} point to onboarding friction.",
    }


SAMPLE_REPORT: dict[str, Any] = {
    "executiveSummary": {
        "summary": "Participants like the concept but doubt the pricing.",
        "swot": {
            "strengths": ["Clear value proposition"],
            "weaknesses": ["Confusing onboarding"],
            "opportunities": ["Family plans"],
            "threats": ["Cheaper incumbents"],
        },
        "strategicRecommendations": "Simplify pricing before launch.",
    },
    "narrativeSummary": "The session opened with curiosity and ended in cautious optimism.",
    "agenticAnalysis": {
        "summary": "The moderator missed two chances to probe on price.",
        "stuckMoments": [
            {"quote": "I guess it's fine?", "suggestion": "What would make it better than fine?"}
        ],
        "cognitiveBiases": [
            {
                "bias": "Anchoring",
                "quote": "My current app is free",
                "explanation": "Free is the reference price.",
            }
        ],
        "keyMetaphors": [
            {"metaphor": "a maze", "quote": "Signing up felt like a maze", "meaning": "Lost in setup."}
        ],
        "commentary": _commentary("moderation"),
    },
    "emotionTrajectory": {
        "data": [
            {"segment": 1, "emotion": "Curiosity", "quote": "Oh, what's this?"},
            {"segment": 2, "emotion": "Skepticism", "quote": "How much is it though?"},
            {"segment": 3, "emotion": "Frustrated", "quote": "Too many steps."},
            {"segment": 4, "emotion": "Hopeful", "quote": "If it worked, I'd use it daily."},
        ],
        "commentary": _chart_commentary("emotional arc"),
    },
    "archetypeMapping": {
        "data": [
            {
                "name": "Explorer",
                "percentage": 40,
                "description": "Eager to try new things.",
                "quotes": ["I'd sign up today."],
            },
            {
                "name": "Skeptic",
                "percentage": 35,
                "description": "Needs proof first.",
                "quotes": ["Show me the numbers."],
            },
            {
                "name": "Caregiver",
                "percentage": 25,
                "description": "Thinks about the family.",
                "quotes": ["Would my kids be safe?"],
            },
        ],
        "commentary": _chart_commentary("archetype split"),
    },
    "topThemes": {
        "data": [
            {
                "theme": "Pricing anxiety",
                "supportingQuotes": ["How much is it though?"],
                "sentiment": "Negative",
            },
            {
                "theme": "Ease of use",
                "supportingQuotes": ["Too many steps.", "The dashboard is nice."],
                "sentiment": "Mixed",
            },
        ],
        "commentary": _commentary("themes"),
    },
    "insightGraph": {
        "data": {
            "themes": ["Pricing", "Trust", "Onboarding", "Retention"],
            "connections": [
                {"from": "Pricing", "to": "Trust", "relationship": "erodes"},
                {"from": "Onboarding", "to": "Retention", "relationship": "drives"},
            ],
            "summary": "Price perception flows into trust.",
        },
        "commentary": _chart_commentary("insight graph"),
    },
    "contradictionFinder": {
        "data": [
            {
                "topic": "Willingness to pay",
                "contradictoryQuotes": ["I'd pay for this.", "I never pay for apps."],
                "analysis": "Stated and revealed preference diverge.",
            }
        ],
        "commentary": _commentary("contradictions"),
    },
    "actionableRecommendations": {
        "data": [
            {
                "area": "Pricing",
                "recommendation": "Offer a free tier",
                "reasoning": "Free is the anchor for most participants.",
            }
        ],
        "commentary": _commentary("recommendations"),
    },
    "participantPersonas": {
        "data": [
            {
                "personaName": "Budget Beth",
                "description": "Cost-conscious parent of two.",
                "keyCharacteristics": ["Price sensitive", "Time poor"],
                "representativeQuotes": ["Every pound counts."],
            }
        ],
        "commentary": _commentary("personas"),
    },
}


@pytest.fixture
def report_dict() -> dict[str, Any]:
    """A fresh, mutable copy of a complete wire-format report."""
    return copy.deepcopy(SAMPLE_REPORT)


@pytest.fixture
def sample_report(report_dict: dict[str, Any]) -> AnalysisReport:
    return AnalysisReport.model_validate(report_dict)


@pytest.fixture
def settings(tmp_path: Path) -> QLensSettings:
    """Google settings with a dummy key and an isolated output dir."""
    return QLensSettings(
        llm_provider="google",
        google_api_key="AIzaSyTest123456789",
        llm_model="gemini-2.5-pro",
        output_dir=tmp_path,
    )


@pytest.fixture
def sample_transcript() -> str:
    return (
        "Moderator: What's your first impression?\n"
        "P1: Oh, what's this?\n"
        "P2: How much is it though?\n"
        "P3: Too many steps.\n"
        "P1: If it worked, I'd use it daily.\n"
    )
