"""Rough dollar figures for a report run.

A report is one structured call: the whole transcript plus the business
context goes in, one JSON document comes out.  Rates drift, so the CLI
always shows the provider's pricing page next to the number.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from qlens.llm.client import LLMUsageTracker


class ModelRate(NamedTuple):
    """USD per million tokens."""

    input_per_mtok: float
    output_per_mtok: float


RATES: dict[str, ModelRate] = {
    "gemini-2.5-pro": ModelRate(1.25, 10.0),
    "gemini-2.5-flash": ModelRate(0.15, 3.50),
    "claude-sonnet-4-20250514": ModelRate(3.0, 15.0),
    "gpt-4o": ModelRate(2.50, 10.0),
    "gpt-4o-mini": ModelRate(0.15, 0.60),
}

_PRICING_PAGES: dict[str, str] = {
    "google": "https://ai.google.dev/gemini-api/docs/pricing",
    "anthropic": "https://docs.anthropic.com/en/docs/about-claude/models",
    "openai": "https://platform.openai.com/docs/pricing",
}

# Report prompt + schema overhead, and a typical filled-in report.
_PROMPT_OVERHEAD_TOKENS = 2_500
_REPORT_OUTPUT_TOKENS = 6_000
_CHARS_PER_TOKEN = 4


def pricing_url(provider: str) -> str | None:
    """Where to check current rates; None for local models."""
    return _PRICING_PAGES.get(provider)


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float | None:
    """Return estimated cost in USD, or None for an unpriced model."""
    rate = RATES.get(model)
    if rate is None:
        return None
    return (
        input_tokens * rate.input_per_mtok + output_tokens * rate.output_per_mtok
    ) / 1_000_000


def estimate_report_cost(model: str, transcript: str, context: str = "") -> float | None:
    """Guess what one report will cost before the call is made.

    Input is sized from the text at ~4 characters per token; output
    assumes a report of typical length.
    """
    input_tokens = _PROMPT_OVERHEAD_TOKENS + (len(transcript) + len(context)) // _CHARS_PER_TOKEN
    return estimate_cost(model, input_tokens, _REPORT_OUTPUT_TOKENS)


def format_usage(tracker: LLMUsageTracker, model: str) -> str | None:
    """One-line token summary, e.g. ``12,000 in · 3,000 out · ~$0.05``."""
    if tracker.calls == 0:
        return None
    line = f"{tracker.input_tokens:,} in · {tracker.output_tokens:,} out"
    cost = estimate_cost(model, tracker.input_tokens, tracker.output_tokens)
    if cost is not None:
        line += f" · ~${cost:.2f}"
    return line
