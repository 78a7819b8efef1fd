"""Prompt templates kept as Markdown next to this module.

A prompt file has a ``## System`` section and a ``## User`` section; text
before the first heading is notes for whoever edits the prompt and is
never sent.  The user section is a :meth:`str.format` template.
"""

from __future__ import annotations

import re
import string
from functools import cache
from pathlib import Path
from typing import NamedTuple

_PROMPTS_DIR = Path(__file__).resolve().parent

_HEADING_RE = re.compile(r"^##\s+(system|user)\s*$", re.IGNORECASE | re.MULTILINE)

REPORT_PROMPT = "report-analysis"
_REPORT_FIELDS = frozenset({"context", "transcript", "custom_prompt"})

NO_CUSTOM_PROMPT = (
    "No custom prompt provided. Perform a general analysis and generate a full "
    "executive report."
)


class PromptPair(NamedTuple):
    system: str
    user: str


def _sections(text: str) -> dict[str, str]:
    # re.split with one group gives [preamble, name, body, name, body, ...]
    parts = _HEADING_RE.split(text)
    return {name.lower(): body.strip() for name, body in zip(parts[1::2], parts[2::2])}


def _template_fields(template: str) -> set[str]:
    return {field for _, field, _, _ in string.Formatter().parse(template) if field}


@cache
def _load_prompt(name: str) -> PromptPair:
    path = _PROMPTS_DIR / f"{name}.md"
    found = _sections(path.read_text(encoding="utf-8"))
    for section in ("system", "user"):
        if section not in found:
            raise ValueError(f"Prompt file {path.name} missing '## {section.title()}' section")
    return PromptPair(system=found["system"], user=found["user"])


def get_prompt(name: str) -> PromptPair:
    """Load a prompt pair by kebab-case name (e.g. ``"report-analysis"``)."""
    return _load_prompt(name)


def build_report_prompt(
    transcript: str,
    context: str,
    custom_prompt: str | None = None,
) -> PromptPair:
    """Compose the system and user messages for one report request.

    Callers check that ``transcript`` and ``context`` are non-empty; a blank
    ``custom_prompt`` is replaced by an explicit "none given" placeholder.
    """
    template = get_prompt(REPORT_PROMPT)
    fields = _template_fields(template.user)
    if fields != _REPORT_FIELDS:
        raise ValueError(
            f"{REPORT_PROMPT}.md expects {sorted(_REPORT_FIELDS)}, found {sorted(fields)}"
        )
    user = template.user.format(
        context=context.strip(),
        transcript=transcript.strip(),
        custom_prompt=(custom_prompt or "").strip() or NO_CUSTOM_PROMPT,
    )
    return PromptPair(system=template.system, user=user)
