"""Settings for a Q-Lens run.

Every field can be set as ``QLENS_<FIELD>`` in the environment or in the
nearest ``.env`` file; CLI flags override both through :func:`load_settings`.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _nearest_env_file() -> list[Path]:
    """The first ``.env`` in the working directory or above it."""
    cwd = Path.cwd().resolve()
    for directory in (cwd, *cwd.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return [candidate]
    return []


class QLensSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QLENS_",
        env_file=_nearest_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shown in the page header and the exported document's <title>
    report_title: str = "Q-Lens AI Report"

    llm_provider: str = "google"
    llm_model: str = "gemini-2.5-pro"
    google_api_key: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    # A full report with charts runs to ~10k tokens; leave headroom
    llm_max_tokens: int = Field(default=32768, gt=0)
    # Low, so two runs over one transcript read alike
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    # Ollama's OpenAI-compatible endpoint
    local_url: str = "http://localhost:11434/v1"
    local_model: str = "llama3.1:8b"

    output_dir: Path = Path(".")


def load_settings(**overrides: object) -> QLensSettings:
    """Build settings from the environment plus non-None CLI overrides.

    ``llm_provider`` may be an alias (gemini, claude, chatgpt, ollama);
    an unknown name raises :class:`ValueError`.  Picking a provider
    without a model selects that provider's default model.  Missing API
    keys are filled from the bare SDK variables (``GOOGLE_API_KEY`` etc.).
    """
    from qlens.providers import PROVIDERS, resolve_provider

    given = {k: v for k, v in overrides.items() if v is not None}
    if isinstance(given.get("llm_provider"), str):
        given["llm_provider"] = resolve_provider(given["llm_provider"])  # type: ignore[arg-type]

    settings = QLensSettings(**given)  # type: ignore[arg-type]

    spec = PROVIDERS.get(settings.llm_provider)
    model_is_stock = settings.llm_model == QLensSettings.model_fields["llm_model"].default
    if spec is not None and "llm_model" not in given and model_is_stock:
        settings = settings.model_copy(update={"llm_model": spec.default_model})

    return _fill_api_keys(settings)


def _fill_api_keys(settings: QLensSettings) -> QLensSettings:
    from qlens.credentials import find_api_key, key_source
    from qlens.providers import PROVIDERS

    updates: dict[str, str] = {}
    for spec in PROVIDERS.values():
        field_name = spec.api_key_field
        if field_name is None or getattr(settings, field_name):
            continue
        key = find_api_key(spec.name)
        if key:
            logger.debug("%s key taken from %s", spec.name, key_source(spec.name))
            updates[field_name] = key

    return settings.model_copy(update=updates) if updates else settings
