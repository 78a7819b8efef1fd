"""The LLM backends a report can be generated with, and what each one needs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    display_name: str
    aliases: tuple[str, ...] = ()
    default_model: str = ""
    key_env_var: str = ""  # blank: runs without a key
    key_url: str = ""

    @property
    def api_key_field(self) -> str | None:
        """The :class:`~qlens.config.QLensSettings` field holding this provider's key."""
        return f"{self.name}_api_key" if self.key_env_var else None


_SPECS = (
    ProviderSpec(
        "google", "Gemini", ("gemini",), "gemini-2.5-pro",
        "QLENS_GOOGLE_API_KEY", "https://aistudio.google.com/apikey",
    ),
    ProviderSpec(
        "anthropic", "Claude", ("claude",), "claude-sonnet-4-20250514",
        "QLENS_ANTHROPIC_API_KEY", "https://console.anthropic.com",
    ),
    ProviderSpec(
        "openai", "ChatGPT", ("chatgpt", "gpt"), "gpt-4o",
        "QLENS_OPENAI_API_KEY", "https://platform.openai.com",
    ),
    ProviderSpec("local", "Local (Ollama)", ("ollama",), "llama3.1:8b"),
)

PROVIDERS: dict[str, ProviderSpec] = {spec.name: spec for spec in _SPECS}


def get_provider_aliases() -> dict[str, str]:
    """Map every alias to its canonical provider name."""
    return {alias: spec.name for spec in _SPECS for alias in spec.aliases}


def resolve_provider(name: str) -> str:
    """Canonical provider name for *name* or one of its aliases, any case.

    Raises:
        ValueError: If the provider is not recognised.
    """
    name = name.lower()
    if name in PROVIDERS:
        return name
    aliases = get_provider_aliases()
    if name in aliases:
        return aliases[name]
    valid = sorted(PROVIDERS) + sorted(aliases)
    raise ValueError(f"Unknown LLM provider: {name}. Valid providers: {', '.join(valid)}")
