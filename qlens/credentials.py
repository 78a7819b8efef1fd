"""API keys for the cloud report providers.

Keys are read from the environment (pydantic-settings has already loaded
any ``.env`` file into the settings object by the time this runs).  For
each provider the ``QLENS_``-prefixed variable is tried before the bare
name its SDK documents.
"""

from __future__ import annotations

import os

# Bare names, most specific first; the prefixed form of each is tried first
_KEY_VARIABLES: dict[str, tuple[str, ...]] = {
    "google": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


def _candidates(provider: str) -> list[str]:
    names = []
    for bare in _KEY_VARIABLES.get(provider, ()):
        names += [f"QLENS_{bare}", bare]
    return names


def key_source(provider: str) -> str | None:
    """Name of the environment variable that supplies *provider*'s key."""
    for name in _candidates(provider):
        if os.environ.get(name):
            return name
    return None


def find_api_key(provider: str) -> str | None:
    """Return the API key for *provider*, or None (always None for ``local``)."""
    name = key_source(provider)
    return os.environ[name] if name else None
