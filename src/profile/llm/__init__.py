"""Registry of LLM providers used to categorize listings.

Provider modules are imported on first use so the SDKs stay optional extras:

    provider = get_provider("anthropic")
    if has_credentials(provider):
        tags = parse_response(provider.complete(listing_text, timeout=5.0))
"""

from __future__ import annotations

import importlib
import os

from src.profile.llm.base import LLMProvider, parse_response

__all__ = [
    "LLMProvider",
    "available_providers",
    "get_provider",
    "has_credentials",
    "parse_response",
]

# provider name -> (module path, class name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("src.profile.llm.anthropic", "AnthropicProvider"),
    "openai": ("src.profile.llm.openai", "OpenAIProvider"),
    "gemini": ("src.profile.llm.gemini", "GeminiProvider"),
    "ollama": ("src.profile.llm.ollama", "OllamaProvider"),
}


def get_provider(name: str) -> LLMProvider:
    """Instantiate a provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    try:
        module_path, class_name = _REGISTRY[name]
    except KeyError:
        valid = ", ".join(available_providers())
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg) from None
    cls = getattr(importlib.import_module(module_path), class_name)
    return cls()  # type: ignore[no-any-return]


def has_credentials(provider: LLMProvider) -> bool:
    """True when the provider needs no API key or its key is set."""
    return provider.env_var is None or bool(os.environ.get(provider.env_var))


def available_providers() -> list[str]:
    return sorted(_REGISTRY)
