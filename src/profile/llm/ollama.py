"""Local Ollama provider, reached through its OpenAI-compatible endpoint."""

import logging
import os

from src.profile.llm.base import LLMProvider
from src.profile.llm.openai import chat_messages, first_choice_text

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """Categorizes listings with a locally served model. No API key needed.

    The server address can be overridden with OLLAMA_BASE_URL.
    """

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for Ollama (OpenAI-compatible API). "
                "Install with: pip install 'opportunity-ranking-engine[openai]'"
            )
            raise ImportError(msg) from None

        base_url = os.environ.get("OLLAMA_BASE_URL", _DEFAULT_BASE_URL)
        client = openai.OpenAI(base_url=base_url, api_key="ollama", timeout=timeout, max_retries=0)
        use_model = model or self.default_model

        logger.debug("Categorizing listing with Ollama at %s (%s)", base_url, use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=chat_messages(prompt),
            temperature=0,
            response_format={"type": "json_object"},
        )
        return first_choice_text(response)
