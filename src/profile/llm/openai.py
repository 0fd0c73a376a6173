"""OpenAI provider for listing categorization."""

import logging
import os
from typing import Any

from src.profile.llm.base import MAX_OUTPUT_TOKENS, SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


def chat_messages(prompt: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def first_choice_text(response: Any) -> str:
    """Text of the first choice, or "" when the model returned no content."""
    return response.choices[0].message.content or ""


class OpenAIProvider(LLMProvider):
    """Categorizes listings through the OpenAI chat completions API in JSON mode."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        api_key = os.environ.get(self.env_var)
        if not api_key:
            msg = f"{self.env_var} environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for listing categorization. "
                "Install with: pip install 'opportunity-ranking-engine[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        use_model = model or self.default_model

        logger.debug("Categorizing listing with OpenAI (%s)", use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=chat_messages(prompt),
            max_tokens=MAX_OUTPUT_TOKENS,
            temperature=0,
            response_format={"type": "json_object"},
        )
        return first_choice_text(response)
