"""Anthropic Claude provider for listing categorization."""

import logging
import os

from src.profile.llm.base import MAX_OUTPUT_TOKENS, SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Categorizes listings through the Anthropic Messages API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

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
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for listing categorization. "
                "Install with: pip install 'opportunity-ranking-engine[anthropic]'"
            )
            raise ImportError(msg) from None

        # the categorizer enforces its own deadline, so the SDK must not retry
        client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        use_model = model or self.default_model

        logger.debug("Categorizing listing with Anthropic (%s)", use_model)
        message = client.messages.create(
            model=use_model,
            max_tokens=MAX_OUTPUT_TOKENS,
            temperature=0.0,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )

        text_blocks = [b.text for b in message.content if getattr(b, "type", "text") == "text"]
        return "".join(text_blocks)
