"""Google Gemini provider for listing categorization (google-genai SDK)."""

import logging
import os

from src.profile.llm.base import MAX_OUTPUT_TOKENS, SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """Categorizes listings through Gemini with a JSON response mime type."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

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
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for listing categorization. "
                "Install with: pip install 'opportunity-ranking-engine[gemini]'"
            )
            raise ImportError(msg) from None

        http_options = None
        if timeout is not None:
            # google-genai takes milliseconds
            http_options = genai_types.HttpOptions(timeout=int(timeout * 1000))
        client = genai.Client(api_key=api_key, http_options=http_options)
        use_model = model or self.default_model

        logger.debug("Categorizing listing with Gemini (%s)", use_model)
        response = client.models.generate_content(
            model=use_model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=SYSTEM_PROMPT,
                response_mime_type="application/json",
                temperature=0.0,
                max_output_tokens=MAX_OUTPUT_TOKENS,
            ),
        )
        return response.text or ""
