"""Abstract base class for LLM providers and shared logic."""

import json
import re
from abc import ABC, abstractmethod

from src.core.schemas import OpportunityTags

SYSTEM_PROMPT = (
    "You are a job listing analyst. Categorize the internship or job listing "
    "provided so it can be matched against student profiles.\n\n"
    "Return ONLY a JSON object (no markdown, no explanation) with these fields:\n"
    "- categories (list[str]): 1-3 broad job categories (e.g. \"Finance\", "
    "\"Software Engineering\")\n"
    "- match_keywords (list[str]): 5-10 keywords a matching student would have\n"
    "- industry_tags (list[str]): 1-3 industries\n"
    "- required_skills (list[str]): 3-8 concrete skills the role needs\n"
    "- education_match (list[str]): majors or fields of study that fit the role\n"
    "- confidence (float 0-1): how confident you are in this categorization\n\n"
    "Use empty lists when the listing gives no signal for a field."
)


def parse_response(raw_text: str) -> OpportunityTags:
    """Parse an LLM response text into OpportunityTags.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    """
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    cleaned = re.sub(r"\n?```\s*$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse LLM response as JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = "LLM response must be a JSON object"
        raise ValueError(msg)

    confidence = data.get("confidence", 0.0)
    try:
        data["confidence"] = max(0.0, min(1.0, float(confidence)))
    except (TypeError, ValueError):
        data["confidence"] = 0.0

    return OpportunityTags.model_validate(data)


# categorization replies are one small JSON object
MAX_OUTPUT_TOKENS = 512


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        """Send listing text with SYSTEM_PROMPT and return the raw response text.

        Args:
            prompt: Listing text to categorize.
            model: Override the provider's default model. None uses default.
            timeout: Request timeout in seconds, passed to the SDK client.

        Returns:
            Raw text response from the LLM (expected to be JSON).
        """

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""
