"""Best-effort LLM categorization of listings.

Never raises to the caller: on timeout, provider error or a malformed
response the listing gets empty tags and a low default confidence.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from src.core.config import CategorizationConfig
from src.core.schemas import OpportunityTags
from src.profile.llm import get_provider, has_credentials, parse_response
from src.profile.llm.base import LLMProvider

logger = logging.getLogger(__name__)

_DESCRIPTION_LIMIT = 4000


def _build_user_prompt(
    title: str,
    employer: str,
    description: str | None = None,
    location: str | None = None,
) -> str:
    """Assemble the user prompt from listing fields."""
    prompt = (
        "LISTING\n"
        f"Title: {title}\n"
        f"Employer: {employer}\n"
        f"Location: {location or 'not provided'}\n"
    )
    if description:
        prompt += f"Description:\n{description[:_DESCRIPTION_LIMIT]}\n"
    return prompt


class Categorizer:
    """Enriches listings with AI tags through an LLM provider, bounded by a timeout.

    Usage::

        categorizer = Categorizer(CategorizationConfig(enabled=True))
        tags = categorizer.categorize("Finance Intern", "Acme Bank")
    """

    def __init__(
        self,
        config: CategorizationConfig,
        provider: LLMProvider | None = None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="categorize")
        self._warned_credentials = False

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_provider(self._config.provider)
        return self._provider

    def fallback(self) -> OpportunityTags:
        return OpportunityTags(confidence=self._config.fallback_confidence)

    def categorize(
        self,
        title: str,
        employer: str,
        description: str | None = None,
        location: str | None = None,
    ) -> OpportunityTags:
        """Return tags for a listing, or fallback tags if anything goes wrong."""
        timeout = self._config.timeout_seconds
        try:
            provider = self.provider
            if not has_credentials(provider):
                if not self._warned_credentials:
                    logger.warning(
                        "%s is not set - listings are stored without tags", provider.env_var,
                    )
                    self._warned_credentials = True
                return self.fallback()
            prompt = _build_user_prompt(title, employer, description, location)
            future = self._executor.submit(
                provider.complete, prompt, self._config.model, timeout=timeout,
            )
            raw = future.result(timeout=timeout)
            return parse_response(raw)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "Categorization timed out after %.1fs for '%s' (%s) - using empty tags",
                timeout, title, employer,
            )
            return self.fallback()
        except Exception:
            logger.warning(
                "Categorization failed for '%s' (%s) - using empty tags",
                title, employer,
                exc_info=True,
            )
            return self.fallback()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
