"""Admin-configurable narrator system prompt."""

from typing import Awaitable, Callable, Optional
from pymongo.errors import PyMongoError
from safetriage.config.database import get_settings_collection
from safetriage.config.settings import settings
from safetriage.models.messages import SystemPromptResponse
from safetriage.utils.cache import TTLCache
import logging

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_KEY = "systemPrompt"

DEFAULT_SYSTEM_PROMPT = """You are a careful, plain-spoken triage assistant.

You receive a triage decision that has already been made by a rule engine:
an urgency tier, the rules that matched and a recommended action.

Guidelines:
1. Explain the decision in two or three short sentences a patient can follow.
2. Never change, soften or question the urgency tier or the recommended action.
3. Never diagnose a condition or suggest a medication or dose.
4. If the tier is emergency, tell the patient to contact emergency services now.
5. Do not ask for names, dates of birth, addresses or other identifiers."""


class PromptSettingsService:
    """Reads the narrator prompt from the settings collection, with caching."""

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        collection_factory: Callable[[], Awaitable] = get_settings_collection,
    ):
        self.cache = cache or TTLCache(settings.system_prompt_cache_seconds)
        self._collection_factory = collection_factory

    async def get_system_prompt(self) -> SystemPromptResponse:
        """
        Get the current system prompt.

        Returns:
            SystemPromptResponse; ``cached`` is set when served from memory and
            ``source`` is ``database`` or ``default``
        """
        cached = self.cache.get()
        if cached is not None:
            return cached.model_copy(update={"cached": True})

        try:
            collection = await self._collection_factory()
            doc = await collection.find_one({"key": SYSTEM_PROMPT_KEY})
        except (PyMongoError, RuntimeError) as e:
            # Not cached, so the next request tries the database again
            logger.warning(f"Could not read system prompt, using default: {e}")
            return SystemPromptResponse(system_prompt=DEFAULT_SYSTEM_PROMPT)

        value = doc.get("value") if doc else None
        if isinstance(value, str) and value.strip():
            response = SystemPromptResponse(system_prompt=value, source="database")
        else:
            response = SystemPromptResponse(system_prompt=DEFAULT_SYSTEM_PROMPT)
        self.cache.set(response)
        return response


# Global service instance
_prompt_settings_service: Optional[PromptSettingsService] = None


def get_prompt_settings_service() -> PromptSettingsService:
    """Get or create PromptSettingsService instance."""
    global _prompt_settings_service
    if _prompt_settings_service is None:
        _prompt_settings_service = PromptSettingsService()
    return _prompt_settings_service
