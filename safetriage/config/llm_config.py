"""LLM configuration for the GitHub Models API.

Only the triage narrator uses a model, and only when
``settings.llm_augmentation_enabled`` is set. The model never produces a
safety-critical field.
"""

from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from safetriage.config.settings import settings
from pydantic import SecretStr
import logging

logger = logging.getLogger(__name__)


def llm_available() -> bool:
    """True when augmentation is switched on and credentials are configured."""
    return bool(settings.llm_augmentation_enabled and settings.github_token)


def get_narrator_model() -> BaseChatModel:
    """Chat model that rewrites verdict rationales into plain language."""
    if not settings.github_token:
        raise RuntimeError("GITHUB_TOKEN is not configured")

    logger.info(f"Creating GitHub Models client: {settings.model_name}")
    return ChatOpenAI(
        base_url=settings.github_models_endpoint,
        api_key=SecretStr(settings.github_token),
        model=settings.model_name,
        temperature=settings.model_temperature,
        max_completion_tokens=settings.model_max_tokens,
    )
