"""Utility functions for LLM invocations with timeout handling."""

import asyncio
import logging
from typing import List, Any, Optional
from langchain_core.messages import BaseMessage
from langchain_core.language_models.chat_models import BaseChatModel
from safetriage.config.settings import settings

logger = logging.getLogger(__name__)


async def invoke_llm_with_timeout(
    llm: BaseChatModel,
    messages: List[BaseMessage],
    timeout: Optional[float] = None,
) -> Any:
    """
    Invoke an LLM with timeout protection.

    Args:
        llm: The language model to invoke
        messages: List of messages to send to the LLM
        timeout: Timeout in seconds (defaults to settings.llm_invoke_timeout)

    Returns:
        LLM response

    Raises:
        asyncio.TimeoutError: If the model does not answer in time
    """
    if timeout is None:
        timeout = settings.llm_invoke_timeout

    logger.info(f"Invoking LLM with timeout: {timeout}s")

    try:
        response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
        logger.info("LLM responded successfully")
        return response

    except asyncio.TimeoutError:
        logger.error(f"LLM invocation timed out after {timeout}s")
        raise

    except Exception as e:
        logger.error(f"LLM invocation failed: {e}", exc_info=True)
        raise
