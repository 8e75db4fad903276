"""Optional plain-language narrative for a triage verdict.

The narrator only ever fills ``TriageVerdict.narrative``. It runs when
``settings.llm_augmentation_enabled`` is set and a token is configured, and it
never sends text that still contains direct identifiers.
"""

from typing import Callable, Optional
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from safetriage.config.llm_config import get_narrator_model, llm_available
from safetriage.models.intake import IntakeRecord
from safetriage.models.verdict import TriageVerdict, ensure_not_downgraded
from safetriage.services.prompt_settings import (
    PromptSettingsService,
    get_prompt_settings_service,
)
from safetriage.utils.llm_helpers import invoke_llm_with_timeout
from safetriage.utils.phi_guard import redact_phi
import logging

logger = logging.getLogger(__name__)

MAX_NARRATIVE_CHARS = 1200


def build_narrator_message(verdict: TriageVerdict, symptoms: str) -> str:
    """Describe the fixed decision for the model."""
    return (
        f"Urgency tier: {verdict.urgency_tier.value}\n"
        f"Matched rules: {', '.join(verdict.rationale) or 'none'}\n"
        f"Summary: {verdict.summary}\n"
        f"Recommended action: {verdict.recommended_action}\n"
        f"Patient description (redacted): {symptoms or 'not provided'}\n\n"
        "Explain this decision to the patient."
    )


class TriageNarrator:
    def __init__(
        self,
        enabled: Optional[Callable[[], bool]] = None,
        model_factory: Callable[[], BaseChatModel] = get_narrator_model,
        prompt_service: Optional[PromptSettingsService] = None,
    ):
        self._enabled = enabled or llm_available
        self._model_factory = model_factory
        self._model: Optional[BaseChatModel] = None
        self._prompt_service = prompt_service

    @property
    def enabled(self) -> bool:
        return self._enabled()

    async def narrate(self, verdict: TriageVerdict, record: IntakeRecord) -> TriageVerdict:
        """
        Attach a narrative to ``verdict`` when augmentation is on.

        Args:
            verdict: The deterministic verdict
            record: The intake record the verdict was computed from

        Returns:
            The verdict, with ``narrative`` set on success and unchanged otherwise
        """
        if not self.enabled:
            return verdict

        redaction = redact_phi(record.free_text or "")
        if redaction.has_phi:
            logger.warning(
                f"Narrative skipped: identifiers found ({', '.join(redaction.found)})"
            )
            return verdict

        prompt_service = self._prompt_service or get_prompt_settings_service()
        system_prompt = (await prompt_service.get_system_prompt()).system_prompt

        if self._model is None:
            self._model = self._model_factory()

        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=build_narrator_message(verdict, redaction.text)),
        ]
        try:
            response = await invoke_llm_with_timeout(self._model, messages)
        except Exception as e:
            logger.warning(f"Narrative generation failed, returning plain verdict: {e}")
            return verdict

        narrative = str(response.content or "").strip()[:MAX_NARRATIVE_CHARS]
        if not narrative:
            return verdict
        return ensure_not_downgraded(verdict, verdict.with_narrative(narrative))


# Global narrator instance
_triage_narrator: Optional[TriageNarrator] = None


def get_triage_narrator() -> TriageNarrator:
    """Get or create TriageNarrator instance."""
    global _triage_narrator
    if _triage_narrator is None:
        _triage_narrator = TriageNarrator()
    return _triage_narrator
