import asyncio
from types import SimpleNamespace

from safetriage.agents.decision_engine import DecisionEngine
from safetriage.agents.triage_narrator import TriageNarrator
from safetriage.models.intake import IntakeRecord
from safetriage.models.messages import SystemPromptResponse
from safetriage.models.triage import UrgencyTier
from safetriage.utils.phi_guard import redact_phi


class FakeModel:
    def __init__(self, reply="Please call emergency services now.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.reply)


class FixedPrompt:
    async def get_system_prompt(self):
        return SystemPromptResponse(system_prompt="Explain kindly.")


def _narrator(model, enabled=True):
    return TriageNarrator(
        enabled=lambda: enabled,
        model_factory=lambda: model,
        prompt_service=FixedPrompt(),
    )


def _emergency():
    record = IntakeRecord(free_text="crushing chest pain since an hour", severity=6)
    return DecisionEngine().decide(record), record


def test_disabled_narrator_returns_verdict_untouched():
    model = FakeModel()
    verdict, record = _emergency()

    result = asyncio.run(_narrator(model, enabled=False).narrate(verdict, record))

    assert result == verdict
    assert model.calls == []


def test_narrative_is_additive_only():
    model = FakeModel()
    verdict, record = _emergency()

    result = asyncio.run(_narrator(model).narrate(verdict, record))

    assert result.narrative == "Please call emergency services now."
    assert result.urgency_tier == UrgencyTier.EMERGENCY
    assert result.rationale == verdict.rationale
    assert result.system_action == verdict.system_action


def test_identifiers_block_the_model_call():
    model = FakeModel()
    verdict, _ = _emergency()
    record = IntakeRecord(free_text="chest pain, call me on 412-555-0199", severity=6)

    result = asyncio.run(_narrator(model).narrate(verdict, record))

    assert result.narrative is None
    assert model.calls == []


def test_model_failure_falls_back_to_plain_verdict():
    model = FakeModel(error=RuntimeError("upstream 500"))
    verdict, record = _emergency()

    result = asyncio.run(_narrator(model).narrate(verdict, record))

    assert result == verdict


def test_redact_phi():
    result = redact_phi("Reach me at jane.doe@example.com or (412) 555-0199, MRN: A123456")

    assert "jane.doe" not in result.text
    assert "555-0199" not in result.text
    assert set(result.found) == {"email", "phone", "mrn"}
