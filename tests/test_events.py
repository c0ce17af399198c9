"""
Test event payloads and executor configuration.
"""

import dataclasses

import pytest

from webpilot.core.config import MAX_REPLANS, MAX_STEPS, ExecutorConfig
from webpilot.core.events import (
    EventType,
    InitProgress,
    InitStart,
    PlanComplete,
    StepAction,
    StepResult,
    StepStart,
    TaskComplete,
    TaskFailed,
)


class TestEventWireFormat:
    """Test to_dict() payloads."""

    def test_no_payload(self):
        assert InitStart().to_dict() == {"type": "INIT_START"}

    def test_progress(self):
        assert InitProgress(progress=0.25).to_dict() == {"type": "INIT_PROGRESS", "progress": 0.25}

    def test_step_number_key(self):
        assert StepStart(step_number=3).to_dict() == {"type": "STEP_START", "stepNumber": 3}

    def test_plan_is_list(self):
        payload = PlanComplete(plan=("a", "b")).to_dict()
        assert payload == {"type": "PLAN_COMPLETE", "plan": ["a", "b"]}

    def test_action_params(self):
        payload = StepAction(action="click", params={"selector": "#go"}).to_dict()
        assert payload == {"type": "STEP_ACTION", "action": "click", "params": {"selector": "#go"}}

    def test_result_data_omitted_when_none(self):
        assert StepResult(success=True).to_dict() == {"type": "STEP_RESULT", "success": True}
        assert StepResult(success=False, data="boom").to_dict()["data"] == "boom"

    def test_terminal(self):
        assert TaskComplete(result="ok").is_terminal
        assert TaskFailed(error="x").is_terminal
        assert not StepStart(step_number=1).is_terminal
        assert TaskFailed(error="x").type == EventType.TASK_FAILED

    def test_frozen(self):
        event = StepStart(step_number=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.step_number = 2


class TestExecutorConfig:
    """Test config validation and environment loading."""

    def test_defaults(self):
        config = ExecutorConfig()
        assert config.max_steps == MAX_STEPS == 15
        assert config.max_replans == MAX_REPLANS == 2
        assert config.failure_threshold == 3

    @pytest.mark.parametrize("kwargs", [
        {"max_steps": 0},
        {"max_replans": -1},
        {"failure_threshold": 0},
        {"max_tokens": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ExecutorConfig(**kwargs)

    def test_zero_replans_allowed(self):
        assert ExecutorConfig(max_replans=0).max_replans == 0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WEBPILOT_MODEL", "llama3.2:1b")
        monkeypatch.setenv("WEBPILOT_MAX_STEPS", "7")
        monkeypatch.setenv("WEBPILOT_MAX_REPLANS", "0")
        monkeypatch.setenv("WEBPILOT_FAILURE_THRESHOLD", "5")

        config = ExecutorConfig.from_env()

        assert config.model_id == "llama3.2:1b"
        assert config.max_steps == 7
        assert config.max_replans == 0
        assert config.failure_threshold == 5

    def test_explicit_model_wins(self, monkeypatch):
        monkeypatch.setenv("WEBPILOT_MODEL", "llama3.2:1b")
        assert ExecutorConfig.from_env(model_id="phi3.5:3.8b").model_id == "phi3.5:3.8b"

    def test_from_env_rejects_non_integer(self, monkeypatch):
        monkeypatch.setenv("WEBPILOT_MAX_STEPS", "many")
        with pytest.raises(ValueError) as exc_info:
            ExecutorConfig.from_env()
        assert "WEBPILOT_MAX_STEPS" in str(exc_info.value)

    def test_from_env_blank_uses_default(self, monkeypatch):
        monkeypatch.setenv("WEBPILOT_MAX_STEPS", "")
        monkeypatch.delenv("WEBPILOT_MAX_REPLANS", raising=False)
        config = ExecutorConfig.from_env()
        assert config.max_steps == MAX_STEPS
        assert config.max_replans == MAX_REPLANS


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
