"""Tests for step classification and the intent step model."""

import pytest

from dapp_agent.agent.classifier import DETERMINISTIC_TYPES, is_deterministic
from dapp_agent.agent.types import IntentStep, IntentStepType
from tests.conftest import make_step


class TestIsDeterministic:
    """Tests for is_deterministic."""

    @pytest.mark.parametrize("step_type", ["navigate", "switch_network", "verify_state"])
    def test_fixed_path_types_are_deterministic(self, step_type):
        assert is_deterministic(make_step("s1", step_type)) is True

    @pytest.mark.parametrize(
        "step_type",
        ["connect_wallet", "sign_message", "confirm_transaction", "fill_form", "click_element", "dismiss_obstacle"],
    )
    def test_adaptive_types_go_to_agent(self, step_type):
        assert is_deterministic(make_step("s1", step_type)) is False

    def test_unknown_type_goes_to_agent(self):
        """Unrecognized types are not an error, just agent-routed."""
        assert is_deterministic(make_step("s1", "hover_tooltip")) is False

    def test_membership_set(self):
        assert DETERMINISTIC_TYPES == {"navigate", "switch_network", "verify_state"}


class TestIntentStep:
    """Tests for IntentStep parsing."""

    def test_known_type_is_coerced_to_enum(self):
        step = IntentStep.model_validate({"id": "s1", "description": "Open", "type": "navigate"})
        assert step.type is IntentStepType.NAVIGATE
        assert step.type_name == "navigate"

    def test_unknown_type_kept_as_string(self):
        step = IntentStep.model_validate({"id": "s1", "description": "Hover", "type": "hover_tooltip"})
        assert step.type == "hover_tooltip"
        assert step.type_name == "hover_tooltip"

    def test_camel_case_input(self):
        step = IntentStep.model_validate(
            {"id": "s1", "description": "Open", "type": "navigate", "sourceStepIndices": [0, 1]}
        )
        assert step.source_step_indices == [0, 1]

    def test_step_is_read_only(self):
        step = make_step("s1", "navigate")
        with pytest.raises(Exception):
            step.description = "changed"
