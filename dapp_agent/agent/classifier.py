"""Routes intent steps to the deterministic executor or the agent loop."""

from dapp_agent.agent.types import IntentStep, IntentStepType

# Steps with a fixed, fully known execution path. These never call the LLM.
DETERMINISTIC_TYPES = frozenset(
    {
        IntentStepType.NAVIGATE.value,
        IntentStepType.SWITCH_NETWORK.value,
        IntentStepType.VERIFY_STATE.value,
    }
)


def is_deterministic(step: IntentStep) -> bool:
    """Check if a step can be executed without the agent loop."""
    return step.type_name in DETERMINISTIC_TYPES
