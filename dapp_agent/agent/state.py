"""State of the per-step agent graph."""

import operator
from typing import Annotated, Optional

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from dapp_agent.agent.types import AgentAction, ControlSignal


class StepLoopState(TypedDict):
    """
    One intent step's conversation and bookkeeping.

    The current page snapshot is not kept here: the agent node adds it to the
    prompt of each model call and drops it afterwards.
    """

    # Step message, model turns, tool results and nudges
    messages: Annotated[list[BaseMessage], add_messages]

    step_id: str
    started_at: float  # loop.time() at step entry
    step_api_calls: int

    # Replay timeline, appended by the tools node
    actions: Annotated[list[AgentAction], operator.add]

    # Terminal outcome: a control signal, or a failure reason from the loop itself
    signal: Optional[ControlSignal]
    failure: Optional[str]
    abort_run: bool  # run-wide budget exhausted
    cancelled: bool


def initial_step_state(step_id: str, step_message: BaseMessage, started_at: float) -> StepLoopState:
    return StepLoopState(
        messages=[step_message],
        step_id=step_id,
        started_at=started_at,
        step_api_calls=0,
        actions=[],
        signal=None,
        failure=None,
        abort_run=False,
        cancelled=False,
    )
