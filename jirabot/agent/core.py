"""
Agent Core
==========

The agent loop: turns a dialogue into one answer, with at most one round
of capability calls in between.

    Dialogue
        │
        ▼
    DISPATCH_INITIAL: model call with capability manifest (tool_choice=auto)
        │
        ├── no tool calls ──────────────► TERMINAL_DIRECT (return as-is)
        │
        ▼
    FAN_OUT_TOOLS: parse + run every call concurrently
        │
        ▼
    FAN_IN_RESULTS: append the assistant tool-call message and one
                    tool message per call, in call order
        │
        ▼
    DISPATCH_FOLLOWUP: model call without tools
        │
        ▼
    TERMINAL_FINAL (return content)

The model cannot chain a second round of tools after seeing results. A
plan such as "search, then maybe create" has to be requested in the same
first round, which bounds the cost and latency of every turn.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from openai import AsyncOpenAI

from jirabot.agent.context import SYSTEM_POLICY, DialogueMessage, to_openai_messages
from jirabot.agent.tools_executor import CapabilityCallResult, ToolExecutor
from jirabot.tools import CapabilityRegistry
from jirabot.utils.logger import Logger

logger = Logger("Agent")


class AgentState(str, Enum):
    """States of one agent invocation."""
    DISPATCH_INITIAL = "dispatch_initial"
    TERMINAL_DIRECT = "terminal_direct"
    FAN_OUT_TOOLS = "fan_out_tools"
    FAN_IN_RESULTS = "fan_in_results"
    DISPATCH_FOLLOWUP = "dispatch_followup"
    TERMINAL_FINAL = "terminal_final"


@dataclass
class AgentTurn:
    """
    Outcome of one invocation.

    Attributes:
        content: The final assistant message
        state: The terminal state reached (TERMINAL_DIRECT or TERMINAL_FINAL)
        results: One result per capability call, in call order
    """
    content: str
    state: AgentState
    results: list[CapabilityCallResult] = field(default_factory=list)


class Agent:
    """
    Runs the two-phase tool-orchestration protocol.

    One Agent is shared by all invocations; it holds no per-invocation
    state.

    Example:
        agent = Agent(registry, executor, client=AsyncOpenAI(), model="gpt-4o")

        answer = await agent.respond([
            DialogueMessage.user("Create a ticket for the checkout timeout"),
        ])
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        executor: ToolExecutor,
        client: AsyncOpenAI,
        model: str,
        system_policy: str = SYSTEM_POLICY
    ):
        """
        Initialize the agent.

        Args:
            registry: Capabilities offered to the model
            executor: Runs the calls the model requests
            client: OpenAI client
            model: Chat model name
            system_policy: System message sent with every model call
        """
        self.registry = registry
        self.executor = executor
        self.openai = client
        self.model = model
        self.system_policy = system_policy

        logger.info(f"Agent initialized with model: {self.model}")

    async def respond(self, dialogue: Iterable[DialogueMessage]) -> str:
        """Produce the assistant's answer for a dialogue."""
        turn = await self.run(dialogue)
        return turn.content

    async def run(self, dialogue: Iterable[DialogueMessage]) -> AgentTurn:
        """
        Run one invocation of the loop.

        Args:
            dialogue: Messages oldest first; consumed exactly once

        Returns:
            AgentTurn with the answer, terminal state and call results

        Raises:
            openai.APIError: If a model call fails (capability failures do not raise)
        """
        messages = list(dialogue)
        logger.info(f"Responding to dialogue of {len(messages)} messages")

        logger.debug(f"State: {AgentState.DISPATCH_INITIAL.value}")
        response = await self.openai.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(self.system_policy, messages),
            tools=self.registry.manifest(),
            tool_choice="auto"
        )
        first = response.choices[0].message

        if not first.tool_calls:
            logger.info("Answered without capability calls")
            return AgentTurn(content=first.content or "", state=AgentState.TERMINAL_DIRECT)

        logger.debug(f"State: {AgentState.FAN_OUT_TOOLS.value}")
        calls = self.executor.parse_tool_calls(first.tool_calls)
        logger.info(f"Model requested {len(calls)} capability calls: {[c.name for c in calls]}")
        results = await self.executor.execute_all(calls, messages)

        logger.debug(f"State: {AgentState.FAN_IN_RESULTS.value}")
        followup_dialogue = [
            *messages,
            DialogueMessage.assistant(first.content, tool_calls=calls),
            *(result.to_dialogue_message() for result in results),
        ]

        logger.debug(f"State: {AgentState.DISPATCH_FOLLOWUP.value}")
        followup = await self.openai.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(self.system_policy, followup_dialogue)
        )

        final_message = followup.choices[0].message.content or ""
        logger.info(f"Generated response ({len(final_message)} chars)")
        return AgentTurn(content=final_message, state=AgentState.TERMINAL_FINAL, results=results)
