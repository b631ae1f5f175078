"""
Tool Executor
=============

Runs the capability calls the model requested in one round.

The executor:
1. Parses tool calls from the model response (bad JSON is kept, not dropped)
2. Resolves each name in the capability registry
3. Validates arguments and runs the creation guard
4. Invokes every runnable call concurrently, each under its own timeout
5. Waits for all of them and returns exactly one result per call, in the
   order the calls were issued

Fan-out / fan-in:
    calls ──┬── search_users ──────────┐
            ├── get_supported_values ──┼── join ── results (same order)
            └── unknown_tool (failed) ─┘

One call failing, timing out or naming an unknown capability never
cancels or delays the others, and never raises out of execute_all().
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Iterable

from jirabot.agent.context import DialogueMessage
from jirabot.agent.guards import CreationGuard
from jirabot.tools import ArgumentError, CapabilityRegistry, CapabilityResult, ErrorDescriptor
from jirabot.utils.logger import Logger

logger = Logger("Agent").child("Executor")

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class CapabilityCall:
    """
    A parsed tool call from the model.

    Attributes:
        id: The tool call id (for matching results)
        name: The capability name
        arguments: Parsed arguments (empty when parsing failed)
        raw_arguments: The JSON text exactly as the model sent it
        parse_error: Why the arguments could not be parsed, if they could not
    """
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    raw_arguments: str = "{}"
    parse_error: str | None = None


@dataclass
class CapabilityCallResult:
    """Result of one call, tagged with the id of the call it answers."""
    call_id: str
    name: str
    result: CapabilityResult

    def to_dialogue_message(self) -> DialogueMessage:
        return DialogueMessage.tool(self.call_id, self.result.to_message())


def _failure(call: CapabilityCall, code: str, message: str) -> CapabilityCallResult:
    return CapabilityCallResult(
        call_id=call.id,
        name=call.name,
        result=CapabilityResult.fail(ErrorDescriptor(code=code, message=message)),
    )


class ToolExecutor:
    """
    Executes the capability calls of one model response.

    Example:
        executor = ToolExecutor(registry, guard=CreationGuard(cache), timeout_seconds=30)

        calls = executor.parse_tool_calls(response.choices[0].message.tool_calls)
        results = await executor.execute_all(calls, dialogue)

        for result in results:
            dialogue.append(result.to_dialogue_message())
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        guard: CreationGuard | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ):
        self.registry = registry
        self.guard = guard
        self.timeout_seconds = timeout_seconds

    def parse_tool_calls(self, tool_calls: Iterable[Any] | None) -> list[CapabilityCall]:
        """
        Parse tool calls from an OpenAI response message.

        A call whose arguments are not a JSON object is kept with a
        parse_error so it still gets its own (failed) result.
        """
        calls = []

        for tc in tool_calls or []:
            raw = tc.function.arguments or "{}"
            try:
                arguments = json.loads(raw)
                if not isinstance(arguments, dict):
                    raise ValueError(f"expected a JSON object, got {type(arguments).__name__}")
                calls.append(CapabilityCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=arguments,
                    raw_arguments=raw
                ))
            except ValueError as e:
                logger.warning(f"Failed to parse arguments for {tc.function.name}: {e}")
                calls.append(CapabilityCall(
                    id=tc.id,
                    name=tc.function.name,
                    raw_arguments=raw,
                    parse_error=str(e)
                ))

        logger.debug(f"Parsed {len(calls)} tool calls")
        return calls

    async def execute_one(
        self,
        call: CapabilityCall,
        dialogue: list[DialogueMessage] | None = None
    ) -> CapabilityCallResult:
        """Execute a single call; failures come back as failed results."""
        if call.parse_error:
            return _failure(call, "INVALID_ARGUMENTS", f"Arguments are not valid JSON: {call.parse_error}")

        capability = self.registry.resolve(call.name)
        if capability is None:
            logger.warning(f"Model requested unknown capability: {call.name}")
            return _failure(call, "UNKNOWN_CAPABILITY", f"Capability '{call.name}' not found")

        logger.info(f"Executing capability: {call.name}")
        logger.debug(f"Arguments for {call.name}", call.arguments)

        try:
            result = await asyncio.wait_for(
                self._run(capability, call, dialogue or []),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Capability {call.name} timed out after {self.timeout_seconds}s")
            return _failure(call, "TIMEOUT", f"Capability '{call.name}' timed out after {self.timeout_seconds} seconds")

        if result.success:
            logger.debug(f"Capability {call.name} succeeded")
        else:
            logger.warning(f"Capability {call.name} failed: {result.error.message if result.error else ''}")

        return CapabilityCallResult(call_id=call.id, name=call.name, result=result)

    async def _run(self, capability, call: CapabilityCall, dialogue: list[DialogueMessage]) -> CapabilityResult:
        try:
            arguments = capability.validate_arguments(call.arguments)
        except ArgumentError as e:
            return CapabilityResult.fail(ErrorDescriptor(code="INVALID_ARGUMENTS", message=str(e)))

        if self.guard is not None:
            try:
                rejection = await self.guard.check(capability.kind, arguments, dialogue)
            except Exception as e:
                logger.error(f"Guard check failed for {call.name}", e)
                return CapabilityResult.fail(ErrorDescriptor.from_exception(e))
            if rejection is not None:
                return CapabilityResult.fail(rejection)

        return await self.registry.invoke(capability, arguments)

    async def execute_all(
        self,
        calls: list[CapabilityCall],
        dialogue: list[DialogueMessage] | None = None
    ) -> list[CapabilityCallResult]:
        """
        Execute all calls concurrently and wait for every one to settle.

        Returns:
            One CapabilityCallResult per call, in input order
        """
        settled = await asyncio.gather(
            *(self.execute_one(call, dialogue) for call in calls),
            return_exceptions=True
        )

        results = []
        for call, outcome in zip(calls, settled):
            if isinstance(outcome, CapabilityCallResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected failure executing {call.name}", outcome)
                results.append(CapabilityCallResult(
                    call_id=call.id,
                    name=call.name,
                    result=CapabilityResult.fail(ErrorDescriptor.from_exception(outcome)),
                ))
            else:
                raise outcome

        return results
