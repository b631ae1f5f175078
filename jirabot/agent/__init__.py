"""
Agent System
============

The agent decides which Jira capabilities to use for a conversation and
writes the answer. It:
1. Sends the dialogue and capability manifest to the model
2. Runs any requested capabilities in parallel
3. Sends the results back for a final answer

This module provides:
- Agent: the two-phase agent loop
- DialogueMessage: one message of a conversation
- ToolExecutor: fan-out/fan-in of capability calls
- CreationGuard: code-level checks before creating or assigning tickets
"""

from jirabot.agent.context import DialogueMessage, SYSTEM_POLICY
from jirabot.agent.core import Agent, AgentState, AgentTurn
from jirabot.agent.guards import CreationGuard
from jirabot.agent.tools_executor import CapabilityCall, CapabilityCallResult, ToolExecutor

__all__ = [
    "Agent",
    "AgentState",
    "AgentTurn",
    "CapabilityCall",
    "CapabilityCallResult",
    "CreationGuard",
    "DialogueMessage",
    "SYSTEM_POLICY",
    "ToolExecutor",
]
