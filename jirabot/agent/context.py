"""
Dialogue and Policy
===================

The dialogue is the whole conversational state of one invocation: an
ordered, role-tagged list of messages, oldest first. Nothing is stored
between invocations; the Slack thread is re-read every time and the
dialogue rebuilt from it.

The system policy below is sent as the first message of every model
call. It tells the model how to search, validate and confirm before
creating tickets. The guard in guards.py enforces the parts of it that
must not depend on the model's compliance.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from jirabot.agent.tools_executor import CapabilityCall

ROLES = ("system", "user", "assistant", "tool")


SYSTEM_POLICY = (
    "You are a helpful assistant integrated with JIRA. "
    "You can search for similar tickets, summarize their resolutions, create new tickets, "
    "and optionally assign them to users. You operate only within the context of JIRA issue management. "
    "If a user asks for something unrelated to JIRA issues, politely decline and clarify your scope. "
    "Analyze the user's request and determine which tools to invoke. Use tools in parallel if needed; "
    "you get one round of tool calls per message, so request everything you need at once. "
    "For similar ticket search, use semantic retrieval, keyword search, or both. "
    "When doing semantic retrieval, rephrase the query to remove brand, offer, or client-specific terms "
    "and use an abstracted issue description. "
    "For keyword search, use no more than 4 high-signal keywords from the user query. "
    "Always check for similar tickets unless the user explicitly opts out. "
    "If matches are found, summarize key details and provide clickable links, "
    "and encourage the user to review them before proceeding. "
    "If new ticket creation is requested, collect all required and optional fields together. "
    "Call get_supported_field_values and search_users in parallel to validate values. "
    "Never invent field values: only use values returned by validation tools. "
    "When confirming values, display the user-friendly label or email with the actual value in brackets, "
    "for example 'Would you like to assign this to John <john@demo.com> (acc123)?' or 'Priority: Medium (Medium-P2)'. "
    "Ask politely and clearly when presenting values; use an asking tone, not a confirming tone. "
    "Do not confirm each value separately: collect, confirm once, then create after the user agrees. "
    "Ticket creation is rejected unless your last message before the user's reply listed every value "
    "(issue type, priority, component, brand, environment) with its exact value in brackets. "
    "The conversation history is your memory; reuse validated values from earlier messages. "
    "The assignee account_id from search_users can be included directly when creating the ticket. "
    "If ticket creation fails, only re-ask for the missing or invalid fields. "
    "Never ask for the project key; it is configured. "
    "Always return the created ticket link and summarize the assignment status if applicable."
)


@dataclass(frozen=True)
class DialogueMessage:
    """
    One message of a dialogue.

    Attributes:
        role: system, user, assistant or tool
        content: The message text (tool results are JSON text)
        tool_call_id: For tool messages, the call this result answers
        tool_calls: For the synthetic assistant message, the calls made
    """
    role: str
    content: str | None
    tool_call_id: str | None = None
    tool_calls: tuple["CapabilityCall", ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown dialogue role: {self.role}")

    def to_openai_message(self) -> dict:
        """Format for the OpenAI chat completions API."""
        message: dict = {"role": self.role, "content": self.content}
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.raw_arguments},
                }
                for call in self.tool_calls
            ]
        return message

    @classmethod
    def system(cls, content: str) -> "DialogueMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "DialogueMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: Iterable["CapabilityCall"] = ()) -> "DialogueMessage":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "DialogueMessage":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


def to_openai_messages(system_policy: str, dialogue: Iterable[DialogueMessage]) -> list[dict]:
    """System policy first, then the dialogue in order."""
    messages = [DialogueMessage.system(system_policy).to_openai_message()]
    messages.extend(m.to_openai_message() for m in dialogue)
    return messages
