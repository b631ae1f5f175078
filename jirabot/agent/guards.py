"""
Creation Guard
==============

Checks that run in code before a ticket is created or assigned, instead
of trusting the model to follow the policy text:

1. Creation needs an explicit confirmation turn: the bot's last message
   before the user's latest reply must list every enumerated value being
   submitted, exactly as Jira expects it. The user's reply to that
   message is the confirmation.
2. Every enumerated field value must be one Jira reported as allowed
   (a raw value from the field-value cache).
3. An assignee account id must already have been shown to the user in an
   earlier bot message, which is where the user confirmed it.

A failed check becomes a failed capability result, so the model can
explain what is missing and ask the user.
"""

from typing import Any

from jirabot.agent.context import DialogueMessage
from jirabot.tools import CapabilityKind, ErrorDescriptor
from jirabot.tools.field_values import FieldValueCache, FieldValueMap
from jirabot.utils.logger import Logger

logger = Logger("Agent").child("Guard")

# create_jira_ticket argument -> FieldValueMap attribute
ENUMERATED_FIELDS = {
    "issue_type": "issue_types",
    "priority": "priorities",
    "component": "components",
    "brand": "brands",
    "environment": "environments",
}


def confirmation_prompt(dialogue: list[DialogueMessage]) -> DialogueMessage | None:
    """
    The bot message the user's latest reply answers.

    That is the last non-empty bot message before the last non-empty user
    message; None when the user has not replied to the bot at all.
    """
    last_assistant = None
    prompt = None
    for message in dialogue:
        if not (message.content or "").strip():
            continue
        if message.role == "assistant":
            last_assistant = message
        elif message.role == "user":
            prompt = last_assistant
    return prompt


def has_confirmation_turn(dialogue: list[DialogueMessage]) -> bool:
    """True when a bot message is followed by a later user message."""
    return confirmation_prompt(dialogue) is not None


def shown_to_user(value: str, dialogue: list[DialogueMessage]) -> bool:
    """True when the value appears in an earlier bot message."""
    return any(
        message.role == "assistant" and value in (message.content or "")
        for message in dialogue
    )


def unconfirmed_values(arguments: dict[str, Any], prompt: DialogueMessage) -> list[str]:
    """Enumerated arguments whose value the confirmation prompt did not show."""
    text = prompt.content or ""
    return [
        argument for argument in ENUMERATED_FIELDS
        if str(arguments.get(argument) or "") not in text
    ]


def unvalidated_fields(arguments: dict[str, Any], values: FieldValueMap) -> dict[str, list[str]]:
    """Map each field whose value Jira does not allow to its allowed values."""
    invalid = {}
    for argument, attribute in ENUMERATED_FIELDS.items():
        allowed = FieldValueMap.raw_values(getattr(values, attribute))
        if arguments.get(argument) not in allowed:
            invalid[argument] = allowed
    return invalid


class CreationGuard:
    """
    Pre-invocation checks for ticket creation and assignment.

    Example:
        guard = CreationGuard(field_values)
        error = await guard.check(CapabilityKind.CREATE_TICKET, arguments, dialogue)
        if error:
            ...  # report as a failed result instead of calling Jira
    """

    def __init__(self, field_values: FieldValueCache):
        self.field_values = field_values

    async def check(
        self,
        kind: CapabilityKind,
        arguments: dict[str, Any],
        dialogue: list[DialogueMessage]
    ) -> ErrorDescriptor | None:
        """Return an error when the call must not run, None when it may."""
        if kind == CapabilityKind.CREATE_TICKET:
            return await self._check_create(arguments, dialogue)
        if kind == CapabilityKind.ASSIGN_TICKET:
            return self._check_assignee(arguments.get("account_id"), dialogue)
        return None

    async def _check_create(
        self,
        arguments: dict[str, Any],
        dialogue: list[DialogueMessage]
    ) -> ErrorDescriptor | None:
        prompt = confirmation_prompt(dialogue)
        if prompt is None:
            logger.warning("Rejected ticket creation without a confirmation turn")
            return ErrorDescriptor(
                code="CONFIRMATION_REQUIRED",
                message=(
                    "Ticket not created: the user has not confirmed the ticket values yet. "
                    "Present the values and ask the user to confirm before creating."
                ),
            )

        values = await self.field_values.get()
        invalid = unvalidated_fields(arguments, values)
        if invalid:
            logger.warning(f"Rejected ticket creation with unvalidated fields: {sorted(invalid)}")
            return ErrorDescriptor(
                code="UNVALIDATED_FIELD_VALUE",
                message="Ticket not created: " + "; ".join(
                    f"{name}={arguments.get(name)!r} is not allowed (allowed: {', '.join(allowed) or 'none'})"
                    for name, allowed in invalid.items()
                ),
            )

        unconfirmed = unconfirmed_values(arguments, prompt)
        if unconfirmed:
            logger.warning(f"Rejected ticket creation with unconfirmed values: {unconfirmed}")
            return ErrorDescriptor(
                code="CONFIRMATION_REQUIRED",
                message=(
                    "Ticket not created: your last message before the user's reply did not list "
                    + ", ".join(f"{name}={arguments.get(name)!r}" for name in unconfirmed)
                    + ". Present every value with its exact value in brackets and ask the user "
                    "to confirm before creating."
                ),
            )

        return self._check_assignee(arguments.get("assignee_id"), dialogue)

    def _check_assignee(
        self,
        account_id: str | None,
        dialogue: list[DialogueMessage]
    ) -> ErrorDescriptor | None:
        if not account_id or shown_to_user(account_id, dialogue):
            return None

        logger.warning(f"Rejected unconfirmed assignee: {account_id}")
        return ErrorDescriptor(
            code="UNVALIDATED_ASSIGNEE",
            message=(
                f"Account id {account_id!r} was never shown to the user. Look the user up "
                "with search_users and ask the user to confirm the assignee first."
            ),
        )
