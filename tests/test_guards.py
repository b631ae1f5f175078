"""
tests/test_guards.py
Unit tests for jirabot/agent/guards.py.
"""

from jirabot.agent.context import DialogueMessage
from jirabot.agent.guards import CreationGuard, confirmation_prompt, has_confirmation_turn
from jirabot.tools import CapabilityKind

VALID_TICKET = {
    "issue_type": "Task",
    "priority": "Medium-P2",
    "summary": "Checkout times out",
    "description": "Submitting the checkout form times out after 30s.",
    "brand": "Acme",
    "component": "na",
    "environment": "Production",
}

CONFIRMED = [
    DialogueMessage.user("checkout times out on submit"),
    DialogueMessage.assistant(
        "Shall I create this ticket? Type: Task (Task), Priority: Medium (Medium-P2), "
        "Component: na (na), Brand: Acme (Acme), Environment: Production (Production). "
        "Assignee: Jane Doe (acc-123)."
    ),
    DialogueMessage.user("yes"),
]


def test_confirmation_requires_a_later_user_turn():
    assert not has_confirmation_turn([DialogueMessage.user("create a ticket")])
    assert not has_confirmation_turn([DialogueMessage.user("hi"), DialogueMessage.assistant("Confirm?")])
    assert has_confirmation_turn(CONFIRMED)


async def test_confirmed_creation_passes(primed_cache):
    guard = CreationGuard(primed_cache)
    assert await guard.check(CapabilityKind.CREATE_TICKET, VALID_TICKET, CONFIRMED) is None


async def test_creation_without_confirmation_is_rejected(primed_cache):
    guard = CreationGuard(primed_cache)
    error = await guard.check(CapabilityKind.CREATE_TICKET, VALID_TICKET, [DialogueMessage.user("create it")])
    assert error.code == "CONFIRMATION_REQUIRED"


async def test_unvalidated_field_value_is_rejected(primed_cache):
    guard = CreationGuard(primed_cache)
    arguments = {**VALID_TICKET, "priority": "Medium"}

    error = await guard.check(CapabilityKind.CREATE_TICKET, arguments, CONFIRMED)

    assert error.code == "UNVALIDATED_FIELD_VALUE"
    assert "priority" in error.message
    assert "Medium-P2" in error.message


async def test_unshown_assignee_is_rejected(primed_cache):
    guard = CreationGuard(primed_cache)

    ok = await guard.check(CapabilityKind.CREATE_TICKET, {**VALID_TICKET, "assignee_id": "acc-123"}, CONFIRMED)
    rejected = await guard.check(CapabilityKind.ASSIGN_TICKET, {"id_or_key": "OPS-9", "account_id": "acc-999"}, CONFIRMED)

    assert ok is None
    assert rejected.code == "UNVALIDATED_ASSIGNEE"


async def test_read_only_capabilities_are_not_checked(primed_cache):
    guard = CreationGuard(primed_cache)
    assert await guard.check(CapabilityKind.SEARCH_USERS, {"query": "jane"}, []) is None


def test_confirmation_prompt_is_the_message_the_user_answered():
    dialogue = [
        DialogueMessage.user("checkout broke"),
        DialogueMessage.assistant("Priority: Medium (Medium-P2)?"),
        DialogueMessage.user("yes"),
        DialogueMessage.assistant("Anything else?"),
    ]
    assert confirmation_prompt(dialogue).content == "Priority: Medium (Medium-P2)?"


async def test_unrelated_bot_reply_is_not_a_confirmation(primed_cache):
    guard = CreationGuard(primed_cache)
    dialogue = [
        DialogueMessage.user("is there a ticket about checkout?"),
        DialogueMessage.assistant("I found OPS-7: Checkout timeout."),
        DialogueMessage.user("create a ticket for X"),
    ]

    error = await guard.check(CapabilityKind.CREATE_TICKET, {**VALID_TICKET, "priority": "High-P1"}, dialogue)

    assert error.code == "CONFIRMATION_REQUIRED"
    assert "priority" in error.message


async def test_values_must_be_in_the_latest_prompt(primed_cache):
    guard = CreationGuard(primed_cache)
    dialogue = [
        *CONFIRMED,
        DialogueMessage.assistant("Created OPS-42. Anything else?"),
        DialogueMessage.user("create another one just like it"),
    ]

    error = await guard.check(CapabilityKind.CREATE_TICKET, VALID_TICKET, dialogue)

    assert error.code == "CONFIRMATION_REQUIRED"


async def test_changed_value_needs_a_new_confirmation(primed_cache):
    guard = CreationGuard(primed_cache)
    error = await guard.check(CapabilityKind.CREATE_TICKET, {**VALID_TICKET, "priority": "High-P1"}, CONFIRMED)
    assert error.code == "CONFIRMATION_REQUIRED"
    assert "priority='High-P1'" in error.message
