"""
tests/test_agent_core.py
Unit tests for jirabot/agent/core.py (the two-phase agent loop).
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from jirabot.agent import Agent, AgentState, CreationGuard, DialogueMessage, ToolExecutor
from jirabot.rag import SimilarityRetriever
from jirabot.tools.jira_client import JiraClient
from jirabot.tools.jira_tools import build_registry
from tests.conftest import make_completion, make_tool_call


@pytest.fixture
def jira_requests():
    return []


@pytest.fixture
def jira(jira_config, jira_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        jira_requests.append(request)
        if request.method == "POST" and request.url.path == "/rest/api/3/issue":
            return httpx.Response(201, json={"id": "10001", "key": "OPS-42"})
        if request.url.path == "/rest/api/3/search":
            return httpx.Response(200, json={"issues": [
                {"id": "1", "key": "OPS-7", "fields": {"summary": "Checkout timeout"}, "renderedFields": {}},
            ]})
        return httpx.Response(404, json={"errorMessages": ["not found"]})

    return JiraClient(jira_config, transport=httpx.MockTransport(handler))


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


def _agent(jira, primed_cache, openai_client) -> Agent:
    retriever = SimilarityRetriever(MagicMock(), MagicMock(), jira)
    registry = build_registry(jira, retriever, primed_cache)
    executor = ToolExecutor(registry, guard=CreationGuard(primed_cache))
    return Agent(registry, executor, client=openai_client, model="gpt-4o")


async def test_direct_answer_is_one_round_trip(jira, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = [make_completion(content="Hi! How can I help?")]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([DialogueMessage.user("hello")])

    assert turn.content == "Hi! How can I help?"
    assert turn.state is AgentState.TERMINAL_DIRECT
    assert openai_client.chat.completions.create.await_count == 1

    kwargs = openai_client.chat.completions.create.await_args.kwargs
    assert kwargs["tool_choice"] == "auto"
    assert len(kwargs["tools"]) == 7
    assert kwargs["messages"][0]["role"] == "system"
    assert kwargs["messages"][-1] == {"role": "user", "content": "hello"}


async def test_parallel_lookups_are_fed_back_in_call_order(jira, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = [
        make_completion(tool_calls=[
            make_tool_call("call_text", "retrieve_similar_issues_by_text_search", {"text_to_search": "checkout timeout"}),
            make_tool_call("call_values", "get_supported_field_values", {}),
        ]),
        make_completion(content="I found OPS-7. Priorities: Medium."),
    ]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([DialogueMessage.user("checkout times out, is there a ticket?")])

    assert turn.state is AgentState.TERMINAL_FINAL
    assert turn.content == "I found OPS-7. Priorities: Medium."
    assert openai_client.chat.completions.create.await_count == 2

    followup = openai_client.chat.completions.create.await_args_list[1].kwargs
    assert "tools" not in followup

    messages = followup["messages"]
    assistant, text_result, values_result = messages[-3:]
    assert [c["id"] for c in assistant["tool_calls"]] == ["call_text", "call_values"]
    assert text_result["tool_call_id"] == "call_text"
    assert json.loads(text_result["content"])["similar_tickets"][0]["key"] == "OPS-7"
    assert values_result["tool_call_id"] == "call_values"
    assert json.loads(values_result["content"])["priorities"][0] == {"name": "Medium", "value": "Medium-P2"}


async def test_confirmed_ticket_is_created_with_raw_values(jira, jira_requests, primed_cache, openai_client):
    ticket = {
        "issue_type": "Task",
        "priority": "Medium-P2",
        "summary": "Checkout times out",
        "description": "Submitting checkout times out after 30 seconds.",
        "brand": "Acme",
        "component": "na",
        "environment": "Production",
    }
    openai_client.chat.completions.create.side_effect = [
        make_completion(tool_calls=[make_tool_call("call_create", "create_jira_ticket", ticket)]),
        make_completion(content="Created OPS-42: https://example.atlassian.net/browse/OPS-42"),
    ]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([
        DialogueMessage.user("please file a ticket for the checkout timeout"),
        DialogueMessage.assistant(
            "Create it with Type: Task (Task), Priority: Medium (Medium-P2), Component: na (na), "
            "Brand: Acme (Acme), Environment: Production (Production)?"
        ),
        DialogueMessage.user("yes"),
    ])

    assert turn.state is AgentState.TERMINAL_FINAL
    assert turn.results[0].result.data["ticket_key"] == "OPS-42"

    created = json.loads(jira_requests[0].content)["fields"]
    assert created["priority"] == {"name": "Medium-P2"}
    assert created["project"] == {"key": "OPS"}
    assert created["customfield_11997"] == [{"value": "Acme"}]


async def test_unconfirmed_creation_reaches_the_model_as_failure(jira, jira_requests, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = [
        make_completion(tool_calls=[make_tool_call("call_create", "create_jira_ticket", {
            "summary": "x", "description": "y", "brand": "Acme", "environment": "Production",
        })]),
        make_completion(content="Please confirm the values first."),
    ]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([DialogueMessage.user("create a ticket")])

    assert jira_requests == []
    assert turn.results[0].result.error.code == "CONFIRMATION_REQUIRED"
    tool_message = openai_client.chat.completions.create.await_args_list[1].kwargs["messages"][-1]
    assert json.loads(tool_message["content"])["error"]["code"] == "CONFIRMATION_REQUIRED"


async def test_model_failure_propagates(jira, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = RuntimeError("model unavailable")
    agent = _agent(jira, primed_cache, openai_client)

    with pytest.raises(RuntimeError):
        await agent.respond([DialogueMessage.user("hello")])


async def test_fabricated_priority_never_reaches_jira(jira, jira_requests, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = [
        make_completion(tool_calls=[
            make_tool_call("call_values", "get_supported_field_values", {}),
            make_tool_call("call_create", "create_jira_ticket", {
                "priority": "Urgent",
                "summary": "X is broken",
                "description": "X is broken.",
                "brand": "Acme",
                "environment": "Production",
            }),
        ]),
        make_completion(content="Which priority should I use: Medium or High?"),
    ]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([
        DialogueMessage.user("create a ticket for X"),
        DialogueMessage.assistant(
            "Create it with Type: Task (Task), Priority: Medium (Medium-P2), Component: na (na), "
            "Brand: Acme (Acme), Environment: Production (Production)?"
        ),
        DialogueMessage.user("yes, but make it urgent"),
    ])

    values_result, create_result = turn.results
    assert values_result.result.success
    assert create_result.result.error.code == "UNVALIDATED_FIELD_VALUE"
    assert jira_requests == []


async def test_unrelated_bot_reply_does_not_authorize_creation(jira, jira_requests, primed_cache, openai_client):
    openai_client.chat.completions.create.side_effect = [
        make_completion(tool_calls=[make_tool_call("call_create", "create_jira_ticket", {
            "priority": "High-P1",
            "summary": "X is broken",
            "description": "X is broken.",
            "brand": "Acme",
            "environment": "Production",
        })]),
        make_completion(content="Before I create it, please confirm the values."),
    ]
    agent = _agent(jira, primed_cache, openai_client)

    turn = await agent.run([
        DialogueMessage.user("is there a ticket about checkout?"),
        DialogueMessage.assistant("I found OPS-7: Checkout timeout."),
        DialogueMessage.user("create a ticket for X"),
    ])

    assert turn.results[0].result.error.code == "CONFIRMATION_REQUIRED"
    assert jira_requests == []
