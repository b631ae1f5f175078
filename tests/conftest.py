"""Shared pytest fixtures for the JiraBot test suite."""

import json
from types import SimpleNamespace

import pytest

from jirabot.tools.field_values import FieldValue, FieldValueCache, FieldValueMap
from jirabot.utils.config import JiraConfig, reset_config

TEST_ENV = {
    "SLACK_BOT_TOKEN": "xoxb-test",
    "SLACK_SIGNING_SECRET": "test-signing-secret",
    "OPENAI_API_KEY": "sk-test",
    "JIRA_BASE_URL": "https://example.atlassian.net",
    "JIRA_USERNAME": "bot@example.com",
    "JIRA_PERSONAL_ACCESS_TOKEN": "jira-token",
    "JIRA_PROJECT_KEY": "OPS",
}


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    """Provide required settings and reload configuration for every test."""
    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    for name in ("SLACK_MODE", "SLACK_APP_TOKEN", "JIRA_CREATE_PROJECT_KEY", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def jira_config():
    return JiraConfig(
        base_url="https://example.atlassian.net",
        username="bot@example.com",
        api_token="jira-token",
        project_key="OPS",
        create_project_key="OPS",
        brand_field="customfield_11997",
        environment_field="customfield_11800",
    )


@pytest.fixture
def field_value_map():
    return FieldValueMap(
        issue_types=(FieldValue("Task", "Task"), FieldValue("Bug", "Bug")),
        priorities=(FieldValue("Medium", "Medium-P2"), FieldValue("High", "High-P1")),
        components=(FieldValue("na", "na"), FieldValue("Checkout", "Checkout")),
        brands=(FieldValue("Acme", "Acme"),),
        environments=(FieldValue("Production", "Production"),),
    )


@pytest.fixture
def primed_cache(field_value_map):
    """A field-value cache that never calls Jira."""

    async def fetch():
        raise AssertionError("primed cache must not fetch")

    cache = FieldValueCache(fetch)
    cache.prime(field_value_map)
    return cache


def make_tool_call(call_id: str, name: str, arguments) -> SimpleNamespace:
    """Build an object shaped like an OpenAI tool call."""
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return SimpleNamespace(id=call_id, type="function", function=SimpleNamespace(name=name, arguments=raw))


def make_completion(content=None, tool_calls=None) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion."""
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])
