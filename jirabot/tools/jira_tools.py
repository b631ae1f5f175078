"""
Jira Capabilities
=================

The capabilities the model can call, and build_registry() which wires
them to their dependencies.

Descriptions are the only usage documentation the model ever sees, so
they state formats, limits and where valid values come from.

Dependencies are injected: the Jira client, the similarity retriever and
the process-wide field-value cache are passed in by main.py rather than
looked up as globals.
"""

from typing import Any

from jirabot.rag import SimilarityRetriever, issue_to_dict
from jirabot.tools import Capability, CapabilityKind, CapabilityRegistry, ErrorDescriptor, ParamSpec
from jirabot.tools.field_values import FieldValueCache
from jirabot.tools.jira_client import JiraClient
from jirabot.utils.logger import Logger

logger = Logger("JiraTools")

MAX_SEARCH_LIMIT = 20


def _clamp_limit(limit: int) -> int:
    return max(1, min(int(limit), MAX_SEARCH_LIMIT))


def _adf_paragraph(text: str) -> dict:
    """Wrap plain text in an Atlassian Document Format document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }


def build_issue_fields(
    jira: JiraClient,
    issue_type: str,
    priority: str,
    summary: str,
    description: str,
    brand: str,
    component: str,
    environment: str
) -> dict[str, Any]:
    """Build the `fields` object for POST /issue. The project is configuration."""
    config = jira.config
    return {
        "project": {"key": config.create_project_key},
        "issuetype": {"name": issue_type},
        "summary": summary,
        "description": _adf_paragraph(description),
        "priority": {"name": priority},
        "components": [{"name": component}],
        config.brand_field: [{"value": brand}],
        config.environment_field: [{"value": environment}],
    }


def build_capabilities(
    jira: JiraClient,
    retriever: SimilarityRetriever,
    field_values: FieldValueCache,
    default_limit: int = 5
) -> list[Capability]:
    """Create one Capability per CapabilityKind, bound to the given dependencies."""

    # ==========================================================================
    # Similar issues
    # ==========================================================================

    async def similar_by_embedding(text_to_search: str, limit: int = default_limit) -> dict:
        records = await retriever.search_semantic(text_to_search, limit=_clamp_limit(limit))
        return {"similar_tickets": [r.to_dict() for r in records]}

    async def similar_by_text(text_to_search: str, limit: int = default_limit) -> dict:
        issues = await retriever.search_lexical(text_to_search, limit=_clamp_limit(limit))
        return {"similar_tickets": issues}

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_issue(id_or_key: str) -> dict:
        issue = await jira.get_issue(id_or_key.strip())
        return issue_to_dict(issue, jira.config)

    async def get_field_values() -> dict:
        values = await field_values.get()
        return values.to_dict()

    async def search_users(query: str) -> list[dict]:
        users = await jira.search_users(query)
        return [
            {
                "account_id": user.get("accountId"),
                "name": user.get("displayName"),
                "email": user.get("emailAddress"),
            }
            for user in users
        ]

    # ==========================================================================
    # Create / assign
    # ==========================================================================

    async def create_ticket(
        summary: str,
        description: str,
        brand: str,
        environment: str,
        issue_type: str = "Task",
        priority: str = "Medium-P2",
        component: str = "na",
        assignee_id: str | None = None
    ) -> dict:
        fields = build_issue_fields(
            jira,
            issue_type=issue_type,
            priority=priority,
            summary=summary,
            description=description,
            brand=brand,
            component=component,
            environment=environment,
        )
        created = await jira.create_issue(fields)
        key = created["key"]
        logger.info(f"Created ticket {key}")

        assignment = None
        if assignee_id:
            # Creation already succeeded; an assignment failure is reported, not raised.
            try:
                status = await jira.assign_issue(key, assignee_id)
                assignment = {"status": status, "account_id": assignee_id}
            except Exception as e:
                logger.warning(f"Assigning {key} to {assignee_id} failed: {e}")
                assignment = {"error": ErrorDescriptor.from_exception(e).to_dict()}

        return {
            "ticket_key": key,
            "url": jira.browse_url(key),
            "assignment": assignment,
        }

    async def assign_ticket(id_or_key: str, account_id: str) -> dict:
        status = await jira.assign_issue(id_or_key.strip(), account_id)
        return {"status": status}

    limit_param = ParamSpec(
        "limit", "integer",
        f"Maximum number of tickets to return, 1 to {MAX_SEARCH_LIMIT}. Defaults to {default_limit}.",
        default=default_limit,
    )

    return [
        Capability(
            kind=CapabilityKind.SIMILAR_BY_EMBEDDING,
            description=(
                "Finds prior Jira tickets semantically similar to an issue description. "
                "Pass an abstracted description of the problem with brand, offer and "
                "client-specific names removed. Only tickets with relevance score above "
                "0.5 are returned, most relevant first."
            ),
            handler=similar_by_embedding,
            params=(
                ParamSpec("text_to_search", "string",
                          "Plain-language description of the issue, one or two sentences.",
                          required=True),
                limit_param,
            ),
        ),
        Capability(
            kind=CapabilityKind.SIMILAR_BY_TEXT,
            description=(
                "Finds Jira tickets in the project containing the given keywords, newest "
                "first. Pass no more than 4 high-signal keywords separated by spaces; "
                "this is not a full-text or natural-language search."
            ),
            handler=similar_by_text,
            params=(
                ParamSpec("text_to_search", "string",
                          "Space-separated keywords, no more than 4.", required=True),
                limit_param,
            ),
        ),
        Capability(
            kind=CapabilityKind.GET_ISSUE,
            description="Fetches exactly one Jira ticket by its numeric id or its key (for example OPS-123).",
            handler=get_issue,
            params=(
                ParamSpec("id_or_key", "string", "Ticket key like OPS-123, or numeric id.", required=True),
            ),
        ),
        Capability(
            kind=CapabilityKind.FIELD_VALUES,
            description=(
                "Returns the allowed values for the fields needed to create a ticket: "
                "issue_types, priorities, components, brands and environments. Each entry "
                "has a human-readable 'name' and the exact 'value' that must be passed to "
                "create_jira_ticket. Takes no arguments."
            ),
            handler=get_field_values,
        ),
        Capability(
            kind=CapabilityKind.SEARCH_USERS,
            description=(
                "Finds Jira users by a partial name or email, for ticket assignment. "
                "Returns account_id, name and email for each match; use account_id as "
                "assignee_id or account_id in other calls."
            ),
            handler=search_users,
            params=(
                ParamSpec("query", "string", "Partial display name or email address.", required=True),
            ),
        ),
        Capability(
            kind=CapabilityKind.CREATE_TICKET,
            description=(
                "Creates a new Jira ticket and optionally assigns it. Every enumerated value "
                "(issue_type, priority, component, brand, environment) must be an exact "
                "'value' returned by get_supported_field_values, and assignee_id must be an "
                "account_id returned by search_users. Only call this after the user has "
                "explicitly confirmed all values in a previous message. Returns ticket_key, "
                "url and the assignment outcome."
            ),
            handler=create_ticket,
            params=(
                ParamSpec("issue_type", "string", "Exact issue type value, e.g. Task.", default="Task"),
                ParamSpec("priority", "string", "Exact priority value, e.g. Medium-P2.", default="Medium-P2"),
                ParamSpec("summary", "string", "One-line ticket title, under 255 characters.", required=True),
                ParamSpec("description", "string", "Plain-text ticket description.", required=True),
                ParamSpec("brand", "string", "Exact brand value.", required=True),
                ParamSpec("component", "string", "Exact component value.", default="na"),
                ParamSpec("environment", "string", "Exact environment value.", required=True),
                ParamSpec("assignee_id", "string", "Optional account_id of the assignee."),
            ),
        ),
        Capability(
            kind=CapabilityKind.ASSIGN_TICKET,
            description=(
                "Assigns an existing Jira ticket to a user. account_id must come from "
                "search_users and have been confirmed by the user."
            ),
            handler=assign_ticket,
            params=(
                ParamSpec("id_or_key", "string", "Ticket key like OPS-123, or numeric id.", required=True),
                ParamSpec("account_id", "string", "account_id returned by search_users.", required=True),
            ),
        ),
    ]


def build_registry(
    jira: JiraClient,
    retriever: SimilarityRetriever,
    field_values: FieldValueCache,
    default_limit: int = 5
) -> CapabilityRegistry:
    """Build the capability registry; fails at startup if any kind is unwired."""
    return CapabilityRegistry(build_capabilities(jira, retriever, field_values, default_limit))
