"""
Jira Client
===========

Thin async wrapper around the Jira Cloud REST API (v3).

Every method raises httpx.HTTPStatusError on a 4xx/5xx response instead of
returning None, so the capability layer can hand the status code and body
back to the model and let it ask the user for corrected input.

Jira API Notes:
- Basic auth with account email + API token
- Issue descriptions are sent in Atlassian Document Format (ADF)
- /issue/createmeta lists the allowed values for every create field
"""

from typing import Any

import httpx

from jirabot.utils.config import JiraConfig
from jirabot.utils.logger import Logger

logger = Logger("JiraClient")

# Fields returned by search and single-issue lookups
ISSUE_FIELDS = "summary,description,resolution"


class JiraClient:
    """
    Async Jira REST client.

    Example:
        jira = JiraClient(config.jira)

        issues = await jira.search_issues('project = OPS ORDER BY created DESC', limit=5)
        created = await jira.create_issue({"project": {"key": "OPS"}, ...})
        await jira.assign_issue(created["key"], account_id="acc123")
    """

    def __init__(
        self,
        config: JiraConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 20.0
    ):
        """
        Initialize the client.

        Args:
            config: Jira configuration
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self.config = config
        self._transport = transport
        self._timeout = timeout
        self._auth = httpx.BasicAuth(config.username, config.api_token)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        data: dict | None = None
    ) -> httpx.Response:
        """
        Make an authenticated request to the Jira API.

        Raises:
            httpx.HTTPStatusError: On a 4xx/5xx response
            httpx.RequestError: On network failure
        """
        url = f"{self.config.base_url}/rest/api/3{endpoint}"
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport
        ) as client:
            response = await client.request(method, url, params=params, json=data, headers=headers)

        if response.status_code >= 400:
            logger.error(f"Jira API error: {response.status_code} - {response.text[:500]}")
        response.raise_for_status()
        return response

    async def search_issues(self, jql: str, limit: int) -> list[dict]:
        """Run a JQL search and return raw issues (with renderedFields)."""
        response = await self._request("GET", "/search", params={
            "jql": jql,
            "maxResults": limit,
            "expand": "renderedFields",
            "fields": ISSUE_FIELDS,
        })
        return response.json().get("issues", [])

    async def get_issue(self, id_or_key: str) -> dict:
        """Fetch one raw issue by id or key."""
        response = await self._request("GET", f"/issue/{id_or_key}", params={
            "expand": "renderedFields",
            "fields": ISSUE_FIELDS,
        })
        return response.json()

    async def get_create_meta(self, project_key: str) -> dict:
        """Fetch create metadata (issue types and allowed field values)."""
        response = await self._request("GET", "/issue/createmeta", params={
            "projectKeys": project_key,
            "expand": "projects.issuetypes.fields",
        })
        return response.json()

    async def search_users(self, query: str) -> list[dict]:
        """Find users by partial name or email."""
        response = await self._request("GET", "/user/search", params={"query": query})
        return response.json()

    async def create_issue(self, fields: dict[str, Any]) -> dict:
        """Create an issue; returns Jira's {id, key, self} descriptor."""
        response = await self._request("POST", "/issue", data={"fields": fields})
        return response.json()

    async def assign_issue(self, id_or_key: str, account_id: str) -> int:
        """Assign an issue to a user; returns the HTTP status code."""
        response = await self._request(
            "PUT",
            f"/issue/{id_or_key}/assignee",
            data={"accountId": account_id}
        )
        return response.status_code

    def browse_url(self, key: str) -> str:
        return self.config.browse_url(key)
