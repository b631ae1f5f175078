"""
Field-Value Cache
=================

Jira only accepts specific values for issue type, priority, component and
the brand/environment custom fields. The allowed values come from the
create-metadata endpoint, which is slow and rarely changes, so they are
fetched once per process and kept for its lifetime.

Single-flight:
    Several invocations can race on a cold process. The first caller takes
    an asyncio.Lock and fetches; the others wait on the lock, re-check, and
    receive the same snapshot. At most one upstream fetch is ever live.

    A failed fetch stores nothing, so a later call can try again.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable

from jirabot.tools.jira_client import JiraClient
from jirabot.utils.logger import Logger

logger = Logger("FieldValues")

_SEVERITY_SUFFIX = re.compile(r"^(.*?)\s*-\s*P\d+$")


@dataclass(frozen=True)
class FieldValue:
    """One allowed value: a label for people and the value Jira expects."""
    display_name: str
    raw_value: str

    def to_dict(self) -> dict:
        return {"name": self.display_name, "value": self.raw_value}


@dataclass(frozen=True)
class FieldValueMap:
    """Allowed values for every enumerated create field."""
    issue_types: tuple[FieldValue, ...] = ()
    priorities: tuple[FieldValue, ...] = ()
    components: tuple[FieldValue, ...] = ()
    brands: tuple[FieldValue, ...] = ()
    environments: tuple[FieldValue, ...] = ()

    def to_dict(self) -> dict:
        return {
            "issue_types": [v.to_dict() for v in self.issue_types],
            "priorities": [v.to_dict() for v in self.priorities],
            "components": [v.to_dict() for v in self.components],
            "brands": [v.to_dict() for v in self.brands],
            "environments": [v.to_dict() for v in self.environments],
        }

    @staticmethod
    def raw_values(values: tuple[FieldValue, ...]) -> list[str]:
        return [v.raw_value for v in values]


class FieldValueCache:
    """
    Process-scoped, single-flight memo of the FieldValueMap.

    Example:
        cache = FieldValueCache(lambda: fetch_field_values(jira, "OPS", ...))
        values = await cache.get()
    """

    def __init__(self, fetch: Callable[[], Awaitable[FieldValueMap]]):
        self._fetch = fetch
        self._value: FieldValueMap | None = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    async def get(self) -> FieldValueMap:
        """Return the snapshot, fetching it on first demand."""
        if self._value is not None:
            return self._value

        async with self._lock:
            if self._value is None:
                logger.info("Fetching supported field values from Jira")
                self.fetch_count += 1
                self._value = await self._fetch()
        return self._value

    def prime(self, value: FieldValueMap) -> None:
        """Pre-populate the cache, skipping the upstream fetch."""
        self._value = value

    @property
    def snapshot(self) -> FieldValueMap | None:
        return self._value


def _priority_label(name: str) -> str:
    """'Medium-P2' -> 'Medium'; names without a severity suffix are kept."""
    match = _SEVERITY_SUFFIX.match(name)
    return match.group(1) if match else name


def _allowed(fields: dict, field_id: str) -> list[dict]:
    return (fields.get(field_id) or {}).get("allowedValues", []) or []


async def fetch_field_values(
    jira: JiraClient,
    project_key: str,
    brand_field: str,
    environment_field: str
) -> FieldValueMap:
    """
    Build a FieldValueMap from Jira create metadata.

    Issue types come from the project; the other fields are read from the
    first issue type, which carries the shared field configuration.
    """
    meta = await jira.get_create_meta(project_key)

    projects = meta.get("projects") or []
    if not projects:
        raise LookupError(f"No create metadata for project {project_key}")

    project = projects[0]
    issue_types = project.get("issuetypes") or []
    fields = issue_types[0].get("fields", {}) if issue_types else {}

    def named(values: list[dict], key: str, label=lambda s: s) -> tuple[FieldValue, ...]:
        result = []
        for v in values:
            raw = v.get(key)
            if raw:
                result.append(FieldValue(display_name=label(raw), raw_value=raw))
        return tuple(result)

    values = FieldValueMap(
        issue_types=named(issue_types, "name"),
        priorities=named(_allowed(fields, "priority"), "name", _priority_label),
        components=named(_allowed(fields, "components"), "name"),
        brands=named(_allowed(fields, brand_field), "value"),
        environments=named(_allowed(fields, environment_field), "value"),
    )

    logger.debug("Loaded field values", {
        "issue_types": len(values.issue_types),
        "priorities": len(values.priorities),
        "components": len(values.components),
        "brands": len(values.brands),
        "environments": len(values.environments),
    })
    return values
