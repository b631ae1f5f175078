"""
Capability Registry
===================

Capabilities are the Jira operations the language model may ask for
(search, validate, create, assign). Each one has:

- a kind from the closed CapabilityKind enum (its wire name)
- a description shown verbatim to the model
- a parameter schema (names, JSON types, required-ness, defaults)
- an async handler that receives validated arguments

The registry is built once at startup. Construction fails if any kind is
missing or registered twice, so an unknown name can only come from the
model at request time, never from our own wiring.

How a call is executed:
1. The executor resolves the call name to a Capability
2. invoke() validates the arguments against the schema
3. The handler runs and its payload becomes a successful CapabilityResult
4. Any exception becomes a failed CapabilityResult with an ErrorDescriptor

This module provides:
- CapabilityKind, ParamSpec, Capability
- CapabilityResult and ErrorDescriptor for standardized outcomes
- CapabilityRegistry for lookup, manifest building and invocation
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx
import openai

from jirabot.utils.logger import Logger

logger = Logger("Capabilities")


class CapabilityKind(str, Enum):
    """Closed set of capabilities exposed to the model."""
    SIMILAR_BY_EMBEDDING = "retrieve_similar_issues_by_embedding"
    SIMILAR_BY_TEXT = "retrieve_similar_issues_by_text_search"
    GET_ISSUE = "get_jira_issue"
    FIELD_VALUES = "get_supported_field_values"
    SEARCH_USERS = "search_users"
    CREATE_TICKET = "create_jira_ticket"
    ASSIGN_TICKET = "assign_jira_ticket"


class RegistryError(Exception):
    """Raised when the registry is wired incorrectly at startup."""


class ArgumentError(Exception):
    """Raised when call arguments do not satisfy a capability schema."""


# ==============================================================================
# Results
# ==============================================================================

@dataclass(frozen=True)
class ErrorDescriptor:
    """
    Normalized description of a failed capability call.

    Attributes:
        message: Human-readable error text (always present)
        code: Stable machine-readable code, e.g. UNKNOWN_CAPABILITY
        name: Exception class name when the failure came from an exception
        http_status: Upstream HTTP status code, if any
        http_body: Upstream HTTP response body, if any
    """
    message: str
    code: str | None = None
    name: str | None = None
    http_status: int | None = None
    http_body: Any = None

    def to_dict(self) -> dict:
        """Convert to a dict, omitting empty fields."""
        data = {
            "code": self.code,
            "name": self.name,
            "message": self.message,
            "http_status": self.http_status,
            "http_body": self.http_body,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_exception(cls, error: BaseException, code: str | None = None) -> "ErrorDescriptor":
        """
        Build a descriptor from an exception.

        Upstream HTTP failures from Jira (httpx) and OpenAI keep their status
        code and body so the model can tell the user what was rejected.
        """
        name = type(error).__name__
        message = str(error) or name

        if isinstance(error, httpx.HTTPStatusError):
            response = error.response
            try:
                body = response.json()
            except ValueError:
                body = response.text
            return cls(
                message=message,
                code=code or "UPSTREAM_HTTP_ERROR",
                name=name,
                http_status=response.status_code,
                http_body=body,
            )

        if isinstance(error, httpx.RequestError):
            return cls(message=message, code=code or "NETWORK_ERROR", name=name)

        if isinstance(error, openai.APIStatusError):
            return cls(
                message=message,
                code=code or "UPSTREAM_HTTP_ERROR",
                name=name,
                http_status=error.status_code,
                http_body=error.body,
            )

        return cls(message=message, code=code, name=name)


@dataclass
class CapabilityResult:
    """
    Tagged outcome of one capability call.

    Attributes:
        success: Whether the call succeeded
        data: The payload on success (any JSON-able value)
        error: The error descriptor on failure
    """
    success: bool
    data: Any = None
    error: ErrorDescriptor | None = None

    @classmethod
    def ok(cls, data: Any) -> "CapabilityResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ErrorDescriptor) -> "CapabilityResult":
        return cls(success=False, error=error)

    def to_message(self) -> str:
        """Serialize as the content of a tool message for the model."""
        if self.success:
            return json.dumps(self.data, default=str)
        return json.dumps({"error": self.error.to_dict() if self.error else {}}, default=str)


# ==============================================================================
# Capability definitions
# ==============================================================================

_JSON_TYPES = ("string", "integer", "number", "boolean")


@dataclass(frozen=True)
class ParamSpec:
    """
    One parameter of a capability.

    Attributes:
        name: Argument name as seen by the model
        type: JSON type: string, integer, number or boolean
        description: Usage notes shown to the model
        required: Whether the model must supply it
        default: Value applied when an optional argument is omitted
    """
    name: str
    type: str
    description: str = ""
    required: bool = False
    default: Any = None

    def __post_init__(self):
        if self.type not in _JSON_TYPES:
            raise RegistryError(f"Unsupported parameter type '{self.type}' for '{self.name}'")

    def to_json_schema(self) -> dict:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default
        return schema

    def coerce(self, value: Any) -> Any:
        """
        Coerce a model-supplied value to this parameter's type.

        Raises:
            ArgumentError: If the value cannot be coerced
        """
        try:
            if self.type == "string":
                if isinstance(value, str):
                    return value
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    return str(value)
            elif self.type == "integer":
                if isinstance(value, bool):
                    raise ValueError
                if isinstance(value, int):
                    return value
                if isinstance(value, float) and value.is_integer():
                    return int(value)
                if isinstance(value, str):
                    return int(value.strip())
            elif self.type == "number":
                if isinstance(value, bool):
                    raise ValueError
                if isinstance(value, (int, float)):
                    return value
                if isinstance(value, str):
                    return float(value.strip())
            elif self.type == "boolean":
                if isinstance(value, bool):
                    return value
                if isinstance(value, str) and value.lower() in ("true", "false"):
                    return value.lower() == "true"
        except ValueError:
            pass
        raise ArgumentError(f"Argument '{self.name}' must be of type {self.type}, got {value!r}")


Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Capability:
    """
    A capability the model can call.

    The handler is awaited with the validated arguments as keyword
    arguments and returns the success payload; raising marks the call as
    failed.
    """
    kind: CapabilityKind
    description: str
    handler: Handler
    params: tuple[ParamSpec, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.kind.value

    def to_openai_function(self) -> dict:
        """Convert to OpenAI's function-tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_json_schema() for p in self.params},
                    "required": [p.name for p in self.params if p.required],
                },
            },
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Check arguments against the schema.

        Required keys must be present and non-null, values are coerced to
        their declared types, defaults fill omitted optional keys and
        unknown keys are dropped.

        Raises:
            ArgumentError: If the arguments do not satisfy the schema
        """
        validated: dict[str, Any] = {}
        missing = []

        for param in self.params:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    missing.append(param.name)
                elif param.default is not None:
                    validated[param.name] = param.default
                continue
            validated[param.name] = param.coerce(value)

        if missing:
            raise ArgumentError(f"Missing required arguments for {self.name}: {', '.join(missing)}")

        unknown = set(arguments) - {p.name for p in self.params}
        if unknown:
            logger.debug(f"Dropping unknown arguments for {self.name}: {sorted(unknown)}")

        return validated


class CapabilityRegistry:
    """
    Registry of every capability, keyed by kind.

    Example:
        registry = CapabilityRegistry(capabilities)

        capability = registry.resolve("search_users")
        result = await registry.invoke(capability, {"query": "john"})

        tools = registry.manifest()  # for chat.completions.create(tools=...)
    """

    def __init__(self, capabilities: list[Capability]):
        """
        Build the registry.

        Raises:
            RegistryError: If a kind is registered twice or left unregistered
        """
        self._capabilities: dict[CapabilityKind, Capability] = {}

        for capability in capabilities:
            if capability.kind in self._capabilities:
                raise RegistryError(f"Capability '{capability.name}' is already registered")
            self._capabilities[capability.kind] = capability

        missing = [kind.value for kind in CapabilityKind if kind not in self._capabilities]
        if missing:
            raise RegistryError(f"No handler registered for: {', '.join(missing)}")

        logger.debug(f"Registered {len(self._capabilities)} capabilities")

    def resolve(self, name: str) -> Capability | None:
        """Look up a capability by wire name; None if the name is unknown."""
        try:
            kind = CapabilityKind(name)
        except ValueError:
            return None
        return self._capabilities[kind]

    def manifest(self) -> list[dict]:
        """All capabilities in OpenAI function-tool format, in enum order."""
        return [self._capabilities[kind].to_openai_function() for kind in CapabilityKind]

    def list_names(self) -> list[str]:
        return [kind.value for kind in CapabilityKind]

    async def invoke(self, capability: Capability, arguments: dict[str, Any]) -> CapabilityResult:
        """
        Validate arguments and run a capability.

        Never raises: argument errors and handler exceptions are returned as
        failed results.
        """
        try:
            validated = capability.validate_arguments(arguments)
        except ArgumentError as e:
            return CapabilityResult.fail(ErrorDescriptor(message=str(e), code="INVALID_ARGUMENTS"))

        try:
            data = await capability.handler(**validated)
            return CapabilityResult.ok(data)
        except Exception as e:
            logger.error(f"Capability failed: {capability.name}", e)
            return CapabilityResult.fail(ErrorDescriptor.from_exception(e))


__all__ = [
    "ArgumentError",
    "Capability",
    "CapabilityKind",
    "CapabilityRegistry",
    "CapabilityResult",
    "ErrorDescriptor",
    "ParamSpec",
    "RegistryError",
]
