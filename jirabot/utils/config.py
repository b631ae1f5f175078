"""
Configuration Management
========================

Centralized configuration for JiraBot. Every environment variable the bot
reads is declared, typed and defaulted here so the rest of the code never
calls os.getenv() directly.

Required settings fail fast at startup; optional ones fall back to the
defaults below.

Usage:
    from jirabot.utils.config import get_config

    config = get_config()
    print(config.jira.project_key)
    print(config.openai.model)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ValueError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ValueError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str) -> str:
    """Get an optional environment variable with a default."""
    return os.getenv(name) or default


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Invalid values fall back to the default with a warning.
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    """Get an optional float environment variable."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"Warning: {name} is not a valid number, using default: {default}")
        return default


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class SlackConfig:
    """Slack API configuration."""
    bot_token: str              # xoxb-... token for Web API calls
    signing_secret: str         # Verifies Events API requests
    app_token: str | None       # xapp-... token, only needed for Socket Mode
    mode: str                   # "http" (Events API webhook) or "socket"
    message_history_limit: int  # DM history messages fetched; threads are replayed in full


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI API configuration."""
    api_key: str
    model: str             # Chat model used by the agent loop
    embedding_model: str   # Model used to embed retrieval queries


@dataclass(frozen=True)
class JiraConfig:
    """Jira Cloud configuration."""
    base_url: str              # https://your-org.atlassian.net
    username: str              # Account email for basic auth
    api_token: str             # Personal access token
    project_key: str           # Project searched for similar issues
    create_project_key: str    # Project new tickets are created in
    brand_field: str           # Custom field id holding the brand
    environment_field: str     # Custom field id holding the environment

    @property
    def issues_source(self) -> str:
        """Source tag of this project's chunks in the similarity index."""
        return f"{self.base_url}/software/c/projects/{self.project_key}/issues"

    def browse_url(self, key: str) -> str:
        """Browsable URL for an issue key."""
        return f"{self.base_url}/browse/{key}"


@dataclass(frozen=True)
class RetrievalConfig:
    """Similarity retrieval configuration."""
    vectorstore_dir: Path    # Directory holding the prior-issue index
    relevance_floor: float   # Records must score strictly above this
    default_limit: int       # Result cap when the caller gives none


@dataclass(frozen=True)
class AgentConfig:
    """Agent loop configuration."""
    tool_timeout_seconds: float  # Per-capability timeout during fan-out


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server configuration (Events API mode)."""
    host: str
    port: int


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.slack.bot_token
        config.jira.base_url
        config.retrieval.relevance_floor
    """
    slack: SlackConfig
    openai: OpenAIConfig
    jira: JiraConfig
    retrieval: RetrievalConfig
    agent: AgentConfig
    server: ServerConfig
    log_level: str


def load_config() -> Config:
    """
    Load and validate all configuration from the environment.

    Returns:
        Config: The validated configuration

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    load_dotenv()

    project_root = Path(__file__).parent.parent.parent

    mode = _optional("SLACK_MODE", "http").lower()
    if mode not in ("http", "socket"):
        raise ValueError(f"SLACK_MODE must be 'http' or 'socket', got: {mode}")

    app_token = os.getenv("SLACK_APP_TOKEN")
    if mode == "socket" and not app_token:
        raise ValueError("SLACK_APP_TOKEN is required when SLACK_MODE=socket")

    project_key = _required("JIRA_PROJECT_KEY")

    log_level = _optional("LOG_LEVEL", "info").lower()
    if log_level == "warn":
        log_level = "warning"

    return Config(
        slack=SlackConfig(
            bot_token=_required("SLACK_BOT_TOKEN"),
            signing_secret=_required("SLACK_SIGNING_SECRET"),
            app_token=app_token,
            mode=mode,
            message_history_limit=_optional_int("MESSAGE_HISTORY_LIMIT", 8),
        ),
        openai=OpenAIConfig(
            api_key=_required("OPENAI_API_KEY"),
            model=_optional("OPENAI_MODEL", "gpt-4o"),
            embedding_model=_optional("OPENAI_EMBED_MODEL", "text-embedding-3-small"),
        ),
        jira=JiraConfig(
            base_url=_required("JIRA_BASE_URL").rstrip("/"),
            username=_required("JIRA_USERNAME"),
            api_token=_required("JIRA_PERSONAL_ACCESS_TOKEN"),
            project_key=project_key,
            create_project_key=_optional("JIRA_CREATE_PROJECT_KEY", project_key),
            brand_field=_optional("JIRA_BRAND_FIELD", "customfield_11997"),
            environment_field=_optional("JIRA_ENVIRONMENT_FIELD", "customfield_11800"),
        ),
        retrieval=RetrievalConfig(
            vectorstore_dir=project_root / _optional("VECTORSTORE_DIR", "data/vectorstore"),
            relevance_floor=_optional_float("RETRIEVAL_RELEVANCE_FLOOR", 0.5),
            default_limit=_optional_int("RETRIEVAL_DEFAULT_LIMIT", 5),
        ),
        agent=AgentConfig(
            tool_timeout_seconds=_optional_float("AGENT_TOOL_TIMEOUT_SECONDS", 30.0),
        ),
        server=ServerConfig(
            host=_optional("HOST", "0.0.0.0"),
            port=_optional_int("PORT", 3000),
        ),
        log_level=log_level,
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """
    Get the singleton configuration instance.

    Loaded on first access and shared by every module afterwards.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
