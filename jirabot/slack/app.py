"""
Slack Bolt App
==============

Creates the Slack Bolt application used in Socket Mode.

JiraBot normally receives events over HTTP (see jirabot.slack.events).
Socket Mode is the alternative for running behind a firewall or locally:
- No public URL needed
- Events arrive over a WebSocket
- Requires an app-level token (SLACK_APP_TOKEN)

Select it with SLACK_MODE=socket.
"""

from slack_bolt.async_app import AsyncApp
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler

from jirabot.utils.config import SlackConfig
from jirabot.utils.logger import Logger

logger = Logger("SlackApp")


def create_slack_app(config: SlackConfig) -> AsyncApp:
    """
    Create the Slack Bolt app.

    Args:
        config: Slack settings

    Returns:
        Configured AsyncApp instance
    """
    app = AsyncApp(
        token=config.bot_token,
        signing_secret=config.signing_secret,
    )

    logger.info("Slack Bolt app created")

    return app


def create_socket_handler(app: AsyncApp, config: SlackConfig) -> AsyncSocketModeHandler:
    """
    Create a Socket Mode handler for the app.

    Args:
        app: The Bolt app instance
        config: Slack settings; app_token must be set

    Returns:
        Configured socket handler
    """
    if not config.app_token:
        raise ValueError("SLACK_APP_TOKEN is required for Socket Mode")

    handler = AsyncSocketModeHandler(
        app=app,
        app_token=config.app_token
    )

    logger.info("Socket Mode handler created")

    return handler
