"""
Slack Event Handlers
====================

Routes Socket Mode events to the responder.

Event Types:
- app_mention: When someone mentions @JiraBot in a channel
- message.im: Direct messages to the bot

Bolt acknowledges events itself; the responder does the rest (thread
fetch, agent, reply, error reporting).
"""

from typing import TYPE_CHECKING

from slack_bolt.async_app import AsyncApp

from jirabot.utils.logger import Logger

if TYPE_CHECKING:
    from jirabot.slack.responder import ChatResponder

logger = Logger("Handlers")


def register_handlers(app: AsyncApp, responder: "ChatResponder") -> None:
    """
    Register event handlers with the Slack app.

    Args:
        app: The Bolt app instance
        responder: Answers accepted events
    """

    async def handle_event(event: dict, context: dict) -> None:
        if not responder.should_handle(event):
            return

        # Bolt resolves the bot user on every request
        if responder.bot_user_id is None and context.get("bot_user_id"):
            responder.bot_user_id = context["bot_user_id"]

        await responder.handle_event(event)

    app.event("app_mention")(handle_event)
    app.event("message")(handle_event)

    logger.info("Registered Slack event handlers")
