"""
Slack Integration
=================

Handles all Slack-related functionality:
- Events API webhook (FastAPI) and Socket Mode (Bolt) entry points
- Conversation reconstruction from thread history
- Responding: thread fetch, agent call, reply posting
"""

from jirabot.slack.app import create_slack_app, create_socket_handler
from jirabot.slack.conversation import EmptyThreadError, reconstruct_dialogue
from jirabot.slack.events import create_events_app
from jirabot.slack.handlers import register_handlers
from jirabot.slack.responder import ChatResponder

__all__ = [
    "ChatResponder",
    "EmptyThreadError",
    "create_events_app",
    "create_slack_app",
    "create_socket_handler",
    "reconstruct_dialogue",
    "register_handlers",
]
