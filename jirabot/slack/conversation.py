"""
Conversation Reconstruction
===========================

Turns a Slack thread into the dialogue the agent works on.

The thread is the only memory the bot has: what was searched, which
values were validated and what the user confirmed all live in earlier
messages, so the whole thread is replayed on every turn.

Speaker roles:
- a message posted by the bot is "assistant"
- everything else is "user", with a leading <@BOT> mention removed
"""

import re
from typing import Iterator

from jirabot.agent.context import DialogueMessage


class EmptyThreadError(Exception):
    """Raised when a thread has no messages to reconstruct."""


def _bot_user_id(messages: list[dict], bot_user_id: str | None) -> str | None:
    if bot_user_id:
        return bot_user_id
    reply_users = messages[0].get("reply_users") or []
    return reply_users[0] if reply_users else None


def is_bot_message(message: dict, bot_user_id: str | None) -> bool:
    """Bot posts carry a bot_id and no client_msg_id; or come from the bot user."""
    if message.get("bot_id") and not message.get("client_msg_id"):
        return True
    return bool(bot_user_id) and message.get("user") == bot_user_id


def strip_mention(text: str, bot_user_id: str | None) -> str:
    """Remove a leading <@BOT> mention token."""
    if not bot_user_id:
        return text
    return re.sub(rf"^\s*<@{re.escape(bot_user_id)}>\s*", "", text)


def reconstruct_dialogue(
    messages: list[dict],
    bot_user_id: str | None = None
) -> Iterator[DialogueMessage]:
    """
    Convert Slack messages (oldest first) into dialogue messages.

    Args:
        messages: Raw Slack messages; the first is the thread's lead message
        bot_user_id: The bot's user id; read from the lead message's
            reply_users when not given

    Returns:
        A generator of DialogueMessage, to be consumed once

    Raises:
        EmptyThreadError: If there are no messages
    """
    if not messages:
        raise EmptyThreadError("No messages found in thread")

    bot_id = _bot_user_id(messages, bot_user_id)

    def generate() -> Iterator[DialogueMessage]:
        for message in messages:
            text = message.get("text") or ""
            if is_bot_message(message, bot_id):
                yield DialogueMessage.assistant(text)
            else:
                yield DialogueMessage.user(strip_mention(text, bot_id))

    return generate()
