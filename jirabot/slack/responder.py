"""
Chat Responder
==============

Glue between a Slack event and the agent:

    1. Fetch the conversation (DM history or thread replies)
    2. Rebuild the dialogue from it
    3. Ask the agent for an answer
    4. Post the answer where the event came from

Threading mirrors the inbound message: a plain DM message gets a plain
reply, everything else is answered in its thread.

Any error during an invocation is logged and posted back into the thread
as "Error: ..." so the user is never left without a reply. Nothing is
retried; sending the same message again runs the whole turn again.
"""

from typing import TYPE_CHECKING

from jirabot.slack.conversation import reconstruct_dialogue
from jirabot.utils.logger import Logger

if TYPE_CHECKING:
    from slack_sdk.web.async_client import AsyncWebClient
    from jirabot.agent import Agent

logger = Logger("Responder")

EMPTY_ANSWER = "Sorry, I don't have an answer for that. Could you rephrase?"

# Slack recommends at most 200 messages per conversations.replies page
REPLIES_PAGE_SIZE = 200


def is_top_level_message(event: dict) -> bool:
    """A plain message outside any thread (DMs without a thread)."""
    return event.get("type") == "message" and not event.get("thread_ts")


class ChatResponder:
    """
    Answers Slack events with the agent.

    Example:
        responder = ChatResponder(app.client, agent, history_limit=8)
        await responder.resolve_bot_user_id()

        if ChatResponder.should_handle(event):
            await responder.handle_event(event)
    """

    def __init__(
        self,
        slack_client: "AsyncWebClient",
        agent: "Agent",
        history_limit: int = 8,
        bot_user_id: str | None = None
    ):
        self.slack_client = slack_client
        self.agent = agent
        self.history_limit = history_limit
        self.bot_user_id = bot_user_id

    async def resolve_bot_user_id(self) -> str | None:
        """Look up the bot's own user id once, via auth.test."""
        if self.bot_user_id is None:
            response = await self.slack_client.auth_test()
            self.bot_user_id = response.get("user_id")
            logger.info(f"Running as bot user {self.bot_user_id}")
        return self.bot_user_id

    @staticmethod
    def should_handle(event: dict) -> bool:
        """
        Whether an event is a request for the bot.

        Mentions anywhere, and direct messages from people. Bot posts
        (including our own) and message subtypes such as edits are ignored.
        """
        if event.get("bot_id") or event.get("subtype"):
            return False
        if event.get("type") == "app_mention":
            return True
        return event.get("type") == "message" and event.get("channel_type") == "im"

    async def fetch_thread(self, event: dict) -> list[dict]:
        """
        Fetch the conversation for an event, oldest first.

        Top-level DM messages use the latest `history_limit` messages of the
        channel history, up to and including the message. Threaded messages
        and mentions replay the whole thread, following reply pages until
        Slack reports no further cursor.
        """
        channel = event["channel"]
        ts = event["ts"]

        if is_top_level_message(event):
            response = await self.slack_client.conversations_history(
                channel=channel,
                latest=ts,
                inclusive=True,
                limit=self.history_limit
            )
            # History is newest first
            return list(reversed(response.get("messages", [])))

        return await self.fetch_replies(channel, event.get("thread_ts") or ts)

    async def fetch_replies(self, channel: str, thread_ts: str) -> list[dict]:
        """All messages of a thread, lead message first."""
        messages: list[dict] = []
        cursor = None

        while True:
            params = {"channel": channel, "ts": thread_ts, "inclusive": True, "limit": REPLIES_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            response = await self.slack_client.conversations_replies(**params)
            messages.extend(response.get("messages", []))

            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        logger.debug(f"Fetched {len(messages)} messages from thread {thread_ts}")
        return messages

    async def post_reply(self, event: dict, text: str) -> None:
        """Post as a plain message or a thread reply, mirroring the event."""
        if is_top_level_message(event):
            await self.slack_client.chat_postMessage(channel=event["channel"], text=text)
        else:
            await self.slack_client.chat_postMessage(
                channel=event["channel"],
                thread_ts=event.get("thread_ts") or event["ts"],
                text=text
            )

    async def handle_event(self, event: dict) -> None:
        """Answer one event; errors are reported into the thread."""
        channel = event.get("channel")
        logger.info(f"Handling {event.get('type')} from {event.get('user')} in {channel}")

        try:
            messages = await self.fetch_thread(event)
            dialogue = reconstruct_dialogue(messages, self.bot_user_id)
            answer = await self.agent.respond(dialogue)
            await self.post_reply(event, answer or EMPTY_ANSWER)

        except Exception as e:
            logger.error("Error handling event", e)
            try:
                await self.slack_client.chat_postMessage(
                    channel=channel,
                    thread_ts=event.get("thread_ts") or event.get("ts"),
                    text=f"Error: {e}"
                )
            except Exception as post_error:
                logger.error("Failed to report error to Slack", post_error)
