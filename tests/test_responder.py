"""
tests/test_responder.py
Unit tests for jirabot/slack/responder.py.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from jirabot.slack.responder import EMPTY_ANSWER, REPLIES_PAGE_SIZE, ChatResponder


@pytest.fixture
def slack_client():
    client = MagicMock()
    client.conversations_history = AsyncMock(return_value={"messages": [
        {"user": "U1", "text": "second", "ts": "2.0"},
        {"user": "UBOT", "text": "first reply", "ts": "1.5"},
        {"user": "U1", "text": "first", "ts": "1.0"},
    ]})
    client.conversations_replies = AsyncMock(return_value={"messages": [
        {"user": "U1", "text": "<@UBOT> checkout broke", "ts": "1.0"},
    ]})
    client.chat_postMessage = AsyncMock()
    client.auth_test = AsyncMock(return_value={"user_id": "UBOT"})
    return client


@pytest.fixture
def agent():
    mock = MagicMock()
    mock.respond = AsyncMock(return_value="Here you go")
    return mock


async def test_dm_uses_history_and_replies_top_level(slack_client, agent):
    responder = ChatResponder(slack_client, agent, history_limit=8, bot_user_id="UBOT")
    event = {"type": "message", "channel_type": "im", "channel": "D1", "user": "U1", "ts": "2.0", "text": "second"}

    await responder.handle_event(event)

    slack_client.conversations_history.assert_awaited_once_with(channel="D1", latest="2.0", inclusive=True, limit=8)
    dialogue = list(agent.respond.await_args.args[0])
    assert [(m.role, m.content) for m in dialogue] == [
        ("user", "first"),
        ("assistant", "first reply"),
        ("user", "second"),
    ]
    slack_client.chat_postMessage.assert_awaited_once_with(channel="D1", text="Here you go")


async def test_mention_replies_in_thread(slack_client, agent):
    responder = ChatResponder(slack_client, agent, history_limit=5, bot_user_id="UBOT")
    event = {"type": "app_mention", "channel": "C1", "user": "U1", "ts": "1.0", "text": "<@UBOT> checkout broke"}

    await responder.handle_event(event)

    slack_client.conversations_replies.assert_awaited_once_with(
        channel="C1", ts="1.0", inclusive=True, limit=REPLIES_PAGE_SIZE
    )
    slack_client.chat_postMessage.assert_awaited_once_with(channel="C1", thread_ts="1.0", text="Here you go")


async def test_threaded_dm_uses_thread_root(slack_client, agent):
    responder = ChatResponder(slack_client, agent, bot_user_id="UBOT")
    event = {"type": "message", "channel_type": "im", "channel": "D1", "ts": "3.0", "thread_ts": "1.0"}

    await responder.handle_event(event)

    assert slack_client.conversations_replies.await_args.kwargs["ts"] == "1.0"
    assert slack_client.chat_postMessage.await_args.kwargs["thread_ts"] == "1.0"


async def test_errors_are_posted_to_the_thread(slack_client, agent):
    agent.respond.side_effect = RuntimeError("model unavailable")
    responder = ChatResponder(slack_client, agent, bot_user_id="UBOT")

    await responder.handle_event({"type": "app_mention", "channel": "C1", "ts": "1.0"})

    slack_client.chat_postMessage.assert_awaited_once_with(
        channel="C1", thread_ts="1.0", text="Error: model unavailable"
    )


async def test_empty_answer_gets_a_fallback(slack_client, agent):
    agent.respond.return_value = ""
    responder = ChatResponder(slack_client, agent, bot_user_id="UBOT")

    await responder.handle_event({"type": "app_mention", "channel": "C1", "ts": "1.0"})

    assert slack_client.chat_postMessage.await_args.kwargs["text"] == EMPTY_ANSWER


async def test_resolve_bot_user_id_calls_auth_test_once(slack_client, agent):
    responder = ChatResponder(slack_client, agent)

    assert await responder.resolve_bot_user_id() == "UBOT"
    assert await responder.resolve_bot_user_id() == "UBOT"
    slack_client.auth_test.assert_awaited_once()


@pytest.mark.parametrize("event, expected", [
    ({"type": "app_mention"}, True),
    ({"type": "message", "channel_type": "im"}, True),
    ({"type": "message", "channel_type": "channel"}, False),
    ({"type": "message", "channel_type": "im", "bot_id": "B1"}, False),
    ({"type": "message", "channel_type": "im", "subtype": "message_changed"}, False),
])
def test_should_handle(event, expected):
    assert ChatResponder.should_handle(event) is expected


async def test_long_thread_is_replayed_in_full(slack_client, agent):
    thread = [{"user": "U1", "text": f"message {i}", "ts": f"{i}.0"} for i in range(1, 11)]
    thread[8] = {"user": "UBOT", "text": "Priority: Medium (Medium-P2)?", "ts": "9.0"}
    thread[9] = {"user": "U1", "text": "yes", "ts": "10.0"}
    slack_client.conversations_replies = AsyncMock(side_effect=[
        {"messages": thread[:4], "response_metadata": {"next_cursor": "page2"}},
        {"messages": thread[4:8], "response_metadata": {"next_cursor": "page3"}},
        {"messages": thread[8:], "response_metadata": {"next_cursor": ""}},
    ])
    responder = ChatResponder(slack_client, agent, history_limit=8, bot_user_id="UBOT")

    await responder.handle_event({"type": "app_mention", "channel": "C1", "ts": "10.0", "thread_ts": "1.0"})

    cursors = [call.kwargs.get("cursor") for call in slack_client.conversations_replies.await_args_list]
    assert cursors == [None, "page2", "page3"]

    dialogue = list(agent.respond.await_args.args[0])
    assert len(dialogue) == 10
    assert dialogue[0].content == "message 1"
    assert [(m.role, m.content) for m in dialogue[-2:]] == [
        ("assistant", "Priority: Medium (Medium-P2)?"),
        ("user", "yes"),
    ]
