"""
JiraBot - Main Entry Point
==========================

This is the main entry point for the bot. It:
1. Loads configuration
2. Builds the Jira client, field-value cache and similarity retrieval
3. Builds the capability registry, executor and agent
4. Serves Slack events over HTTP (default) or Socket Mode

Run with:
    python -m jirabot.main

Or after installing:
    jirabot
"""

import asyncio
import signal
import sys

import uvicorn
from openai import AsyncOpenAI
from slack_sdk.web.async_client import AsyncWebClient

from jirabot.agent import Agent, CreationGuard, ToolExecutor
from jirabot.rag import SimilarityRetriever
from jirabot.rag.embeddings import EmbeddingGenerator
from jirabot.rag.vectorstore import VectorStore
from jirabot.slack.responder import ChatResponder
from jirabot.tools.field_values import FieldValueCache, fetch_field_values
from jirabot.tools.jira_client import JiraClient
from jirabot.tools.jira_tools import build_registry
from jirabot.utils.config import Config, get_config
from jirabot.utils.logger import Logger

main_logger = Logger("Main")


def build_agent(config: Config) -> Agent:
    """
    Build the agent and its dependencies.

    Nothing here talks to Slack; both runners share it.
    """
    main_logger.info("Creating Jira client...")
    jira = JiraClient(config.jira)

    field_values = FieldValueCache(
        lambda: fetch_field_values(
            jira,
            config.jira.create_project_key,
            config.jira.brand_field,
            config.jira.environment_field,
        )
    )

    main_logger.info("Initializing similarity retrieval...")
    openai_client = AsyncOpenAI(api_key=config.openai.api_key)
    embeddings = EmbeddingGenerator(model=config.openai.embedding_model, client=openai_client)
    vectorstore = VectorStore(config.retrieval.vectorstore_dir)
    retriever = SimilarityRetriever(
        embeddings,
        vectorstore,
        jira,
        relevance_floor=config.retrieval.relevance_floor
    )

    main_logger.info("Setting up capabilities...")
    registry = build_registry(
        jira,
        retriever,
        field_values,
        default_limit=config.retrieval.default_limit
    )
    executor = ToolExecutor(
        registry,
        guard=CreationGuard(field_values),
        timeout_seconds=config.agent.tool_timeout_seconds
    )

    main_logger.info("Creating agent...")
    agent = Agent(registry, executor, client=openai_client, model=config.openai.model)

    return agent


async def serve_http(config: Config, agent: Agent) -> None:
    """Serve the Events API webhook with uvicorn."""
    from jirabot.slack.events import create_events_app

    slack_client = AsyncWebClient(token=config.slack.bot_token)
    responder = ChatResponder(
        slack_client,
        agent,
        history_limit=config.slack.message_history_limit
    )
    await responder.resolve_bot_user_id()

    app = create_events_app(responder, config.slack.signing_secret)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level,
    ))

    main_logger.info(f"JiraBot is listening on http://{config.server.host}:{config.server.port}")
    await server.serve()


async def serve_socket(config: Config, agent: Agent) -> None:
    """Connect to Slack over Socket Mode."""
    from jirabot.slack.app import create_slack_app, create_socket_handler
    from jirabot.slack.handlers import register_handlers

    app = create_slack_app(config.slack)
    responder = ChatResponder(
        app.client,
        agent,
        history_limit=config.slack.message_history_limit
    )
    await responder.resolve_bot_user_id()

    register_handlers(app, responder)
    handler = create_socket_handler(app, config.slack)

    # Set up graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(_shutdown(handler))
        )

    main_logger.info("JiraBot is running in Socket Mode! Press Ctrl+C to stop.")
    await handler.start_async()


async def _shutdown(handler) -> None:
    """Close the Socket Mode connection."""
    main_logger.info("Shutting down...")
    await handler.close_async()
    main_logger.info("Shutdown complete")


async def main():
    """
    Main async entry point.

    Initializes all components and runs the bot.
    """
    main_logger.info("Starting JiraBot...")

    try:
        # Validates that all required env vars are set
        main_logger.info("Loading configuration...")
        config = get_config()

        agent = build_agent(config)

        if config.slack.mode == "socket":
            await serve_socket(config, agent)
        else:
            await serve_http(config, agent)

    except KeyboardInterrupt:
        main_logger.info("Received interrupt signal")
    except Exception as e:
        main_logger.error("Failed to start bot", e)
        sys.exit(1)


def run():
    """
    Synchronous entry point.

    This is called when running with the `jirabot` command.
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
