"""
Slack Events Webhook
====================

HTTP endpoint for the Slack Events API.

Request handling:
    not a JSON object  → 400, nothing else
    url_verification   → echo the challenge, nothing else
    bad signature      → log, acknowledge, do not process
    X-Slack-Retry-Num  → acknowledge, do not process (the first delivery
                         is already being handled; reprocessing could
                         create a duplicate ticket)
    event_callback     → acknowledge now, answer in a background task

Slack expects an answer within 3 seconds, so the agent never runs inside
the request. Every acknowledgement carries x-slack-no-retry.
"""

import json

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from slack_sdk.signature import SignatureVerifier

from jirabot.slack.responder import ChatResponder
from jirabot.utils.logger import Logger

logger = Logger("Events")

NO_RETRY_HEADERS = {"x-slack-no-retry": "1"}


def _ack(ok: bool = True) -> JSONResponse:
    return JSONResponse({"ok": ok}, status_code=200, headers=NO_RETRY_HEADERS)


def create_events_app(
    responder: ChatResponder,
    signing_secret: str,
    lifespan=None
) -> FastAPI:
    """
    Build the FastAPI application serving /slack/events.

    Args:
        responder: Handles accepted events
        signing_secret: Slack signing secret for request verification
        lifespan: Optional FastAPI lifespan hook
    """
    verifier = SignatureVerifier(signing_secret=signing_secret)
    app = FastAPI(title="JiraBot", lifespan=lifespan)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/slack/events")
    async def slack_events(request: Request, background_tasks: BackgroundTasks):
        body = await request.body()
        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning("Rejected request without a JSON object body")
            return JSONResponse({"ok": False}, status_code=400)

        if payload.get("type") == "url_verification":
            return PlainTextResponse(str(payload.get("challenge", "")))

        if not verifier.is_valid_request(body, dict(request.headers)):
            logger.warning("Rejected request with invalid Slack signature", {
                "has_timestamp": bool(request.headers.get("X-Slack-Request-Timestamp")),
                "has_signature": bool(request.headers.get("X-Slack-Signature")),
            })
            return _ack(ok=False)

        retry_num = (request.headers.get("X-Slack-Retry-Num") or "").strip()
        if retry_num:
            logger.info("Acknowledged Slack retry without processing", {
                "retry_num": retry_num,
                "retry_reason": request.headers.get("X-Slack-Retry-Reason"),
            })
            return _ack()

        if payload.get("type") == "event_callback":
            event = payload.get("event")
            if isinstance(event, dict) and ChatResponder.should_handle(event):
                background_tasks.add_task(responder.handle_event, event)
            else:
                logger.debug(f"Ignoring event: {event!r:.80}")

        return _ack()

    return app
