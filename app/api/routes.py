"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from app.api.handlers import dispatch_event_callback, parse_body, verify_slack_request

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/health", tags=["system"], response_class=PlainTextResponse)
def health() -> str:
    return "healthy"


# --- Slack ---

@router.post(
    "/slack/events",
    tags=["slack"],
    summary="Slack Events API endpoint",
    description="Verifies the Slack signature, answers url_verification, and hands app_mention events to the worker. Always answers 200 quickly for valid requests.",
    response_class=PlainTextResponse,
)
async def slack_events(request: Request) -> PlainTextResponse:
    body = await request.body()
    verify_slack_request(
        body,
        request.headers.get("x-slack-request-timestamp"),
        request.headers.get("x-slack-signature"),
    )
    payload = parse_body(body)

    if payload.get("type") == "url_verification":
        logger.info("[api:slack_events] url_verification challenge received")
        return PlainTextResponse(str(payload.get("challenge", "")))

    if payload.get("type") == "event_callback":
        dispatch_event_callback(payload, request.app.state.worker)

    return PlainTextResponse("ok")
