"""
API handlers: verify and unpack Slack event callbacks, hand mentions to the worker.

Responsibility: Bridge HTTP types and the worker. Signature checking and
payload-to-InboundEvent mapping live here so the worker stays free of FastAPI.
"""

import json
import logging
from typing import Any

from fastapi import HTTPException
from pydantic import ValidationError
from slack_sdk.signature import SignatureVerifier

from app.core.config import SLACK_SIGNING_SECRET
from app.schemas.answer import InboundEvent
from app.services.answer_worker import AnswerWorker

logger = logging.getLogger(__name__)


def verify_slack_request(body: bytes, timestamp: str | None, signature: str | None) -> None:
    """
    Check X-Slack-Signature (HMAC-SHA256 of v0:timestamp:body) and reject
    timestamps more than five minutes old. Raises HTTPException(401),
    or 400 when the body is not UTF-8.
    """
    if not SLACK_SIGNING_SECRET:
        logger.error("[slack] SLACK_SIGNING_SECRET is not set; rejecting request")
        raise HTTPException(status_code=401, detail="Invalid signature")
    if not timestamp or not timestamp.isdigit() or not signature:
        raise HTTPException(status_code=401, detail="Invalid signature")
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.error("[slack] request body is not UTF-8")
        raise HTTPException(status_code=400, detail="Body must be UTF-8") from e
    verifier = SignatureVerifier(signing_secret=SLACK_SIGNING_SECRET)
    if not verifier.is_valid(body=text, timestamp=timestamp, signature=signature):
        logger.error("[slack] invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")


def parse_body(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail="Body must be JSON") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return payload


def to_inbound_event(payload: dict[str, Any]) -> InboundEvent | None:
    """Build an InboundEvent from an app_mention callback; None for any other event."""
    event = payload.get("event")
    if not isinstance(event, dict):
        logger.warning("[slack] event_callback without an event object event_id=%s", payload.get("event_id"))
        return None
    if event.get("type") != "app_mention":
        return None
    return InboundEvent(
        event_id=payload.get("event_id") or "",
        event_time=payload.get("event_time"),
        team_id=payload.get("team_id"),
        channel=event.get("channel") or "",
        user=event.get("user"),
        text=event.get("text") or "",
        ts=event.get("ts") or "",
        thread_ts=event.get("thread_ts") or event.get("ts"),
    )


def dispatch_event_callback(payload: dict[str, Any], worker: AnswerWorker) -> None:
    """
    Hand an app_mention to the worker. Failures are logged and swallowed so
    Slack still gets a 200 and does not redeliver the event.
    """
    try:
        inbound = to_inbound_event(payload)
    except ValidationError as e:
        logger.error("[slack] malformed app_mention event_id=%s: %s", payload.get("event_id"), e)
        return
    if inbound is None:
        return
    logger.info("[slack] received app_mention event_id=%s", inbound.event_id)
    try:
        worker.submit(inbound)
    except Exception:
        logger.exception("[slack] failed to hand off event_id=%s", inbound.event_id)
        return
    logger.info("[slack] handed off event_id=%s", inbound.event_id)
