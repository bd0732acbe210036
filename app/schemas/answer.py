"""Schemas passed between the Slack front door, the worker and the agent."""

import re

from pydantic import BaseModel, Field

_MENTION_RE = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")


class InboundEvent(BaseModel):
    """An app_mention handed off from the Slack events endpoint to the worker."""

    event_id: str = Field(..., description="Slack event id; used as the correlation id.")
    event_time: int | None = None
    team_id: str | None = None
    channel: str = Field(..., description="Channel to reply in.")
    user: str | None = None
    text: str = ""
    ts: str = Field(..., description="Timestamp of the mention message.")
    thread_ts: str | None = Field(None, description="Thread to reply in; defaults to ts.")

    @property
    def correlation_id(self) -> str:
        return self.event_id

    @property
    def question(self) -> str:
        """Message text with bot mentions removed."""
        return " ".join(_MENTION_RE.sub(" ", self.text).split())

    @property
    def reply_thread_ts(self) -> str:
        return self.thread_ts or self.ts


class GenerateAnswerResult(BaseModel):
    """Terminal value of one agent run. `answer` is always safe to post."""

    answer: str = Field(..., description="Final answer, best-effort answer, or generic error message.")
    success: bool = Field(..., description="False when no answer could be generated.")
