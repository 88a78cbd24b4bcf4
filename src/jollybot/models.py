"""Pydantic models for the chat entities jollybot works with.

These are read-only snapshots of what the platform hands us. Nothing here is
persisted; instances live for the duration of one event or one backfill page.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class ChannelType(str, Enum):
    """Discord channel types."""

    TEXT = "text"
    VOICE = "voice"
    CATEGORY = "category"
    NEWS = "news"
    THREAD = "thread"
    FORUM = "forum"
    OTHER = "other"


class BackfillOutcome(str, Enum):
    """Terminal states of a historical backfill run."""

    CUTOFF_REACHED = "cutoff_reached"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FETCH_ERROR = "fetch_error"


# =============================================================================
# Platform entities
# =============================================================================


class Emoji(BaseModel):
    """An emoji as seen on a reaction.

    An empty ``id`` means a standard unicode emoji identified by ``name``;
    otherwise a custom emoji identified by ``name:id``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    id: str = ""


class Channel(BaseModel):
    """A guild channel."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: ChannelType


class ReactionSummary(BaseModel):
    """Aggregate of one emoji's reactions on a message."""

    model_config = ConfigDict(frozen=True)

    emoji: Emoji
    count: int = 0


class Message(BaseModel):
    """A message snapshot from channel history."""

    model_config = ConfigDict(frozen=True)

    id: str
    channel_id: str
    author_id: str | None = None
    content: str = ""
    timestamp: datetime
    reactions: list[ReactionSummary] = Field(default_factory=list)


# =============================================================================
# Gateway events
# =============================================================================


class ReactionEvent(BaseModel):
    """A reaction-add event from the gateway."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    message_id: str
    user_id: str
    emoji: Emoji


class MessageEvent(BaseModel):
    """A message-create event from the gateway."""

    model_config = ConfigDict(frozen=True)

    id: str
    channel_id: str
    author_id: str | None = None
    content: str = ""


# =============================================================================
# Results
# =============================================================================


class BackfillResult(BaseModel):
    """Counts and terminal state of a backfill run."""

    outcome: BackfillOutcome
    processed: int = 0
    replaced: int = 0
