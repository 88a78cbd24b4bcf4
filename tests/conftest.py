"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from jollybot.config import Config
from jollybot.models import Emoji, Message, ReactionSummary
from jollybot.state import RuntimeState

CHANNEL_ID = "chan123"
JOLLYSKULL_ID = "jollyskull:123"


@dataclass
class ReactionCall:
    """One recorded remove/add reaction call."""

    channel_id: str
    message_id: str
    emoji: str
    user_id: str = ""


@dataclass
class FakeSession:
    """Recording in-memory Session.

    Reactors are paginated the way Discord does it: ``after_id`` is the last
    user ID of the previous page and the next page starts right after it.
    """

    channels: list = field(default_factory=list)
    message_pages: list[list[Message]] = field(default_factory=list)
    reactors: dict[str, list[str]] = field(default_factory=dict)

    channels_err: Exception | None = None
    messages_err: Exception | None = None
    reactors_err: Exception | None = None
    reactors_err_after_calls: int = 0
    remove_err: Exception | None = None
    add_err: Exception | None = None
    delete_err: Exception | None = None

    message_calls: list[str | None] = field(default_factory=list)
    reactor_calls: list[tuple[str, str | None]] = field(default_factory=list)
    removed: list[ReactionCall] = field(default_factory=list)
    added: list[ReactionCall] = field(default_factory=list)
    deleted: list[tuple[str, str]] = field(default_factory=list)

    async def list_channels(self, guild_id):
        if self.channels_err is not None:
            raise self.channels_err
        return self.channels

    async def list_messages(self, channel_id, limit, before_id=None):
        self.message_calls.append(before_id)
        if self.messages_err is not None:
            raise self.messages_err
        index = len(self.message_calls) - 1
        if index >= len(self.message_pages):
            return []
        return self.message_pages[index]

    async def list_reactors(self, channel_id, message_id, emoji, limit, after_id=None):
        self.reactor_calls.append((emoji, after_id))
        if (
            self.reactors_err is not None
            and len(self.reactor_calls) > self.reactors_err_after_calls
        ):
            raise self.reactors_err
        users = self.reactors.get(message_id, [])
        start = users.index(after_id) + 1 if after_id else 0
        return users[start : start + limit]

    async def remove_reaction(self, channel_id, message_id, emoji, user_id):
        self.removed.append(ReactionCall(channel_id, message_id, emoji, user_id))
        if self.remove_err is not None:
            raise self.remove_err

    async def add_reaction(self, channel_id, message_id, emoji):
        self.added.append(ReactionCall(channel_id, message_id, emoji))
        if self.add_err is not None:
            raise self.add_err

    async def delete_message(self, channel_id, message_id):
        self.deleted.append((channel_id, message_id))
        if self.delete_err is not None:
            raise self.delete_err


def make_message(
    message_id: str,
    timestamp: datetime | None = None,
    reactions: list[Emoji] | None = None,
    channel_id: str = CHANNEL_ID,
) -> Message:
    """Build a history message with the given reaction emoji."""
    return Message(
        id=message_id,
        channel_id=channel_id,
        timestamp=timestamp or datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc),
        reactions=[ReactionSummary(emoji=e, count=1) for e in reactions or []],
    )


def make_config(target_user_ids: list[str] | None = None, **overrides) -> Config:
    """Build a valid Config for tests."""
    values = {
        "guild_id": "guild123",
        "channel_name": "jollyposting",
        "target_user_ids": target_user_ids or ["target-user"],
        "jollyskull_id": JOLLYSKULL_ID,
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def config() -> Config:
    config = make_config()
    config.backfill.page_delay_seconds = 0
    return config


@pytest.fixture
def ready_state() -> RuntimeState:
    """Runtime state already resolved to CHANNEL_ID."""
    state = RuntimeState()
    state.publish_channel(CHANNEL_ID)
    return state


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every env var Config.load reads."""
    for name in [
        "DISCORD_TOKEN",
        "DISCORD_GUILD_ID",
        "DISCORD_CHANNEL_NAME",
        "DISCORD_TARGET_USER_IDS",
        "DISCORD_TARGET_USER_ID",
        "DISCORD_JOLLYSKULL_ID",
        "JOLLYBOT_LOG_LEVEL",
        "JOLLYBOT_LOG_JSON",
        "JOLLYBOT_BACKFILL_CUTOFF",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
