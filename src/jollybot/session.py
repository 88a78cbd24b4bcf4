"""Chat platform access for the replacement engine.

The engine only talks to Discord through the ``Session`` protocol, so tests can
hand it a recording fake. ``DiscordSession`` implements the protocol on top of
discord.py's HTTP client, which already handles auth and rate-limit retries.
"""

from __future__ import annotations

from typing import Any, Protocol

import discord
from discord.utils import parse_time

from jollybot.errors import FetchError, MutationError
from jollybot.models import Channel, ChannelType, Emoji, Message, ReactionSummary

# Discord API channel type codes
_CHANNEL_TYPES: dict[int, ChannelType] = {
    0: ChannelType.TEXT,
    2: ChannelType.VOICE,
    4: ChannelType.CATEGORY,
    5: ChannelType.NEWS,
    10: ChannelType.THREAD,
    11: ChannelType.THREAD,
    12: ChannelType.THREAD,
    15: ChannelType.FORUM,
}


class Session(Protocol):
    """Operations the engine needs from the chat platform.

    Every method may raise. Emoji arguments are API strings (see
    ``jollybot.emoji.emoji_api_string``).
    """

    async def list_channels(self, guild_id: str) -> list[Channel]: ...

    async def list_messages(
        self, channel_id: str, limit: int, before_id: str | None = None
    ) -> list[Message]: ...

    async def list_reactors(
        self,
        channel_id: str,
        message_id: str,
        emoji: str,
        limit: int,
        after_id: str | None = None,
    ) -> list[str]: ...

    async def remove_reaction(
        self, channel_id: str, message_id: str, emoji: str, user_id: str
    ) -> None: ...

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None: ...

    async def delete_message(self, channel_id: str, message_id: str) -> None: ...


# =============================================================================
# Payload conversion
# =============================================================================


def channel_from_payload(data: dict[str, Any]) -> Channel:
    """Build a Channel from a Discord channel payload."""
    return Channel(
        id=str(data["id"]),
        name=data.get("name") or "",
        type=_CHANNEL_TYPES.get(int(data.get("type", -1)), ChannelType.OTHER),
    )


def emoji_from_payload(data: dict[str, Any]) -> Emoji:
    """Build an Emoji from a Discord partial emoji payload."""
    emoji_id = data.get("id")
    return Emoji(name=data.get("name") or "", id=str(emoji_id) if emoji_id else "")


def message_from_payload(data: dict[str, Any]) -> Message:
    """Build a Message from a Discord message payload."""
    author = data.get("author")
    return Message(
        id=str(data["id"]),
        channel_id=str(data["channel_id"]),
        author_id=str(author["id"]) if author else None,
        content=data.get("content") or "",
        timestamp=parse_time(data["timestamp"]),
        reactions=[
            ReactionSummary(
                emoji=emoji_from_payload(r.get("emoji") or {}),
                count=int(r.get("count", 0)),
            )
            for r in data.get("reactions") or []
        ],
    )


# =============================================================================
# discord.py implementation
# =============================================================================


class DiscordSession:
    """Session backed by a discord.py client's HTTP layer.

    Attributes:
        client: A logged-in discord.py client.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    @property
    def _http(self) -> Any:
        return self.client.http

    async def list_channels(self, guild_id: str) -> list[Channel]:
        try:
            payload = await self._http.get_all_guild_channels(int(guild_id))
        except discord.HTTPException as e:
            raise FetchError(f"failed to fetch guild channels: {e}") from e
        return [channel_from_payload(c) for c in payload]

    async def list_messages(
        self, channel_id: str, limit: int, before_id: str | None = None
    ) -> list[Message]:
        before = int(before_id) if before_id else None
        try:
            payload = await self._http.logs_from(int(channel_id), limit, before=before)
        except discord.HTTPException as e:
            raise FetchError(f"failed to fetch messages: {e}") from e
        return [message_from_payload(m) for m in payload]

    async def list_reactors(
        self,
        channel_id: str,
        message_id: str,
        emoji: str,
        limit: int,
        after_id: str | None = None,
    ) -> list[str]:
        after = int(after_id) if after_id else None
        try:
            payload = await self._http.get_reaction_users(
                int(channel_id), int(message_id), emoji, limit, after=after
            )
        except discord.HTTPException as e:
            raise FetchError(f"failed to fetch reactions: {e}") from e
        return [str(u["id"]) for u in payload]

    async def remove_reaction(
        self, channel_id: str, message_id: str, emoji: str, user_id: str
    ) -> None:
        try:
            await self._http.remove_reaction(
                int(channel_id), int(message_id), emoji, int(user_id)
            )
        except discord.HTTPException as e:
            raise MutationError(f"failed to remove reaction: {e}") from e

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        try:
            await self._http.add_reaction(int(channel_id), int(message_id), emoji)
        except discord.HTTPException as e:
            raise MutationError(f"failed to add reaction: {e}") from e

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        try:
            await self._http.delete_message(int(channel_id), int(message_id))
        except discord.HTTPException as e:
            raise MutationError(f"failed to delete message: {e}") from e
