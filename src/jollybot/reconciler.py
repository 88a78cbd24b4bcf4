"""Swapping skull reactions for the jollyskull on individual messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jollybot.emoji import emoji_api_string, is_skull_emoji
from jollybot.logging import get_logger
from jollybot.models import Emoji, Message

if TYPE_CHECKING:
    from jollybot.config import Config
    from jollybot.session import Session
    from jollybot.state import RuntimeState

log = get_logger("reconciler")

REACTOR_PAGE_SIZE = 100


class ReactionReconciler:
    """Finds target users' skull reactions on a message and replaces them.

    Failures never raise out of here. A failed fetch or mutation is logged and
    the affected tuple is skipped; the caller only sees counts and booleans.

    Attributes:
        config: Application configuration (target users, jollyskull ID).
        session: Platform access.
        state: Runtime state holding the resolved channel.
    """

    def __init__(self, config: Config, session: Session, state: RuntimeState) -> None:
        self.config = config
        self.session = session
        self.state = state

    @property
    def channel_id(self) -> str:
        channel_id = self.state.channel_id
        if channel_id is None:
            raise RuntimeError("channel not resolved")
        return channel_id

    async def find_target_users_with_reaction(
        self, message_id: str, emoji: Emoji
    ) -> list[str]:
        """Page through everyone who reacted with an emoji and keep target users.

        Pages are requested with the last user ID of the previous page as the
        ``after`` cursor until a short or empty page comes back. A failed page
        ends pagination; users found on earlier pages are still returned.

        Args:
            message_id: Message to inspect.
            emoji: Reaction emoji.

        Returns:
            Target user IDs that reacted with the emoji.
        """
        emoji_str = emoji_api_string(emoji)
        channel_id = self.channel_id
        found: list[str] = []
        after_id: str | None = None

        while True:
            try:
                users = await self.session.list_reactors(
                    channel_id, message_id, emoji_str, REACTOR_PAGE_SIZE, after_id
                )
            except Exception as e:
                log.error(
                    "fetch_reactions_failed",
                    message_id=message_id,
                    emoji=emoji_str,
                    error=str(e),
                )
                return found

            if not users:
                return found

            found.extend(user_id for user_id in users if self.config.is_target_user(user_id))

            if len(users) < REACTOR_PAGE_SIZE:
                return found

            after_id = users[-1]

    async def replace_reaction(self, message_id: str, user_id: str, emoji: Emoji) -> bool:
        """Remove one user's skull reaction and add the jollyskull.

        The add is only attempted after a successful remove. If the add then
        fails the skull stays removed; there is no retry and no rollback.

        Returns:
            True only if both the remove and the add succeeded.
        """
        emoji_str = emoji_api_string(emoji)
        channel_id = self.channel_id

        try:
            await self.session.remove_reaction(channel_id, message_id, emoji_str, user_id)
        except Exception as e:
            log.error(
                "remove_skull_failed",
                message_id=message_id,
                user_id=user_id,
                emoji=emoji_str,
                error=str(e),
            )
            return False

        try:
            await self.session.add_reaction(channel_id, message_id, self.config.jollyskull_id)
        except Exception as e:
            log.error(
                "add_jollyskull_failed",
                message_id=message_id,
                user_id=user_id,
                error=str(e),
            )
            return False

        log.debug(
            "skull_replaced",
            message_id=message_id,
            user_id=user_id,
            emoji=emoji_str,
        )
        return True

    async def process_message_reactions(self, message: Message) -> int:
        """Replace every target user's skull reaction on a message.

        Returns:
            Number of successful replacements.
        """
        replaced = 0
        for reaction in message.reactions:
            if not is_skull_emoji(reaction.emoji):
                continue

            user_ids = await self.find_target_users_with_reaction(message.id, reaction.emoji)
            for user_id in user_ids:
                if await self.replace_reaction(message.id, user_id, reaction.emoji):
                    replaced += 1
        return replaced
