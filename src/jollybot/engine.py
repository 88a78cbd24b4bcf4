"""Replacement engine: channel resolution, live event gating, and backfill.

The engine is the part of jollybot that knows nothing about discord.py. The
bot converts gateway events into models and hands them here; the engine talks
back to Discord only through a ``Session``.

Lifecycle:
    1. ``initialize`` resolves the configured channel name to an ID. Until it
       succeeds every event is ignored.
    2. Live events pass through ``should_process_reaction`` and
       ``should_delete_message``, then the matching ``handle_*`` method acts.
    3. ``run_backfill`` walks history once, alongside live handling.
    4. ``shutdown`` stops the backfill at its next page boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from jollybot.backfill import BackfillDriver
from jollybot.emoji import is_skull_emoji, is_skull_only_content
from jollybot.errors import ChannelNotFoundError, FetchError
from jollybot.logging import get_logger
from jollybot.models import BackfillResult, Channel, ChannelType, MessageEvent, ReactionEvent
from jollybot.reconciler import ReactionReconciler
from jollybot.state import RuntimeState

if TYPE_CHECKING:
    from jollybot.config import Config
    from jollybot.session import Session

log = get_logger("engine")


def find_channel_by_name(channels: Iterable[Channel], name: str) -> str | None:
    """Return the ID of the first text channel with exactly this name.

    Voice and other non-text channels with the same name are skipped.
    """
    for channel in channels:
        if channel.name == name and channel.type == ChannelType.TEXT:
            return channel.id
    return None


class ReplacementEngine:
    """Decides which events qualify and replaces skulls with the jollyskull.

    Attributes:
        config: Application configuration.
        session: Platform access.
        state: Channel ID, readiness, and cancel token.
        reconciler: Per-message reaction replacement.
    """

    def __init__(
        self,
        config: Config,
        session: Session,
        state: RuntimeState | None = None,
    ) -> None:
        self.config = config
        self.session = session
        self.state = state or RuntimeState()
        self.reconciler = ReactionReconciler(config, session, self.state)

    # =========================================================================
    # Channel resolution
    # =========================================================================

    async def initialize(self) -> str:
        """Resolve the monitored channel and mark the engine ready.

        Returns:
            The resolved channel ID.

        Raises:
            FetchError: If the guild's channels could not be listed.
            ChannelNotFoundError: If no text channel has the configured name.
        """
        try:
            channels = await self.session.list_channels(self.config.guild_id)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"failed to fetch guild channels: {e}") from e

        channel_id = find_channel_by_name(channels, self.config.channel_name)
        if channel_id is None:
            raise ChannelNotFoundError(self.config.channel_name, self.config.guild_id)

        self.state.publish_channel(channel_id)
        log.info(
            "monitoring_channel",
            channel=self.config.channel_name,
            channel_id=channel_id,
        )
        return channel_id

    # =========================================================================
    # Live event filters
    # =========================================================================

    def should_process_reaction(self, event: ReactionEvent) -> bool:
        """Check if a reaction-add is a target user's skull in the monitored channel."""
        ready, channel_id = self.state.snapshot()
        if not ready:
            return False
        if event.channel_id != channel_id:
            return False
        if not self.config.is_target_user(event.user_id):
            return False
        return is_skull_emoji(event.emoji)

    def should_delete_message(self, event: MessageEvent) -> bool:
        """Check if a new message is a target user's skull-only post in the monitored channel."""
        ready, channel_id = self.state.snapshot()
        if not ready:
            return False
        if event.channel_id != channel_id:
            return False
        if event.author_id is None or not self.config.is_target_user(event.author_id):
            return False
        return is_skull_only_content(event.content)

    # =========================================================================
    # Live event handlers
    # =========================================================================

    async def handle_reaction_add(self, event: ReactionEvent) -> bool:
        """Replace a qualifying skull reaction.

        Returns:
            True if the reaction was replaced.
        """
        if not self.should_process_reaction(event):
            return False

        log.debug(
            "skull_reaction_detected",
            message_id=event.message_id,
            user_id=event.user_id,
            emoji=event.emoji.name,
        )
        return await self.reconciler.replace_reaction(event.message_id, event.user_id, event.emoji)

    async def handle_message_create(self, event: MessageEvent) -> bool:
        """Delete a qualifying skull-only message.

        Returns:
            True if the message was deleted.
        """
        if not self.should_delete_message(event):
            return False

        log.debug("skull_message_detected", message_id=event.id)
        try:
            await self.session.delete_message(event.channel_id, event.id)
        except Exception as e:
            log.error("delete_message_failed", message_id=event.id, error=str(e))
            return False

        log.info("skull_message_deleted", message_id=event.id)
        return True

    # =========================================================================
    # Backfill
    # =========================================================================

    async def run_backfill(self) -> BackfillResult:
        """Run the historical backfill once over the monitored channel.

        Raises:
            RuntimeError: If called before ``initialize`` succeeded.
        """
        ready, channel_id = self.state.snapshot()
        if not ready or channel_id is None:
            raise RuntimeError("backfill started before channel was resolved")

        token = self.state.install_cancel_token()
        driver = BackfillDriver(
            self.session,
            self.reconciler,
            channel_id,
            cutoff=self.config.backfill.cutoff,
            page_delay=self.config.backfill.page_delay_seconds,
        )
        return await driver.run(token)

    def shutdown(self) -> None:
        """Ask the backfill to stop. Safe to call any number of times.

        A backfill that has not started yet will stop before its first page.
        """
        if self.state.cancel():
            log.info("backfill_cancel_requested")
        else:
            log.debug("backfill_cancel_recorded")
