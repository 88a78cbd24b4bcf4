"""Discord gateway wiring for jollybot.

Connects to Discord, resolves the monitored channel once the gateway is ready,
starts the historical backfill, and forwards reaction-add and message-create
events to the replacement engine.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import discord

from jollybot.engine import ReplacementEngine
from jollybot.errors import JollyBotError
from jollybot.logging import get_logger
from jollybot.models import Emoji, MessageEvent, ReactionEvent
from jollybot.session import DiscordSession

if TYPE_CHECKING:
    from jollybot.config import Config

log = get_logger("bot")


def reaction_event_from_payload(payload: discord.RawReactionActionEvent) -> ReactionEvent:
    """Convert a raw gateway reaction payload into a ReactionEvent."""
    emoji = payload.emoji
    return ReactionEvent(
        channel_id=str(payload.channel_id),
        message_id=str(payload.message_id),
        user_id=str(payload.user_id),
        emoji=Emoji(name=emoji.name or "", id=str(emoji.id) if emoji.id else ""),
    )


def message_event_from_message(message: discord.Message) -> MessageEvent:
    """Convert a discord.py message into a MessageEvent."""
    author = message.author
    return MessageEvent(
        id=str(message.id),
        channel_id=str(message.channel.id),
        author_id=str(author.id) if author is not None else None,
        content=message.content or "",
    )


class JollyBot(discord.Client):
    """Discord client that feeds gateway events to the replacement engine.

    Raw reaction events are used so reactions on messages outside the client's
    message cache are still seen.

    Attributes:
        config: Application configuration.
        engine: Replacement engine backed by this client's HTTP session.
    """

    def __init__(self, config: Config) -> None:
        intents = discord.Intents.default()
        intents.guild_messages = True
        intents.message_content = True  # Needed to judge skull-only messages
        intents.guild_reactions = True
        intents.members = True

        super().__init__(intents=intents)
        self.config = config
        self.engine = ReplacementEngine(config, DiscordSession(self))
        self._backfill_task: asyncio.Task | None = None
        self._shutdown_requested = False

    async def on_ready(self) -> None:
        """Resolve the channel and kick off the backfill.

        on_ready fires again after gateway reconnects; only the first
        successful call does anything.
        """
        log.info("discord_ready", user=str(self.user))

        if self.engine.state.ready or self._shutdown_requested:
            return

        try:
            await self.engine.initialize()
        except JollyBotError as e:
            log.error("initialization_failed", error=str(e))
            return

        if self._shutdown_requested:
            log.info("backfill_skipped_shutdown")
            return

        if not self.config.backfill.enabled:
            log.info("backfill_disabled")
            return

        self._backfill_task = asyncio.create_task(self._run_backfill())

    async def _run_backfill(self) -> None:
        try:
            await self.engine.run_backfill()
        except Exception as e:
            log.error("backfill_failed", error=str(e))

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.engine.handle_reaction_add(reaction_event_from_payload(payload))

    async def on_message(self, message: discord.Message) -> None:
        await self.engine.handle_message_create(message_event_from_message(message))

    async def on_disconnect(self) -> None:
        """discord.py reconnects on its own; this is just for logging."""
        log.warning("discord_disconnected")

    async def on_resumed(self) -> None:
        log.info("discord_resumed")

    async def graceful_shutdown(self) -> None:
        """Stop the backfill at its next page boundary, then disconnect."""
        if self._shutdown_requested:
            return
        log.info("shutdown_initiated")
        self._shutdown_requested = True

        self.engine.shutdown()
        if self._backfill_task is not None:
            await self._backfill_task
            log.debug("backfill_task_finished")

        await self.close()
        log.info("shutdown_complete")


def setup_signal_handlers(bot: JollyBot, loop: asyncio.AbstractEventLoop) -> None:
    """Setup graceful shutdown handlers for SIGINT and SIGTERM.

    Args:
        bot: The JollyBot instance to shut down.
        loop: The event loop to add signal handlers to.
    """

    def handle_signal(sig: signal.Signals) -> None:
        log.info("signal_received", signal=sig.name)
        loop.create_task(bot.graceful_shutdown())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    log.debug("signal_handlers_registered", signals=["SIGINT", "SIGTERM"])


async def run_bot(config: Config, token: str) -> None:
    """Run the bot until shutdown.

    Args:
        config: Application configuration.
        token: Discord bot token.
    """
    bot = JollyBot(config)
    loop = asyncio.get_running_loop()

    setup_signal_handlers(bot, loop)

    try:
        log.info("bot_starting")
        await bot.start(token)
    except asyncio.CancelledError:
        log.debug("bot_cancelled")
    finally:
        if not bot.is_closed():
            await bot.close()
