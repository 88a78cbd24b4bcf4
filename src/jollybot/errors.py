"""Exception types for jollybot."""


class JollyBotError(Exception):
    """Base class for jollybot errors."""


class ConfigError(JollyBotError):
    """Configuration is missing a required value or is invalid."""


class ChannelNotFoundError(JollyBotError):
    """The configured channel does not exist as a text channel in the guild."""

    def __init__(self, channel_name: str, guild_id: str) -> None:
        self.channel_name = channel_name
        self.guild_id = guild_id
        super().__init__(f"channel '{channel_name}' not found in guild {guild_id}")


class FetchError(JollyBotError):
    """A read from the chat platform failed."""


class MutationError(JollyBotError):
    """A reaction or message mutation on the chat platform failed."""
