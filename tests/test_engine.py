"""Tests for the replacement engine.

Covers:
- Channel resolution and the ready transition
- Reaction and message filters
- Live reaction replacement and skull-only message deletion
- Backfill start and shutdown
"""

from datetime import datetime, timezone

import pytest
from conftest import CHANNEL_ID, FakeSession, make_config, make_message

from jollybot.engine import ReplacementEngine, find_channel_by_name
from jollybot.errors import ChannelNotFoundError, FetchError
from jollybot.models import BackfillOutcome, Channel, ChannelType, Emoji, MessageEvent, ReactionEvent

CHANNELS = [
    Channel(id="1", name="general", type=ChannelType.TEXT),
    Channel(id="2", name="jollyposting", type=ChannelType.TEXT),
    Channel(id="3", name="voice-chat", type=ChannelType.VOICE),
    Channel(id="4", name="jollyposting", type=ChannelType.VOICE),
]


def reaction(
    user_id: str = "target-user",
    emoji: Emoji | None = None,
    channel_id: str = CHANNEL_ID,
) -> ReactionEvent:
    return ReactionEvent(
        channel_id=channel_id,
        message_id="msg1",
        user_id=user_id,
        emoji=emoji or Emoji(name="💀"),
    )


def message(
    content: str = "💀",
    author_id: str | None = "target-user",
    channel_id: str = CHANNEL_ID,
) -> MessageEvent:
    return MessageEvent(id="msg1", channel_id=channel_id, author_id=author_id, content=content)


@pytest.fixture
def engine(config, session: FakeSession, ready_state) -> ReplacementEngine:
    return ReplacementEngine(config, session, ready_state)


# =============================================================================
# Channel resolution
# =============================================================================


class TestFindChannelByName:
    """Tests for picking the monitored channel."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("jollyposting", "2"),
            ("general", "1"),
            ("nonexistent", None),
            ("voice-chat", None),
        ],
    )
    def test_find(self, name: str, expected: str | None) -> None:
        assert find_channel_by_name(CHANNELS, name) == expected

    def test_name_match_is_exact(self) -> None:
        assert find_channel_by_name(CHANNELS, "JollyPosting") is None


class TestInitialize:
    """Tests for one-time channel resolution."""

    @pytest.mark.asyncio
    async def test_success(self, config, session: FakeSession) -> None:
        session.channels = CHANNELS
        engine = ReplacementEngine(config, session)

        channel_id = await engine.initialize()

        assert channel_id == "2"
        assert engine.state.snapshot() == (True, "2")

    @pytest.mark.asyncio
    async def test_channel_not_found(self, session: FakeSession) -> None:
        session.channels = CHANNELS[:1]
        engine = ReplacementEngine(make_config(channel_name="nonexistent"), session)

        with pytest.raises(ChannelNotFoundError, match="nonexistent"):
            await engine.initialize()
        assert engine.state.ready is False

    @pytest.mark.asyncio
    async def test_only_voice_channel_with_name(self, session: FakeSession) -> None:
        session.channels = [Channel(id="4", name="jollyposting", type=ChannelType.VOICE)]
        engine = ReplacementEngine(make_config(), session)

        with pytest.raises(ChannelNotFoundError):
            await engine.initialize()

    @pytest.mark.asyncio
    async def test_fetch_failure(self, config, session: FakeSession) -> None:
        session.channels_err = RuntimeError("API error")
        engine = ReplacementEngine(config, session)

        with pytest.raises(FetchError):
            await engine.initialize()
        assert engine.state.ready is False


# =============================================================================
# Filters
# =============================================================================


class TestShouldProcessReaction:
    """Tests for the reaction-add filter."""

    @pytest.mark.parametrize(
        "event,expected",
        [
            (reaction(), True),
            (reaction(emoji=Emoji(name="deadskull", id="123456")), True),
            (reaction(emoji=Emoji(name="jollyskull", id="789")), False),
            (reaction(channel_id="other-channel"), False),
            (reaction(user_id="other-user"), False),
            (reaction(emoji=Emoji(name="👍")), False),
        ],
    )
    def test_filter(self, engine: ReplacementEngine, event, expected: bool) -> None:
        assert engine.should_process_reaction(event) is expected

    def test_not_ready(self, config, session: FakeSession) -> None:
        engine = ReplacementEngine(config, session)

        assert engine.should_process_reaction(reaction()) is False

    @pytest.mark.parametrize(
        "user_id,expected",
        [("user1", True), ("user2", True), ("user3", True), ("user4", False)],
    )
    def test_multiple_target_users(
        self, session: FakeSession, ready_state, user_id: str, expected: bool
    ) -> None:
        engine = ReplacementEngine(make_config(["user1", "user2", "user3"]), session, ready_state)

        assert engine.should_process_reaction(reaction(user_id=user_id)) is expected


class TestShouldDeleteMessage:
    """Tests for the message-create filter."""

    @pytest.mark.parametrize(
        "event,expected",
        [
            (message("💀"), True),
            (message("  💀  "), True),
            (message("💀💀💀"), True),
            (message("💀 💀 💀"), True),
            (message("<:skull:123456>"), True),
            (message("💀<:deadskull:789>💀"), True),
            (message("<:jollyskull:123>"), False),
            (message("💀 lol"), False),
            (message("hello"), False),
            (message("   "), False),
            (message(channel_id="other-channel"), False),
            (message(author_id="other-user"), False),
            (message(author_id=None), False),
        ],
    )
    def test_filter(self, engine: ReplacementEngine, event, expected: bool) -> None:
        assert engine.should_delete_message(event) is expected

    def test_not_ready(self, config, session: FakeSession) -> None:
        engine = ReplacementEngine(config, session)

        assert engine.should_delete_message(message()) is False


# =============================================================================
# Handlers
# =============================================================================


class TestHandleReactionAdd:
    """Tests for live reaction replacement."""

    @pytest.mark.asyncio
    async def test_replaces_qualifying_reaction(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        assert await engine.handle_reaction_add(reaction()) is True

        assert [(r.message_id, r.emoji, r.user_id) for r in session.removed] == [
            ("msg1", "💀", "target-user")
        ]
        assert len(session.added) == 1

    @pytest.mark.asyncio
    async def test_ignores_non_qualifying(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        assert await engine.handle_reaction_add(reaction(user_id="other-user")) is False

        assert session.removed == []
        assert session.added == []


class TestHandleMessageCreate:
    """Tests for skull-only message deletion."""

    @pytest.mark.asyncio
    async def test_deletes_skull_only_message(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        assert await engine.handle_message_create(message()) is True

        assert session.deleted == [(CHANNEL_ID, "msg1")]

    @pytest.mark.asyncio
    async def test_keeps_other_messages(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        assert await engine.handle_message_create(message("💀 lol")) is False

        assert session.deleted == []

    @pytest.mark.asyncio
    async def test_delete_failure_is_logged_not_raised(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        session.delete_err = RuntimeError("forbidden")

        assert await engine.handle_message_create(message()) is False


# =============================================================================
# Backfill and shutdown
# =============================================================================


class TestBackfill:
    """Tests for starting and stopping the backfill through the engine."""

    @pytest.mark.asyncio
    async def test_requires_initialize(self, config, session: FakeSession) -> None:
        engine = ReplacementEngine(config, session)

        with pytest.raises(RuntimeError):
            await engine.run_backfill()

    @pytest.mark.asyncio
    async def test_uses_configured_cutoff(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        engine.config.backfill.cutoff = datetime(2025, 6, 1, tzinfo=timezone.utc)
        session.message_pages = [
            [
                make_message("msg2", datetime(2025, 7, 1, tzinfo=timezone.utc)),
                make_message("msg1", datetime(2025, 5, 1, tzinfo=timezone.utc)),
            ]
        ]

        result = await engine.run_backfill()

        assert result.outcome == BackfillOutcome.CUTOFF_REACHED
        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_shutdown_before_backfill_stops_it_early(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        session.message_pages = [[make_message("msg2")], [make_message("msg1")]]

        engine.shutdown()
        engine.shutdown()
        result = await engine.run_backfill()

        assert result.outcome == BackfillOutcome.CANCELLED
        assert result.processed == 0
        assert session.message_calls == []

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_backfill(
        self, engine: ReplacementEngine, session: FakeSession
    ) -> None:
        pages = [[make_message("msg1")], [make_message("msg0")]]

        async def list_messages(channel_id, limit, before_id=None):
            session.message_calls.append(before_id)
            engine.shutdown()
            return pages[len(session.message_calls) - 1]

        session.list_messages = list_messages  # type: ignore[method-assign]

        result = await engine.run_backfill()

        assert result.outcome == BackfillOutcome.CANCELLED
        assert result.processed == 1
        assert session.message_calls == [None]
