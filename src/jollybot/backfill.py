"""Historical backfill over the monitored channel.

Walks channel history from newest to oldest, one page at a time, replacing
skull reactions on every message newer than the cutoff. Nothing is recorded
about what was processed, so a restart simply walks the same range again;
already-replaced reactions are no longer skulls and fall out naturally.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

from jollybot.logging import get_logger
from jollybot.models import BackfillOutcome, BackfillResult

if TYPE_CHECKING:
    from jollybot.reconciler import ReactionReconciler
    from jollybot.session import Session
    from jollybot.state import CancelToken

log = get_logger("backfill")

MESSAGE_PAGE_SIZE = 100
PROGRESS_LOG_INTERVAL = 500
DEFAULT_PAGE_DELAY_SECONDS = 0.5


class BackfillDriver:
    """Drives one backfill run.

    Cancellation is cooperative: the token is only checked before fetching a
    page, so a page already being reconciled always finishes.

    Attributes:
        session: Platform access.
        reconciler: Replaces reactions on each message.
        channel_id: Channel to walk.
        cutoff: Messages strictly older than this are never touched.
        page_delay: Pause between pages, in seconds.
    """

    def __init__(
        self,
        session: Session,
        reconciler: ReactionReconciler,
        channel_id: str,
        cutoff: datetime,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
    ) -> None:
        self.session = session
        self.reconciler = reconciler
        self.channel_id = channel_id
        self.cutoff = cutoff
        self.page_delay = page_delay

    async def run(self, cancel: CancelToken) -> BackfillResult:
        """Walk history until cutoff, exhaustion, fetch error, or cancellation.

        Args:
            cancel: Token checked at the top of every iteration.

        Returns:
            The terminal outcome with processed message and replaced reaction counts.
        """
        log.info("backfill_started", cutoff=self.cutoff.date().isoformat())

        before_id: str | None = None
        processed = 0
        replaced = 0

        while True:
            if cancel.cancelled:
                log.info("backfill_cancelled", processed=processed, replaced=replaced)
                return BackfillResult(
                    outcome=BackfillOutcome.CANCELLED, processed=processed, replaced=replaced
                )

            try:
                messages = await self.session.list_messages(
                    self.channel_id, MESSAGE_PAGE_SIZE, before_id
                )
            except Exception as e:
                log.error("fetch_messages_failed", before_id=before_id, error=str(e))
                outcome = BackfillOutcome.FETCH_ERROR
                break

            if not messages:
                outcome = BackfillOutcome.EXHAUSTED
                break

            for message in messages:
                if message.timestamp < self.cutoff:
                    log.info("backfill_cutoff_reached", processed=processed, replaced=replaced)
                    return BackfillResult(
                        outcome=BackfillOutcome.CUTOFF_REACHED,
                        processed=processed,
                        replaced=replaced,
                    )

                replaced += await self.reconciler.process_message_reactions(message)
                processed += 1

            before_id = messages[-1].id

            if processed % PROGRESS_LOG_INTERVAL == 0:
                log.info("backfill_progress", processed=processed, replaced=replaced)

            await asyncio.sleep(self.page_delay)

        log.info(
            "backfill_complete",
            outcome=outcome.value,
            processed=processed,
            replaced=replaced,
        )
        return BackfillResult(outcome=outcome, processed=processed, replaced=replaced)
