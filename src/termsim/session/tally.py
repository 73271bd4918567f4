"""Failure tally - consecutive unresolved commands and the one-time help offer."""

from __future__ import annotations

import logging

from termsim.session.store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 3


class FailureTally:
    """Counts consecutive misses and latches a single help offer.

    State lives in the SessionStore so it survives restarts. The latch is
    only cleared by ``reset()`` (entering the guided assistant); a resolved
    command clears the count but leaves the latch set.
    """

    def __init__(self, store: SessionStore, threshold: int = DEFAULT_THRESHOLD) -> None:
        self.store = store
        self.threshold = threshold

    @property
    def count(self) -> int:
        return self.store.tally_count

    @property
    def already_prompted(self) -> bool:
        return self.store.tally_prompted

    def record_miss(self, command: str | None = None) -> bool:
        """Count an unresolved command.

        Returns:
            True if the help offer should be shown now. The latch is set
            before returning, so this is True at most once per reset.
        """
        count = self.store.tally_count + 1
        self.store.tally_count = count
        if command:
            self.store.add_failed_command(command)
        logger.debug("Unresolved command count: %d", count)

        if count >= self.threshold and not self.store.tally_prompted:
            self.store.tally_prompted = True
            logger.info("Failure threshold reached (%d); offering assistant", count)
            return True
        return False

    def record_success(self) -> None:
        if self.store.tally_count:
            self.store.tally_count = 0

    def reset(self) -> None:
        self.store.tally_count = 0
        self.store.tally_prompted = False
