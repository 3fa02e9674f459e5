# quiz_engine/storage.py
# "Returning user" persistence behind a narrow interface.

import abc
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import SavedResult, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RESULT_TTL = timedelta(days=7)


class ResultStore(abc.ABC):
    """Owns the last saved result. The engine only decides when to call it."""

    @abc.abstractmethod
    def load(self) -> Optional[SavedResult]:
        """Returns the saved result, or None if absent or no longer valid."""
        pass

    @abc.abstractmethod
    def save(self, result: SavedResult) -> None:
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        pass

    def mark_cta_clicked(self) -> None:
        """Flags the saved result as acted on; it will not be restored again."""
        saved = self.load()
        if saved is None:
            return
        self.save(saved.model_copy(update={"cta_clicked": True}))


class InMemoryResultStore(ResultStore):
    """
    Process-local store. A saved result expires `ttl` after its timestamp or
    as soon as its CTA has been clicked.
    """

    def __init__(self, ttl: timedelta = DEFAULT_RESULT_TTL, clock: Callable[[], datetime] = utc_now):
        self.ttl = ttl
        self._clock = clock
        self._saved: Optional[SavedResult] = None

    def load(self) -> Optional[SavedResult]:
        saved = self._saved
        if saved is None:
            return None
        if saved.cta_clicked:
            logger.info("Saved result dropped: CTA already clicked")
            self._saved = None
            return None
        if self._clock() - saved.timestamp > self.ttl:
            logger.info(f"Saved result for {saved.item.name} expired (saved at {saved.timestamp.isoformat()})")
            self._saved = None
            return None
        return saved

    def save(self, result: SavedResult) -> None:
        self._saved = result
        logger.debug(f"Saved result for {result.item.name}")

    def clear(self) -> None:
        self._saved = None

    def mark_cta_clicked(self) -> None:
        if self._saved is not None:
            self._saved = self._saved.model_copy(update={"cta_clicked": True})
