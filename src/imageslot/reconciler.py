"""
Reconciliation Scheduler

The store's read path lags its write path, so a fresh upload is shown as a
pending placeholder and the authoritative version is re-read after a delay.
Each upload or manual refresh advances an epoch; a timer that fires after
its epoch was superseded does nothing.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from .config import settings
from .errors import ImageSlotError
from .models import PendingUpload, RemoteImageVersion, SlotState

logger = logging.getLogger(__name__)

FetchCurrent = Callable[[], Awaitable[Optional[RemoteImageVersion]]]


class ReconciliationScheduler:
    """
    Pending/idle state for the single resource slot.

    - begin_pending(): idle/pending -> pending, schedules one delayed re-read
    - delayed re-read: pending -> idle; the version is replaced on success
      and kept on failure
    - refresh(): always accepted, clears pending and re-reads immediately
    """

    def __init__(
        self,
        fetch_current: FetchCurrent,
        upload_delay: Optional[float] = None,
        reuse_delay: Optional[float] = None,
    ):
        """
        Args:
            fetch_current: Coroutine function reading the authoritative version
                (None when the resource does not exist)
            upload_delay: Seconds before re-reading after an upload
            reuse_delay: Seconds before re-reading after reusing a recent upload
        """
        self._fetch_current = fetch_current
        self.upload_delay = settings.upload_confirm_delay if upload_delay is None else upload_delay
        self.reuse_delay = settings.reuse_confirm_delay if reuse_delay is None else reuse_delay

        self.current: Optional[RemoteImageVersion] = None
        self.pending: Optional[PendingUpload] = None
        self.last_error: Optional[str] = None

        self._epoch = 0
        self._timers: Set[asyncio.Task] = set()

    @property
    def state(self) -> SlotState:
        return SlotState.PENDING if self.pending is not None else SlotState.IDLE

    @property
    def epoch(self) -> int:
        return self._epoch

    def begin_pending(self, pending: PendingUpload, delay: Optional[float] = None) -> int:
        """
        Show ``pending`` in place of the current version and schedule a re-read.

        Must be called from a running event loop.

        Returns:
            The epoch of this pending upload
        """
        self._epoch += 1
        epoch = self._epoch
        self.pending = pending

        if delay is None:
            delay = self.reuse_delay if pending.reused else self.upload_delay

        task = asyncio.get_running_loop().create_task(self._confirm_after(epoch, delay))
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

        logger.info(f"Upload pending (epoch {epoch}), re-reading in {delay:g}s")
        return epoch

    async def _confirm_after(self, epoch: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if epoch != self._epoch:
            logger.debug(f"Skipping re-read for superseded epoch {epoch} (now {self._epoch})")
            return
        await self._reread(epoch)

    async def _reread(self, epoch: int, raise_errors: bool = False) -> bool:
        """Re-read the version; state is only touched if ``epoch`` is still current."""
        try:
            version = await self._fetch_current()
        except ImageSlotError as e:
            logger.warning(f"Re-read failed, keeping previous version: {e}")
            if epoch == self._epoch:
                self.pending = None
                self.last_error = str(e)
            if raise_errors:
                raise
            return False

        if epoch != self._epoch:
            logger.debug(f"Discarding re-read result for superseded epoch {epoch}")
            return False

        self.pending = None
        self.current = version
        self.last_error = None
        logger.info(f"Slot idle, current version {version.sha[:8] if version else 'none'}")
        return True

    async def refresh(self) -> Optional[RemoteImageVersion]:
        """
        Manual re-read, accepted in any state.

        Clears the pending placeholder at once and supersedes any scheduled
        re-read. Safe to call repeatedly.

        Raises:
            ConfigError, AuthError, TransportError: If the read fails; the
                previous version is kept
        """
        self._epoch += 1
        epoch = self._epoch
        self.pending = None
        await self._reread(epoch, raise_errors=True)
        return self.current

    async def wait(self) -> None:
        """Wait for outstanding scheduled re-reads."""
        if self._timers:
            await asyncio.gather(*list(self._timers), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding scheduled re-reads."""
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
