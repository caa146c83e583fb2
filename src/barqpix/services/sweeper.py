"""Periodic reclamation of expired quick shares and stale photos."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from barqpix.clock import Clock, utcnow
from barqpix.services.photos import PhotoService
from barqpix.services.qr_tokens import QRTokenStore
from barqpix.services.quick_share import QuickShareService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Counts from a single sweep pass."""

    sessions_deleted: int
    photos_deleted: int
    failures: int


@dataclass
class ExpirySweeper:
    """Deletes expired quick-share sessions and photos past retention.

    Access-time checks are what keep expired data from being served; the
    sweeper only reclaims storage. Every item is handled independently and a
    failing item is logged and left for the next pass.
    """

    store: QRTokenStore
    quick_share_service: QuickShareService
    photo_service: PhotoService
    interval: timedelta
    retention: timedelta
    batch_size: int = 500
    clock: Clock = field(default=utcnow)
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _stop_event: asyncio.Event | None = field(default=None, init=False, repr=False)

    async def sweep(self) -> SweepResult:
        """Run one reclamation pass."""
        now = self.clock()
        sessions_deleted = 0
        photos_deleted = 0
        failures = 0

        expired = self.store.repository.list_expired_sessions(now, self.batch_size)
        for session in expired:
            try:
                result = await self.quick_share_service.close_session(session.quick_id)
            except Exception:
                failures += 1
                logger.exception(
                    "Failed to close expired quick share",
                    extra={"quick_id": str(session.quick_id)},
                )
                continue
            photos_deleted += result.photos_deleted
            failures += result.failures
            if result.closed:
                sessions_deleted += 1

        cutoff = now - self.retention
        stale = self.photo_service.repository.list_photos_uploaded_before(
            cutoff, self.batch_size
        )
        for photo in stale:
            try:
                await self.photo_service.discard(photo)
            except Exception:
                failures += 1
                logger.exception(
                    "Failed to delete photo past retention",
                    extra={"photo_id": str(photo.id)},
                )
                continue
            photos_deleted += 1

        result = SweepResult(
            sessions_deleted=sessions_deleted,
            photos_deleted=photos_deleted,
            failures=failures,
        )
        logger.info(
            "Expiry sweep finished",
            extra={
                "sessions_deleted": sessions_deleted,
                "photos_deleted": photos_deleted,
                "failures": failures,
            },
        )
        return result

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping on a fixed interval in the running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the in-flight pass."""
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        task = self._task
        self._task = None
        try:
            await asyncio.wait_for(task, timeout=self.interval.total_seconds())
        except TimeoutError:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.sweep()
            except Exception:
                logger.exception("Expiry sweep failed")
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self.interval.total_seconds()
                )
