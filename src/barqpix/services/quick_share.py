"""Quick-share sessions: time-limited anonymous photo drops.

A session is Active while ``now < expires_at``. Once the wall clock reaches the
expiry every access (scan, upload, listing) is rejected with ``ExpiredError``
even though the rows may still exist; the sweeper reclaims them later. The
state is always derived from ``expires_at`` and never stored.
"""

import logging
import math
from dataclasses import dataclass, field
from uuid import UUID

from barqpix.clock import Clock, utcnow
from barqpix.domain.errors import (
    ExpiredError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from barqpix.domain.photos import Photo, PhotoPage, PhotoUpload, Uploader
from barqpix.domain.qr import QRToken, SessionState, TargetType
from barqpix.services.photos import PhotoService
from barqpix.services.qr_tokens import QRTokenStore

logger = logging.getLogger(__name__)

_EXPIRED_MESSAGE = "This quick share has expired."
_PURGE_BATCH = 100


@dataclass(frozen=True)
class CloseResult:
    """Outcome of purging a quick-share session."""

    photos_deleted: int
    failures: int

    @property
    def closed(self) -> bool:
        return self.failures == 0


@dataclass
class QuickShareService:
    """Lifecycle of quick-share sessions and their photos."""

    store: QRTokenStore
    photo_service: PhotoService
    max_hours: float = 168
    clock: Clock = field(default=utcnow)

    def open_session(
        self, owner_id: str, title: str, expires_in_hours: float
    ) -> QRToken:
        """Create a quick token and its session container."""
        if not math.isfinite(expires_in_hours) or expires_in_hours <= 0:
            raise ValidationError("expiresIn must be positive")
        if expires_in_hours > self.max_hours:
            raise ValidationError(
                f"expiresIn must be at most {self.max_hours:g} hours"
            )
        token = self.store.create(
            TargetType.QUICK,
            None,
            title,
            ttl_minutes=expires_in_hours * 60,
            owner_id=owner_id,
        )
        logger.info(
            "Quick share opened",
            extra={"quick_id": str(token.quick_id), "expires_at": token.expires_at},
        )
        return token

    def session_state(self, quick_id: UUID) -> SessionState:
        """Return the derived state of a session that still exists."""
        token = self.store.get_quick(quick_id)
        if token.is_expired(self.clock()):
            return SessionState.EXPIRED
        return SessionState.ACTIVE

    def require_active(self, quick_id: UUID) -> QRToken:
        """Return the session token, rejecting missing or expired sessions."""
        token = self.store.get_quick(quick_id)
        if token.is_expired(self.clock()):
            raise ExpiredError(_EXPIRED_MESSAGE)
        return token

    async def append_photos(
        self, quick_id: UUID, uploads: list[PhotoUpload], uploader: Uploader
    ) -> list[Photo]:
        """Append photos to an Active session and notify its viewers."""
        self.require_active(quick_id)
        self.photo_service.validate_uploads(uploads)
        target_id = str(quick_id)
        stored = await self.photo_service.store_blobs(
            TargetType.QUICK, target_id, uploads
        )
        try:
            self.require_active(quick_id)
        except (ExpiredError, NotFoundError):
            await self.photo_service.discard_blobs(stored)
            raise
        photos = await self.photo_service.commit(
            TargetType.QUICK, target_id, uploads, stored, uploader
        )
        self.photo_service.announce(target_id, photos, uploader)
        return photos

    def list_photos(self, quick_id: UUID, limit: int, offset: int) -> PhotoPage:
        """Return a page of photos from an Active session."""
        self.require_active(quick_id)
        return self.photo_service.page(TargetType.QUICK, str(quick_id), limit, offset)

    async def remove_photo(
        self, quick_id: UUID, photo_id: UUID, requester_id: str
    ) -> bool:
        """Delete one photo; returns true when the session was closed as a result."""
        token = self.require_active(quick_id)
        if token.owner_id != requester_id:
            raise PermissionDeniedError("Only the creator can delete photos")
        repository = self.photo_service.repository
        photo = repository.get_photo(photo_id)
        if (
            photo is None
            or photo.target_type is not TargetType.QUICK
            or photo.target_id != str(quick_id)
        ):
            raise NotFoundError("Photo not found")
        await self.photo_service.discard(photo)
        if not self.store.repository.delete_empty_quick_share(quick_id):
            return False
        logger.info(
            "Quick share emptied and removed", extra={"quick_id": str(quick_id)}
        )
        return True

    async def close_session(self, quick_id: UUID) -> CloseResult:
        """Delete every photo of a session, then the session and its token.

        Photos whose blob cannot be removed are kept, and so are the session
        and token, so that a later pass can retry.
        """
        target_id = str(quick_id)
        deleted = 0
        failures = 0
        for photo in self._all_photos(target_id):
            try:
                await self.photo_service.discard(photo)
            except Exception:
                failures += 1
                logger.exception(
                    "Failed to delete quick-share photo",
                    extra={"quick_id": target_id, "photo_id": str(photo.id)},
                )
                continue
            deleted += 1
        if failures == 0:
            self.store.repository.delete_quick_share(quick_id)
        return CloseResult(photos_deleted=deleted, failures=failures)

    def _all_photos(self, target_id: str) -> list[Photo]:
        repository = self.photo_service.repository
        collected: list[Photo] = []
        while True:
            photos, total = repository.list_photos(
                TargetType.QUICK, target_id, _PURGE_BATCH, len(collected)
            )
            collected.extend(photos)
            if not photos or len(collected) >= total:
                return collected
