"""Gallery photo storage shared by event galleries and quick shares."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID, uuid4

from barqpix.clock import Clock, utcnow
from barqpix.domain.errors import (
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from barqpix.domain.events import EventSummary
from barqpix.domain.photos import Photo, PhotoPage, PhotoUpload, StoredImage, Uploader
from barqpix.domain.qr import TargetType
from barqpix.services.broadcaster import LiveUpdateBroadcaster, photo_uploaded_message

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class PhotoRepository(Protocol):
    """Persistence interface for photo metadata."""

    def add_photos(self, photos: list[Photo]) -> list[Photo]:
        """Insert photo rows and return them."""

    def list_photos(
        self, target_type: TargetType, target_id: str, limit: int, offset: int
    ) -> tuple[list[Photo], int]:
        """Return a page of photos, newest first, and the total count."""

    def get_photo(self, photo_id: UUID) -> Photo | None:
        """Return a photo by id, if present."""

    def delete_photo(self, photo_id: UUID) -> None:
        """Delete a photo row."""

    def list_photos_uploaded_before(
        self, cutoff: datetime, limit: int
    ) -> list[Photo]:
        """Return photos uploaded strictly before the cutoff."""


class ImageStorage(Protocol):
    """External blob storage for image files."""

    async def upload(
        self, content: bytes, filename: str, folder: str
    ) -> StoredImage:
        """Store an image and return its public URL and key."""

    async def destroy(self, public_id: str) -> None:
        """Delete a stored image; unknown keys are not an error."""


class EventRepository(Protocol):
    """Read access to organizer events."""

    def get_event(self, event_id: str) -> EventSummary | None:
        """Return an event summary, if present."""


@dataclass
class PhotoService:
    """Stores uploaded images and maintains gallery rows."""

    repository: PhotoRepository
    image_storage: ImageStorage
    event_repository: EventRepository
    broadcaster: LiveUpdateBroadcaster
    folder: str = "barqpix"
    max_files: int = 10
    max_bytes: int = 10 * 1024 * 1024
    clock: Clock = field(default=utcnow)

    def validate_uploads(self, uploads: list[PhotoUpload]) -> None:
        """Reject empty, oversized or non-image uploads."""
        if not uploads:
            raise ValidationError("No files uploaded")
        if len(uploads) > self.max_files:
            raise ValidationError(f"At most {self.max_files} photos per upload")
        for upload in uploads:
            if not upload.content_type.startswith("image/"):
                raise ValidationError("Only image files are allowed")
            if not upload.content:
                raise ValidationError(f"{upload.filename} is empty")
            if len(upload.content) > self.max_bytes:
                raise ValidationError(f"{upload.filename} exceeds the size limit")

    async def store_uploads(
        self,
        target_type: TargetType,
        target_id: str,
        uploads: list[PhotoUpload],
        uploader: Uploader,
    ) -> list[Photo]:
        """Upload blobs and insert the matching photo rows."""
        stored = await self.store_blobs(target_type, target_id, uploads)
        return await self.commit(target_type, target_id, uploads, stored, uploader)

    async def store_blobs(
        self, target_type: TargetType, target_id: str, uploads: list[PhotoUpload]
    ) -> list[StoredImage]:
        folder = f"{self.folder}/{target_type.value}/{target_id}"
        stored: list[StoredImage] = []
        try:
            for upload in uploads:
                stored.append(
                    await self.image_storage.upload(
                        upload.content, upload.filename, folder
                    )
                )
        except Exception as exc:
            await self.discard_blobs(stored)
            if isinstance(exc, StorageError):
                raise
            raise StorageError("Failed to store uploaded photos") from exc
        return stored

    async def commit(
        self,
        target_type: TargetType,
        target_id: str,
        uploads: list[PhotoUpload],
        stored: list[StoredImage],
        uploader: Uploader,
    ) -> list[Photo]:
        """Insert rows for stored blobs; blobs are removed if the insert fails."""
        now = self.clock()
        photos = [
            Photo(
                id=uuid4(),
                target_type=target_type,
                target_id=target_id,
                uploader_id=uploader.id,
                uploader_name=uploader.name,
                url=image.url,
                public_id=image.public_id,
                caption=upload.caption.strip(),
                tags=[tag.strip() for tag in upload.tags if tag.strip()],
                uploaded_at=now,
            )
            for upload, image in zip(uploads, stored, strict=True)
        ]
        try:
            return self.repository.add_photos(photos)
        except Exception as exc:
            await self.discard_blobs(stored)
            if isinstance(exc, StorageError):
                raise
            raise StorageError("Failed to save photo metadata") from exc

    async def discard_blobs(self, stored: list[StoredImage]) -> None:
        """Best-effort removal of blobs that never got a photo row."""
        for image in stored:
            try:
                await self.image_storage.destroy(image.public_id)
            except Exception:
                logger.exception(
                    "Failed to remove orphaned image",
                    extra={"public_id": image.public_id},
                )

    async def discard(self, photo: Photo) -> None:
        """Delete a photo's blob, then its row."""
        await self.image_storage.destroy(photo.public_id)
        self.repository.delete_photo(photo.id)

    def announce(
        self, target_id: str, photos: list[Photo], uploader: Uploader
    ) -> None:
        """Post-commit hook: notify live viewers, never failing the upload."""
        try:
            message = photo_uploaded_message(photos, uploader.name, self.clock())
            delivered = self.broadcaster.publish(target_id, message)
        except Exception:
            logger.exception(
                "Failed to broadcast photo upload", extra={"target_id": target_id}
            )
            return
        logger.info(
            "Photo upload broadcast",
            extra={"target_id": target_id, "viewers": delivered},
        )

    async def upload_event_photos(
        self, event_id: str, uploads: list[PhotoUpload], uploader: Uploader
    ) -> list[Photo]:
        """Append photos to an event gallery."""
        self.require_event(event_id)
        self.validate_uploads(uploads)
        photos = await self.store_uploads(TargetType.EVENT, event_id, uploads, uploader)
        self.announce(event_id, photos, uploader)
        return photos

    def list_event_photos(self, event_id: str, limit: int, offset: int) -> PhotoPage:
        """Return a page of an event gallery."""
        self.require_event(event_id)
        return self.page(TargetType.EVENT, event_id, limit, offset)

    async def delete_event_photo(
        self, event_id: str, photo_id: UUID, requester_id: str
    ) -> None:
        """Delete a photo from an event gallery on behalf of its organizer."""
        event = self.require_event(event_id)
        if event.organizer_id != requester_id:
            raise PermissionDeniedError("Only the organizer can delete photos")
        photo = self.repository.get_photo(photo_id)
        if (
            photo is None
            or photo.target_type is not TargetType.EVENT
            or photo.target_id != event_id
        ):
            raise NotFoundError("Photo not found")
        await self.discard(photo)

    def require_event(self, event_id: str) -> EventSummary:
        event = self.event_repository.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def page(
        self, target_type: TargetType, target_id: str, limit: int, offset: int
    ) -> PhotoPage:
        """Fetch one validated page of photos."""
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        photos, total = self.repository.list_photos(
            target_type, target_id, limit, offset
        )
        return PhotoPage(photos=photos, total=total, limit=limit, offset=offset)
