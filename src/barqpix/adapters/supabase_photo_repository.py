"""Supabase-backed photo repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from barqpix.domain.errors import StorageError
from barqpix.domain.photos import Photo
from barqpix.domain.qr import TargetType
from barqpix.services.photos import PhotoRepository

_PHOTO_COLUMNS = (
    "id, target_type, target_id, uploader_id, uploader_name, url, public_id, "
    "caption, tags, uploaded_at"
)


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for gallery photo rows."""

    client: Client

    def add_photos(self, photos: list[Photo]) -> list[Photo]:
        """Insert photo rows in a single request."""
        if not photos:
            return []
        response = (
            self.client.table("photos")
            .insert([_photo_row(photo) for photo in photos])
            .execute()
        )
        if not response.data:
            raise StorageError("Failed to save photo metadata")
        return [_to_photo(row) for row in response.data]

    def list_photos(
        self, target_type: TargetType, target_id: str, limit: int, offset: int
    ) -> tuple[list[Photo], int]:
        """Return a page of photos, newest first, with the exact total."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS, count="exact")
            .eq("target_type", target_type.value)
            .eq("target_id", target_id)
            .order("uploaded_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        photos = [_to_photo(row) for row in response.data or []]
        total = response.count if response.count is not None else len(photos)
        return photos, total

    def get_photo(self, photo_id: UUID) -> Photo | None:
        """Return a photo by id."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .eq("id", str(photo_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_photo(response.data[0])

    def delete_photo(self, photo_id: UUID) -> None:
        """Delete a photo row."""
        self.client.table("photos").delete().eq("id", str(photo_id)).execute()

    def list_photos_uploaded_before(
        self, cutoff: datetime, limit: int
    ) -> list[Photo]:
        """Return the oldest photos uploaded before the cutoff."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .lt("uploaded_at", cutoff.isoformat())
            .order("uploaded_at")
            .limit(limit)
            .execute()
        )
        return [_to_photo(row) for row in response.data or []]


def _photo_row(photo: Photo) -> dict[str, object]:
    return {
        "id": str(photo.id),
        "target_type": photo.target_type.value,
        "target_id": photo.target_id,
        "uploader_id": photo.uploader_id,
        "uploader_name": photo.uploader_name,
        "url": photo.url,
        "public_id": photo.public_id,
        "caption": photo.caption,
        "tags": list(photo.tags),
        "uploaded_at": photo.uploaded_at.isoformat(),
    }


def _to_photo(row: dict[str, object]) -> Photo:
    return Photo(
        id=UUID(str(row["id"])),
        target_type=TargetType(row["target_type"]),
        target_id=str(row["target_id"]),
        uploader_id=str(row["uploader_id"]),
        uploader_name=str(row["uploader_name"]),
        url=str(row["url"]),
        public_id=str(row["public_id"]),
        caption=str(row.get("caption") or ""),
        tags=[str(tag) for tag in row.get("tags") or []],
        uploaded_at=datetime.fromisoformat(str(row["uploaded_at"])),
    )
