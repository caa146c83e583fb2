"""Domain models for gallery photos."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from barqpix.domain.qr import TargetType

ANONYMOUS_UPLOADER_ID = "anonymous"
ANONYMOUS_UPLOADER_NAME = "Anonymous"


@dataclass(frozen=True)
class Photo:
    """Photo owned by an event gallery or a quick-share session."""

    id: UUID
    target_type: TargetType
    target_id: str
    uploader_id: str
    uploader_name: str
    url: str
    public_id: str
    caption: str
    tags: list[str]
    uploaded_at: datetime


@dataclass(frozen=True)
class PhotoUpload:
    """Incoming image file with its per-photo metadata."""

    filename: str
    content_type: str
    content: bytes
    caption: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Uploader:
    """Identity attached to uploaded photos."""

    id: str = ANONYMOUS_UPLOADER_ID
    name: str = ANONYMOUS_UPLOADER_NAME


@dataclass(frozen=True)
class StoredImage:
    """Result of storing an image blob."""

    url: str
    public_id: str


@dataclass(frozen=True)
class PhotoPage:
    """One page of a gallery listing."""

    photos: list[Photo]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.photos) < self.total
