"""Live update fan-out to gallery viewers."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from barqpix.domain.photos import Photo

logger = logging.getLogger(__name__)

PHOTO_UPLOADED = "PHOTO_UPLOADED"


class ViewerChannel(Protocol):
    """Connection of a single gallery viewer."""

    @property
    def is_open(self) -> bool:
        """Return true while the viewer is connected."""

    def deliver(self, message: dict[str, object]) -> None:
        """Queue a message for the viewer without waiting for the send."""


class LiveUpdateBroadcaster:
    """Registry of viewer channels keyed by event or quick-share id."""

    def __init__(self) -> None:
        self._channels: dict[str, set[ViewerChannel]] = {}
        self._lock = threading.Lock()

    def subscribe(self, target_id: str, channel: ViewerChannel) -> None:
        """Register a viewer for a target."""
        with self._lock:
            self._channels.setdefault(target_id, set()).add(channel)

    def unsubscribe(self, target_id: str, channel: ViewerChannel) -> None:
        """Remove a viewer; empty targets are dropped from the registry."""
        with self._lock:
            channels = self._channels.get(target_id)
            if channels is None:
                return
            channels.discard(channel)
            if not channels:
                del self._channels[target_id]

    def viewer_count(self, target_id: str) -> int:
        """Return the number of viewers subscribed to a target."""
        with self._lock:
            return len(self._channels.get(target_id, ()))

    def has_target(self, target_id: str) -> bool:
        with self._lock:
            return target_id in self._channels

    def publish(self, target_id: str, message: dict[str, object]) -> int:
        """Send a message to every open channel of a target."""
        with self._lock:
            channels = list(self._channels.get(target_id, ()))
        delivered = 0
        for channel in channels:
            if not channel.is_open:
                continue
            try:
                channel.deliver(message)
            except Exception:
                logger.exception(
                    "Failed to deliver live update", extra={"target_id": target_id}
                )
                continue
            delivered += 1
        return delivered


def photo_uploaded_message(
    photos: Iterable[Photo], uploaded_by: str, timestamp: datetime
) -> dict[str, object]:
    """Build the PHOTO_UPLOADED notification payload."""
    return {
        "type": PHOTO_UPLOADED,
        "photos": [photo_payload(photo) for photo in photos],
        "uploadedBy": uploaded_by,
        "timestamp": timestamp.isoformat(),
    }


def photo_payload(photo: Photo) -> dict[str, object]:
    """Serialize a photo with the client's field names."""
    return {
        "id": str(photo.id),
        "targetType": photo.target_type.value,
        "targetId": photo.target_id,
        "url": photo.url,
        "publicId": photo.public_id,
        "caption": photo.caption,
        "tags": list(photo.tags),
        "uploaderId": photo.uploader_id,
        "uploaderName": photo.uploader_name,
        "uploadedAt": photo.uploaded_at.isoformat(),
    }
