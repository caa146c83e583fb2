"""Photo upload and gallery endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from barqpix.adapters.firebase_auth import AuthenticatedUser  # noqa: TC001
from barqpix.api.deps import require_user
from barqpix.api.schemas import page_payload
from barqpix.domain.errors import NotFoundError
from barqpix.domain.photos import (
    ANONYMOUS_UPLOADER_ID,
    ANONYMOUS_UPLOADER_NAME,
    PhotoUpload,
    Uploader,
)
from barqpix.services.broadcaster import photo_payload
from barqpix.services.photos import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from barqpix.containers import AppContainer

router = APIRouter(prefix="/photos", tags=["photos"])


@router.get("/quick/{quick_id}")
async def list_quick_share_photos(
    quick_id: str,
    request: Request,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict[str, object]:
    """Return a page of photos from an active quick share."""
    container: AppContainer = request.app.state.container
    session_id = _quick_id(quick_id)
    token = container.quick_share_service.require_active(session_id)
    page = container.quick_share_service.list_photos(session_id, limit, offset)
    payload = page_payload(page)
    payload["session"] = {
        "quickId": str(session_id),
        "title": token.title,
        "expiresAt": token.expires_at.isoformat() if token.expires_at else None,
    }
    return payload


@router.post("/quick/{quick_id}", status_code=status.HTTP_201_CREATED)
async def upload_quick_share_photos(  # noqa: PLR0913
    quick_id: str,
    request: Request,
    photos: list[UploadFile] = File(...),
    captions: list[str] = Form(default=[]),
    tags: list[str] = Form(default=[]),
    uploader_id: str | None = Form(default=None, alias="uploaderId"),
    uploader_name: str | None = Form(default=None, alias="uploaderName"),
) -> dict[str, object]:
    """Append photos to a quick share; no authentication required."""
    container: AppContainer = request.app.state.container
    session_id = _quick_id(quick_id)
    uploads = await _read_uploads(photos, captions, tags)
    stored = await container.quick_share_service.append_photos(
        session_id, uploads, _uploader(uploader_id, uploader_name)
    )
    return {
        "message": "Photos uploaded successfully",
        "photos": [photo_payload(photo) for photo in stored],
    }


@router.delete("/quick/{quick_id}/{photo_id}")
async def delete_quick_share_photo(
    quick_id: str,
    photo_id: UUID,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Delete a quick-share photo on behalf of the share's creator."""
    container: AppContainer = request.app.state.container
    closed = await container.quick_share_service.remove_photo(
        _quick_id(quick_id), photo_id, user.uid
    )
    return {"message": "Photo deleted successfully", "sessionClosed": closed}


@router.post("/{event_id}", status_code=status.HTTP_201_CREATED)
async def upload_event_photos(  # noqa: PLR0913
    event_id: str,
    request: Request,
    photos: list[UploadFile] = File(...),
    captions: list[str] = Form(default=[]),
    tags: list[str] = Form(default=[]),
    uploader_id: str | None = Form(default=None, alias="uploaderId"),
    uploader_name: str | None = Form(default=None, alias="uploaderName"),
) -> dict[str, object]:
    """Append photos to an event gallery."""
    container: AppContainer = request.app.state.container
    uploads = await _read_uploads(photos, captions, tags)
    stored = await container.photo_service.upload_event_photos(
        event_id, uploads, _uploader(uploader_id, uploader_name)
    )
    return {
        "message": "Photos uploaded successfully",
        "photos": [photo_payload(photo) for photo in stored],
    }


@router.get("/{event_id}")
async def list_event_photos(
    event_id: str,
    request: Request,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict[str, object]:
    """Return a page of an event gallery."""
    container: AppContainer = request.app.state.container
    page = container.photo_service.list_event_photos(event_id, limit, offset)
    return page_payload(page)


@router.delete("/{event_id}/photos/{photo_id}")
async def delete_event_photo(
    event_id: str,
    photo_id: UUID,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, str]:
    """Delete a photo from an event gallery; organizer only."""
    container: AppContainer = request.app.state.container
    await container.photo_service.delete_event_photo(event_id, photo_id, user.uid)
    return {"message": "Photo deleted successfully"}


async def _read_uploads(
    files: list[UploadFile], captions: list[str], tags: list[str]
) -> list[PhotoUpload]:
    """Pair each file with the caption and tags sent at the same index."""
    uploads: list[PhotoUpload] = []
    for index, file in enumerate(files):
        content = await file.read()
        uploads.append(
            PhotoUpload(
                filename=file.filename or f"photo-{index + 1}",
                content_type=file.content_type or "",
                content=content,
                caption=_at(captions, index),
                tags=_split_tags(_at(tags, index)),
            )
        )
    return uploads


def _at(values: list[str], index: int) -> str:
    return values[index] if index < len(values) else ""


def _quick_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except ValueError:
        raise NotFoundError("Quick share not found") from None


def _uploader(uploader_id: str | None, uploader_name: str | None) -> Uploader:
    return Uploader(
        id=(uploader_id or "").strip() or ANONYMOUS_UPLOADER_ID,
        name=(uploader_name or "").strip() or ANONYMOUS_UPLOADER_NAME,
    )


def _split_tags(raw: str) -> list[str]:
    return [tag.strip() for tag in raw.split(",") if tag.strip()]
