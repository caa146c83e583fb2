"""QR token endpoints: quick-share creation, scans and owner management."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request, status

from barqpix.adapters.firebase_auth import AuthenticatedUser  # noqa: TC001
from barqpix.api.deps import require_admin, require_user
from barqpix.api.schemas import (
    QuickShareRequest,
    ScanRequest,
    stats_payload,
    token_payload,
)
from barqpix.domain.errors import StorageError
from barqpix.domain.qr import GUEST_OWNER_ID, TargetType

if TYPE_CHECKING:
    from barqpix.containers import AppContainer

router = APIRouter(prefix="/qr", tags=["qr"])


@router.post("/quick", status_code=status.HTTP_201_CREATED)
async def create_quick_share(
    body: QuickShareRequest,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Create a quick-share token for a signed-in user."""
    container: AppContainer = request.app.state.container
    token = container.quick_share_service.open_session(
        owner_id=user.uid,
        title=body.title,
        expires_in_hours=_expires_in(container, body),
    )
    return {
        "message": "Quick QR Code generated successfully",
        "qrCode": token_payload(token),
    }


@router.post("/quick/guest", status_code=status.HTTP_201_CREATED)
async def create_guest_quick_share(
    body: QuickShareRequest, request: Request
) -> dict[str, object]:
    """Create a quick-share token for an anonymous creator."""
    container: AppContainer = request.app.state.container
    token = container.quick_share_service.open_session(
        owner_id=GUEST_OWNER_ID,
        title=body.title,
        expires_in_hours=_expires_in(container, body),
    )
    return {
        "message": "Guest Quick QR Code generated successfully",
        "qrCode": token_payload(token),
    }


@router.get("/user")
async def list_user_tokens(
    request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Return every token created by the caller."""
    container: AppContainer = request.app.state.container
    tokens = container.qr_token_store.list_for_owner(user.uid)
    return {"qrCodes": [token_payload(token) for token in tokens], "count": len(tokens)}


@router.get("/event/{event_id}")
async def event_token(
    event_id: str, request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Return the event's token, generating it on first request."""
    container: AppContainer = request.app.state.container
    event = container.photo_service.require_event(event_id)
    token = container.qr_token_store.get_or_create_event_token(event, user.uid)
    return {"message": "QR Code generated successfully", "qrCode": token_payload(token)}


@router.post("/cleanup/expired", dependencies=[Depends(require_admin)])
async def cleanup_expired(request: Request) -> dict[str, object]:
    """Run one expiry sweep immediately."""
    container: AppContainer = request.app.state.container
    result = await container.expiry_sweeper.sweep()
    return {
        "message": "Cleanup completed",
        "deletedCount": result.sessions_deleted,
        "photosDeleted": result.photos_deleted,
        "failures": result.failures,
    }


@router.post("/{reference}/scan")
async def track_scan(
    reference: str, request: Request, body: ScanRequest | None = None
) -> dict[str, object]:
    """Record a scan of a token, quick-share id or event id."""
    container: AppContainer = request.app.state.container
    scan = body or ScanRequest()
    token = container.scan_tracker.track_scan(
        reference, scanner_id=scan.scanner_id, scanner_name=scan.scanner_name
    )
    return {"message": "Scan tracked successfully", "qrCode": token_payload(token)}


@router.get("/{token_id}")
async def get_token(
    token_id: UUID, request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Return one of the caller's tokens."""
    container: AppContainer = request.app.state.container
    token = container.qr_token_store.get_owned(token_id, user.uid)
    return {"qrCode": token_payload(token)}


@router.delete("/{token_id}")
async def delete_token(
    token_id: UUID, request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, str]:
    """Delete a token; quick-share tokens take their session and photos along."""
    container: AppContainer = request.app.state.container
    token = container.qr_token_store.get_owned(token_id, user.uid)
    if token.target_type is TargetType.QUICK and token.quick_id is not None:
        result = await container.quick_share_service.close_session(token.quick_id)
        if not result.closed:
            raise StorageError("Some photos could not be deleted, try again later")
    else:
        container.qr_token_store.delete(token.id)
    return {"message": "QR Code deleted successfully"}


@router.get("/{token_id}/stats")
async def token_stats(
    token_id: UUID, request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Return scan statistics for one of the caller's tokens."""
    container: AppContainer = request.app.state.container
    token = container.qr_token_store.get_owned(token_id, user.uid)
    stats = container.scan_tracker.stats(token.id, user.uid)
    return {"qrCode": token_payload(token), "stats": stats_payload(stats)}


def _expires_in(container: AppContainer, body: QuickShareRequest) -> float:
    if body.expires_in is None:
        return container.settings.default_quick_share_hours
    return body.expires_in
