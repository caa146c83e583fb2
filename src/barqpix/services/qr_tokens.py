"""QR token store: creation, resolution and invalidation of tokens."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from barqpix.clock import Clock, utcnow
from barqpix.domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from barqpix.domain.events import EventSummary
from barqpix.domain.qr import QRToken, QuickShareSession, ScanRecord, TargetType


class QRTokenRepository(Protocol):
    """Persistence interface for QR tokens, scan logs and quick-share rows."""

    def insert_token(self, token: QRToken) -> QRToken:
        """Persist an event token and return the stored record."""

    def insert_quick_share(self, token: QRToken) -> QRToken:
        """Persist a quick token together with its session container."""

    def get_token(self, token_id: UUID) -> QRToken | None:
        """Return a token by id, if present."""

    def get_by_quick_id(self, quick_id: UUID) -> QRToken | None:
        """Return the quick token owning a session, if present."""

    def get_event_token(self, event_id: str) -> QRToken | None:
        """Return the token generated for an event, if present."""

    def list_tokens_for_owner(self, owner_id: str) -> list[QRToken]:
        """Return the tokens created by an owner, newest first."""

    def delete_token(self, token_id: UUID) -> None:
        """Delete a token row."""

    def delete_quick_share(self, quick_id: UUID) -> None:
        """Delete remaining photo rows, the session container and its token."""

    def delete_empty_quick_share(self, quick_id: UUID) -> bool:
        """Delete the session and its token only if no photo row remains."""

    def record_scan(
        self, token_id: UUID, scanner_id: str, scanner_name: str, scanned_at: datetime
    ) -> QRToken | None:
        """Atomically increment the scan count and append a scan log entry."""

    def list_scans(self, token_id: UUID) -> list[ScanRecord]:
        """Return scan log entries for a token, newest first."""

    def list_expired_sessions(
        self, now: datetime, limit: int
    ) -> list[QuickShareSession]:
        """Return quick-share sessions whose expiry is strictly before now."""


class QRImageRenderer(Protocol):
    """Renders a landing URL into a scannable image."""

    def render(self, url: str) -> str:
        """Return the QR image as a data URL."""


@dataclass
class QRTokenStore:
    """Creates, resolves and invalidates QR tokens."""

    repository: QRTokenRepository
    renderer: QRImageRenderer
    client_url: str
    clock: Clock = field(default=utcnow)

    def create(  # noqa: PLR0913
        self,
        target_type: TargetType,
        target_id: str | None,
        title: str,
        ttl_minutes: float | None,
        owner_id: str,
    ) -> QRToken:
        """Create a token; quick tokens get their session container atomically."""
        cleaned_title = (title or "").strip()
        if target_type is TargetType.QUICK:
            if not cleaned_title:
                raise ValidationError("Title is required")
            if ttl_minutes is None:
                raise ValidationError("Quick-share tokens require an expiry")
        else:
            if not target_id:
                raise ValidationError("Event tokens require an event id")
            if ttl_minutes is not None:
                raise ValidationError("Event tokens do not expire")

        now = self.clock()
        expires_at = None
        if ttl_minutes is not None:
            if not math.isfinite(ttl_minutes) or ttl_minutes <= 0:
                raise ValidationError("Expiry must be in the future")
            expires_at = now + timedelta(minutes=ttl_minutes)
            if expires_at <= now:
                raise ValidationError("Expiry must be in the future")

        quick_id = uuid4() if target_type is TargetType.QUICK else None
        url = self.landing_url(target_type, str(quick_id or target_id))
        token = QRToken(
            id=uuid4(),
            target_type=target_type,
            target_id=None if target_type is TargetType.QUICK else target_id,
            quick_id=quick_id,
            owner_id=owner_id,
            title=cleaned_title,
            url=url,
            scan_count=0,
            created_at=now,
            expires_at=expires_at,
            qr_code_data=self.renderer.render(url),
        )
        if target_type is TargetType.QUICK:
            return self.repository.insert_quick_share(token)
        return self.repository.insert_token(token)

    def resolve(self, token_or_quick_id: str) -> QRToken:
        """Resolve a token id, a quick-share id or an event id to its token."""
        reference = token_or_quick_id.strip()
        parsed = _parse_uuid(reference)
        if parsed is not None:
            token = self.repository.get_token(parsed)
            if token is None:
                token = self.repository.get_by_quick_id(parsed)
            if token is not None:
                return token
        token = self.repository.get_event_token(reference) if reference else None
        if token is None:
            raise NotFoundError("QR code not found")
        return token

    def get_quick(self, quick_id: UUID) -> QRToken:
        """Return the token behind a quick-share session."""
        token = self.repository.get_by_quick_id(quick_id)
        if token is None:
            raise NotFoundError("Quick share not found")
        return token

    def get_owned(self, token_id: UUID, owner_id: str) -> QRToken:
        """Return a token after checking the caller created it."""
        token = self.repository.get_token(token_id)
        if token is None:
            raise NotFoundError("QR code not found")
        if token.owner_id != owner_id:
            raise PermissionDeniedError("Not authorized to access this QR code")
        return token

    def list_for_owner(self, owner_id: str) -> list[QRToken]:
        """Return the caller's tokens, newest first."""
        tokens = self.repository.list_tokens_for_owner(owner_id)
        return sorted(tokens, key=lambda token: token.created_at, reverse=True)

    def get_or_create_event_token(
        self, event: EventSummary, requester_id: str
    ) -> QRToken:
        """Return the event's token, creating it on first request."""
        if event.organizer_id != requester_id:
            raise PermissionDeniedError(
                "Not authorized to generate QR for this event"
            )
        existing = self.repository.get_event_token(event.id)
        if existing is not None:
            return existing
        return self.create(TargetType.EVENT, event.id, event.title, None, requester_id)

    def delete(self, token_id: UUID) -> None:
        """Remove a token; cascading session cleanup is the caller's job."""
        self.repository.delete_token(token_id)

    def landing_url(self, target_type: TargetType, identifier: str) -> str:
        """Build the client URL encoded in the QR image."""
        base = self.client_url.rstrip("/")
        if target_type is TargetType.QUICK:
            return f"{base}/quick/{identifier}"
        return f"{base}/upload/{identifier}"


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None
