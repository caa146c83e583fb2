"""Domain models for QR tokens and quick-share sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

GUEST_OWNER_ID = "guest"


class TargetType(str, Enum):
    """What a QR token points at."""

    EVENT = "event"
    QUICK = "quick"


@dataclass(frozen=True)
class QRToken:
    """Persisted record backing a scannable code."""

    id: UUID
    target_type: TargetType
    target_id: str | None
    quick_id: UUID | None
    owner_id: str
    title: str
    url: str
    scan_count: int
    created_at: datetime
    expires_at: datetime | None = None
    qr_code_data: str | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return true once the wall clock has reached the expiry time."""
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class ScanRecord:
    """Single recorded resolution of a token."""

    token_id: UUID
    scanner_id: str
    scanner_name: str
    scanned_at: datetime


@dataclass(frozen=True)
class ScanStats:
    """Aggregated scan activity for one token."""

    total_scans: int
    unique_scanners: int
    recent_scans: list[ScanRecord]
    scan_trend: dict[str, int]


@dataclass(frozen=True)
class QuickShareSession:
    """Container row owned by a quick-share token."""

    quick_id: UUID
    token_id: UUID
    created_at: datetime
    expires_at: datetime


class SessionState(str, Enum):
    """Derived lifecycle state of a quick-share session."""

    ACTIVE = "active"
    EXPIRED = "expired"
