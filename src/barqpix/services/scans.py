"""Scan tracking with read-time expiry enforcement."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from barqpix.clock import Clock, utcnow
from barqpix.domain.errors import ExpiredError, NotFoundError
from barqpix.domain.photos import ANONYMOUS_UPLOADER_ID, ANONYMOUS_UPLOADER_NAME
from barqpix.domain.qr import QRToken, ScanStats
from barqpix.services.qr_tokens import QRTokenStore

logger = logging.getLogger(__name__)

RECENT_SCAN_LIMIT = 10


@dataclass
class ScanTracker:
    """Records token accesses and rejects expired tokens."""

    store: QRTokenStore
    clock: Clock = field(default=utcnow)

    def track_scan(
        self,
        token_or_quick_id: str,
        scanner_id: str | None = None,
        scanner_name: str | None = None,
    ) -> QRToken:
        """Resolve a token, enforce expiry and record the scan."""
        token = self.store.resolve(token_or_quick_id)
        now = self.clock()
        if token.is_expired(now):
            raise ExpiredError("This QR code has expired.")
        updated = self.store.repository.record_scan(
            token.id,
            scanner_id=scanner_id or ANONYMOUS_UPLOADER_ID,
            scanner_name=scanner_name or ANONYMOUS_UPLOADER_NAME,
            scanned_at=now,
        )
        if updated is None:
            # Deleted between resolve and increment.
            raise NotFoundError("QR code not found")
        logger.info(
            "QR scan recorded",
            extra={"token_id": str(token.id), "scan_count": updated.scan_count},
        )
        return updated

    def stats(self, token_id: UUID, owner_id: str) -> ScanStats:
        """Summarize scan activity for a token owned by the caller."""
        token = self.store.get_owned(token_id, owner_id)
        scans = sorted(
            self.store.repository.list_scans(token.id),
            key=lambda scan: scan.scanned_at,
            reverse=True,
        )
        trend: dict[str, int] = {}
        for scan in scans:
            day = scan.scanned_at.date().isoformat()
            trend[day] = trend.get(day, 0) + 1
        return ScanStats(
            total_scans=len(scans),
            unique_scanners=len({scan.scanner_id for scan in scans}),
            recent_scans=scans[:RECENT_SCAN_LIMIT],
            scan_trend=trend,
        )
