"""Request models and response serializers for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from barqpix.domain.photos import PhotoPage
from barqpix.domain.qr import QRToken, ScanRecord, ScanStats
from barqpix.services.broadcaster import photo_payload


class QuickShareRequest(BaseModel):
    """Body of a quick-share creation request."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    expires_in: float | None = Field(default=None, alias="expiresIn")


class ScanRequest(BaseModel):
    """Optional identity of whoever scanned the code."""

    model_config = ConfigDict(populate_by_name=True)

    scanner_id: str | None = Field(default=None, alias="scannerId")
    scanner_name: str | None = Field(default=None, alias="scannerName")


def token_payload(token: QRToken) -> dict[str, object]:
    """Serialize a token with the client's field names."""
    return {
        "id": str(token.id),
        "type": token.target_type.value,
        "eventId": token.target_id,
        "quickId": str(token.quick_id) if token.quick_id else None,
        "userId": token.owner_id,
        "title": token.title,
        "url": token.url,
        "qrCodeData": token.qr_code_data,
        "scanCount": token.scan_count,
        "createdAt": token.created_at.isoformat(),
        "expiresAt": token.expires_at.isoformat() if token.expires_at else None,
    }


def scan_payload(scan: ScanRecord) -> dict[str, object]:
    return {
        "scannerId": scan.scanner_id,
        "scannerName": scan.scanner_name,
        "scannedAt": scan.scanned_at.isoformat(),
    }


def stats_payload(stats: ScanStats) -> dict[str, object]:
    return {
        "totalScans": stats.total_scans,
        "uniqueScanners": stats.unique_scanners,
        "recentScans": [scan_payload(scan) for scan in stats.recent_scans],
        "scanTrend": stats.scan_trend,
    }


def page_payload(page: PhotoPage) -> dict[str, object]:
    """Serialize a gallery page."""
    return {
        "photos": [photo_payload(photo) for photo in page.photos],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
        "hasMore": page.has_more,
    }
