"""Supabase-backed QR token repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from barqpix.domain.errors import StorageError
from barqpix.domain.qr import QRToken, QuickShareSession, ScanRecord, TargetType
from barqpix.services.qr_tokens import QRTokenRepository

_TOKEN_COLUMNS = (
    "id, target_type, target_id, quick_id, owner_id, title, url, qr_code_data, "
    "scan_count, created_at, expires_at"
)


@dataclass
class SupabaseQRTokenRepository(QRTokenRepository):
    """Supabase implementation for QR tokens and quick-share containers.

    Multi-row changes go through Postgres functions so that each one runs in a
    single transaction: ``create_quick_share``, ``delete_quick_share`` and
    ``record_qr_scan`` (which increments ``scan_count`` in SQL).
    """

    client: Client

    def insert_token(self, token: QRToken) -> QRToken:
        """Insert an event token row."""
        response = self.client.table("qr_tokens").insert(_token_row(token)).execute()
        if not response.data:
            raise StorageError("Failed to create QR code")
        return _to_token(response.data[0])

    def insert_quick_share(self, token: QRToken) -> QRToken:
        """Insert a quick token and its session row in one transaction."""
        response = self.client.rpc(
            "create_quick_share", {"p_token": _token_row(token)}
        ).execute()
        if not response.data:
            raise StorageError("Failed to create quick share")
        return _to_token(response.data[0])

    def get_token(self, token_id: UUID) -> QRToken | None:
        """Return a token by id."""
        return self._first("id", str(token_id))

    def get_by_quick_id(self, quick_id: UUID) -> QRToken | None:
        """Return the token for a quick-share id."""
        return self._first("quick_id", str(quick_id))

    def get_event_token(self, event_id: str) -> QRToken | None:
        """Return the token generated for an event."""
        response = (
            self.client.table("qr_tokens")
            .select(_TOKEN_COLUMNS)
            .eq("target_id", event_id)
            .eq("target_type", TargetType.EVENT.value)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_token(response.data[0])

    def list_tokens_for_owner(self, owner_id: str) -> list[QRToken]:
        """Return an owner's tokens, newest first."""
        response = (
            self.client.table("qr_tokens")
            .select(_TOKEN_COLUMNS)
            .eq("owner_id", owner_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_to_token(row) for row in response.data or []]

    def delete_token(self, token_id: UUID) -> None:
        """Delete a token row."""
        self.client.table("qr_tokens").delete().eq("id", str(token_id)).execute()

    def delete_quick_share(self, quick_id: UUID) -> None:
        """Delete photo rows, the session row and the token in one transaction."""
        self.client.rpc("delete_quick_share", {"p_quick_id": str(quick_id)}).execute()

    def delete_empty_quick_share(self, quick_id: UUID) -> bool:
        """Delete a photo-less session and its token; photo rows are never touched."""
        response = self.client.rpc(
            "delete_empty_quick_share", {"p_quick_id": str(quick_id)}
        ).execute()
        return response.data is True

    def record_scan(
        self, token_id: UUID, scanner_id: str, scanner_name: str, scanned_at: datetime
    ) -> QRToken | None:
        """Increment the scan count in SQL and append a scan row."""
        response = self.client.rpc(
            "record_qr_scan",
            {
                "p_token_id": str(token_id),
                "p_scanner_id": scanner_id,
                "p_scanner_name": scanner_name,
                "p_scanned_at": scanned_at.isoformat(),
            },
        ).execute()
        if not response.data:
            return None
        return _to_token(response.data[0])

    def list_scans(self, token_id: UUID) -> list[ScanRecord]:
        """Return scan rows for a token, newest first."""
        response = (
            self.client.table("qr_scans")
            .select("token_id, scanner_id, scanner_name, scanned_at")
            .eq("token_id", str(token_id))
            .order("scanned_at", desc=True)
            .execute()
        )
        return [
            ScanRecord(
                token_id=UUID(row["token_id"]),
                scanner_id=row["scanner_id"],
                scanner_name=row["scanner_name"],
                scanned_at=datetime.fromisoformat(row["scanned_at"]),
            )
            for row in response.data or []
        ]

    def list_expired_sessions(
        self, now: datetime, limit: int
    ) -> list[QuickShareSession]:
        """Return sessions whose expiry is strictly before now."""
        response = (
            self.client.table("quick_shares")
            .select("quick_id, token_id, created_at, expires_at")
            .lt("expires_at", now.isoformat())
            .order("expires_at")
            .limit(limit)
            .execute()
        )
        return [
            QuickShareSession(
                quick_id=UUID(row["quick_id"]),
                token_id=UUID(row["token_id"]),
                created_at=datetime.fromisoformat(row["created_at"]),
                expires_at=datetime.fromisoformat(row["expires_at"]),
            )
            for row in response.data or []
        ]

    def _first(self, column: str, value: str) -> QRToken | None:
        response = (
            self.client.table("qr_tokens")
            .select(_TOKEN_COLUMNS)
            .eq(column, value)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_token(response.data[0])


def _token_row(token: QRToken) -> dict[str, object]:
    return {
        "id": str(token.id),
        "target_type": token.target_type.value,
        "target_id": token.target_id,
        "quick_id": str(token.quick_id) if token.quick_id else None,
        "owner_id": token.owner_id,
        "title": token.title,
        "url": token.url,
        "qr_code_data": token.qr_code_data,
        "scan_count": token.scan_count,
        "created_at": token.created_at.isoformat(),
        "expires_at": token.expires_at.isoformat() if token.expires_at else None,
    }


def _to_token(row: dict[str, object]) -> QRToken:
    return QRToken(
        id=UUID(str(row["id"])),
        target_type=TargetType(row["target_type"]),
        target_id=row.get("target_id"),
        quick_id=UUID(str(row["quick_id"])) if row.get("quick_id") else None,
        owner_id=str(row["owner_id"]),
        title=str(row["title"]),
        url=str(row["url"]),
        scan_count=int(row.get("scan_count") or 0),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        expires_at=(
            datetime.fromisoformat(str(row["expires_at"]))
            if row.get("expires_at")
            else None
        ),
        qr_code_data=row.get("qr_code_data"),
    )
