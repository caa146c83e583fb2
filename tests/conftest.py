"""Shared test fixtures."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from barqpix.adapters.firebase_auth import AuthenticatedUser, IdentityVerifier
from barqpix.api.app import create_app
from barqpix.config import Settings
from barqpix.containers import AppContainer
from barqpix.domain.errors import AuthenticationError, StorageError
from barqpix.domain.events import EventSummary
from barqpix.domain.photos import Photo, PhotoUpload, StoredImage
from barqpix.domain.qr import QRToken, QuickShareSession, ScanRecord, TargetType
from barqpix.services.broadcaster import LiveUpdateBroadcaster, ViewerChannel
from barqpix.services.photos import (
    EventRepository,
    ImageStorage,
    PhotoRepository,
    PhotoService,
)
from barqpix.services.qr_tokens import QRImageRenderer, QRTokenRepository, QRTokenStore
from barqpix.services.quick_share import QuickShareService
from barqpix.services.scans import ScanTracker
from barqpix.services.sweeper import ExpirySweeper

START = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)
ORGANIZER_ID = "organizer-1"
EVENT_ID = "evt-1"
AUTH_TOKENS = {
    "token-owner": "owner-1",
    "token-organizer": ORGANIZER_ID,
    "token-other": "other-1",
}


@dataclass
class ManualClock:
    """Clock that only moves when a test advances it."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo repository for tests."""

    photos: dict[UUID, Photo] = field(default_factory=dict)
    fail_insert: bool = False

    def add_photos(self, photos: list[Photo]) -> list[Photo]:
        if self.fail_insert:
            raise StorageError("insert failed")
        for photo in photos:
            self.photos[photo.id] = photo
        return list(photos)

    def list_photos(
        self, target_type: TargetType, target_id: str, limit: int, offset: int
    ) -> tuple[list[Photo], int]:
        matching = sorted(
            (
                photo
                for photo in self.photos.values()
                if photo.target_type is target_type and photo.target_id == target_id
            ),
            key=lambda photo: photo.uploaded_at,
            reverse=True,
        )
        return matching[offset : offset + limit], len(matching)

    def get_photo(self, photo_id: UUID) -> Photo | None:
        return self.photos.get(photo_id)

    def delete_photo(self, photo_id: UUID) -> None:
        self.photos.pop(photo_id, None)

    def list_photos_uploaded_before(
        self, cutoff: datetime, limit: int
    ) -> list[Photo]:
        stale = [photo for photo in self.photos.values() if photo.uploaded_at < cutoff]
        return sorted(stale, key=lambda photo: photo.uploaded_at)[:limit]

    def for_target(self, target_id: str) -> list[Photo]:
        return [
            photo for photo in self.photos.values() if photo.target_id == target_id
        ]


@dataclass
class InMemoryQRTokenRepository(QRTokenRepository):
    """In-memory token repository; scan increments are serialized by a lock."""

    photo_repository: InMemoryPhotoRepository
    tokens: dict[UUID, QRToken] = field(default_factory=dict)
    sessions: dict[UUID, QuickShareSession] = field(default_factory=dict)
    scans: list[ScanRecord] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def insert_token(self, token: QRToken) -> QRToken:
        self.tokens[token.id] = token
        return token

    def insert_quick_share(self, token: QRToken) -> QRToken:
        assert token.quick_id is not None
        assert token.expires_at is not None
        self.tokens[token.id] = token
        self.sessions[token.quick_id] = QuickShareSession(
            quick_id=token.quick_id,
            token_id=token.id,
            created_at=token.created_at,
            expires_at=token.expires_at,
        )
        return token

    def get_token(self, token_id: UUID) -> QRToken | None:
        return self.tokens.get(token_id)

    def get_by_quick_id(self, quick_id: UUID) -> QRToken | None:
        for token in self.tokens.values():
            if token.quick_id == quick_id:
                return token
        return None

    def get_event_token(self, event_id: str) -> QRToken | None:
        for token in self.tokens.values():
            if token.target_type is TargetType.EVENT and token.target_id == event_id:
                return token
        return None

    def list_tokens_for_owner(self, owner_id: str) -> list[QRToken]:
        return [token for token in self.tokens.values() if token.owner_id == owner_id]

    def delete_token(self, token_id: UUID) -> None:
        self.tokens.pop(token_id, None)

    def delete_quick_share(self, quick_id: UUID) -> None:
        for photo in self.photo_repository.for_target(str(quick_id)):
            if photo.target_type is TargetType.QUICK:
                self.photo_repository.delete_photo(photo.id)
        self.sessions.pop(quick_id, None)
        token = self.get_by_quick_id(quick_id)
        if token is not None:
            self.tokens.pop(token.id, None)

    def delete_empty_quick_share(self, quick_id: UUID) -> bool:
        with self.lock:
            if any(
                photo.target_type is TargetType.QUICK
                for photo in self.photo_repository.for_target(str(quick_id))
            ):
                return False
            if self.sessions.pop(quick_id, None) is None:
                return False
            token = self.get_by_quick_id(quick_id)
            if token is not None:
                self.tokens.pop(token.id, None)
            return True

    def record_scan(
        self, token_id: UUID, scanner_id: str, scanner_name: str, scanned_at: datetime
    ) -> QRToken | None:
        with self.lock:
            token = self.tokens.get(token_id)
            if token is None:
                return None
            updated = replace(token, scan_count=token.scan_count + 1)
            self.tokens[token_id] = updated
            self.scans.append(
                ScanRecord(
                    token_id=token_id,
                    scanner_id=scanner_id,
                    scanner_name=scanner_name,
                    scanned_at=scanned_at,
                )
            )
            return updated

    def list_scans(self, token_id: UUID) -> list[ScanRecord]:
        return [scan for scan in self.scans if scan.token_id == token_id]

    def list_expired_sessions(
        self, now: datetime, limit: int
    ) -> list[QuickShareSession]:
        expired = [
            session for session in self.sessions.values() if session.expires_at < now
        ]
        return sorted(expired, key=lambda session: session.expires_at)[:limit]


@dataclass
class InMemoryEventRepository(EventRepository):
    """In-memory events keyed by id."""

    events: dict[str, EventSummary] = field(
        default_factory=lambda: {
            EVENT_ID: EventSummary(
                id=EVENT_ID, title="Wedding", organizer_id=ORGANIZER_ID
            )
        }
    )

    def get_event(self, event_id: str) -> EventSummary | None:
        return self.events.get(event_id)


@dataclass
class FakeImageStorage(ImageStorage):
    """Image storage that records blobs and can be told to fail."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    destroyed: list[str] = field(default_factory=list)
    fail_upload_at: int | None = None
    fail_destroy: set[str] = field(default_factory=set)
    on_upload: Callable[[], None] | None = None
    uploads: int = 0

    async def upload(self, content: bytes, filename: str, folder: str) -> StoredImage:
        self.uploads += 1
        if self.fail_upload_at is not None and self.uploads >= self.fail_upload_at:
            raise StorageError("upload failed")
        public_id = f"{folder}/{self.uploads}-{filename}"
        self.blobs[public_id] = content
        if self.on_upload is not None:
            self.on_upload()
        return StoredImage(url=f"https://img.test/{public_id}", public_id=public_id)

    async def destroy(self, public_id: str) -> None:
        if public_id in self.fail_destroy:
            raise StorageError(f"destroy failed for {public_id}")
        self.blobs.pop(public_id, None)
        self.destroyed.append(public_id)


@dataclass
class FakeIdentityVerifier(IdentityVerifier):
    """Accepts a fixed set of bearer tokens."""

    tokens: dict[str, str] = field(default_factory=lambda: dict(AUTH_TOKENS))

    def verify(self, id_token: str) -> AuthenticatedUser:
        uid = self.tokens.get(id_token)
        if uid is None:
            raise AuthenticationError("Invalid token")
        return AuthenticatedUser(uid=uid)


class FakeRenderer(QRImageRenderer):
    """Renderer that embeds the URL instead of drawing an image."""

    def render(self, url: str) -> str:
        return f"data:text/plain,{url}"


@dataclass(eq=False)
class RecordingChannel(ViewerChannel):
    """Viewer channel that stores delivered messages."""

    messages: list[dict[str, object]] = field(default_factory=list)
    open: bool = True
    fail: bool = False

    @property
    def is_open(self) -> bool:
        return self.open

    def deliver(self, message: dict[str, object]) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.messages.append(message)


def image_upload(
    name: str = "photo.jpg", caption: str = "", tags: list[str] | None = None
) -> PhotoUpload:
    return PhotoUpload(
        filename=name,
        content_type="image/jpeg",
        content=b"\xff\xd8fake-jpeg",
        caption=caption,
        tags=tags or [],
    )


def auth(token: str = "token-owner") -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        firebase_project_id="barqpix-test",
        cloudinary_cloud_name="demo",
        cloudinary_api_key="cloud-key",
        cloudinary_api_secret="cloud-secret",
        client_url="https://barqpix.test",
        sweeper_enabled=False,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def photo_repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def token_repository(
    photo_repository: InMemoryPhotoRepository,
) -> InMemoryQRTokenRepository:
    return InMemoryQRTokenRepository(photo_repository=photo_repository)


@pytest.fixture
def event_repository() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@pytest.fixture
def image_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def broadcaster() -> LiveUpdateBroadcaster:
    return LiveUpdateBroadcaster()


@pytest.fixture
def qr_token_store(
    token_repository: InMemoryQRTokenRepository, clock: ManualClock
) -> QRTokenStore:
    return QRTokenStore(
        repository=token_repository,
        renderer=FakeRenderer(),
        client_url="https://barqpix.test/",
        clock=clock,
    )


@pytest.fixture
def scan_tracker(qr_token_store: QRTokenStore, clock: ManualClock) -> ScanTracker:
    return ScanTracker(store=qr_token_store, clock=clock)


@pytest.fixture
def photo_service(
    photo_repository: InMemoryPhotoRepository,
    image_storage: FakeImageStorage,
    event_repository: InMemoryEventRepository,
    broadcaster: LiveUpdateBroadcaster,
    clock: ManualClock,
) -> PhotoService:
    return PhotoService(
        repository=photo_repository,
        image_storage=image_storage,
        event_repository=event_repository,
        broadcaster=broadcaster,
        max_files=3,
        max_bytes=1024,
        clock=clock,
    )


@pytest.fixture
def quick_share_service(
    qr_token_store: QRTokenStore, photo_service: PhotoService, clock: ManualClock
) -> QuickShareService:
    return QuickShareService(
        store=qr_token_store, photo_service=photo_service, max_hours=168, clock=clock
    )


@pytest.fixture
def sweeper(
    qr_token_store: QRTokenStore,
    quick_share_service: QuickShareService,
    photo_service: PhotoService,
    clock: ManualClock,
) -> ExpirySweeper:
    return ExpirySweeper(
        store=qr_token_store,
        quick_share_service=quick_share_service,
        photo_service=photo_service,
        interval=timedelta(minutes=30),
        retention=timedelta(days=7),
        clock=clock,
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    broadcaster: LiveUpdateBroadcaster,
    qr_token_store: QRTokenStore,
    scan_tracker: ScanTracker,
    photo_service: PhotoService,
    quick_share_service: QuickShareService,
    sweeper: ExpirySweeper,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        identity_verifier=FakeIdentityVerifier(),
        broadcaster=broadcaster,
        qr_token_store=qr_token_store,
        scan_tracker=scan_tracker,
        photo_service=photo_service,
        quick_share_service=quick_share_service,
        expiry_sweeper=sweeper,
        close_resources=close_resources,
    )


@pytest.fixture
def client(container: AppContainer) -> TestClient:
    return TestClient(create_app(container))
