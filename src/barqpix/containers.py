"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from barqpix.adapters.cloudinary_client import HttpxCloudinaryClient
from barqpix.adapters.firebase_auth import FirebaseIdentityVerifier, IdentityVerifier
from barqpix.adapters.qrcode_renderer import QRCodeRenderer
from barqpix.adapters.supabase_event_repository import SupabaseEventRepository
from barqpix.adapters.supabase_photo_repository import SupabasePhotoRepository
from barqpix.adapters.supabase_qr_repository import SupabaseQRTokenRepository
from barqpix.config import Settings
from barqpix.services.broadcaster import LiveUpdateBroadcaster
from barqpix.services.photos import PhotoService
from barqpix.services.qr_tokens import QRTokenStore
from barqpix.services.quick_share import QuickShareService
from barqpix.services.scans import ScanTracker
from barqpix.services.sweeper import ExpirySweeper


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    identity_verifier: IdentityVerifier
    broadcaster: LiveUpdateBroadcaster
    qr_token_store: QRTokenStore
    scan_tracker: ScanTracker
    photo_service: PhotoService
    quick_share_service: QuickShareService
    expiry_sweeper: ExpirySweeper
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    token_repository = SupabaseQRTokenRepository(supabase_client)
    photo_repository = SupabasePhotoRepository(supabase_client)
    event_repository = SupabaseEventRepository(supabase_client)
    cloudinary_client = HttpxCloudinaryClient.create(
        cloud_name=resolved_settings.cloudinary_cloud_name,
        api_key=resolved_settings.cloudinary_api_key,
        api_secret=resolved_settings.cloudinary_api_secret,
    )
    identity_verifier = FirebaseIdentityVerifier(
        project_id=resolved_settings.firebase_project_id,
        service_account_base64=resolved_settings.firebase_service_account_base64,
    )
    broadcaster = LiveUpdateBroadcaster()
    qr_token_store = QRTokenStore(
        repository=token_repository,
        renderer=QRCodeRenderer(),
        client_url=resolved_settings.client_url,
    )
    photo_service = PhotoService(
        repository=photo_repository,
        image_storage=cloudinary_client,
        event_repository=event_repository,
        broadcaster=broadcaster,
        folder=resolved_settings.cloudinary_folder,
        max_files=resolved_settings.max_upload_files,
        max_bytes=resolved_settings.max_upload_bytes,
    )
    quick_share_service = QuickShareService(
        store=qr_token_store,
        photo_service=photo_service,
        max_hours=resolved_settings.max_quick_share_hours,
    )
    expiry_sweeper = ExpirySweeper(
        store=qr_token_store,
        quick_share_service=quick_share_service,
        photo_service=photo_service,
        interval=timedelta(minutes=resolved_settings.cleanup_interval_minutes),
        retention=timedelta(hours=resolved_settings.photo_retention_hours),
    )

    async def close_resources() -> None:
        await cloudinary_client.close()

    return AppContainer(
        settings=resolved_settings,
        identity_verifier=identity_verifier,
        broadcaster=broadcaster,
        qr_token_store=qr_token_store,
        scan_tracker=ScanTracker(qr_token_store),
        photo_service=photo_service,
        quick_share_service=quick_share_service,
        expiry_sweeper=expiry_sweeper,
        close_resources=close_resources,
    )
