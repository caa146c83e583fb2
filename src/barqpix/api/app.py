"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from barqpix.api.live import serve_viewer
from barqpix.api.photos import router as photos_router
from barqpix.api.qr import router as qr_router
from barqpix.app_logging import configure_logging
from barqpix.config import parse_allowed_origins
from barqpix.containers import AppContainer
from barqpix.domain.errors import (
    AuthenticationError,
    BarqPixError,
    ExpiredError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)

_ERROR_RESPONSES: dict[type[BarqPixError], tuple[int, str]] = {
    ValidationError: (status.HTTP_400_BAD_REQUEST, "validation_error"),
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, "unauthorized"),
    PermissionDeniedError: (status.HTTP_403_FORBIDDEN, "forbidden"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    ExpiredError: (status.HTTP_410_GONE, "expired"),
    StorageError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "storage_error"),
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if state_container.settings.sweeper_enabled:
            state_container.expiry_sweeper.start()
        yield
        await state_container.expiry_sweeper.stop()
        await state_container.close_resources()

    app = FastAPI(title="BarqPix API", lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_allowed_origins(container.settings.cors_allowed_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BarqPixError)
    async def handle_domain_error(request: Request, exc: BarqPixError) -> JSONResponse:
        status_code, code = _error_response(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                "Request failed",
                exc_info=exc,
                extra={"path": request.url.path},
            )
        return JSONResponse(
            status_code=status_code, content={"error": str(exc), "code": code}
        )

    app.include_router(qr_router)
    app.include_router(photos_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.websocket("/ws")
    async def live_updates(
        websocket: WebSocket,
        event_id: str | None = Query(default=None, alias="eventId"),
    ) -> None:
        """Stream PHOTO_UPLOADED notifications for an event or quick share."""
        if not event_id:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        state_container: AppContainer = websocket.app.state.container
        await serve_viewer(websocket, state_container.broadcaster, event_id)

    return app


def _error_response(exc: BarqPixError) -> tuple[int, str]:
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_RESPONSES:
            return _ERROR_RESPONSES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"
