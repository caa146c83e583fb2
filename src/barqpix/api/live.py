"""WebSocket viewer channels for live gallery updates."""

import asyncio
import logging

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from barqpix.services.broadcaster import LiveUpdateBroadcaster, ViewerChannel

logger = logging.getLogger(__name__)


class WebSocketChannel(ViewerChannel):
    """Per-connection outbound queue drained by a sender task.

    ``deliver`` only enqueues, and it hands the message to the connection's
    own event loop, so callers on any loop or thread keep publish order.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[dict[str, object]] = asyncio.Queue()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    def deliver(self, message: dict[str, object]) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    async def serve(self) -> None:
        """Send queued messages until the client disconnects."""
        sender = asyncio.create_task(self._send_loop())
        receiver = asyncio.create_task(self._receive_loop())
        done, pending = await asyncio.wait(
            {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
        )
        self._closed = True
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.info(
                    "Live update connection ended",
                    extra={"reason": repr(task.exception())},
                )

    async def _send_loop(self) -> None:
        while True:
            message = await self._queue.get()
            await self.websocket.send_json(message)

    async def _receive_loop(self) -> None:
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return


async def serve_viewer(
    websocket: WebSocket, broadcaster: LiveUpdateBroadcaster, target_id: str
) -> None:
    """Subscribe a connection to a target for as long as it stays open."""
    await websocket.accept()
    channel = WebSocketChannel(websocket)
    broadcaster.subscribe(target_id, channel)
    try:
        await channel.serve()
    finally:
        broadcaster.unsubscribe(target_id, channel)
