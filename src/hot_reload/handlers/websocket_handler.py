"""
WebSocket endpoint carrying reload signals to listeners.
"""

from typing import TYPE_CHECKING

from aiohttp import web, WSMsgType

from hot_reload.utils.logging_config import StructuredLogger

if TYPE_CHECKING:
    from hot_reload.notifier import Notifier

logger = StructuredLogger(__name__)


class ReloadSocketHandler:
    """Accepts listener connections and registers them with the notifier."""

    def __init__(self, notifier: "Notifier"):
        self.notifier = notifier

    async def handle(self, request: web.Request) -> web.StreamResponse:
        ws = web.WebSocketResponse()
        if not ws.can_prepare(request).ok:
            return web.Response(
                text="Hot reload endpoint. Connect with a WebSocket client or load /hot_reload.js.\n"
            )

        await ws.prepare(request)
        self.notifier.on_connect(ws)
        try:
            # Listeners never send anything meaningful; just wait for the close.
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.debug(f"Connection closed with exception {ws.exception()}")
                    break
        finally:
            self.notifier.on_disconnect(ws)

        return ws
