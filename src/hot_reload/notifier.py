"""
Notifier: watches a directory tree and tells every connected listener to reload.
"""

import asyncio
from typing import List, Optional, Set

from aiohttp import web, WSCloseCode

from hot_reload.core.config import ListenerConfig, NotifierConfig
from hot_reload.core.connections import ConnectionSet
from hot_reload.core.debounce import Debouncer
from hot_reload.core.exceptions import PortInUseError
from hot_reload.core.models import RELOAD_SIGNAL
from hot_reload.handlers.client_script_handler import ClientScriptHandler
from hot_reload.handlers.websocket_handler import ReloadSocketHandler
from hot_reload.middleware import create_middleware_stack
from hot_reload.utils.health_check import HealthChecker, HealthHandler
from hot_reload.utils.logging_config import StructuredLogger
from hot_reload.watcher import DirectoryWatcher


class Notifier:
    """Watch-and-broadcast server.

    Owns its connection set, debounce timer, filesystem observer and HTTP runner.
    All state is mutated from the event loop only; the observer thread hands
    events over with ``call_soon_threadsafe``.
    """

    def __init__(self, config: NotifierConfig, listener_config: Optional[ListenerConfig] = None):
        self.config = config
        self.listener_config = listener_config or ListenerConfig()
        self.logger = StructuredLogger("notifier")

        self.connections = ConnectionSet()
        self.debouncer = Debouncer(config.debounce_delay, self._on_quiet_period)
        self.watcher = DirectoryWatcher(config.watch_root, self.on_filesystem_event)
        self.health_checker = HealthChecker(self)

        self.last_changed: Optional[str] = None
        self.broadcast_count = 0
        self._broadcast_tasks: Set[asyncio.Task] = set()
        self._runner: Optional[web.AppRunner] = None
        self._started = False
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._started

    @property
    def port(self) -> int:
        """Port actually bound; differs from the configured one when that is 0."""
        if self._runner is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple):
                    return address[1]
        return self.config.port

    def create_application(self) -> web.Application:
        """Create the aiohttp application serving the reload channel."""
        app = web.Application(middlewares=create_middleware_stack())

        client_script_handler = ClientScriptHandler(self.listener_config)
        socket_handler = ReloadSocketHandler(self)

        app.router.add_get("/", socket_handler.handle)
        client_script_handler.attach_to_app(app)
        HealthHandler(self.health_checker).attach_to_app(app)
        return app

    async def start(self) -> None:
        """Begin recursive observation of the watch root and accept connections.

        Raises WatchRootError or PortInUseError; both are fatal.
        """
        if self._started:
            return
        self._stopping = False

        self.watcher.start(asyncio.get_running_loop())

        runner = web.AppRunner(self.create_application(), handle_signals=False)
        await runner.setup()
        site = web.TCPSite(runner, host=self.config.host, port=self.config.port)
        try:
            await site.start()
        except OSError as e:
            self.logger.error(f"Failed to bind {self.config.host}:{self.config.port}: {e}")
            await runner.cleanup()
            await asyncio.to_thread(self.watcher.stop)
            raise PortInUseError(self.config.host, self.config.port, original_error=e)

        self._runner = runner
        self._started = True
        self.logger.info(
            f"Hot reload server listening on ws://{self.config.host}:{self.port}",
            host=self.config.host,
            port=self.port
        )

    async def stop(self) -> None:
        """Stop watching, drop every connection and release the socket."""
        if not self._started:
            return
        self._started = False
        self._stopping = True

        # Callbacks queued by the observer thread may still run after the join.
        await asyncio.to_thread(self.watcher.stop)
        self.debouncer.cancel()

        for task in list(self._broadcast_tasks):
            task.cancel()
        if self._broadcast_tasks:
            await asyncio.gather(*self._broadcast_tasks, return_exceptions=True)

        await asyncio.gather(
            *(conn.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown") for conn in self.connections.snapshot()),
            return_exceptions=True
        )
        self.connections.clear()

        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        self.logger.info("Hot reload server stopped")

    def on_connect(self, conn: web.WebSocketResponse) -> None:
        self.connections.add(conn)
        self.logger.info("Client connected for hot reload", connections=len(self.connections))

    def on_disconnect(self, conn: web.WebSocketResponse) -> None:
        if self.connections.discard(conn):
            self.logger.info("Client disconnected", connections=len(self.connections))

    def on_filesystem_event(self, path: str) -> None:
        """Record a change and (re)start the debounce timer."""
        if self._stopping:
            return
        self.last_changed = path
        self.logger.debug(f"Change detected: {path}", changed_path=path)
        self.debouncer.trigger()

    def _on_quiet_period(self) -> None:
        task = asyncio.get_running_loop().create_task(self.broadcast())
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)

    async def broadcast(self) -> int:
        """Send the reload signal to every open connection.

        Returns the number of connections the signal was written to.
        """
        self.logger.info(f"{self.last_changed} was updated. Sending reload command...", changed_path=self.last_changed)
        self.broadcast_count += 1

        pruned = self.connections.prune_closed()
        if pruned:
            self.logger.debug(f"Pruned {pruned} closed connections")

        targets = self.connections.snapshot()
        if not targets:
            return 0

        with self.logger.timing_context("broadcast", connections=len(targets)):
            results: List[bool] = await asyncio.gather(*(self._send(conn) for conn in targets))
        return sum(results)

    async def _send(self, conn: web.WebSocketResponse) -> bool:
        if conn.closed:
            self.connections.discard(conn)
            return False
        try:
            await conn.send_str(RELOAD_SIGNAL)
            return True
        except Exception as e:
            self.logger.warning(f"Failed to send reload to a client: {e}", error_type=type(e).__name__)
            self.connections.discard(conn)
            return False
