"""
Listener: stays connected to the notifier and reloads on its signal.

Runs as an explicit state machine on an asyncio task:

    DISCONNECTED -> CONNECTING -> CONNECTED -> (close) -> DISCONNECTED -> (delay) -> CONNECTING ...

There is no retry limit and no backoff growth. ``stop()`` is the only way out.
"""

import asyncio
import inspect
import shlex
import sys
from typing import Awaitable, Callable, Optional, Union

import aiohttp
from aiohttp import WSMsgType

from hot_reload.core.config import ApplicationConfig, get_config
from hot_reload.core.exceptions import ApplicationError
from hot_reload.core.models import RELOAD_SIGNAL, ListenerState
from hot_reload.utils.logging_config import StructuredLogger, setup_logging

logger = StructuredLogger(__name__)

ReloadAction = Callable[[], Union[None, Awaitable[None]]]


class Listener:
    """Reconnecting WebSocket client that runs ``on_reload`` for every reload signal."""

    def __init__(
        self,
        url: str,
        on_reload: Optional[ReloadAction] = None,
        reconnect_delay: float = 1.0,
    ):
        self.url = url
        self.on_reload = on_reload
        self.reconnect_delay = reconnect_delay

        self.state = ListenerState.DISCONNECTED
        self.attempts = 0
        self.reloads = 0

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None

    def _set_state(self, state: ListenerState) -> None:
        if state is not self.state:
            logger.debug(f"Listener {self.state.value} -> {state.value}")
            self.state = state

    async def connect(self) -> bool:
        """Try once to open the connection. Returns True when connected."""
        self._set_state(ListenerState.CONNECTING)
        self.attempts += 1

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        try:
            self._ws = await self._session.ws_connect(self.url)
        except (aiohttp.ClientError, OSError) as e:
            logger.debug(f"Could not connect to {self.url}: {e}", attempt=self.attempts)
            self._set_state(ListenerState.DISCONNECTED)
            return False

        self._set_state(ListenerState.CONNECTED)
        logger.info(f"Connected to hot reload server at {self.url}")
        return True

    async def on_message(self, payload) -> bool:
        """Run the reload action for a reload signal; ignore anything else."""
        if self.state is not ListenerState.CONNECTED or payload != RELOAD_SIGNAL:
            return False

        logger.info("Received reload command. Reloading...")
        self.reloads += 1
        if self.on_reload is None:
            return True

        try:
            result = self.on_reload()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Reload action failed: {e}", exc_info=True)
        return True

    def on_close(self) -> None:
        self._ws = None
        self._set_state(ListenerState.DISCONNECTED)
        logger.info("WebSocket connection closed. Attempting to reconnect...")

    async def _receive(self) -> None:
        async for msg in self._ws:
            if msg.type == WSMsgType.TEXT:
                await self.on_message(msg.data)
            elif msg.type == WSMsgType.ERROR:
                break

    async def run(self) -> None:
        """Connect, listen, and reconnect after every close, forever."""
        try:
            while True:
                if await self.connect():
                    try:
                        await self._receive()
                    finally:
                        if self._ws is not None and not self._ws.closed:
                            await self._ws.close()
                    self.on_close()
                await asyncio.sleep(self.reconnect_delay)
        finally:
            self._ws = None
            self._set_state(ListenerState.DISCONNECTED)
            if self._session is not None:
                await self._session.close()
                self._session = None

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the reconnect loop and close the connection."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._set_state(ListenerState.DISCONNECTED)


class ProcessReloader:
    """Reload action that restarts a command on every reload signal."""

    def __init__(self, command: str, stop_timeout: float = 5.0):
        self.command = command
        self.stop_timeout = stop_timeout
        self.process: Optional[asyncio.subprocess.Process] = None

    async def start(self) -> None:
        logger.info(f"Starting application: {self.command}")
        try:
            self.process = await asyncio.create_subprocess_exec(*shlex.split(self.command))
        except OSError as e:
            logger.error(f"Failed to start {self.command}: {e}")
            self.process = None

    async def stop(self) -> None:
        process, self.process = self.process, None
        if process is None or process.returncode is not None:
            return

        logger.info("Stopping application...")
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def __call__(self) -> None:
        await self.restart()


async def run_listener(config: ApplicationConfig) -> None:
    reloader = ProcessReloader(config.listener.command) if config.listener.command else None
    if reloader is not None:
        await reloader.start()

    listener = Listener(config.listener.url, reloader, config.listener.reconnect_delay)
    try:
        await listener.start()
    finally:
        await listener.stop()
        if reloader is not None:
            await reloader.stop()


def main() -> None:
    try:
        config = get_config()
    except (ValueError, ApplicationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(1)

    setup_logging(config.logging)
    config.validate()
    try:
        asyncio.run(run_listener(config))
    except KeyboardInterrupt:
        logger.info("Listener stopped by user")


if __name__ == "__main__":
    main()
