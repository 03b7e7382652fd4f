"""
Unit tests for the reconnecting listener.

Goals:
- Reload signals run the reload action exactly once each; other payloads are ignored.
- A failed or closed connection schedules exactly one retry after the fixed delay.
- A listener started before the notifier connects once the notifier comes up.
- stop() ends the reconnect loop.
"""

from __future__ import annotations

import asyncio
import shlex
import socket
import sys
import tempfile
import time
import unittest

from hot_reload.core.config import NotifierConfig
from hot_reload.core.models import RELOAD_SIGNAL, ListenerState
from hot_reload.listener import Listener, ProcessReloader
from hot_reload.notifier import Notifier


async def wait_until(predicate, timeout: float = 3.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestListenerWithNotifier(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.notifier = Notifier(NotifierConfig(watch_root=self._tmp.name, host="127.0.0.1", port=0))
        await self.notifier.start()
        self.reloads = 0
        self.listener = Listener(
            f"ws://127.0.0.1:{self.notifier.port}/",
            on_reload=self._reload,
            reconnect_delay=0.2,
        )

    async def asyncTearDown(self) -> None:
        await self.listener.stop()
        await self.notifier.stop()
        self._tmp.cleanup()

    def _reload(self) -> None:
        self.reloads += 1

    async def _start_connected(self) -> None:
        self.listener.start()
        await wait_until(lambda: self.listener.state is ListenerState.CONNECTED)
        await wait_until(lambda: len(self.notifier.connections) == 1)

    async def test_initial_state_is_disconnected(self) -> None:
        self.assertIs(self.listener.state, ListenerState.DISCONNECTED)
        self.assertEqual(self.listener.attempts, 0)

    async def test_reload_signal_runs_action_once(self) -> None:
        await self._start_connected()

        await self.notifier.broadcast()
        await wait_until(lambda: self.reloads == 1)
        await asyncio.sleep(0.1)

        self.assertEqual(self.reloads, 1)
        self.assertIs(self.listener.state, ListenerState.CONNECTED)

    async def test_other_payloads_are_ignored(self) -> None:
        await self._start_connected()

        for conn in self.notifier.connections:
            await conn.send_str("refresh")
            await conn.send_str("RELOAD")
        await asyncio.sleep(0.1)

        self.assertEqual(self.reloads, 0)
        self.assertIs(self.listener.state, ListenerState.CONNECTED)

    async def test_async_reload_action_is_awaited(self) -> None:
        done = asyncio.Event()

        async def reload_action() -> None:
            await asyncio.sleep(0)
            done.set()

        self.listener.on_reload = reload_action
        await self._start_connected()
        await self.notifier.broadcast()
        await asyncio.wait_for(done.wait(), timeout=1.0)

    async def test_failing_reload_action_keeps_connection(self) -> None:
        def reload_action() -> None:
            raise RuntimeError("cannot reload")

        self.listener.on_reload = reload_action
        await self._start_connected()
        await self.notifier.broadcast()
        await wait_until(lambda: self.listener.reloads == 1)

        self.assertIs(self.listener.state, ListenerState.CONNECTED)

    async def test_reconnects_after_server_closes_connection(self) -> None:
        await self._start_connected()
        self.assertEqual(self.listener.attempts, 1)

        for conn in self.notifier.connections.snapshot():
            await conn.close()
        await wait_until(lambda: self.listener.state is ListenerState.DISCONNECTED)
        closed_at = time.monotonic()

        await asyncio.sleep(self.listener.reconnect_delay / 2)
        self.assertEqual(self.listener.attempts, 1)
        self.assertIs(self.listener.state, ListenerState.DISCONNECTED)

        await wait_until(lambda: self.listener.state is ListenerState.CONNECTED)
        self.assertEqual(self.listener.attempts, 2)
        # closed_at is sampled up to one poll interval after the actual close
        self.assertGreaterEqual(time.monotonic() - closed_at, self.listener.reconnect_delay - 0.02)

    async def test_on_message_outside_connected_state_is_ignored(self) -> None:
        self.assertFalse(await self.listener.on_message(RELOAD_SIGNAL))
        self.assertEqual(self.reloads, 0)


class TestListenerReconnect(unittest.IsolatedAsyncioTestCase):
    async def test_failed_connect_retries_once_per_delay(self) -> None:
        port = free_port()
        listener = Listener(f"ws://127.0.0.1:{port}/", reconnect_delay=0.3)
        listener.start()
        try:
            await asyncio.sleep(0.15)
            self.assertEqual(listener.attempts, 1)
            self.assertIs(listener.state, ListenerState.DISCONNECTED)

            await asyncio.sleep(0.3)
            self.assertEqual(listener.attempts, 2)

            await asyncio.sleep(0.3)
            self.assertEqual(listener.attempts, 3)
        finally:
            await listener.stop()

    async def test_connects_once_notifier_starts(self) -> None:
        port = free_port()
        listener = Listener(f"ws://127.0.0.1:{port}/", reconnect_delay=0.3)
        listener.start()
        with tempfile.TemporaryDirectory() as tmpdir:
            notifier = Notifier(NotifierConfig(watch_root=tmpdir, host="127.0.0.1", port=port))
            try:
                await wait_until(lambda: listener.attempts == 1 and listener.state is ListenerState.DISCONNECTED)
                await notifier.start()

                await wait_until(lambda: listener.state is ListenerState.CONNECTED)
                self.assertEqual(listener.attempts, 2)
                await wait_until(lambda: len(notifier.connections) == 1)
            finally:
                await listener.stop()
                await notifier.stop()

    async def test_stop_cancels_reconnect_loop(self) -> None:
        listener = Listener(f"ws://127.0.0.1:{free_port()}/", reconnect_delay=0.05)
        task = listener.start()
        await asyncio.sleep(0.12)
        await listener.stop()

        attempts = listener.attempts
        await asyncio.sleep(0.15)

        self.assertTrue(task.done())
        self.assertEqual(listener.attempts, attempts)
        self.assertIs(listener.state, ListenerState.DISCONNECTED)


class TestProcessReloader(unittest.IsolatedAsyncioTestCase):
    async def test_restart_replaces_process(self) -> None:
        command = f"{shlex.quote(sys.executable)} -c 'import time; time.sleep(30)'"
        reloader = ProcessReloader(command, stop_timeout=2.0)
        await reloader.start()
        try:
            first = reloader.process
            self.assertIsNotNone(first)

            await reloader()
            self.assertIsNotNone(reloader.process)
            self.assertIsNot(reloader.process, first)
            self.assertIsNotNone(first.returncode)
        finally:
            await reloader.stop()
        self.assertIsNone(reloader.process)

    async def test_missing_command_is_logged_not_raised(self) -> None:
        reloader = ProcessReloader("definitely-not-a-real-command-xyz")
        await reloader.start()
        self.assertIsNone(reloader.process)
        await reloader.stop()


if __name__ == "__main__":
    raise SystemExit(unittest.main())
