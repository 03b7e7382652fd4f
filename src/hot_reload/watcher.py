"""
Filesystem watching using watchdog.
Events arrive on the observer thread and are handed to the asyncio loop.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from hot_reload.core.exceptions import WatchRootError
from hot_reload.utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class ChangeForwarder(FileSystemEventHandler):
    """Forwards every change under the root to ``callback`` on the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[str], None]):
        self.loop = loop
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent):
        # watchdog >= 2.3 also reports opened/closed-no-write; those are not changes
        if event.event_type in ("opened", "closed_no_write"):
            return

        path = getattr(event, "dest_path", "") or event.src_path
        if isinstance(path, bytes):
            path = path.decode(errors="replace")

        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self.callback, path)
        except RuntimeError:
            # loop closed between the check and the call
            return


class DirectoryWatcher:
    """Recursive watchdog observer on a single root directory."""

    def __init__(self, root: str, callback: Callable[[str], None]):
        self.root = Path(root)
        self.callback = callback
        self._observer: Optional[Observer] = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start observing. Raises WatchRootError when the root is unusable."""
        if not self.root.exists():
            raise WatchRootError(str(self.root))
        if not self.root.is_dir():
            raise WatchRootError(str(self.root), reason="is not a directory")

        observer = Observer()
        try:
            observer.schedule(ChangeForwarder(loop, self.callback), str(self.root), recursive=True)
            observer.start()
        except OSError as e:
            raise WatchRootError(str(self.root), reason="cannot be watched", original_error=e)

        self._observer = observer
        logger.info(f"Watching {self.root} for changes...", watch_root=str(self.root))

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
