"""
File system watcher that reports changes to destination files.

This module provides:
- Watchdog-based monitoring of every workspace root
- Debounced change batches (editor save cycles collapse into one)
- Relevance filtering by a caller-supplied predicate (destination globs)
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileMovedEvent,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DestinationEventHandler(FileSystemEventHandler):
    """
    Collects file system events for relevant paths.

    Key behaviors:
    - Ignores directories and paths the predicate rejects
    - Treats create, modify, delete and both ends of a move alike: the
      index has to be rebuilt either way
    - Holds paths until no event has touched them for DEBOUNCE_SECONDS
    """

    DEBOUNCE_SECONDS = 1.0

    def __init__(
        self,
        is_relevant: Callable[[Path], bool],
        debounce_seconds: float | None = None,
    ):
        """
        Initialize the event handler.

        Args:
            is_relevant: Predicate deciding whether a changed path matters
            debounce_seconds: Override for DEBOUNCE_SECONDS
        """
        super().__init__()
        self.is_relevant = is_relevant
        if debounce_seconds is not None:
            self.DEBOUNCE_SECONDS = debounce_seconds

        # path -> time of the last event touching it; written from the
        # observer thread, drained from the polling thread
        self.pending: dict[Path, float] = {}
        self._lock = threading.Lock()

    def _touch(self, path: str | bytes) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        p = Path(path)
        if not self.is_relevant(p):
            return
        with self._lock:
            self.pending[p] = time.time()

    def flush_pending(self) -> list[Path]:
        """Return (and forget) paths whose debounce window has passed."""
        with self._lock:
            now = time.time()
            ready = [p for p, ts in list(self.pending.items()) if now - ts >= self.DEBOUNCE_SECONDS]
            for p in ready:
                del self.pending[p]
        return sorted(ready)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:
        if event.is_directory:
            return
        self._touch(event.src_path)
        self._touch(event.dest_path)


def watch_roots(
    roots: list[Path],
    is_relevant: Callable[[Path], bool],
    recursive: bool = True,
) -> tuple[Observer, DestinationEventHandler]:
    """
    Start watching workspace roots.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = DestinationEventHandler(is_relevant=is_relevant)

    observer = Observer()
    for root in roots:
        observer.schedule(handler, str(root), recursive=recursive)
    observer.start()

    return observer, handler


def run_watch_loop(
    roots: list[Path],
    is_relevant: Callable[[Path], bool],
    on_change: Callable[[list[Path]], None],
) -> None:
    """
    Run the watch loop until interrupted.

    This is a blocking function that polls the handler and passes each
    debounced batch of changed paths to on_change.
    """
    observer, handler = watch_roots(roots, is_relevant)

    try:
        while True:
            time.sleep(0.5)
            changed = handler.flush_pending()
            if changed:
                logger.debug("Destination files changed: %s", ", ".join(str(p) for p in changed))
                on_change(changed)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
