"""
Notice changes under the overlay while a review is open.
"""

import logging
import threading
from typing import Optional

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# Open and read-only close events are not changes
CHANGE_EVENTS = frozenset(
    {
        EVENT_TYPE_CREATED,
        EVENT_TYPE_DELETED,
        EVENT_TYPE_MODIFIED,
        EVENT_TYPE_MOVED,
        EVENT_TYPE_CLOSED,
    }
)


class OverlayChangeHandler(FileSystemEventHandler):
    """Raises a flag when anything under the overlay is written, created, moved or removed."""

    def __init__(self):
        super().__init__()
        self._changed = threading.Event()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in CHANGE_EVENTS:
            return
        logger.debug("%s %s", event.event_type, event.src_path)
        self._changed.set()

    def consume(self) -> bool:
        """Return whether a change was seen since the last call, and reset the flag."""
        changed = self._changed.is_set()
        self._changed.clear()
        return changed


class OverlayWatcher:
    """Watches an overlay directory recursively on a watchdog observer thread."""

    def __init__(self, path: str):
        self.path = path
        self.handler = OverlayChangeHandler()
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        """
        Raises:
            OSError: If the platform watcher cannot be set up (e.g. inotify limits)
        """
        observer = Observer()
        observer.schedule(self.handler, self.path, recursive=True)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def changed(self) -> bool:
        return self.handler.consume()
