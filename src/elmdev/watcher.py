"""Source watching and the rebuild loop fed by it."""
from __future__ import annotations

import hashlib
import logging
import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .build import BuildLaunchError, BuildTrigger
from .config import DevConfig
from .events import ChangeEvent, ChangeKind, WatchError

logger = logging.getLogger(__name__)

# size, content digest, mtime_ns, mode, uid, gid
Signature = Tuple[int, bytes, int, int, int, int]
Snapshot = Dict[Path, Signature]
ChannelItem = Optional[Union[ChangeEvent, WatchError]]
Channel = "queue.Queue[ChannelItem]"


class WatchSetupError(Exception):
    """Raised when the source directory cannot be subscribed to."""


def is_qualifying(event: ChangeEvent, extension: str) -> bool:
    """Whether ``event`` is a data modification touching a source file."""

    if event.kind is not ChangeKind.MODIFY_DATA:
        return False
    suffix = "." + extension.lstrip(".")
    return any(path.suffix == suffix for path in event.paths)


@dataclass
class WatchStats:
    """Counters reported when the loop exits."""

    events: int = 0
    builds: int = 0
    errors: int = 0


class WatchLoop:
    """Consumes change events and fires a build for each qualifying one."""

    def __init__(self, config: DevConfig, build: BuildTrigger, *, poll_timeout: float = 0.5):
        self._config = config
        self._build = build
        self._poll_timeout = poll_timeout
        self.stats = WatchStats()

    def run(self, channel: Channel, stop_event: Optional[threading.Event] = None) -> None:
        """Run until the channel is closed with ``None`` or ``stop_event`` is set.

        A build that cannot be launched raises ``BuildLaunchError`` out of the
        loop; watcher errors are logged and skipped.
        """

        logger.info("Watching %s for .%s changes", self._config.source_dir, self._config.extension)
        try:
            while stop_event is None or not stop_event.is_set():
                try:
                    item = channel.get(timeout=self._poll_timeout if stop_event is not None else None)
                except queue.Empty:
                    continue
                if item is None:
                    break
                self.handle(item)
        finally:
            logger.info(
                "Watch loop stopped after %s events, %s builds, %s errors",
                self.stats.events,
                self.stats.builds,
                self.stats.errors,
            )

    def handle(self, item: Union[ChangeEvent, WatchError]) -> bool:
        """Process one channel item, returning True when a build was fired."""

        if isinstance(item, WatchError):
            self.stats.errors += 1
            logger.error("Watch error: %s", item)
            return False

        self.stats.events += 1
        if not is_qualifying(item, self._config.extension):
            logger.debug("Ignoring %s for %s", item.kind.value, ", ".join(map(str, item.paths)))
            return False

        logger.info("Change detected in %s", ", ".join(map(str, item.paths)))
        self._build.trigger()
        self.stats.builds += 1
        return True


class _ChannelHandler(FileSystemEventHandler):
    def __init__(self, watcher: "SourceWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._watcher.handle_fs_event(event)


class SourceWatcher:
    """Subscribes to the source tree and feeds a channel with change events.

    watchdog reports both content writes and attribute changes as plain
    modifications, so each one is compared against a snapshot of the tree
    holding file stats and content digests. New timestamps, mode or owner over
    unchanged bytes make a metadata change; anything else is a data change, so
    repeated notifications for one write each count.
    """

    def __init__(self, config: DevConfig, channel: Channel):
        self._config = config
        self._channel = channel
        self._observer: Optional[Observer] = None
        self._snapshot: Snapshot = {}

    def start(self) -> None:
        root = self._config.source_dir
        if not root.is_dir():
            raise WatchSetupError(f"Source directory {root} does not exist")
        self.seed()
        observer = Observer()
        observer.schedule(_ChannelHandler(self), str(root), recursive=True)
        try:
            observer.start()
        except OSError as exc:
            raise WatchSetupError(f"Unable to watch {root}: {exc}") from exc
        self._observer = observer
        logger.debug("Subscribed to %s (%s tracked files)", root, len(self._snapshot))

    def stop(self) -> None:
        """Stop the observer and close the channel."""

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._channel.put(None)

    def seed(self) -> None:
        """Record the current state of the tree as the comparison baseline."""

        self._snapshot = self._scan()

    def handle_fs_event(self, event: FileSystemEvent) -> ChannelItem:
        """Translate a watchdog event and push it onto the channel."""

        item = self._translate(event)
        if item is not None:
            self._channel.put(item)
        return item

    def _translate(self, event: FileSystemEvent) -> ChannelItem:
        src = Path(os.fsdecode(event.src_path))

        if event.event_type == EVENT_TYPE_CREATED:
            if not event.is_directory:
                self._remember(src)
            return ChangeEvent(ChangeKind.CREATE, (src,))

        if event.event_type == EVENT_TYPE_DELETED:
            self._snapshot.pop(src, None)
            return ChangeEvent(ChangeKind.REMOVE, (src,))

        if event.event_type == EVENT_TYPE_MOVED:
            dest = Path(os.fsdecode(event.dest_path))
            self._snapshot.pop(src, None)
            if not event.is_directory:
                self._remember(dest)
            return ChangeEvent(ChangeKind.RENAME, (src, dest))

        if event.event_type == EVENT_TYPE_MODIFIED:
            if event.is_directory:
                return ChangeEvent(ChangeKind.MODIFY_OTHER, (src,))
            kind = self._classify_modification(src)
            if isinstance(kind, WatchError):
                return kind
            return ChangeEvent(kind, (src,))

        # opened/closed notifications carry no change
        return None

    def _classify_modification(self, path: Path) -> Union[ChangeKind, WatchError]:
        try:
            current = _signature(path)
        except FileNotFoundError:
            self._snapshot.pop(path, None)
            return ChangeKind.MODIFY_OTHER
        except OSError as exc:
            return WatchError(f"Unable to read modified file: {exc}", path)

        previous = self._snapshot.get(path)
        self._snapshot[path] = current
        # same bytes with new timestamps or permissions
        if previous is not None and previous[:2] == current[:2] and previous[2:] != current[2:]:
            return ChangeKind.MODIFY_METADATA
        return ChangeKind.MODIFY_DATA

    def _remember(self, path: Path) -> None:
        try:
            self._snapshot[path] = _signature(path)
        except OSError:
            self._snapshot.pop(path, None)

    def _scan(self) -> Snapshot:
        results: Snapshot = {}
        for path in _iter_files(self._config.source_dir):
            try:
                results[path] = _signature(path)
            except OSError:
                continue
        return results


def _iter_files(root: Path) -> Iterable[Path]:
    for path in root.rglob("*"):
        if path.is_file():
            yield path


def _signature(path: Path) -> Signature:
    stat = path.stat()
    digest = hashlib.blake2b(path.read_bytes(), digest_size=16).digest()
    return (stat.st_size, digest, stat.st_mtime_ns, stat.st_mode, stat.st_uid, stat.st_gid)


def run_watch(config: DevConfig, build: BuildTrigger, stop_event: Optional[threading.Event] = None) -> None:
    """Body of the background watch task.

    Ends quietly (after logging) when the source tree cannot be watched or a
    rebuild cannot be launched; the HTTP server is unaffected either way.
    """

    channel: Channel = queue.Queue()
    watcher = SourceWatcher(config, channel)
    try:
        watcher.start()
    except WatchSetupError as exc:
        logger.error("Error running Elm dev: %s", exc)
        return

    try:
        WatchLoop(config, build).run(channel, stop_event)
    except BuildLaunchError as exc:
        logger.error("Error running Elm dev: %s", exc)
    finally:
        watcher.stop()
