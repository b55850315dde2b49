"""Polling file watcher that routes changes in glob scopes to callbacks."""

from __future__ import annotations

import fnmatch
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

Snapshot = dict[str, int]


@dataclass(slots=True)
class WatchScope:
    """Files matched by ``patterns`` minus ``ignore``, relative to the root."""

    name: str
    patterns: tuple[str, ...]
    callback: Callable[[], None]
    ignore: tuple[str, ...] = ()
    snapshot: Snapshot = field(default_factory=dict)


class PollingWatcher:
    """Detects added, removed and modified files by comparing mtimes."""

    def __init__(self, root: Path, *, interval_seconds: float = 0.5) -> None:
        self.root = root
        self.interval_seconds = interval_seconds
        self._scopes: list[WatchScope] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def watch(
        self,
        name: str,
        patterns: tuple[str, ...],
        callback: Callable[[], None],
        *,
        ignore: tuple[str, ...] = (),
    ) -> None:
        scope = WatchScope(name=name, patterns=patterns, callback=callback, ignore=ignore)
        scope.snapshot = self._snapshot(scope)
        self._scopes.append(scope)
        logger.debug("Watching %s: %d file(s)", name, len(scope.snapshot))

    def poll(self) -> list[str]:
        """Run the callback of every scope that changed since the last poll."""

        fired: list[str] = []
        for scope in self._scopes:
            current = self._snapshot(scope)
            if current == scope.snapshot:
                continue
            scope.snapshot = current
            fired.append(scope.name)
            logger.info("Change detected in %s", scope.name)
            try:
                scope.callback()
            except Exception as error:  # noqa: BLE001
                logger.error("Watch task for %s failed: %s", scope.name, error)
        return fired

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="site-watcher")
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=15)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self.interval_seconds):
            self.poll()

    def _snapshot(self, scope: WatchScope) -> Snapshot:
        snapshot: Snapshot = {}
        for pattern in scope.patterns:
            for path in self.root.glob(pattern):
                relative = path.relative_to(self.root).as_posix()
                if any(fnmatch.fnmatchcase(relative, ignored) for ignored in scope.ignore):
                    continue
                try:
                    if not path.is_file():
                        continue
                    snapshot[relative] = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
        return snapshot
