"""Live-reload dev server and file watching."""

from site_harness.server.base import NullNotifier, ReloadNotifier
from site_harness.server.devserver import DevServer, ReloadHub
from site_harness.server.watcher import PollingWatcher

__all__ = [
    "DevServer",
    "NullNotifier",
    "PollingWatcher",
    "ReloadHub",
    "ReloadNotifier",
]
