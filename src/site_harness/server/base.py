"""Reload notification interface shared by build stages and the dev server."""

from __future__ import annotations

from typing import Protocol


class ReloadNotifier(Protocol):
    """Pushes refresh requests and transient messages to connected browsers."""

    def reload(self) -> None:
        """Ask every connected client to refresh."""

    def notify(self, message: str) -> None:
        """Show ``message`` briefly in every connected client."""


class NullNotifier:
    """Notifier used when no dev server is running; calls are no-ops."""

    def reload(self) -> None:
        return None

    def notify(self, message: str) -> None:
        return None
