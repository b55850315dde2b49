"""Local HTTP server with live reload for the built site.

HTML pages are served with a small client script injected before
``</body>``. The script subscribes to a server-sent-events stream and
reacts to two events: ``reload`` refreshes the page, ``notify`` shows a
transient banner.
"""

from __future__ import annotations

import functools
import io
import json
import logging
import os
import queue
import re
import threading
import webbrowser
from collections.abc import Callable
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

CLIENT_SCRIPT_PATH = "/__site_harness__/client.js"
EVENTS_PATH = "/__site_harness__/events"
KEEPALIVE_SECONDS = 15.0

CLIENT_SNIPPET = f'<script async src="{CLIENT_SCRIPT_PATH}"></script>'.encode()

CLIENT_SCRIPT = f"""\
(function () {{
  var source = new EventSource("{EVENTS_PATH}");
  source.addEventListener("reload", function () {{ window.location.reload(); }});
  source.addEventListener("notify", function (event) {{
    var banner = document.createElement("div");
    banner.textContent = event.data;
    banner.style.cssText = "position:fixed;top:0;right:0;z-index:99999;padding:12px 18px;" +
      "background:#1b2032;color:#fff;font:14px sans-serif;border-bottom-left-radius:5px";
    document.body.appendChild(banner);
    setTimeout(function () {{ banner.remove(); }}, 3000);
  }});
}})();
""".encode()

_BODY_CLOSE = re.compile(rb"</body\s*>", re.IGNORECASE)


class ReloadHub:
    """Fan-out of reload/notify events to connected event-stream clients."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue[tuple[str, str] | None]] = []

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> queue.Queue[tuple[str, str] | None]:
        subscriber: queue.Queue[tuple[str, str] | None] = queue.Queue()
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: queue.Queue[tuple[str, str] | None]) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def publish(self, event: str, data: str = "") -> int:
        """Queue ``event`` for every subscriber; returns how many got it."""

        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber.put((event, data))
        return len(subscribers)

    def close(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.put(None)


def inject_client_snippet(html: bytes) -> bytes:
    """Insert the live-reload script before the last ``</body>`` tag."""

    matches = list(_BODY_CLOSE.finditer(html))
    if not matches:
        return html + CLIENT_SNIPPET
    position = matches[-1].start()
    return html[:position] + CLIENT_SNIPPET + html[position:]


class _SiteHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    hub: ReloadHub


class _SiteRequestHandler(SimpleHTTPRequestHandler):
    server: _SiteHTTPServer

    def do_GET(self) -> None:  # noqa: N802
        route = urlsplit(self.path).path
        if route == CLIENT_SCRIPT_PATH:
            self._send_client_script()
            return
        if route == EVENTS_PATH:
            self._stream_events()
            return
        super().do_GET()

    def send_head(self):  # type: ignore[override]
        path = self.translate_path(self.path)
        if os.path.isdir(path):
            if not urlsplit(self.path).path.endswith("/"):
                return super().send_head()
            path = os.path.join(path, "index.html")
        if not path.endswith((".html", ".htm")) or not os.path.isfile(path):
            return super().send_head()

        try:
            with open(path, "rb") as handle:
                body = inject_client_snippet(handle.read())
        except OSError:
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
            return None
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        return io.BytesIO(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_client_script(self) -> None:
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/javascript; charset=utf-8")
        self.send_header("Content-Length", str(len(CLIENT_SCRIPT)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(CLIENT_SCRIPT)

    def _stream_events(self) -> None:
        self.close_connection = True
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        subscriber = self.server.hub.subscribe()
        try:
            self.wfile.write(b": connected\n\n")
            self.wfile.flush()
            while True:
                try:
                    item = subscriber.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    self.wfile.write(b": keepalive\n\n")
                    self.wfile.flush()
                    continue
                if item is None:
                    return
                event, data = item
                lines = "".join(f"data: {line}\n" for line in (data.splitlines() or [""]))
                self.wfile.write(f"event: {event}\n{lines}\n".encode())
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Live-reload client disconnected")
        finally:
            self.server.hub.unsubscribe(subscriber)


class _StatusHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    status_provider: Callable[[], dict[str, object]]


class _StatusRequestHandler(BaseHTTPRequestHandler):
    server: _StatusHTTPServer

    def do_GET(self) -> None:  # noqa: N802
        body = json.dumps(self.server.status_provider(), indent=2).encode()
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("ui %s - %s", self.address_string(), format % args)


class DevServer:
    """Owned live-reload server over a build output directory.

    Use as a context manager or call ``start``/``stop`` explicitly. ``start``
    on a running server is a no-op. ``port=0`` binds an ephemeral port; the
    bound value is available from ``port`` after start.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        base_dir: Path,
        host: str = "localhost",
        port: int = 3000,
        ui_port: int | None = None,
        open_browser: bool = False,
    ) -> None:
        self.base_dir = base_dir
        self.host = host
        self._requested_port = port
        self._requested_ui_port = ui_port
        self.open_browser = open_browser
        self.hub = ReloadHub()
        self._lock = threading.Lock()
        self._httpd: _SiteHTTPServer | None = None
        self._ui_httpd: ThreadingHTTPServer | None = None
        self._threads: list[threading.Thread] = []
        self.reload_count = 0
        self.notifications: list[str] = []

    @property
    def running(self) -> bool:
        return self._httpd is not None

    @property
    def port(self) -> int:
        if self._httpd is None:
            return self._requested_port
        return int(self._httpd.server_address[1])

    @property
    def ui_port(self) -> int | None:
        if self._ui_httpd is None:
            return self._requested_ui_port
        return int(self._ui_httpd.server_address[1])

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def start(self) -> None:
        with self._lock:
            if self._httpd is not None:
                return
            self.base_dir.mkdir(parents=True, exist_ok=True)
            handler = functools.partial(_SiteRequestHandler, directory=str(self.base_dir))
            httpd = _SiteHTTPServer((self.host, self._requested_port), handler)
            httpd.hub = self.hub
            self._httpd = httpd
            self._spawn(httpd, "dev-server")
            if self._requested_ui_port is not None:
                try:
                    ui_httpd = _StatusHTTPServer(
                        (self.host, self._requested_ui_port),
                        _StatusRequestHandler,
                    )
                except OSError:
                    self._shutdown_locked()
                    raise
                ui_httpd.status_provider = self.status
                self._ui_httpd = ui_httpd
                self._spawn(ui_httpd, "dev-server-ui")

        logger.info("Serving files from %s at %s", self.base_dir, self.url)
        if self._ui_httpd is not None:
            logger.info("UI status at http://%s:%s/", self.host, self.ui_port)
        if self.open_browser:
            webbrowser.open(self.url)

    def stop(self) -> None:
        with self._lock:
            self._shutdown_locked()

    def reload(self) -> None:
        with self._lock:
            self.reload_count += 1
        clients = self.hub.publish("reload")
        logger.info("Reloading browsers (%d connected)", clients)

    def notify(self, message: str) -> None:
        with self._lock:
            self.notifications.append(message)
        self.hub.publish("notify", message)

    def status(self) -> dict[str, object]:
        return {
            "base_dir": str(self.base_dir),
            "url": self.url,
            "clients": self.hub.client_count,
            "reloads": self.reload_count,
            "notifications": list(self.notifications),
        }

    def __enter__(self) -> DevServer:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()

    def _spawn(self, httpd: ThreadingHTTPServer, name: str) -> None:
        thread = threading.Thread(target=httpd.serve_forever, daemon=True, name=name)
        thread.start()
        self._threads.append(thread)

    def _shutdown_locked(self) -> None:
        if self._httpd is None:
            return
        self.hub.close()
        for httpd in (self._httpd, self._ui_httpd):
            if httpd is None:
                continue
            httpd.shutdown()
            httpd.server_close()
        for thread in self._threads:
            thread.join(timeout=5)
        self._threads.clear()
        self._httpd = None
        self._ui_httpd = None
        logger.info("Dev server stopped")
