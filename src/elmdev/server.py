"""HTTP server for the HTML shell and the compiled bundle."""
from __future__ import annotations

import logging
import mimetypes
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Dict, Tuple
from urllib.parse import urlsplit

from .config import DevConfig

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(__name__ + ".access")


class ServerError(Exception):
    """Raised when the server cannot bind its listening socket."""


def build_routes(config: DevConfig) -> Dict[str, Path]:
    return {
        "/": config.index_file,
        "/elm.js": config.output_file,
    }


class DevRequestHandler(BaseHTTPRequestHandler):
    """Serves each routed file straight from disk, with no caching."""

    server_version = "elmdev"
    routes: Dict[str, Path] = {}

    def do_GET(self) -> None:
        self._serve(include_body=True)

    def do_HEAD(self) -> None:
        self._serve(include_body=False)

    def _serve(self, *, include_body: bool) -> None:
        route = urlsplit(self.path).path
        target = self.routes.get(route)
        if target is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return

        try:
            body = target.read_bytes()
        except OSError as exc:
            status = HTTPStatus.INTERNAL_SERVER_ERROR
            body = f"Error reading file: {exc}".encode("utf-8")
            content_type = "text/plain; charset=utf-8"
        else:
            status = HTTPStatus.OK
            content_type = _content_type(target)

        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def log_request(self, code="-", size="-") -> None:
        if isinstance(code, HTTPStatus):
            code = code.value
        access_logger.info('%s "%s" %s %s', self.address_string(), self.requestline, code, size)

    def log_message(self, format: str, *args) -> None:
        logger.warning("%s - %s", self.address_string(), format % args)


def _content_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed is None:
        return "application/octet-stream"
    if guessed.startswith("text/") or guessed.endswith("javascript"):
        return f"{guessed}; charset=utf-8"
    return guessed


class DevServer:
    """Binds the configured address at construction; serving happens on demand."""

    def __init__(self, config: DevConfig):
        handler = type("BoundDevRequestHandler", (DevRequestHandler,), {"routes": build_routes(config)})
        try:
            self._httpd = ThreadingHTTPServer((config.host, config.port), handler)
        except OSError as exc:
            raise ServerError(f"Error binding server: {exc}") from exc
        self._httpd.daemon_threads = True

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        host, port = self.address
        logger.info("Serving on http://%s:%s", host, port)
        try:
            self._httpd.serve_forever(poll_interval=poll_interval)
        finally:
            self._httpd.server_close()

    def shutdown(self) -> None:
        self._httpd.shutdown()

    def close(self) -> None:
        self._httpd.server_close()

