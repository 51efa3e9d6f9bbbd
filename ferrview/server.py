"""The collector's HTTP server and request routing."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from ferrview.db import StoreError
from ferrview.handlers import (
    handle_cpu_chart,
    handle_disk_chart,
    handle_forks_chart,
    handle_health,
    handle_memory_chart,
    handle_network_chart,
    handle_not_found,
    handle_probe,
    handle_temperature_chart,
)
from ferrview.response import Response, json_error
from ferrview.web import handle_home, handle_node_dashboard

log = logging.getLogger(__name__)

JSON = "application/json"
HTML = "text/html; charset=utf-8"
SVG = "image/svg+xml"

CHART_HOURS = 24

_CHARTS: dict[str, Callable[[str, int, Any], Response]] = {
    "cpu.svg": handle_cpu_chart,
    "memory.svg": handle_memory_chart,
    "temperature.svg": handle_temperature_chart,
    "network.svg": handle_network_chart,
    "disk.svg": handle_disk_chart,
    "forks.svg": handle_forks_chart,
}


def _parse_address(host: str, port: str) -> tuple[str, int]:
    host_part, sep, port_part = f"{host}:{port}".rpartition(":")
    try:
        if not sep or not port_part.isascii() or not port_part.isdigit():
            raise ValueError("bad port")
        port_num = int(port_part)
        if port_num > 0xFFFF:
            raise ValueError("port out of range")
        if host_part.startswith("[") and host_part.endswith("]"):
            ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv6Address(
                host_part[1:-1]
            )
        else:
            ip = ipaddress.IPv4Address(host_part)
    except ValueError as exc:
        raise StoreError(
            "Invalid query: Invalid address: invalid socket address syntax"
        ) from exc
    return str(ip), port_num


class _Server4(ThreadingHTTPServer):
    daemon_threads = True
    app: HttpServer


class _Server6(_Server4):
    address_family = socket.AF_INET6


class _RequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "ferrview-collector"
    server: _Server4

    def _read_body(self) -> bytes:
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            chunks = []
            while True:
                line = self.rfile.readline()
                size = int(line.split(b";", 1)[0].strip(), 16)
                if size == 0:
                    while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                        pass
                    return b"".join(chunks)
                chunks.append(self.rfile.read(size))
                self.rfile.readline()
        length = int(self.headers.get("Content-Length") or 0)
        if length < 0:
            raise ValueError("negative Content-Length")
        body = self.rfile.read(length)
        if len(body) != length:
            raise ValueError("body shorter than Content-Length")
        return body

    def _dispatch(self) -> None:
        log.debug("Request from %s: %s %s", self.client_address, self.command, self.path)
        try:
            body = self._read_body()
        except (ValueError, OSError) as exc:
            log.error("Failed to read request body: %s", exc)
            response, content_type = json_error(400, "Failed to read body"), JSON
            self.close_connection = True
        else:
            path = urlsplit(self.path).path
            response, content_type = self.server.app.route(self.command, path, body)

        payload = response.encoded()
        self.send_response(response.status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_HEAD = do_OPTIONS = _dispatch

    def log_message(self, format: str, *args: Any) -> None:
        log.debug("%s - %s", self.address_string(), format % args)


class HttpServer:
    """Serves the probe API, the health check, the web pages and the charts."""

    def __init__(
        self, host: str, port: str, writer: Any, reader: Any, data_dir: str | Path
    ) -> None:
        self.host, self.port = _parse_address(host, port)
        self.writer = writer
        self.reader = reader
        self.data_dir = str(data_dir)
        self.bound_address: tuple[str, int] | None = None
        self.ready = threading.Event()
        self._lock = threading.Lock()
        self._httpd: _Server4 | None = None
        self._stopped = False

    def route(self, method: str, path: str, body: bytes = b"") -> tuple[Response, str]:
        """Handle one request; return the response and its content type."""
        if method == "POST" and path == "/api/v1/probe":
            return handle_probe(body, self.writer), JSON
        if method == "GET":
            if path == "/health":
                return handle_health(), JSON
            if path == "/ui":
                return handle_home(self.data_dir), HTML
            if path.startswith("/ui/node/"):
                return self._route_node(path)
        return handle_not_found(), JSON

    def _route_node(self, path: str) -> tuple[Response, str]:
        parts = path.split("/")
        if len(parts) < 4:
            return handle_not_found(), JSON

        node_id = parts[3]
        if len(parts) == 5:
            chart_file = parts[4]
            handler = _CHARTS.get(chart_file)
            if handler is None:
                response = handle_not_found()
            else:
                response = handler(node_id, CHART_HOURS, self.reader)
            return response, SVG if chart_file.endswith(".svg") else JSON

        return handle_node_dashboard(node_id, self.data_dir), HTML

    def run(self) -> None:
        """Bind the address and serve requests until shutdown() is called."""
        server_cls = _Server6 if ":" in self.host else _Server4
        with self._lock:
            if self._stopped:
                return
            try:
                httpd = server_cls((self.host, self.port), _RequestHandler)
            except OSError as exc:
                raise StoreError(f"IO error: {exc}") from exc
            httpd.app = self
            self._httpd = httpd
            self.bound_address = (httpd.server_address[0], httpd.server_address[1])

        log.info("HTTP server listening on %s:%s", *self.bound_address)
        self.ready.set()
        try:
            httpd.serve_forever()
        finally:
            httpd.server_close()

    def shutdown(self) -> None:
        """Stop serving; a later run() returns at once."""
        with self._lock:
            self._stopped = True
            httpd = self._httpd
        if httpd is not None:
            httpd.shutdown()