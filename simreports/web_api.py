"""A local HTTP API that lets a paused simulation answer JSON commands."""

from __future__ import annotations

import json
import logging
import queue
import socketserver
import threading
import uuid
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any], Any]

_REPLY_POLL_SECONDS = 0.1


class WebApiError(Exception):
    """Raised for Web API set-up errors and invalid command arguments."""


@dataclass
class _ApiRequest:
    cmd: str
    arguments: Any
    reply: "queue.Queue[tuple[int, bytes]]"


def _next_time(arguments: Any) -> float:
    try:
        next_time = arguments["Next"]["next_time"]
    except (TypeError, KeyError, IndexError):
        raise WebApiError('expected arguments of the form {"Next": {"next_time": <number>}}') from None
    if isinstance(next_time, bool) or not isinstance(next_time, (int, float)):
        raise WebApiError(f"next_time must be a number, not {next_time!r}")
    return float(next_time)


def _next_handler(state: Any, arguments: Any) -> Any:
    _next_time(arguments)
    return {}


def _json_body(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], api: WebApi) -> None:
        self.api = api
        super().__init__(address, _RequestHandler)

    def server_bind(self) -> None:
        # Skip the reverse name lookup the base class performs.
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = host
        self.server_port = port


class _RequestHandler(BaseHTTPRequestHandler):
    server: _Server

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send(self, status: int, body: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        if body:
            self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def do_POST(self) -> None:
        api = self.server.api
        path = urlsplit(self.path).path
        cmd_prefix = f"/{api._prefix}/cmd/"
        if not path.startswith(cmd_prefix):
            self._send(HTTPStatus.NOT_FOUND)
            return
        command = unquote(path[len(cmd_prefix):])
        if not command or "/" in command:
            self._send(HTTPStatus.NOT_FOUND)
            return
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length else b""
        try:
            arguments = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._send(HTTPStatus.BAD_REQUEST, _json_body({"error": f"Invalid JSON: {exc}"}))
            return
        status, body = api._submit(command, arguments)
        self._send(status, body)

    def do_GET(self) -> None:
        api = self.server.api
        path = urlsplit(self.path).path
        if path == f"/{api._prefix}/":
            self._send(
                HTTPStatus.TEMPORARY_REDIRECT,
                headers={"Location": f"/{api._prefix}/static/index.html"},
            )
            return
        self._send(HTTPStatus.NOT_FOUND)


class WebApi:
    """An HTTP server on 127.0.0.1 whose commands are answered by the simulation.

    The server accepts ``POST /<secret>/cmd/<command>`` with a JSON body. The
    requests are queued and answered only while :meth:`serve_requests` runs,
    which is meant to be called when the simulation pauses.
    """

    def __init__(self) -> None:
        self.url: str | None = None
        self._prefix = ""
        self._server: _Server | None = None
        self._thread: threading.Thread | None = None
        self._handlers: dict[str, Handler] = {}
        self._requests: queue.Queue[_ApiRequest | None] = queue.Queue()
        self._stopped = threading.Event()

    def start(self, port: int) -> str:
        """Start the server on ``port`` and return its base URL."""
        if self._server is not None:
            raise WebApiError("HTTP API already initialized")
        self._prefix = str(uuid.uuid4())
        self._requests = queue.Queue()
        self._stopped = threading.Event()
        try:
            server = _Server(("127.0.0.1", port), self)
        except OSError as exc:
            raise WebApiError(f"Could not bind to {port}") from exc
        bound_port = server.server_address[1]
        self._server = server
        self._handlers = {"next": _next_handler}
        self._thread = threading.Thread(target=server.serve_forever, daemon=True)
        self._thread.start()
        self.url = f"http://127.0.0.1:{bound_port}/{self._prefix}/"
        logger.info("Web API active on %s", self.url)
        return self.url

    def add_handler(self, name: str, handler: Handler) -> None:
        """Register ``handler(state, arguments)`` as the command ``name``."""
        if self._server is None:
            raise WebApiError("Web API not yet set up")
        self._handlers[name] = handler

    def _submit(self, cmd: str, arguments: Any) -> tuple[int, bytes]:
        reply: queue.Queue[tuple[int, bytes]] = queue.Queue(maxsize=1)
        self._requests.put(_ApiRequest(cmd, arguments, reply))
        while True:
            try:
                return reply.get(timeout=_REPLY_POLL_SECONDS)
            except queue.Empty:
                if self._stopped.is_set():
                    return HTTPStatus.INTERNAL_SERVER_ERROR, b"{}"

    def serve_requests(self, state: Any) -> float | None:
        """Answer queued commands until told to go on.

        Returns the requested time after a successful ``next`` command, or
        ``None`` after ``continue`` or when the server is stopped.
        """
        if self._server is None:
            raise WebApiError("Web API not yet set up")
        requests = self._requests
        while True:
            request = requests.get()
            if request is None:
                return None
            if request.cmd == "continue":
                request.reply.put((HTTPStatus.OK, b"{}"))
                return None
            handler = self._handlers.get(request.cmd)
            if handler is None:
                request.reply.put(
                    (HTTPStatus.NOT_FOUND, _json_body({"error": f"No command {request.cmd}"}))
                )
                continue
            try:
                body = _json_body(handler(state, request.arguments))
                next_time = _next_time(request.arguments) if request.cmd == "next" else None
            except Exception as err:
                request.reply.put((HTTPStatus.BAD_REQUEST, _json_body({"error": str(err)})))
                continue
            request.reply.put((HTTPStatus.OK, body))
            if next_time is not None:
                return next_time

    def stop(self) -> None:
        """Shut the server down and release anyone waiting on it."""
        server = self._server
        if server is None:
            return
        self._stopped.set()
        self._requests.put(None)
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None
        self.url = None

    def __enter__(self) -> WebApi:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()