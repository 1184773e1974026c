"""
HTTP Note Server Module

Small JSON-over-HTTP front end for the piano engine.

Routes:
    GET  /          Greeting and version
    GET  /health    Liveness and uptime
    GET  /play      Start the three-note demo sequence (returns immediately)
    POST /playnote  Play one 4th-octave note, e.g. ``{"note": "C"}``

Transport:
    Uses only stdlib modules (http.server, json) plus pydantic for body
    validation. Each request is handled on its own thread, so a note that
    is still sounding never blocks the health check.

Quick Start:
    ```python
    from piano_synth.server import run_server
    run_server(port=3000, verbose=True)
    ```
"""

from __future__ import annotations

import json
import logging
import signal
import threading
import time
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import ValidationError

from ..config_loader import SynthConfig
from ..engine import create_note, play_note
from ..scheduler import demo_scheduler
from ..utils import NOTE_LETTERS
from .config import ErrorCode, SCHEMA_VERSION, ServerConfig, setup_logging
from .schemas import PlayNoteRequest

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status: int, error: str, code: int, **extra: Any) -> Response:
    body = {"error": error, "code": code}
    body.update(extra)
    return status, body


def _parse_content_length(value: Optional[str]) -> int:
    """Body size from a Content-Length header; a missing header means no body.

    Raises:
        ValueError: If the header is not a non-negative integer
    """
    if value is None or not value.strip():
        return 0
    length = int(value)
    if length < 0:
        raise ValueError(f"negative Content-Length: {length}")
    return length


class _PianoRequestHandler(BaseHTTPRequestHandler):
    """Thin HTTP handler that delegates every request to ``PianoHTTPServer.handle``."""

    # Silence default stderr logging from BaseHTTPRequestHandler
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug(format, *args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(204)
        self._set_cors_headers()
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch("GET", b"")

    def do_POST(self) -> None:  # noqa: N802
        try:
            content_length = _parse_content_length(self.headers.get("Content-Length"))
        except ValueError as exc:
            logger.debug("Rejected %s: %s", self.path, exc)
            # Body left unread; drop the connection after replying
            self.close_connection = True
            self._write_json(*_error(
                400, "Invalid payload", ErrorCode.INVALID_PAYLOAD,
                message="Content-Length must be a non-negative integer",
            ))
            return
        raw = self.rfile.read(content_length) if content_length > 0 else b""
        self._dispatch("POST", raw)

    def _dispatch(self, method: str, raw: bytes) -> None:
        app: PianoHTTPServer = self.server.app  # type: ignore[attr-defined]
        status, body = app.handle(method, self.path, raw)
        self._write_json(status, body)

    def _write_json(self, status: int, obj: Dict[str, Any]) -> None:
        payload = json.dumps(obj, ensure_ascii=False, default=str).encode("utf-8")
        self.send_response(status)
        self._set_cors_headers()
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _set_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")


class PianoHTTPServer:
    """
    HTTP server that plays piano notes on request.

    Example:
        ```python
        server = PianoHTTPServer(ServerConfig(port=3000))
        server.start()  # Blocking, runs until shutdown
        ```

    Or non-blocking:
        ```python
        server = PianoHTTPServer(ServerConfig(port=0))
        server.start_async()
        print(server.port)
        server.stop()
        ```

    Args:
        config: Bind address, sink and logging settings
        play: Callable that starts a single note and returns its completion;
            ``engine.play_note`` with the server's synth settings by default
        trigger: Callable used by the demo sequence; ``engine.create_note``
            with the server's synth settings by default
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        play: Optional[Callable[[float], Any]] = None,
        trigger: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.synth_config: SynthConfig = self.config.synth_config()
        self._play = play or (lambda hz: play_note(hz, self.synth_config))
        self._trigger = trigger or (lambda hz: create_note(hz, self.synth_config))

        self._httpd: Optional[ThreadingHTTPServer] = None
        self._server_thread: Optional[threading.Thread] = None
        self._start_time = time.time()
        self._running = threading.Event()

        self._routes: Dict[Tuple[str, str], Callable[[bytes], Response]] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/play"): self._handle_play_sequence,
            ("POST", "/playnote"): self._handle_playnote,
        }

        logger.info(
            "PianoHTTPServer initialised (host=%s, port=%d, sink=%s)",
            self.config.host, self.config.port, self.config.sink,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def port(self) -> int:
        """Bound port (differs from the configured one when that was 0)."""
        if self._httpd is not None:
            return self._httpd.server_address[1]
        return self.config.port

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def _create_httpd(self) -> None:
        httpd = ThreadingHTTPServer((self.config.host, self.config.port), _PianoRequestHandler)
        httpd.daemon_threads = True
        httpd.app = self  # type: ignore[attr-defined]
        self._httpd = httpd

    def start(self) -> None:
        """Start the server **blocking** the calling thread.

        Runs until ``stop()`` is called or a SIGINT/SIGTERM is received.
        """
        self._create_httpd()
        self._start_time = time.time()
        self._running.set()

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _signal_handler(sig: int, frame: Any) -> None:
            logger.info("Signal %d received, shutting down", sig)
            # shutdown() blocks until serve_forever returns; run it elsewhere
            threading.Thread(target=self.stop, daemon=True).start()

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

        logger.info("Server running on http://%s:%d", self.config.host, self.port)
        logger.info("Health check: http://%s:%d/health", self.config.host, self.port)

        try:
            self._httpd.serve_forever()  # type: ignore[union-attr]
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

    def start_async(self) -> None:
        """Start the server in a background daemon thread."""
        self._create_httpd()
        self._start_time = time.time()
        self._running.set()

        self._server_thread = threading.Thread(
            target=self._httpd.serve_forever,  # type: ignore[union-attr]
            name="Piano-HTTP-Server",
            daemon=True,
        )
        self._server_thread.start()

        logger.info("Server started (async) on http://%s:%d", self.config.host, self.port)

    def stop(self) -> None:
        """Gracefully stop the server."""
        if not self._running.is_set():
            return
        self._running.clear()

        logger.info("Shutting down HTTP server")

        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None

        if self._server_thread is not None:
            self._server_thread.join(timeout=5.0)
            self._server_thread = None

        logger.info("HTTP server stopped.")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, method: str, path: str, raw: bytes = b"") -> Response:
        """Route one request and return ``(status, json_body)``.

        Args:
            method: HTTP method
            path: Request path, query string allowed
            raw: Request body
        """
        logger.info("%s %s", method, path)
        route = urlsplit(path).path or "/"
        handler = self._routes.get((method, route))
        if handler is None:
            return _error(404, "Route not found", ErrorCode.ROUTE_NOT_FOUND, path=path)

        try:
            return handler(raw)
        except Exception as exc:
            logger.exception("Unhandled error in %s %s", method, route)
            return _error(500, "Internal Server Error", ErrorCode.INTERNAL, message=str(exc))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_root(self, raw: bytes) -> Response:
        return 200, {
            "message": "Ready to play music!",
            "timestamp": _timestamp(),
            "version": SCHEMA_VERSION,
        }

    def _handle_health(self, raw: bytes) -> Response:
        return 200, {
            "status": "healthy",
            "uptime": round(time.time() - self._start_time, 3),
            "timestamp": _timestamp(),
        }

    def _handle_play_sequence(self, raw: bytes) -> Response:
        scheduler = demo_scheduler(trigger=self._trigger)
        thread = threading.Thread(target=scheduler.run, name="Piano-Demo-Sequence", daemon=True)
        thread.start()
        return 200, {
            "message": "Sequence started",
            "notes": [step.label for step in scheduler.steps],
            "timestamp": _timestamp(),
        }

    def _handle_playnote(self, raw: bytes) -> Response:
        logger.info("Play note requested")
        try:
            body = json.loads(raw or b"null")
            request = PlayNoteRequest.model_validate(body)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            logger.debug("Rejected /playnote body: %s", exc)
            return _error(
                400, "Invalid payload", ErrorCode.INVALID_PAYLOAD,
                message="Note parameter is required and must be a string",
            )

        note = request.note
        frequency = NOTE_LETTERS.get(note)
        if frequency is None:
            return 200, {
                "message": "Note received but not played",
                "note": note,
                "timestamp": _timestamp(),
            }

        try:
            self._play(frequency).result()
        except Exception as exc:
            logger.error("Error playing note %s: %s", note, exc)
            return _error(500, "Failed to play note", ErrorCode.PLAYBACK_FAILED, message=str(exc))

        return 200, {
            "message": f"Piano note {note} played successfully",
            "note": note,
            "timestamp": _timestamp(),
        }


# ---------------------------------------------------------------------------
# Convenience entry point
# ---------------------------------------------------------------------------

def run_server(
    host: str = "127.0.0.1",
    port: int = 3000,
    verbose: bool = False,
    **kwargs: Any,
) -> None:
    """Start the HTTP note server (blocking).

    Args:
        host: Bind address (default ``127.0.0.1``)
        port: TCP port (default ``3000``)
        verbose: Enable debug logging
        **kwargs: Additional ``ServerConfig`` fields
    """
    config = ServerConfig(host=host, port=port, verbose=verbose, **kwargs)
    setup_logging(config.verbose, config.log_file)
    server = PianoHTTPServer(config)
    server.start()
