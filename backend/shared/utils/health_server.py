"""
Minimal HTTP server for the reconciliation worker.
Serves GET /health on PORT so container healthchecks succeed.
Runs in a daemon thread; no-op when PORT is not set (e.g. local dev).
"""
from __future__ import annotations

import json
import os
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)


def health_body(service_name: str, details: Optional[Callable[[], dict[str, Any]]] = None) -> bytes:
    payload: dict[str, Any] = {"status": "ok", "service": service_name}
    if details is not None:
        try:
            payload.update(details())
        except Exception as exc:
            payload["details_error"] = str(exc)
    return json.dumps(payload, default=str).encode("utf-8")


def start_health_server(
    service_name: str,
    details: Optional[Callable[[], dict[str, Any]]] = None,
) -> Optional[threading.Thread]:
    """
    Start a daemon thread that listens on PORT and responds to GET /health.

    details() is called per request and merged into the JSON body; the worker
    uses it to expose credential tier state and the last tick time.
    """
    port_str = os.environ.get("PORT")
    if not port_str:
        return None
    try:
        port = int(port_str)
    except ValueError:
        logger.warning("health_server_bad_port", port=port_str)
        return None

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            if self.path in ("/health", "/health/"):
                body = health_body(service_name, details)
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            else:
                self.send_response(404)
                self.end_headers()

        def log_message(self, format: str, *args: object) -> None:
            pass

    def serve() -> None:
        with HTTPServer(("0.0.0.0", port), Handler) as httpd:
            httpd.serve_forever()

    t = threading.Thread(target=serve, name="health-server", daemon=True)
    t.start()
    logger.info("health_server_started", port=port, service=service_name)
    return t
