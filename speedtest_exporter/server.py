"""HTTP listener serving the metrics document."""

from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlsplit

from .exceptions import ListenerBindFailed
from .exposition import CONTENT_TYPE, render
from .store import SampleStore
from .utils.logger import get_logger

# Path of the metrics document
METRICS_PATH = "/metrics"

# Get logger
logger = get_logger(__name__)


class MetricsHandler(BaseHTTPRequestHandler):
    """Serves GET /metrics from a sample store; 404 for other paths, 405 for other methods."""

    store: SampleStore

    @classmethod
    def factory(cls, store: SampleStore) -> type["MetricsHandler"]:
        """Create a handler class bound to a store."""
        return type(cls.__name__, (cls,), {"store": store})

    def do_GET(self) -> None:  # noqa: N802
        """Render the current snapshot."""
        if not self._is_metrics_path():
            self._send_error(HTTPStatus.NOT_FOUND)
            return

        # hold shared access while rendering so the sample cannot change underneath
        with self.store.reading() as snapshot:
            body = render(snapshot).encode("utf-8")

        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", CONTENT_TYPE)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _reject(self) -> None:
        """Reject methods other than GET."""
        if self._is_metrics_path():
            self._send_error(HTTPStatus.METHOD_NOT_ALLOWED, allow="GET")
        else:
            self._send_error(HTTPStatus.NOT_FOUND)

    do_HEAD = do_POST = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = _reject

    def _is_metrics_path(self) -> bool:
        return urlsplit(self.path).path == METRICS_PATH

    def _send_error(self, status: HTTPStatus, allow: str | None = None) -> None:
        body = f"{status.value} {status.phrase}\n".encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        if allow:
            self.send_header("Allow", allow)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        """Log requests through the package logger instead of raw stderr."""
        logger.debug(f"{self.address_string()} {format % args}")


class MetricsServer(ThreadingHTTPServer):
    """Threaded HTTP server, one thread per scrape."""

    daemon_threads = True
    allow_reuse_port = False


def create_server(store: SampleStore, host: str = "", port: int = 8080) -> MetricsServer:
    """Bind the metrics listener.

    Args:
        store: Store rendered by each scrape.
        host: Address to bind, empty for all interfaces.
        port: TCP port to bind, 0 for an ephemeral port.

    Returns:
        The bound server, not yet serving.

    Raises:
        ListenerBindFailed: If the address cannot be bound
    """
    try:
        server = MetricsServer((host, port), MetricsHandler.factory(store))
    except OSError as e:
        raise ListenerBindFailed(f"Cannot listen on {host or '*'}:{port}: {e}") from e

    logger.info(f"Listening on http://{host or '0.0.0.0'}:{server.server_port}{METRICS_PATH}")
    return server
