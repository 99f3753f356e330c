"""Local static file server for capturing a freshly built site."""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import contextmanager
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("static: " + format, *args)


@contextmanager
def serve_directory(directory: Path, host: str = "127.0.0.1", port: int = 0) -> Iterator[str]:
    """Serve ``directory`` over HTTP for the duration of the block; yields the base URL.

    Port 0 lets the OS pick a free port. The listening socket is closed on exit,
    whether or not the block raised.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Build directory not found: {directory}")

    handler = functools.partial(_QuietHandler, directory=str(directory))
    server = ThreadingHTTPServer((host, port), handler)
    thread = threading.Thread(target=server.serve_forever, name="static-server", daemon=True)
    thread.start()
    base_url = f"http://{host}:{server.server_address[1]}"
    logger.info("Serving %s at %s", directory, base_url)
    try:
        yield base_url
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
        logger.info("Static server stopped")
