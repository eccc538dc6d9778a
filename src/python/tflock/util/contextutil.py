# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import shutil
import tempfile
import threading
from contextlib import contextmanager
from queue import Queue
from socketserver import TCPServer
from typing import Iterator


@contextmanager
def temporary_dir(root_dir: str | None = None, cleanup: bool = True) -> Iterator[str]:
    """A with-context that creates a temporary directory.

    :param root_dir: The parent directory to create the temporary directory.
    :param cleanup: Whether or not to clean up the temporary directory.
    """
    path = tempfile.mkdtemp(dir=root_dir)
    try:
        yield path
    finally:
        if cleanup:
            shutil.rmtree(path, ignore_errors=True)


@contextmanager
def http_server(handler_class: type) -> Iterator[int]:
    """Serve `handler_class` on a local port in a background thread, yielding the port.

    Requests are handled one at a time.
    """

    def serve(port_queue: Queue[int], shutdown_queue: Queue[bool]) -> None:
        httpd = TCPServer(("127.0.0.1", 0), handler_class)
        httpd.timeout = 0.1
        port_queue.put(httpd.server_address[1])
        try:
            while shutdown_queue.empty():
                httpd.handle_request()
        finally:
            httpd.server_close()

    port_queue: Queue[int] = Queue()
    shutdown_queue: Queue[bool] = Queue()
    t = threading.Thread(target=lambda: serve(port_queue, shutdown_queue))
    t.daemon = True
    t.start()

    try:
        yield port_queue.get(block=True)
    finally:
        shutdown_queue.put(True)
        t.join()
