# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import socket
from http.server import BaseHTTPRequestHandler

import pytest

from tflock.errors import DownloadError, TransportError
from tflock.http import HttpRequester
from tflock.util.contextutil import http_server


class HttpHandlerForTests(BaseHTTPRequestHandler):
    def do_GET(self):
        code = 200 if self.path == "/valid-url" else 500
        body = b"A valid HTTP response!" if code == 200 else b"500 internal server error"
        self.send_response(code)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


def test_get() -> None:
    with http_server(HttpHandlerForTests) as port:
        assert HttpRequester().get(f"http://127.0.0.1:{port}/valid-url") == b"A valid HTTP response!"


def test_get_unexpected_status() -> None:
    with http_server(HttpHandlerForTests) as port:
        url = f"http://127.0.0.1:{port}/deliberate500"
        with pytest.raises(DownloadError) as exc:
            HttpRequester().get(url)
    assert exc.value.status_code == 500
    assert exc.value.url == url
    assert str(exc.value) == f"unexpected HTTP status code 500: {url}"


def test_get_connection_refused() -> None:
    # Grab a free port and close it again, so nothing listens there.
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    url = f"http://127.0.0.1:{port}/"
    with pytest.raises(TransportError) as exc:
        HttpRequester(timeout=5).get(url)
    assert exc.value.url == url
