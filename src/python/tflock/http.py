# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

from dataclasses import dataclass, field

import requests

from tflock.errors import DownloadError, TransportError

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class HttpRequester:
    """Issues GET requests and turns every failure into a `FetchError`.

    There are no retries here: failures propagate immediately to the caller. A retry policy, if
    one is ever needed, belongs in the transport adapters mounted on `session`.
    """

    session: requests.Session = field(default_factory=requests.Session)
    timeout: float = DEFAULT_TIMEOUT

    def get(self, url: str, *, headers: dict[str, str] | None = None) -> bytes:
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"failed to request {url}: {e}", url) from e

        if not 200 <= response.status_code < 300:
            raise DownloadError(response.status_code, url)
        return response.content
