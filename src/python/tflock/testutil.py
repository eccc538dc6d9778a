# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Fake provider packages and downloaders for tests."""

from __future__ import annotations

import io
import threading
import zipfile
from typing import Callable, Sequence

from tflock.downloader import ProviderDownloadRequest, ProviderDownloadResponse
from tflock.hash import sha256_hexdigest

MOCK_PLATFORMS = ("darwin_arm64", "darwin_amd64", "linux_amd64", "windows_amd64")


def new_mock_zip_data(filename: str, contents: str) -> bytes:
    """A zip archive with a single member, built in memory.

    The timestamp is fixed so that the same arguments always produce the same bytes.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(zipfile.ZipInfo(filename, date_time=(1980, 1, 1, 0, 0, 0)), contents)
    return buf.getvalue()


def mock_package_filename(name: str, version: str, platform: str) -> str:
    return f"terraform-provider-{name}_{version}_{platform}.zip"


def new_mock_package(name: str, version: str, platform: str) -> bytes:
    # terraform-provider-dummy_v3.2.1_x5 containing dummy_3.2.1_darwin_arm64
    return new_mock_zip_data(
        f"terraform-provider-{name}_v{version}_x5", f"{name}_{version}_{platform}"
    )


def new_mock_shasums_data(name: str, version: str, platforms: Sequence[str]) -> bytes:
    """A SHA256SUMS document listing the real sha256 sums of the mock packages."""
    lines = sorted(
        f"{sha256_hexdigest(new_mock_package(name, version, platform))}  "
        f"{mock_package_filename(name, version, platform)}"
        for platform in platforms
    )
    return "\n".join(lines).encode("utf-8")


def new_mock_provider_download_response(
    platform: str, *, name: str = "dummy", version: str = "3.2.1"
) -> ProviderDownloadResponse:
    return ProviderDownloadResponse(
        filename=mock_package_filename(name, version, platform),
        zip_data=new_mock_package(name, version, platform),
        shasums_data=new_mock_shasums_data(name, version, MOCK_PLATFORMS),
        shasums_url=(
            f"https://releases.example.com/terraform-provider-{name}/{version}/"
            f"terraform-provider-{name}_{version}_SHA256SUMS"
        ),
    )


class MockProviderDownloader:
    """A `ProviderDownloaderAPI` that builds mock packages instead of downloading them.

    Every call is recorded in `requests`. If `fail` returns an exception for a request, it is
    raised instead.
    """

    def __init__(self, fail: Callable[[ProviderDownloadRequest], Exception | None] | None = None):
        self.requests: list[ProviderDownloadRequest] = []
        self._fail = fail
        self._lock = threading.Lock()

    @property
    def called(self) -> int:
        return len(self.requests)

    def provider_download(self, request: ProviderDownloadRequest) -> ProviderDownloadResponse:
        with self._lock:
            self.requests.append(request)
        if self._fail:
            e = self._fail(request)
            if e is not None:
                raise e
        return new_mock_provider_download_response(
            request.platform, name=request.type, version=request.version
        )
