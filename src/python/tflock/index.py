# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""An in-memory index of provider hash values.

Entries live for the duration of a single run: there is no persistence and no eviction, since the
number of distinct provider versions touched by one run is small.

Note that the platforms of a cached entry are fixed by the first request for it. A later request
for the same provider version with more platforms gets the cached entry as is.
"""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from tflock.downloader import (
    ProviderDownloader,
    ProviderDownloaderAPI,
    ProviderDownloadRequest,
    ProviderDownloadResponse,
)
from tflock.hash import parse_sha256sums, zip_data_to_h1_hash
from tflock.provider_version import ProviderVersion
from tflock.registry import RegistryConfig

logger = logging.getLogger(__name__)


def build_provider_version(
    address: str, version: str, platform: str, response: ProviderDownloadResponse
) -> ProviderVersion:
    """Calculate the hash values of a single downloaded package.

    The registry publishes zh hashes for all platforms but no h1 hashes, so h1 has to be computed
    for every platform separately and the results merged.
    """
    return ProviderVersion(
        address,
        version,
        platforms=[platform],
        h1_hashes={response.filename: zip_data_to_h1_hash(response.zip_data)},
        zh_hashes=parse_sha256sums(response.shasums_data, source=response.shasums_url),
    )


class _VersionIndex:
    """The cached versions of one provider."""

    def __init__(self, address: str) -> None:
        self.address = address
        self.versions: dict[str, ProviderVersion] = {}
        self.locks: dict[str, threading.Lock] = {}


class ProviderIndex:
    def __init__(
        self, downloader: ProviderDownloaderAPI, *, logger: logging.Logger = logger
    ) -> None:
        self._downloader = downloader
        self._logger = logger
        self._providers: dict[str, _VersionIndex] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RegistryConfig) -> ProviderIndex:
        return cls(ProviderDownloader.from_config(config))

    def get_or_create_provider_version(
        self, address: str, version: str, platforms: Sequence[str]
    ) -> ProviderVersion:
        """Return the cached hashes of a provider version, downloading the provider on a miss.

        :param address: a provider address such as hashicorp/null.
        :param version: a version number such as 3.2.1.
        :param platforms: target platforms such as darwin_arm64 to calculate hashes for.
        """
        with self._lock:
            version_index = self._providers.get(address)
            if version_index is None:
                version_index = _VersionIndex(address)
                self._providers[address] = version_index
            key_lock = version_index.locks.setdefault(version, threading.Lock())

        # Held from the lookup until the result is stored, so concurrent callers for the same key
        # wait for a single download instead of starting their own.
        with key_lock:
            pv = version_index.versions.get(version)
            if pv is not None:
                self._logger.debug("ProviderIndex: cache hit: %s %s", address, version)
                return pv
            self._logger.debug("ProviderIndex: cache miss: %s %s", address, version)
            pv = self._create_provider_version(address, version, platforms)
            version_index.versions[version] = pv
            return pv

    def _create_provider_version(
        self, address: str, version: str, platforms: Sequence[str]
    ) -> ProviderVersion:
        ret = ProviderVersion.empty(address, version)
        for platform in platforms:
            request = ProviderDownloadRequest.create(address, version, platform)
            self._logger.debug("ProviderIndex: download %s %s %s", address, version, platform)
            response = self._downloader.provider_download(request)
            ret.merge(build_provider_version(address, version, platform, response))
        return ret.freeze()
