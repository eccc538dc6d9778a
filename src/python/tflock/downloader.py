# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Downloading provider packages.

Provider packages are served from wherever the registry points at (the HashiCorp release server,
GitHub releases, ...), so downloading is kept apart from the registry API itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from tflock.address import Platform, parse_provider_source
from tflock.hash import validate_sha256sum, validate_sha256sums
from tflock.http import HttpRequester
from tflock.registry import (
    ProviderPackageMetadataRequest,
    RegistryAPI,
    RegistryClient,
    RegistryConfig,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDownloadRequest:
    namespace: str
    type: str
    version: str
    os: str
    arch: str

    @classmethod
    def create(cls, address: str, version: str, platform: str) -> ProviderDownloadRequest:
        """Build a request from a provider address such as `hashicorp/null`, a version such as
        `3.2.1` and a platform such as `darwin_arm64`.

        Raises `AddressError` or `PlatformError` without touching the network.
        """
        addr = parse_provider_source(address)
        plat = Platform.parse(platform)
        return cls(
            namespace=addr.namespace,
            type=addr.type,
            version=version,
            os=plat.os,
            arch=plat.arch,
        )

    @property
    def platform(self) -> str:
        return f"{self.os}_{self.arch}"


@dataclass(frozen=True)
class ProviderDownloadResponse:
    # The filename of `zip_data`.
    filename: str
    # The raw provider package.
    zip_data: bytes = field(repr=False)
    # The raw SHA256SUMS document of the provider version.
    shasums_data: bytes = field(repr=False)
    # Where `shasums_data` was downloaded from.
    shasums_url: str


class ProviderDownloaderAPI(Protocol):
    def provider_download(self, request: ProviderDownloadRequest) -> ProviderDownloadResponse: ...


@dataclass(frozen=True)
class ProviderDownloader:
    """Downloads provider packages with plain HTTP GETs, as located by the registry."""

    api: RegistryAPI
    requester: HttpRequester = field(default_factory=HttpRequester)

    @classmethod
    def from_config(cls, config: RegistryConfig) -> ProviderDownloader:
        return cls(
            api=RegistryClient.from_config(config),
            requester=HttpRequester(timeout=config.timeout),
        )

    def provider_download(self, request: ProviderDownloadRequest) -> ProviderDownloadResponse:
        metadata = self.api.provider_package_metadata(
            ProviderPackageMetadataRequest(
                namespace=request.namespace,
                type=request.type,
                version=request.version,
                os=request.os,
                arch=request.arch,
            )
        )

        logger.debug("ProviderDownloader.provider_download: GET %s", metadata.download_url)
        zip_data = self.requester.get(metadata.download_url)
        validate_sha256sum(zip_data, metadata.shasum, source=metadata.download_url)

        logger.debug("ProviderDownloader.provider_download: GET %s", metadata.shasums_url)
        shasums_data = self.requester.get(metadata.shasums_url)
        validate_sha256sums(
            shasums_data, metadata.filename, metadata.shasum, source=metadata.shasums_url
        )

        return ProviderDownloadResponse(
            filename=metadata.filename,
            zip_data=zip_data,
            shasums_data=shasums_data,
            shasums_url=metadata.shasums_url,
        )
