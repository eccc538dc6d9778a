# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""A minimal client for the provider registry protocol.

Only the "find a provider package" endpoint is implemented:
https://developer.hashicorp.com/terraform/internals/provider-registry-protocol#find-a-provider-package
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Mapping, Protocol
from urllib.parse import urljoin, urlparse

from tflock.errors import RegistryError, RequestValidationError
from tflock.http import DEFAULT_TIMEOUT, HttpRequester

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://registry.terraform.io/"
PROVIDERS_V1_SERVICE = "v1/providers/"

BASE_URL_ENV_VAR = "TFREGISTRY_BASE_URL"


@dataclass(frozen=True)
class RegistryConfig:
    """Settings for talking to a provider registry.

    `base_url` is the root of the registry API and should end with a slash. It defaults to the
    public Terraform Registry; pointing it at e.g. `https://registry.opentofu.org/` also changes the
    hostname providers are recorded under in the lock file.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> RegistryConfig:
        environ = os.environ if environ is None else environ
        base_url = overrides.pop("base_url", None) or environ.get(BASE_URL_ENV_VAR)
        if base_url:
            overrides["base_url"] = base_url
        return cls(**overrides)

    @property
    def hostname(self) -> str | None:
        """The registry host, or None when the base URL is the default registry."""
        if self.base_url == DEFAULT_BASE_URL:
            return None
        return urlparse(self.base_url).hostname or None


@dataclass(frozen=True)
class ProviderPackageMetadataRequest:
    namespace: str
    type: str
    version: str
    os: str
    arch: str

    def validate(self) -> None:
        for f in fields(self):
            if not getattr(self, f.name):
                raise RequestValidationError(f"Invalid request. {f.name} is required. req = {self}")


@dataclass(frozen=True)
class ProviderPackageMetadata:
    # The filename of the package zip, as recorded in the SHA256SUMS document.
    filename: str
    download_url: str
    # The sha256 of the package zip as recorded in the SHA256SUMS document.
    shasum: str
    shasums_url: str


class RegistryAPI(Protocol):
    def provider_package_metadata(
        self, request: ProviderPackageMetadataRequest
    ) -> ProviderPackageMetadata: ...


@dataclass(frozen=True)
class RegistryClient:
    config: RegistryConfig = RegistryConfig()
    requester: HttpRequester = field(default_factory=HttpRequester)

    @classmethod
    def from_config(cls, config: RegistryConfig) -> RegistryClient:
        return cls(config=config, requester=HttpRequester(timeout=config.timeout))

    def _endpoint(self, sub_path: str) -> str:
        base_url = self.config.base_url
        if not base_url.endswith("/"):
            base_url += "/"
        return urljoin(base_url, sub_path)

    def provider_package_metadata(
        self, request: ProviderPackageMetadataRequest
    ) -> ProviderPackageMetadata:
        request.validate()
        url = self._endpoint(
            f"{PROVIDERS_V1_SERVICE}{request.namespace}/{request.type}/{request.version}"
            f"/download/{request.os}/{request.arch}"
        )
        logger.debug("RegistryClient.provider_package_metadata: GET %s", url)
        body = self.requester.get(url, headers={"Accept": "application/json"})

        try:
            data = json.loads(body)
        except ValueError as e:
            raise RegistryError(f"failed to decode response from {url}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"unexpected response from {url}: {data!r}")

        missing = [
            f.name for f in fields(ProviderPackageMetadata) if not isinstance(data.get(f.name), str)
        ]
        if missing:
            raise RegistryError(f"response from {url} is missing {', '.join(missing)}")

        # Relative URLs are resolved relative to the URL that returned the metadata.
        return ProviderPackageMetadata(
            filename=data["filename"],
            download_url=urljoin(url, data["download_url"]),
            shasum=data["shasum"],
            shasums_url=urljoin(url, data["shasums_url"]),
        )
