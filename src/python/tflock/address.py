# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Provider source addresses and target platforms.

A provider source address looks like `[hostname/]namespace/type`, e.g. `hashicorp/null` or
`registry.terraform.io/hashicorp/null`. Dependency lock files were introduced in Terraform v0.14,
which means every provider recorded in one is qualified with at least a namespace: the implicit
legacy forms accepted by older versions are rejected here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from tflock.errors import AddressError, PlatformError

DEFAULT_REGISTRY_HOST = "registry.terraform.io"

# The namespace Terraform v0.12 and earlier used for providers referenced without one.
LEGACY_NAMESPACE = "-"

_NAME_RE = re.compile(r"^[0-9a-z](?:[0-9a-z_-]{0,62}[0-9a-z])?$")
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}(?::|$))[0-9a-z](?:[0-9a-z-]{0,61}[0-9a-z])?"
    r"(?:\.[0-9a-z](?:[0-9a-z-]{0,61}[0-9a-z])?)*(?::[0-9]{1,5})?$"
)


@dataclass(frozen=True, order=True)
class ProviderAddress:
    hostname: str
    namespace: str
    type: str

    def __str__(self) -> str:
        return f"{self.hostname}/{self.namespace}/{self.type}"

    def with_hostname(self, hostname: str) -> ProviderAddress:
        return replace(self, hostname=_parse_hostname(hostname, source=hostname))


def _parse_hostname(raw: str, *, source: str) -> str:
    hostname = raw.lower()
    if not _HOSTNAME_RE.match(hostname):
        raise AddressError(f"invalid registry hostname {raw!r} in provider address: {source}")
    return hostname


def _parse_name(raw: str, *, what: str, source: str) -> str:
    name = raw.lower()
    if not _NAME_RE.match(name):
        raise AddressError(f"invalid provider {what} {raw!r} in provider address: {source}")
    return name


def parse_provider_source(source: str) -> ProviderAddress:
    """Parse a provider source address such as `hashicorp/null`.

    Raises `AddressError` for anything that cannot be written to a dependency lock file: malformed
    addresses, addresses without a namespace (whose namespace Terraform would have to guess), and
    legacy addresses.
    """
    if not source or source.strip() != source:
        raise AddressError(f"failed to parse provider address: {source!r}")

    parts = source.split("/")
    if len(parts) == 1:
        raise AddressError(f"failed to parse unknown provider address: {source}")
    if len(parts) > 3:
        raise AddressError(
            f"failed to parse provider address: {source}: expected at most 3 parts separated by '/'"
        )
    if any(not part for part in parts):
        raise AddressError(f"failed to parse provider address: {source}: empty component")

    hostname = DEFAULT_REGISTRY_HOST
    if len(parts) == 3:
        hostname = _parse_hostname(parts[0], source=source)
    namespace, type_ = parts[-2:]

    if namespace == LEGACY_NAMESPACE:
        raise AddressError(f"failed to parse legacy provider address: {source}")

    return ProviderAddress(
        hostname=hostname,
        namespace=_parse_name(namespace, what="namespace", source=source),
        type=_parse_name(type_, what="type", source=source),
    )


@dataclass(frozen=True)
class Platform:
    """A target platform such as `darwin_arm64`, an operating system and a CPU architecture."""

    os: str
    arch: str

    @classmethod
    def parse(cls, token: str) -> Platform:
        parts = token.split("_")
        if len(parts) != 2 or not all(parts):
            raise PlatformError(f"failed to parse platform: {token!r}")
        return cls(*parts)

    def __str__(self) -> str:
        return f"{self.os}_{self.arch}"
