# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from tflock.errors import (
    AddressMismatchError,
    ChecksumInconsistencyError,
    FrozenRecordError,
    VersionMismatchError,
)


class ProviderVersion:
    """The hash values of one version of one provider, across target platforms.

    This corresponds to one `provider` block of a dependency lock file:
    https://developer.hashicorp.com/terraform/language/files/dependency-lock

    The lock file doesn't record which platform a hash belongs to, but we keep them apart in
    memory to make checksum mismatches easier to debug.

    An instance is populated with `merge` and then `freeze`d; after that it is read-only.
    """

    def __init__(
        self,
        address: str,
        version: str,
        platforms: Iterable[str] = (),
        h1_hashes: Mapping[str, str] | None = None,
        zh_hashes: Mapping[str, str] | None = None,
    ) -> None:
        # A provider address such as hashicorp/null.
        self._address = address
        # A version number such as 3.2.1.
        self._version = version
        # Target platforms such as darwin_arm64, in the order they were fetched.
        self._platforms = list(platforms)
        # Keyed by the package filename.
        self._h1_hashes = dict(h1_hashes or {})
        # Keyed by filename. The SHA256SUMS document lists every platform the provider was
        # released for, not only the ones we asked for.
        self._zh_hashes = dict(zh_hashes or {})
        self._frozen = False

    @classmethod
    def empty(cls, address: str, version: str) -> ProviderVersion:
        """An empty instance to merge per-platform results into."""
        return cls(address, version)

    @property
    def address(self) -> str:
        return self._address

    @property
    def version(self) -> str:
        return self._version

    @property
    def platforms(self) -> tuple[str, ...]:
        return tuple(self._platforms)

    @property
    def h1_hashes(self) -> Mapping[str, str]:
        return MappingProxyType(self._h1_hashes)

    @property
    def zh_hashes(self) -> Mapping[str, str]:
        return MappingProxyType(self._zh_hashes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> ProviderVersion:
        self._frozen = True
        return self

    def merge(self, other: ProviderVersion) -> None:
        """Merge the hashes of `other` into this instance.

        Both must describe the same address and version. The zh hashes come from the same
        SHA256SUMS document whichever platform they were fetched for, so they must agree exactly.
        """
        if self._frozen:
            raise FrozenRecordError(f"cannot merge into a frozen ProviderVersion: {self}")
        if self._address != other._address:
            raise AddressMismatchError(
                f"failed to merge ProviderVersion.address: {self._address} != {other._address}"
            )
        if self._version != other._version:
            raise VersionMismatchError(
                f"failed to merge ProviderVersion.version: {self._version} != {other._version}"
            )

        if self._zh_hashes:
            if self._zh_hashes != other._zh_hashes:
                raise ChecksumInconsistencyError(
                    f"failed to merge ProviderVersion.zh_hashes of {self._address} "
                    f"{self._version} (platforms {', '.join(other._platforms)}): "
                    f"{self._zh_hashes!r} != {other._zh_hashes!r}"
                )
        else:
            self._zh_hashes = dict(other._zh_hashes)

        self._platforms.extend(other._platforms)
        self._h1_hashes.update(other._h1_hashes)

    def all_hashes(self) -> list[str]:
        """All hash values, sorted, as written to the `hashes` attribute of a lock file."""
        return sorted([*self._h1_hashes.values(), *self._zh_hashes.values()])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderVersion):
            return NotImplemented
        return (
            self._address == other._address
            and self._version == other._version
            and self._platforms == other._platforms
            and self._h1_hashes == other._h1_hashes
            and self._zh_hashes == other._zh_hashes
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"ProviderVersion(address={self._address!r}, version={self._version!r}, "
            f"platforms={self._platforms!r})"
        )
