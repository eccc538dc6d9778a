# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
import os
from typing import Protocol, Sequence

from tflock.address import parse_provider_source
from tflock.errors import AddressError
from tflock.index import ProviderIndex
from tflock.lockfile import LOCK_FILE_NAME
from tflock.module import ModuleContext, SelectedProvider
from tflock.registry import RegistryConfig

logger = logging.getLogger(__name__)


class ProviderBlock(Protocol):
    @property
    def version(self) -> str | None: ...

    def set_version(self, version: str) -> None: ...

    def set_constraints(self, constraints: str) -> None: ...

    def set_hashes(self, hashes: Sequence[str]) -> None: ...


class LockDocument(Protocol):
    """The editing operations the updater needs from a parsed lock file."""

    def find_provider_block(self, address: str) -> ProviderBlock | None: ...

    def append_provider_block(self, address: str) -> ProviderBlock: ...


class LockUpdater:
    """Updates the provider blocks of a dependency lock file to match a module's providers.

    Note that `update` edits the given document in place. If it raises, the document may have been
    partially updated and must not be written back.
    """

    def __init__(
        self,
        platforms: Sequence[str],
        index: ProviderIndex,
        *,
        registry_config: RegistryConfig = RegistryConfig(),
        logger: logging.Logger = logger,
    ) -> None:
        self.platforms = tuple(platforms)
        self.index = index
        self.registry_config = registry_config
        self._logger = logger

    @classmethod
    def from_config(cls, platforms: Sequence[str], config: RegistryConfig) -> LockUpdater:
        return cls(platforms, ProviderIndex.from_config(config), registry_config=config)

    def update(self, module: ModuleContext, filename: str, document: LockDocument) -> None:
        if os.path.basename(filename) != LOCK_FILE_NAME:
            # Only the lock file is of interest here.
            return
        self.update_lockfile(module.selected_providers(), document)

    def update_lockfile(
        self, selected_providers: Sequence[SelectedProvider], document: LockDocument
    ) -> None:
        for p in selected_providers:
            try:
                address = self.fully_qualified_provider_address(p.source)
            except AddressError:
                # Unsupported notations such as the legacy abbreviated form are ignored.
                self._logger.debug(
                    "LockUpdater.update_lockfile: ignore legacy provider address notation: %s",
                    p.source,
                )
                continue

            block = document.find_provider_block(address)
            if block is None:
                block = document.append_provider_block(address)
            self.update_provider_block(block, p.source, p.version)

    def update_provider_block(self, block: ProviderBlock, source: str, version: str) -> None:
        locked = block.version
        self._logger.debug(
            "LockUpdater: check provider version in lock file: address = %s, lock = %s, config = %s",
            source,
            locked,
            version,
        )
        if locked == version:
            # Nothing changed, so there is nothing to download.
            return

        block.set_version(version)
        # Constraints can hold arbitrary expressions, but required_providers are pinned to an exact
        # version here, so the constraints are simply the version itself.
        block.set_constraints(version)

        # Downloads the provider on a cache miss.
        pv = self.index.get_or_create_provider_version(source, version, self.platforms)
        block.set_hashes(pv.all_hashes())

    def fully_qualified_provider_address(self, source: str) -> str:
        """Convert a provider source into its fully qualified form.

        For example `hashicorp/null` becomes `registry.terraform.io/hashicorp/null`, or
        `registry.opentofu.org/hashicorp/null` when the registry base URL points at OpenTofu's
        registry.
        """
        address = parse_provider_source(source)
        hostname = self.registry_config.hostname
        if hostname:
            address = address.with_hostname(hostname)
        return str(address)
