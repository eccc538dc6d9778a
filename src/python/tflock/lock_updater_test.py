# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

from textwrap import dedent

import pytest

from tflock.errors import DownloadError
from tflock.hash import parse_sha256sums, zip_data_to_h1_hash
from tflock.index import ProviderIndex
from tflock.lock_updater import LockUpdater
from tflock.lockfile import LockFile
from tflock.module import ModuleContext, ProviderRequirement, SelectedProvider
from tflock.registry import RegistryConfig
from tflock.testutil import (
    MOCK_PLATFORMS,
    MockProviderDownloader,
    new_mock_package,
    new_mock_shasums_data,
)

PLATFORMS = ["darwin_arm64", "linux_amd64"]

LOCK_FILE = dedent(
    """\
    # This file is maintained automatically by "terraform init".
    # Manual edits may be lost in future updates.

    provider "registry.terraform.io/hashicorp/null" {
      version     = "3.1.1"
      constraints = "3.1.1"
      hashes = [
        "h1:stale=",
        "zh:stale",
      ]
    }
    """
)


def _expected_hashes(name: str, version: str) -> list[str]:
    h1 = [zip_data_to_h1_hash(new_mock_package(name, version, p)) for p in PLATFORMS]
    zh = parse_sha256sums(new_mock_shasums_data(name, version, MOCK_PLATFORMS)).values()
    return sorted([*h1, *zh])


def _block(address: str, version: str, hashes: list[str]) -> str:
    lines = "".join(f'    "{h}",\n' for h in hashes)
    return (
        f'provider "{address}" {{\n'
        f'  version     = "{version}"\n'
        f'  constraints = "{version}"\n'
        f"  hashes = [\n{lines}  ]\n"
        "}\n"
    )


def _module(**providers: tuple[str, str]) -> ModuleContext:
    return ModuleContext(
        "example",
        {
            name: ProviderRequirement(source=source, version_constraints=(version,))
            for name, (source, version) in providers.items()
        },
    )


def _updater(downloader: MockProviderDownloader, **kwargs) -> LockUpdater:
    return LockUpdater(PLATFORMS, ProviderIndex(downloader), **kwargs)


def test_update() -> None:
    module = _module(aws=("hashicorp/aws", "5.4.0"), null=("hashicorp/null", "3.2.1"))
    downloader = MockProviderDownloader()
    document = LockFile.loads(LOCK_FILE)

    _updater(downloader).update(module, "example/.terraform.lock.hcl", document)

    # The existing block is updated in place and the new one appended.
    assert document.dumps() == (
        '# This file is maintained automatically by "terraform init".\n'
        "# Manual edits may be lost in future updates.\n"
        "\n"
        + _block("registry.terraform.io/hashicorp/null", "3.2.1", _expected_hashes("null", "3.2.1"))
        + "\n"
        + _block("registry.terraform.io/hashicorp/aws", "5.4.0", _expected_hashes("aws", "5.4.0"))
    )
    assert downloader.called == 4

    # A second run over the written result changes nothing and downloads nothing.
    updated = document.dumps()
    again = LockFile.loads(updated)
    second_downloader = MockProviderDownloader()
    _updater(second_downloader).update(module, "example/.terraform.lock.hcl", again)
    assert again.dumps() == updated
    assert second_downloader.called == 0


def test_update_ignores_other_files() -> None:
    module = _module(null=("hashicorp/null", "3.2.1"))
    downloader = MockProviderDownloader()
    document = LockFile.loads(LOCK_FILE)

    _updater(downloader).update(module, "example/main.tf", document)

    assert document.dumps() == LOCK_FILE
    assert downloader.called == 0


@pytest.mark.parametrize("source", ["null", "-/null", "hashicorp/nu ll"])
def test_update_skips_unresolvable_sources(source: str) -> None:
    downloader = MockProviderDownloader()
    document = LockFile()

    _updater(downloader).update_lockfile(
        [SelectedProvider(source, "3.2.1"), SelectedProvider("hashicorp/aws", "5.4.0")], document
    )

    assert [p.address for p in document.providers] == ["registry.terraform.io/hashicorp/aws"]
    assert downloader.called == len(PLATFORMS)


def test_update_registry_hostname() -> None:
    downloader = MockProviderDownloader()
    document = LockFile()
    config = RegistryConfig(base_url="https://registry.opentofu.org/")

    _updater(downloader, registry_config=config).update_lockfile(
        [SelectedProvider("hashicorp/null", "3.2.1")], document
    )

    assert [p.address for p in document.providers] == ["registry.opentofu.org/hashicorp/null"]


def test_update_failure_propagates() -> None:
    downloader = MockProviderDownloader(
        fail=lambda request: DownloadError(500, "https://example.com/null.zip")
    )
    document = LockFile.loads(LOCK_FILE)

    with pytest.raises(DownloadError):
        _updater(downloader).update_lockfile(
            [SelectedProvider("hashicorp/null", "3.2.1")], document
        )


def test_fully_qualified_provider_address() -> None:
    updater = _updater(MockProviderDownloader())
    assert (
        updater.fully_qualified_provider_address("hashicorp/null")
        == "registry.terraform.io/hashicorp/null"
    )
    assert (
        updater.fully_qualified_provider_address("registry.terraform.io/hashicorp/null")
        == "registry.terraform.io/hashicorp/null"
    )
