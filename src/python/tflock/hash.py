# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""The two checksum schemes recorded in a dependency lock file.

`h1:` hashes are computed locally from the contents of a provider package, using the same scheme
as `go.sum` (`dirhash.Hash1` of golang.org/x/mod). They don't depend on how the zip archive itself
was built, only on the names and contents of its members.

`zh:` hashes are the plain sha256 sums of the package zip files, as published by the registry in
the provider's SHA256SUMS document.
"""

from __future__ import annotations

import base64
import hashlib
import io
import zipfile
import zlib

from tflock.errors import (
    ArchiveFormatError,
    ChecksumMismatchError,
    ChecksumNotFoundError,
    ChecksumParseError,
)

H1_PREFIX = "h1:"
ZH_PREFIX = "zh:"

# Bit 0 of the general purpose flags of a zip member.
_FLAG_ENCRYPTED = 0x1


def sha256_hexdigest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def validate_sha256sum(data: bytes, expected: str, *, source: str | None = None) -> None:
    got = sha256_hexdigest(data)
    if got != expected:
        raise ChecksumMismatchError(got=got, expected=expected, source=source)


def zip_data_to_h1_hash(zip_data: bytes) -> str:
    """Calculate the h1 hash of a provider package from the raw bytes of its zip archive.

    Every member contributes a `<sha256 hex>  <name>` line to a manifest; the lines are sorted by
    name, and the sha256 of the whole manifest is base64 encoded.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(zip_data)) as zf:
            names = zf.namelist()
            # With duplicated names the last member wins.
            members = {info.filename: info for info in zf.infolist()}
            lines = []
            for name in sorted(names):
                if members[name].flag_bits & _FLAG_ENCRYPTED:
                    raise ArchiveFormatError(f"encrypted members are not supported: {name!r}")
                if "\n" in name:
                    raise ArchiveFormatError(f"filenames with newlines are not supported: {name!r}")
                lines.append(f"{sha256_hexdigest(zf.read(members[name]))}  {name}\n")
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        EOFError,
        NotImplementedError,
        RuntimeError,
    ) as e:
        raise ArchiveFormatError(f"failed to calculate h1 hash: {e}") from e

    digest = hashlib.sha256("".join(lines).encode("utf-8")).digest()
    return H1_PREFIX + base64.b64encode(digest).decode("ascii")


def _records(document: bytes, source: str | None):
    text = document.decode("utf-8")
    for line in text.splitlines():
        # Blank lines are not expected in a real document, but tolerate them.
        if not line.strip():
            continue
        fields = line.split()
        if len(fields) != 2:
            raise ChecksumParseError(
                f"failed to parse SHA256SUMS document {source or '<unknown>'}: {line!r}"
            )
        yield fields[0], fields[1]


def parse_sha256sums(document: bytes, *, source: str | None = None) -> dict[str, str]:
    """Parse a SHA256SUMS document into a mapping from filename to zh hash.

    `source` names the document in error messages, usually its URL.
    """
    try:
        return {filename: ZH_PREFIX + digest for digest, filename in _records(document, source)}
    except UnicodeDecodeError as e:
        raise ChecksumParseError(
            f"failed to decode SHA256SUMS document {source or '<unknown>'}: {e}"
        ) from e


def validate_sha256sums(
    document: bytes, filename: str, sha256sum: str, *, source: str | None = None
) -> None:
    """Check that the SHA256SUMS document records `sha256sum` for `filename`."""
    zh_hashes = parse_sha256sums(document, source=source)
    zh = zh_hashes.get(filename)
    if zh is None:
        raise ChecksumNotFoundError(
            f"checksum for {filename} not found in SHA256SUMS document {source or '<unknown>'}"
        )
    got = zh[len(ZH_PREFIX) :]
    if got != sha256sum:
        raise ChecksumMismatchError(got=got, expected=sha256sum, source=source)
