# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations


class TFLockError(Exception):
    """Base exception type for tflock."""


class ValidationError(TFLockError):
    """Indicates invalid input detected before any I/O took place."""


class AddressError(ValidationError):
    """Indicates a provider address that cannot be used in a dependency lock file."""


class PlatformError(ValidationError):
    """Indicates a malformed `os_arch` platform token."""


class RequestValidationError(ValidationError):
    """Indicates a registry request with a missing required field."""


class FetchError(TFLockError):
    """Indicates an error fetching an URL."""

    def __init__(self, msg: str, url: str) -> None:
        super().__init__(msg)
        self.url = url


class DownloadError(FetchError):
    """Indicates the server answered with a non-2xx status code."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"unexpected HTTP status code {status_code}: {url}", url)
        self.status_code = status_code


class TransportError(FetchError):
    """Indicates the request failed before a response was received.

    For example a connection error or a timeout.
    """


class RegistryError(TFLockError):
    """Indicates the registry returned a response we could not interpret."""


class FormatError(TFLockError):
    """Indicates data in an unexpected format."""


class ArchiveFormatError(FormatError):
    """Indicates a provider package that is not a readable zip archive."""


class ChecksumParseError(FormatError):
    """Indicates a malformed SHA256SUMS document."""


class LockFileParseError(FormatError):
    """Indicates a dependency lock file that could not be parsed."""


class ChecksumError(TFLockError):
    """Indicates downloaded data that does not match its published checksum."""


class ChecksumMismatchError(ChecksumError):
    def __init__(self, got: str, expected: str, source: str | None = None) -> None:
        where = f" for {source}" if source else ""
        super().__init__(f"checksum mismatch{where}: got = {got}, expected = {expected}")
        self.got = got
        self.expected = expected


class ChecksumNotFoundError(ChecksumError):
    pass


class ConsistencyError(TFLockError):
    """Indicates records that disagree with each other.

    These point at either an inconsistent registry or a programming error and are never patched
    over.
    """


class AddressMismatchError(ConsistencyError):
    pass


class VersionMismatchError(ConsistencyError):
    pass


class ChecksumInconsistencyError(ConsistencyError):
    pass


class FrozenRecordError(ConsistencyError):
    pass
