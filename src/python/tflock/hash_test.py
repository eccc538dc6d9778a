# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import io
import zipfile

import pytest

from tflock.errors import (
    ArchiveFormatError,
    ChecksumMismatchError,
    ChecksumNotFoundError,
    ChecksumParseError,
)
from tflock.hash import (
    parse_sha256sums,
    sha256_hexdigest,
    validate_sha256sum,
    validate_sha256sums,
    zip_data_to_h1_hash,
)
from tflock.testutil import new_mock_package, new_mock_zip_data


@pytest.mark.parametrize(
    "platform, expected",
    [
        ("darwin_arm64", "h1:3323G20HW9PA9ONrL6CdQCdCFe6y94kXeOTprq+Zu+w="),
        ("darwin_amd64", "h1:63My0EuWIYHWVwWOxmxWwgrfx+58Tz+nTduelaCCAfs="),
        ("linux_amd64", "h1:2zotrPRAjGZZMkjJGBGLnIbG+sqhQN30sbwqSDECQFQ="),
    ],
)
def test_zip_data_to_h1_hash(platform: str, expected: str) -> None:
    assert zip_data_to_h1_hash(new_mock_package("dummy", "3.2.1", platform)) == expected


def _zip(members: list[tuple[str, str]], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        for name, contents in members:
            zf.writestr(name, contents)
    return buf.getvalue()


def test_h1_hash_ignores_member_order_and_compression() -> None:
    a = _zip([("a.txt", "aaa"), ("b.txt", "bbb")])
    b = _zip([("b.txt", "bbb"), ("a.txt", "aaa")], compression=zipfile.ZIP_STORED)
    assert a != b
    assert zip_data_to_h1_hash(a) == zip_data_to_h1_hash(b)


def test_h1_hash_depends_on_contents() -> None:
    a = new_mock_zip_data("terraform-provider-dummy_v3.2.1_x5", "foo")
    b = new_mock_zip_data("terraform-provider-dummy_v3.2.1_x5", "bar")
    assert zip_data_to_h1_hash(a) != zip_data_to_h1_hash(b)


def test_h1_hash_is_deterministic() -> None:
    data = new_mock_package("dummy", "3.2.1", "linux_amd64")
    assert zip_data_to_h1_hash(data) == zip_data_to_h1_hash(data)


@pytest.mark.parametrize("data", [b"", b"not a zip archive", b"PK\x03\x04truncated"])
def test_h1_hash_invalid_archive(data: bytes) -> None:
    with pytest.raises(ArchiveFormatError, match="failed to calculate h1 hash"):
        zip_data_to_h1_hash(data)


def test_h1_hash_rejects_newline_in_member_name() -> None:
    with pytest.raises(ArchiveFormatError, match="newlines"):
        zip_data_to_h1_hash(_zip([("bad\nname", "x")]))


def test_parse_sha256sums() -> None:
    document = (
        b"5622a0fd03420ed1fa83a1a6e90b65fbe34bc74c251b3b47048f14217e93b086  "
        b"terraform-provider-dummy_3.2.1_darwin_arm64.zip\n"
        b"c5f0a44e3a3795cb3ee0abb0076097c738294c241f74c145dfb50f2b9fd71fd2  "
        b"terraform-provider-dummy_3.2.1_linux_amd64.zip\n"
    )
    assert parse_sha256sums(document) == {
        "terraform-provider-dummy_3.2.1_darwin_arm64.zip": (
            "zh:5622a0fd03420ed1fa83a1a6e90b65fbe34bc74c251b3b47048f14217e93b086"
        ),
        "terraform-provider-dummy_3.2.1_linux_amd64.zip": (
            "zh:c5f0a44e3a3795cb3ee0abb0076097c738294c241f74c145dfb50f2b9fd71fd2"
        ),
    }


def test_parse_sha256sums_tolerates_blank_lines() -> None:
    assert parse_sha256sums(b"\nabc  foo.zip\n\n  \ndef  bar.zip") == {
        "foo.zip": "zh:abc",
        "bar.zip": "zh:def",
    }
    assert parse_sha256sums(b"") == {}


@pytest.mark.parametrize("line", [b"abc", b"abc foo.zip extra", b"\xff\xfe  foo.zip"])
def test_parse_sha256sums_malformed(line: bytes) -> None:
    with pytest.raises(ChecksumParseError, match="SHA256SUMS document https://example.com/SUMS"):
        parse_sha256sums(line, source="https://example.com/SUMS")


def test_validate_sha256sum() -> None:
    validate_sha256sum(b"hello", sha256_hexdigest(b"hello"))
    with pytest.raises(ChecksumMismatchError) as exc:
        validate_sha256sum(b"hello", "0" * 64, source="https://example.com/pkg.zip")
    assert exc.value.got == sha256_hexdigest(b"hello")
    assert exc.value.expected == "0" * 64
    assert "https://example.com/pkg.zip" in str(exc.value)


def test_validate_sha256sums() -> None:
    document = b"abc  foo.zip\ndef  bar.zip\n"
    validate_sha256sums(document, "bar.zip", "def")
    with pytest.raises(ChecksumMismatchError):
        validate_sha256sums(document, "bar.zip", "abc")
    with pytest.raises(ChecksumNotFoundError, match="baz.zip"):
        validate_sha256sums(document, "baz.zip", "abc")


def _set_encrypted_flag(zip_data: bytes) -> bytes:
    data = bytearray(zip_data)
    # The general purpose flags sit at offset 6 of a local file header and offset 8 of a central
    # directory header.
    for signature, offset in [(b"PK\x03\x04", 6), (b"PK\x01\x02", 8)]:
        pos = data.find(signature)
        assert pos >= 0
        data[pos + offset] |= 0x1
    return bytes(data)


def test_h1_hash_rejects_encrypted_member() -> None:
    data = _set_encrypted_flag(new_mock_package("dummy", "3.2.1", "linux_amd64"))
    with pytest.raises(ArchiveFormatError, match="encrypted"):
        zip_data_to_h1_hash(data)
