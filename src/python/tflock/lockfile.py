# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""An editable model of a dependency lock file (`.terraform.lock.hcl`).

Parsing is delegated to `python-hcl2`. Rendering keeps the original text of every block that was
not edited, comments included; edited and appended blocks are rendered in the layout
`terraform init` writes.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Sequence

import hcl2  # type: ignore[import]

from tflock.errors import LockFileParseError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".terraform.lock.hcl"

HEADER = (
    '# This file is maintained automatically by "terraform init".\n'
    "# Manual edits may be lost in future updates.\n"
)

INDENT = "  "


def unquote(value: Any) -> Any:
    # Depending on its version, python-hcl2 may keep the quotes around strings and block labels.
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    if isinstance(value, list):
        return [unquote(v) for v in value]
    return value


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("${", "$${")
        .replace("%{", "%%{")
    )
    return f'"{escaped}"'


def _render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return _quote(value)
    raise LockFileParseError(f"unsupported value in lock file: {value!r}")


class ProviderLock:
    """A `provider` block of a lock file."""

    def __init__(
        self,
        address: str,
        attributes: dict[str, Any] | None = None,
        *,
        span: tuple[int, int] | None = None,
    ) -> None:
        self.address = address
        # Attribute order is preserved when rendering.
        self.attributes: dict[str, Any] = dict(attributes or {})
        # The `[start, end)` line range of the block in the parsed text, if it came from one.
        self.span = span
        self.modified = False

    @property
    def version(self) -> str | None:
        version = self.attributes.get("version")
        return version if isinstance(version, str) else None

    @property
    def constraints(self) -> str | None:
        constraints = self.attributes.get("constraints")
        return constraints if isinstance(constraints, str) else None

    @property
    def hashes(self) -> list[str]:
        return list(self.attributes.get("hashes") or [])

    def set_version(self, version: str) -> None:
        self.attributes["version"] = version
        self.modified = True

    def set_constraints(self, constraints: str) -> None:
        self.attributes["constraints"] = constraints
        self.modified = True

    def set_hashes(self, hashes: Sequence[str]) -> None:
        self.attributes["hashes"] = list(hashes)
        self.modified = True

    def _render_lines(self) -> Iterator[str]:
        yield f"provider {_quote(self.address)} {{"

        # Consecutive single line attributes have their `=` aligned, like `terraform fmt` does.
        group: list[tuple[str, str]] = []

        def flush() -> Iterator[str]:
            width = max((len(name) for name, _ in group), default=0)
            for name, rendered in group:
                yield f"{INDENT}{name.ljust(width)} = {rendered}"
            group.clear()

        for name, value in self.attributes.items():
            if isinstance(value, list) and value:
                yield from flush()
                yield f"{INDENT}{name} = ["
                for item in value:
                    yield f"{INDENT}{INDENT}{_render_scalar(item)},"
                yield f"{INDENT}]"
            elif isinstance(value, list):
                group.append((name, "[]"))
            else:
                group.append((name, _render_scalar(value)))
        yield from flush()
        yield "}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderLock):
            return NotImplemented
        return self.address == other.address and self.attributes == other.attributes

    def __repr__(self) -> str:
        return f"ProviderLock(address={self.address!r}, attributes={self.attributes!r})"


def _render_block(block: ProviderLock) -> str:
    return "\n".join(block._render_lines()) + "\n"


class LockFile:
    """The provider blocks of a lock file, in document order.

    A lock file read with `loads` remembers its text, so that `dumps` only replaces the blocks that
    were edited and adds the appended ones at the end.
    """

    def __init__(self, providers: Sequence[ProviderLock] = (), *, text: str | None = None) -> None:
        self.providers: list[ProviderLock] = list(providers)
        self._lines = text.splitlines(keepends=True) if text and text.strip() else None
        self._appended = False

    @classmethod
    def loads(cls, text: str, *, filename: str = LOCK_FILE_NAME) -> LockFile:
        try:
            parsed = hcl2.loads(text, with_meta=True)
        except Exception as e:
            # python-hcl2 surfaces lark's exceptions, which share no useful base class.
            raise LockFileParseError(f"failed to parse {filename}: {e}") from e

        unexpected = sorted(k for k in parsed if k != "provider" and not k.startswith("__"))
        if unexpected:
            raise LockFileParseError(
                f"failed to parse {filename}: unexpected top-level content: {', '.join(unexpected)}"
            )

        wrapped_blocks = parsed.get("provider", [])
        if not isinstance(wrapped_blocks, list) or not all(
            isinstance(b, dict) for b in wrapped_blocks
        ):
            raise LockFileParseError(f"failed to parse {filename}: provider must be a block")

        num_lines = len(text.splitlines())
        providers = []
        for wrapped_block in wrapped_blocks:
            # Each entry is a dict with a single entry keyed by the block label.
            for label, body in wrapped_block.items():
                if label.startswith("__"):
                    continue
                if not isinstance(body, dict):
                    raise LockFileParseError(f"failed to parse {filename}: malformed block {label}")
                span = cls._span(body, num_lines)
                if span is None:
                    raise LockFileParseError(
                        f"failed to parse {filename}: no position for block {label}"
                    )
                attributes = {k: unquote(v) for k, v in body.items() if not k.startswith("__")}
                providers.append(ProviderLock(unquote(label), attributes, span=span))
        logger.debug("LockFile.loads: %s: %d provider blocks", filename, len(providers))
        return cls(providers, text=text)

    @staticmethod
    def _span(body: dict[str, Any], num_lines: int) -> tuple[int, int] | None:
        # Line numbers reported by python-hcl2 are 1-based and inclusive.
        start, end = body.get("__start_line__"), body.get("__end_line__")
        if not isinstance(start, int) or not isinstance(end, int):
            return None
        if not 1 <= start <= end <= num_lines:
            return None
        return start - 1, end

    @property
    def modified(self) -> bool:
        return self._appended or any(p.modified for p in self.providers)

    def dumps(self) -> str:
        if self._lines is None:
            return HEADER + "".join(f"\n{_render_block(p)}" for p in self.providers)

        out: list[str] = []
        pos = 0
        appended = []
        for p in self.providers:
            if p.span is None:
                appended.append(p)
                continue
            if p.modified:
                start, end = p.span
                out.extend(self._lines[pos:start])
                out.append(_render_block(p))
                pos = end
        out.extend(self._lines[pos:])

        text = "".join(out)
        if appended and not text.endswith("\n"):
            text += "\n"
        return text + "".join(f"\n{_render_block(p)}" for p in appended)

    def find_provider_block(self, address: str) -> ProviderLock | None:
        return next((p for p in self.providers if p.address == address), None)

    def append_provider_block(self, address: str) -> ProviderLock:
        block = ProviderLock(address)
        self.providers.append(block)
        self._appended = True
        return block

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LockFile):
            return NotImplemented
        return self.providers == other.providers

    def __repr__(self) -> str:
        return f"LockFile(providers={self.providers!r})"
