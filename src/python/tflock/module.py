# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""The provider requirements of a Terraform module.

Only `terraform { required_providers { ... } }` is read. Version constraints are never solved: a
provider is selected only when one of its constraints pins an exact version.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

import hcl2  # type: ignore[import]
from packaging.version import InvalidVersion, Version

from tflock.lockfile import unquote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedProvider:
    # A provider source address such as hashicorp/null.
    source: str
    # An exact version such as 3.2.1.
    version: str


@dataclass(frozen=True)
class ProviderRequirement:
    source: str
    version_constraints: tuple[str, ...] = ()


_RELEASE_RE = re.compile(r"^[vV]?\d+(?:\.\d+)*(?P<suffix>.*)$")


def exact_version(candidate: str) -> str | None:
    """Normalize `candidate` if it is an exact version, e.g. `v3.2` becomes `3.2.0`.

    The release is padded to three parts and a pre-release suffix is kept as written. Versions with
    an epoch, a post or dev release, or local segments are not exact versions of a provider.
    """
    try:
        version = Version(candidate)
    except InvalidVersion:
        return None
    if "!" in candidate or version.post is not None or version.dev is not None or version.local:
        return None
    match = _RELEASE_RE.match(candidate)
    if match is None:
        return None
    release = [*version.release, *[0] * (3 - len(version.release))]
    return ".".join(str(n) for n in release) + match.group("suffix")


def select_version(constraints: Iterable[str]) -> str | None:
    """Return the first exact version among `constraints`, or None.

    Each constraint may be a comma separated list, e.g. `>= 3.0, 3.2.1`.
    """
    for constraint in constraints:
        for candidate in constraint.split(","):
            version = exact_version(candidate.strip())
            if version is not None:
                return version
    return None


def _blocks(value: Any) -> Iterable[dict[str, Any]]:
    # Blocks come back as a list of dicts, one per occurrence in the file.
    if isinstance(value, dict):
        yield value
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                yield item


@dataclass
class ModuleContext:
    """The providers required by the `*.tf` files of one directory."""

    directory: str
    required_providers: dict[str, ProviderRequirement] = field(default_factory=dict)

    @classmethod
    def load(cls, directory: str) -> ModuleContext:
        module = cls(directory)
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            if not name.endswith(".tf") or not os.path.isfile(path):
                continue
            with open(path, encoding="utf-8") as f:
                text = f.read()
            try:
                parsed = hcl2.loads(text)
            except Exception as e:
                logger.debug("ModuleContext.load: failed to parse %s: %s", path, e)
                continue
            module.add_parsed(parsed)
        return module

    def add_parsed(self, parsed: dict[str, Any]) -> None:
        for terraform in _blocks(parsed.get("terraform")):
            for required in _blocks(terraform.get("required_providers")):
                for local_name, value in required.items():
                    if local_name.startswith("__"):
                        continue
                    self._add_requirement(unquote(local_name), value)

    def _add_requirement(self, local_name: str, value: Any) -> None:
        value = unquote(value)
        if isinstance(value, str):
            # The shorthand `name = "1.0"` predates source addresses.
            source, version = "", value
        elif isinstance(value, dict):
            source = unquote(value.get("source") or "")
            version = unquote(value.get("version") or "")
        else:
            logger.debug("ModuleContext: ignore malformed requirement for %s: %r", local_name, value)
            return

        existing = self.required_providers.get(local_name)
        constraints = existing.version_constraints if existing else ()
        if version:
            constraints = (*constraints, version)
        self.required_providers[local_name] = ProviderRequirement(
            source=source or (existing.source if existing else ""),
            version_constraints=constraints,
        )

    def selected_providers(self) -> list[SelectedProvider]:
        """The providers with a source and an exact version, sorted by source."""
        ret = []
        for local_name, req in self.required_providers.items():
            if not req.source:
                logger.debug("ModuleContext: ignore provider without a source: %s", local_name)
                continue
            version = select_version(req.version_constraints)
            if version is None:
                logger.debug(
                    "ModuleContext: ignore provider without an exact version: %s %s",
                    req.source,
                    req.version_constraints,
                )
                continue
            ret.append(SelectedProvider(source=req.source, version=version))
        return sorted(ret, key=lambda p: p.source)
