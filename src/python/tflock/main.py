# Copyright 2023 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Update the dependency lock file of a Terraform module without running `terraform init`.

Usage:
    tflock --platform linux_amd64 --platform darwin_arm64 path/to/module
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Sequence

from tflock.errors import TFLockError
from tflock.lock_updater import LockUpdater
from tflock.lockfile import LOCK_FILE_NAME, LockFile
from tflock.module import ModuleContext
from tflock.registry import BASE_URL_ENV_VAR, RegistryConfig
from tflock.util.logging import LogLevel

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tflock", description=__doc__.splitlines()[0])
    parser.add_argument(
        "--platform",
        dest="platforms",
        action="append",
        required=True,
        help="A target platform such as linux_amd64 to record hashes for. May be repeated, or "
        "given as a comma separated list.",
    )
    parser.add_argument(
        "--registry-base-url",
        default=None,
        help=f"The base URL of the provider registry. Defaults to ${BASE_URL_ENV_VAR}, or the "
        "public Terraform Registry.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each HTTP request.",
    )
    parser.add_argument(
        "--level",
        type=LogLevel,
        choices=list(LogLevel),
        default=LogLevel.INFO,
        help="The log level.",
    )
    parser.add_argument("path", help="The directory of the Terraform module.")
    return parser


def update_module(path: str, updater: LockUpdater) -> bool:
    """Synchronize the lock file of the module at `path`, returning whether it was written."""
    module = ModuleContext.load(path)
    filename = os.path.join(path, LOCK_FILE_NAME)

    original = None
    if os.path.exists(filename):
        with open(filename, encoding="utf-8") as f:
            original = f.read()
    document = LockFile.loads(original, filename=filename) if original is not None else LockFile()

    updater.update(module, filename, document)

    # Untouched documents are never re-rendered, so their formatting and comments survive.
    updated = document.dumps() if document.modified else original
    if updated is None or updated == original:
        logger.debug("%s is up to date", filename)
        return False

    with open(filename, "w", encoding="utf-8") as f:
        f.write(updated)
    logger.info("Updated %s", filename)
    return True


def main(argv: Sequence[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    if not os.path.isdir(args.path):
        parser.error(f"not a directory: {args.path}")

    logging.basicConfig(format="%(message)s")
    args.level.set_level_for(logging.getLogger("tflock"))

    platforms = [p.strip() for value in args.platforms for p in value.split(",") if p.strip()]
    overrides: dict = {"base_url": args.registry_base_url}
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    config = RegistryConfig.from_env(**overrides)

    try:
        update_module(args.path, LockUpdater.from_config(platforms, config))
    except TFLockError as e:
        logger.error("tflock: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
