"""
Command line entry point: provision iwes and print its path.

    python -m iwe_bootstrap [--force-update] [--no-auto-update] ...
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from iwe_bootstrap._core.lifecycle import create_default_provisioner
from iwe_bootstrap._core.version import PACKAGE_VERSION
from iwe_bootstrap.config import get_storage_root, load_provisioning_config
from iwe_bootstrap.errors import IweBootstrapError
from iwe_bootstrap.types import ProvisioningConfig, ProvisioningResult

logger = logging.getLogger("iwe_bootstrap")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iwe-bootstrap",
        description="Install or update the iwes language server and print its path.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {PACKAGE_VERSION}")
    parser.add_argument("--storage-dir", type=Path, help="Directory holding installed versions")
    parser.add_argument("--state-file", type=Path, help="JSON file holding installation state")
    parser.add_argument(
        "--force-update",
        action="store_true",
        help="Ignore the cached install and fetch the latest release now",
    )
    parser.add_argument(
        "--no-auto-update",
        action="store_true",
        help="Only install when nothing usable is cached",
    )
    parser.add_argument("--interval-hours", type=float, help="Hours between update checks")
    parser.add_argument("--host-version", help="Host application version")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _resolve_config(args: argparse.Namespace) -> ProvisioningConfig:
    config = load_provisioning_config()
    return ProvisioningConfig(
        auto_update=config.auto_update and not args.no_auto_update,
        update_check_interval_hours=(
            args.interval_hours
            if args.interval_hours is not None
            else config.update_check_interval_hours
        ),
    )


async def _provision(args: argparse.Namespace) -> ProvisioningResult:
    config = _resolve_config(args)
    storage_root = args.storage_dir or get_storage_root()
    provisioner = create_default_provisioner(args.state_file)

    if args.force_update:
        return await provisioner.force_update(storage_root, config)
    return await provisioner.provision(storage_root, config, host_version=args.host_version)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        result = asyncio.run(_provision(args))
    except IweBootstrapError as e:
        print(f"error: Failed to initialize IWE language server: {e}", file=sys.stderr)
        return 1

    logger.debug(f"Provisioned {result.path} from {result.source.value}")
    print(result.path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
