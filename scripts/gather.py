"""Gather Keycloak group memberships and print the resulting registry.

This module serves as a CLI wrapper around gluebuddy.core.keycloak services.
"""
from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gluebuddy.config import ConfigurationError, load_settings
from gluebuddy.core.keycloak import DirectoryError, KeycloakGatherer
from gluebuddy.core.state import MergeError, Registry

logger = logging.getLogger("gluebuddy")


def gather(registry: Registry) -> None:
    """Load settings and run one gather pass into ``registry``."""
    settings = load_settings()
    gatherer = KeycloakGatherer.from_settings(settings, registry)
    asyncio.run(gatherer.gather())


def print_registry(registry: Registry, as_json: bool = False) -> None:
    """Print each user with their sorted group paths, or the same as JSON."""
    snapshot = registry.snapshot()
    if as_json:
        print(json.dumps({user: sorted(paths) for user, paths in sorted(snapshot.items())}, indent=2))
        return
    for user in sorted(snapshot):
        print(f"{user}: {', '.join(sorted(snapshot[user]))}")


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Keycloak group gatherer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="cmd")

    sg = sub.add_parser("gather", help="Collect root group memberships from Keycloak")
    sg.add_argument("--json", action="store_true", help="Print the registry as JSON")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.cmd:
        parser.print_help()
        return

    registry = Registry()
    try:
        gather(registry)
    except ConfigurationError as exc:
        print(f"[gluebuddy] configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    except (DirectoryError, MergeError) as exc:
        logger.error("gather failed: %s", exc)
        print(f"[gluebuddy] gather failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print_registry(registry, as_json=args.json)


if __name__ == "__main__":
    main()
