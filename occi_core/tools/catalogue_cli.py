"""
Catalogue CLI tool for the OCCI category model.

This tool inspects category catalogues offline:
- list: Show registered Kinds, Mixins and Actions
- describe: Show one category with its effective (inherited) schema
- snapshot: Export the catalogue to JSON
- validate: Load a catalogue file on top of the built-ins and report errors

Usage:
    occi-catalogue list --type kind
    occi-catalogue describe http://schemas.ogf.org/occi/infrastructure#network
    occi-catalogue snapshot > catalogue.lock.json
    occi-catalogue validate --file extra.json

Invariants:
    - Snapshots are deterministic (sorted JSON plus fingerprint)
    - Errors cause a non-zero exit code
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import json_log_formatter

from ..category.registry import CategoryRegistry
from ..category.types import Action, Kind, Mixin
from ..config import Settings
from ..errors import OcciError
from ..infrastructure import register_infrastructure
from ..render import render_categories, render_category

logger = logging.getLogger(__name__)

CATEGORY_TYPES = {"kind": Kind, "mixin": Mixin, "action": Action}


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class CatalogueCLI:
    """Commands over a category registry.

    Example:
        >>> cli = CatalogueCLI(registry)
        >>> print(cli.list("kind"))
    """

    def __init__(self, registry: CategoryRegistry, fmt: str = "text") -> None:
        self.registry = registry
        self.fmt = fmt

    def list(self, category_type: Optional[str] = None) -> str:
        view = self.registry.list(CATEGORY_TYPES[category_type] if category_type else None)
        return render_categories(view, self.fmt)

    def describe(self, identity: str) -> str:
        return render_category(self.registry.get(identity), self.fmt, self.registry)

    def snapshot(self) -> str:
        output = {
            "version": 1,
            "fingerprint": self.registry.fingerprint,
            "catalogue": self.registry.to_dict(),
        }
        return json.dumps(output, indent=2, sort_keys=True)

    def validate(self, path: str) -> List[str]:
        """Load a catalogue file into the registry.

        Returns:
            List of errors (empty if the file loaded cleanly)
        """
        with open(path) as f:
            data = json.load(f)
        data = data.get("catalogue", data)
        try:
            added = self.registry.load(data)
        except (OcciError, ValueError, KeyError) as e:
            return [str(e)]
        logger.info(f"Catalogue {path} added {len(added)} categories")
        return []


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the catalogue tool."""
    settings = Settings()
    setup_logging(settings)

    parser = argparse.ArgumentParser(description="OCCI category catalogue tool")
    parser.add_argument(
        "--format",
        choices=["text", "json", "yaml"],
        default=settings.output_format.value,
        help="Output format",
    )
    parser.add_argument(
        "--no-builtins", action="store_true", help="Start from an empty catalogue"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List registered categories")
    list_parser.add_argument("--type", choices=sorted(CATEGORY_TYPES), help="Category type")

    describe_parser = subparsers.add_parser("describe", help="Show a category")
    describe_parser.add_argument("identity", help="Category identity (scheme + term)")

    subparsers.add_parser("snapshot", help="Export catalogue to JSON")

    validate_parser = subparsers.add_parser("validate", help="Validate a catalogue file")
    validate_parser.add_argument("--file", required=True, help="Catalogue JSON file")

    args = parser.parse_args(argv)

    registry = CategoryRegistry()
    if settings.load_infrastructure and not args.no_builtins:
        register_infrastructure(registry)
    cli = CatalogueCLI(registry, args.format)

    if args.command == "list":
        print(cli.list(args.type))
    elif args.command == "describe":
        try:
            print(cli.describe(args.identity))
        except OcciError as e:
            print(e.message, file=sys.stderr)
            return 1
    elif args.command == "snapshot":
        print(cli.snapshot())
    elif args.command == "validate":
        errors = cli.validate(args.file)
        if errors:
            print(f"Catalogue validation failed with {len(errors)} error(s):")
            for error in errors:
                print(f"  - {error}")
            return 1
        print("Catalogue is valid")
    return 0


if __name__ == "__main__":
    sys.exit(main())
