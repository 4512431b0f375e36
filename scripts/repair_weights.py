"""Utility to repair weight ordering across every group of a table."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from contextlib import suppress

from rowweight import SessionRecordStore, WeightConfig, WeightManager
from rowweight.config import DEFAULT_WEIGHT_COLUMN
from rowweight.db import database


logger = logging.getLogger("rowweight.scripts.repair_weights")


# Access SessionLocal dynamically so callers that rebind the sessionmaker
# (database.configure) are respected.
SessionLocal = lambda: database.SessionLocal()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect and repair duplicate weights")
    parser.add_argument(
        "--model",
        required=True,
        help="Mapped class to repair, as 'package.module:ClassName'",
    )
    parser.add_argument(
        "--weight-column",
        default=DEFAULT_WEIGHT_COLUMN,
        help=f"Column holding the ordering integer (default: {DEFAULT_WEIGHT_COLUMN})",
    )
    parser.add_argument(
        "--group-column",
        default=None,
        help="Column partitioning rows into independent ordering groups",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report groups with duplicate weights without updating them",
    )
    parser.add_argument(
        "--compact",
        action="store_true",
        help="Renumber every group 1..N, closing gaps as well as duplicates",
    )
    return parser.parse_args(argv)


def load_model(reference: str):
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Model reference must look like 'module:ClassName', got {reference!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ValueError(f"Module {module_name!r} has no attribute {attr!r}") from e


def repair(manager: WeightManager, dry_run: bool, compact: bool) -> int:
    name = manager.store.model_class.__name__
    inconsistent = manager.inconsistent_groups()
    logger.info(
        "Weight repair run starting",
        extra={
            "model": name,
            "inconsistent_groups": len(inconsistent),
            "dry_run": dry_run,
            "compact": compact,
        },
    )
    if dry_run:
        print(f"{len(inconsistent)} {name} group(s) have duplicate weights; no changes made.")
        for value in inconsistent:
            print(f"  group {value!r}")
        return 0

    if not inconsistent and not compact:
        print(f"All {name} groups already have unique weights.")
        return 0

    repaired = manager.repair_all(compact=compact)
    print(f"Renumbered {repaired} {name} group(s).")
    logger.info("Weight repair run finished", extra={"model": name, "repaired_groups": repaired})
    return 0


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    session = SessionLocal()
    try:
        try:
            model_class = load_model(args.model)
            config = WeightConfig(weight_column=args.weight_column, weight_group_column=args.group_column)
            manager = WeightManager(SessionRecordStore(session, model_class, config))
        except (ImportError, ValueError) as e:
            print(f"Invalid model configuration: {e}", file=sys.stderr)
            logger.error(f"Weight repair aborted: {e}")
            return 2
        return repair(manager, dry_run=args.dry_run, compact=args.compact)
    finally:
        with suppress(Exception):
            session.close()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
