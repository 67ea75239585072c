from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from pydantic import ValidationError

from ledgersync.app import (
    diagnose_employee,
    purge_stray_identities,
    remove_employee,
    scan_orphans,
    sync_identities,
    upsert_employees,
)
from ledgersync.config import configure_logging
from ledgersync.domain.reconciliation import RemovalFailure, SyncAction
from ledgersync.ui.payloads import load_employee_file

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from ledgersync.domain.reconciliation import EmployeeFields

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile employees with their identities")
    parser.add_argument(
        "--actor",
        type=str,
        help="Business code of the administrator the operation logs are attributed to",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upsert = subparsers.add_parser("upsert", help="Create or update employees from a JSON file")
    upsert.add_argument("file", type=Path, help="JSON object or array of employees")

    delete = subparsers.add_parser("delete", help="Remove an employee and its identity")
    delete.add_argument("code", type=str, help="Business code of the employee")
    delete.add_argument(
        "--version",
        type=int,
        help="Expected version (defaults to the stored one)",
    )

    orphans = subparsers.add_parser("orphans", help="Find identities no employee references")
    orphans.add_argument(
        "--live",
        action="store_true",
        help="Delete the orphan identities (default is a dry run)",
    )

    subparsers.add_parser("sync-identities", help="Ensure every employee has a linked identity")

    diagnose = subparsers.add_parser("diagnose", help="Show one business code in both stores")
    diagnose.add_argument("code", type=str)

    purge = subparsers.add_parser(
        "purge-identities",
        help="Delete identities left behind for a removed employee",
    )
    purge.add_argument("code", type=str)

    return parser.parse_args(list(argv))


def _load_entries(path: Path) -> list[EmployeeFields]:
    try:
        return load_employee_file(path)
    except (OSError, ValidationError) as exc:
        raise ValueError(f"Cannot read employees from {path}: {exc}") from exc


async def _run(args: argparse.Namespace, entries: list[EmployeeFields]) -> int:  # noqa: C901
    """Run one command; returns the process exit status."""

    if args.command == "upsert":
        batch = await upsert_employees(entries, actor_code=args.actor)
        for failure in batch.failed:
            log.warning("%s: %s (%s)", failure.code, failure.kind, failure.message)
        log.info("Upsert finished: %s ok, %s failed", len(batch.succeeded), len(batch.failed))
        return 1 if batch.failed else 0

    if args.command == "delete":
        result = await remove_employee(args.code, version=args.version, actor_code=args.actor)
        if isinstance(result, RemovalFailure):
            log.warning("Employee %s not removed: %s (%s)", args.code, result.kind, result.message)
            return 1
        log.info("Removed employee %s (identity %s)", args.code, result.identity_id)
        return 0

    if args.command == "orphans":
        report = await scan_orphans(dry_run=not args.live)
        for candidate in report.orphan_candidates:
            log.info(
                "orphan %s %s (%s%s)",
                candidate.identity_id,
                candidate.login_key,
                candidate.kind,
                f", matches {candidate.matched_code}" if candidate.matched_code else "",
            )
        for error in report.errors:
            log.warning("%s %s: %s", error.phase, error.identity_id, error.message)
        log.info(
            "Orphan scan: identities=%s, linked=%s, candidates=%s, deleted=%s, errors=%s",
            report.total_identities,
            report.total_linked_domain_records,
            len(report.orphan_candidates),
            len(report.deleted),
            len(report.errors),
        )
        return 0

    if args.command == "sync-identities":
        sync_report = await sync_identities()
        for entry in sync_report.failures:
            log.warning("%s: %s (%s)", entry.code, entry.kind, entry.error)
        return 1 if sync_report.count(SyncAction.FAILED) else 0

    if args.command == "diagnose":
        diagnosis = await diagnose_employee(args.code)
        for identity in diagnosis.identities:
            log.info(
                "identity %s %s code=%s role=%s",
                identity.id,
                identity.login_key,
                identity.claims.code,
                identity.claims.role,
            )
        log.info("%s: %s, linked=%s", args.code, diagnosis.summary, diagnosis.linked)
        return 0

    if args.command == "purge-identities":
        purge = await purge_stray_identities(args.code)
        if purge.refused:
            log.warning("Purge refused: %s", purge.refused)
            return 1
        log.info("Deleted %s identities for %s", len(purge.deleted), args.code)
        return 1 if purge.errors else 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        entries = _load_entries(parsed_args.file) if parsed_args.command == "upsert" else []
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        status = asyncio.run(_run(parsed_args, entries))
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)
    if status:
        sys.exit(status)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
