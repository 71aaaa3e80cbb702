from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from sparetrack.app import (
    create_item,
    import_catalog_file,
    import_context_file,
    migrate_legacy,
    remove_context,
    rename_context,
    summarize_context,
    update_item,
)
from sparetrack.config import ConfigurationError, configure_logging
from sparetrack.domain.errors import PartialImportError
from sparetrack.domain.model import ZERO, ContextKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from sparetrack.domain.reconciliation import ImportResult

log = logging.getLogger(__name__)

KIND_CHOICES = [kind.value for kind in ContextKind]


def _amount(value: str) -> Decimal:
    try:
        amount = Decimal(value.strip().replace(",", "."))
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise argparse.ArgumentTypeError(f"must be a non-negative amount: {value!r}")
    return amount


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile spare-parts inventory imports")
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level name or number (defaults to SPARETRACK_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_context = subparsers.add_parser(
        "import-context",
        help="Import quantities from a spreadsheet into a named context",
    )
    import_context.add_argument("file", type=str, help="CSV or Excel file to import")
    import_context.add_argument(
        "--context",
        type=str,
        required=True,
        help="Context name the quantities are counted under (e.g. Req-Jan)",
    )
    import_context.add_argument(
        "--kind",
        type=str,
        choices=KIND_CHOICES,
        required=True,
        help="Whether the quantities are requested or in stock",
    )
    import_context.add_argument(
        "--placeholder",
        type=str,
        help="Code meaning 'not yet assigned' (defaults to config)",
    )

    import_catalog = subparsers.add_parser(
        "import-catalog",
        help="Merge descriptions and unit values without touching quantities",
    )
    import_catalog.add_argument("file", type=str, help="CSV or Excel file to import")
    import_catalog.add_argument(
        "--placeholder",
        type=str,
        help="Code meaning 'not yet assigned' (defaults to config)",
    )

    rename = subparsers.add_parser("rename-context", help="Rename a context on every item")
    rename.add_argument("old_name", type=str)
    rename.add_argument("new_name", type=str)

    remove = subparsers.add_parser("remove-context", help="Drop a context from every item")
    remove.add_argument("name", type=str)
    remove.add_argument(
        "--kind",
        type=str,
        choices=KIND_CHOICES,
        help="Only drop assignments of this kind",
    )

    migrate = subparsers.add_parser(
        "migrate-legacy",
        help="Seed contexts from the legacy requested and stock quantities",
    )
    migrate.add_argument("--request-context", type=str, required=True)
    migrate.add_argument("--stock-context", type=str, required=True)

    summary = subparsers.add_parser("summary", help="Show totals for one context")
    summary.add_argument("name", type=str)

    add_item = subparsers.add_parser("add-item", help="Add one item by hand")
    add_item.add_argument("--primary-code", type=str, default="")
    add_item.add_argument("--secondary-code", type=str, default="")
    add_item.add_argument("--description", type=str, default="")
    add_item.add_argument("--unit-value", type=_amount, default=ZERO)

    edit_item = subparsers.add_parser("edit-item", help="Change fields of one item")
    edit_item.add_argument("item_id", type=str)
    edit_item.add_argument("--primary-code", type=str)
    edit_item.add_argument("--secondary-code", type=str)
    edit_item.add_argument("--description", type=str)
    edit_item.add_argument("--unit-value", type=_amount)

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    for attribute in ("context", "new_name", "request_context", "stock_context"):
        value = getattr(args, attribute, None)
        if value is not None and not value.strip():
            raise ValueError(f"--{attribute.replace('_', '-')} must not be blank")


def _log_import(result: ImportResult) -> None:
    log.info(
        "Import finished: created=%s, updated=%s, unchanged=%s, ambiguous=%s, rows=%s",
        result.created,
        result.updated,
        result.unchanged,
        result.ambiguous,
        result.rows_applied,
    )


def _run(args: argparse.Namespace) -> None:
    if args.command == "import-context":
        _log_import(
            import_context_file(
                args.file,
                context_name=args.context,
                context_kind=args.kind,
                placeholder=args.placeholder,
            )
        )
    elif args.command == "import-catalog":
        _log_import(import_catalog_file(args.file, placeholder=args.placeholder))
    elif args.command == "rename-context":
        affected = rename_context(args.old_name, args.new_name)
        log.info("Renamed %r to %r on %s items", args.old_name, args.new_name, affected)
    elif args.command == "remove-context":
        affected = remove_context(args.name, kind=args.kind)
        log.info("Removed %r from %s items", args.name, affected)
    elif args.command == "migrate-legacy":
        affected = migrate_legacy(
            request_context=args.request_context,
            stock_context=args.stock_context,
        )
        log.info("Migrated legacy quantities on %s items", affected)
    elif args.command == "summary":
        summary = summarize_context(args.name)
        log.info(
            "Context %s: items=%s, requested=%s (%s), stock=%s (%s), total value=%s",
            summary.name,
            summary.item_count,
            summary.requested_qty,
            summary.requested_value,
            summary.stock_qty,
            summary.stock_value,
            summary.total_value,
        )
    elif args.command == "add-item":
        item_id = create_item(
            primary_code=args.primary_code,
            secondary_code=args.secondary_code,
            description=args.description,
            unit_value=args.unit_value,
        )
        log.info("Created item %s", item_id)
    elif args.command == "edit-item":
        changes = {
            field: getattr(args, field)
            for field in ("primary_code", "secondary_code", "description", "unit_value")
            if getattr(args, field) is not None
        }
        if update_item(args.item_id, changes):
            log.info("Updated item %s: %s", args.item_id, ", ".join(sorted(changes)))
        else:
            log.info("Item %s already had those values", args.item_id)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        configure_logging(level=parsed_args.log_level)
        _validate(parsed_args)
    except (ConfigurationError, ValueError):
        configure_logging(level=logging.INFO)
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _run(parsed_args)
    except PartialImportError as exc:
        log.error(  # noqa: TRY400
            "Import incomplete: rows_applied=%s, rows_not_attempted=%s: %s",
            exc.result.rows_applied,
            exc.result.rows_not_attempted,
            exc,
        )
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
