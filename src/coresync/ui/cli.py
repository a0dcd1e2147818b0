# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from coresync.app import (
    LISTABLE,
    build_engine,
    deplete_clients,
    list_objects,
    load_settings,
    recent_changes,
    run_core,
    save_object,
)
from coresync.config import configure_logging
from coresync.domain.errors import ValidationError
from coresync.domain.model import Action, ObjectClass
from coresync.domain.reconciliation import DEFAULT_CHANGE_LIMIT

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from coresync.domain.reconciliation import ReconciliationEngine

log = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile proxy core configuration")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Patch an in-memory core instead of supervising the core binary",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    save = subparsers.add_parser("save", help="Apply one configuration change")
    save.add_argument("object", choices=[item.value for item in ObjectClass])
    save.add_argument("action", choices=[item.value for item in Action])
    save.add_argument("payload", help="JSON document, or a bare id/tag for deletes")
    save.add_argument("--actor", default="", help="Name recorded in the change log")
    save.add_argument(
        "--init-users",
        type=str,
        help="Comma-separated client ids to link to a new inbound",
    )

    subparsers.add_parser("config", help="Print the assembled core document")

    changes = subparsers.add_parser("changes", help="Show recent change records")
    changes.add_argument("--actor", type=str, help="Only changes made by this actor")
    changes.add_argument("--key", type=str, help="Only changes to this object class")
    changes.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_CHANGE_LIMIT,
        help="Maximum number of records (default: %(default)s)",
    )

    check = subparsers.add_parser("check", help="Report whether anything changed")
    check.add_argument("watermark", nargs="?", help="Unix timestamp of the last poll")

    subparsers.add_parser("deplete", help="Disable expired and over-quota clients")
    subparsers.add_parser("settings", help="Print every visible setting")

    listing = subparsers.add_parser("list", help="List stored objects")
    listing.add_argument("object", choices=[item.value for item in LISTABLE])
    listing.add_argument(
        "--id",
        dest="ids",
        type=int,
        action="append",
        help="Client id to show in full (repeatable)",
    )

    run = subparsers.add_parser("run", help="Run the core with a periodic depletion sweep")
    run.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_SWEEP_INTERVAL_SECONDS,
        help="Seconds between depletion sweeps (default: %(default)s)",
    )
    return parser.parse_args(list(argv))


def _print_json(value: object) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def _dispatch(engine: ReconciliationEngine, args: argparse.Namespace) -> None:
    if args.command == "save":
        result = save_object(
            engine,
            args.object,
            args.action,
            args.payload,
            actor=args.actor,
            init_users=args.init_users,
        )
        _print_json(
            {
                "objects": list(result.objects),
                "changedAt": result.changed_at,
                "restarted": result.convergence.restarted,
                "errors": result.convergence.errors,
            }
        )
    elif args.command == "config":
        _print_json(engine.assemble_config())
    elif args.command == "changes":
        _print_json(recent_changes(engine, actor=args.actor, key=args.key, limit=args.limit))
    elif args.command == "check":
        print("true" if engine.feed.check(args.watermark) else "false")
    elif args.command == "deplete":
        result = deplete_clients(engine)
        _print_json({"disabled": list(result.disabled)})
    elif args.command == "settings":
        _print_json(load_settings(engine))
    elif args.command == "list":
        _print_json(list_objects(engine, args.object, ids=args.ids))
    elif args.command == "run":
        if args.interval <= 0:
            raise ValidationError("--interval must be positive")
        run_core(engine, interval_seconds=args.interval)
    else:
        raise ValidationError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        engine = build_engine(dry_run=parsed_args.dry_run)
        _dispatch(engine, parsed_args)
    except ValidationError:
        log.exception("Rejected %s", parsed_args.command)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


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
