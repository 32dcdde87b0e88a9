# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from smartfollow.app import (
    FollowRunOptions,
    generate_config,
    load_follows,
    show_contacts,
    update_follows,
)
from smartfollow.config import ConfigurationError, configure_logging, get_storage_config
from smartfollow.domain.reconciliation import DriftPolicy, FollowSetPolicy

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from smartfollow.app import FollowRunResult
    from smartfollow.domain.model import ContactListState

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--union",
        action="store_true",
        help="Keep stored follows that are missing from the published follow list",
    )
    parser.add_argument(
        "--drift-policy",
        type=DriftPolicy,
        choices=list(DriftPolicy),
        default=DriftPolicy.FOLLOW_CURRENT,
        help="What to do when an identifier now points at another key (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        help="Stop verifying after this many seconds (defaults to config)",
    )
    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        help="Maximum number of parallel identifier lookups (defaults to config)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Reconcile and report, but neither save nor publish",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="smart-follow",
        description="Keep a Nostr follow list pinned to verified identifiers",
    )
    parser.add_argument("--config", type=Path, help="Path to the config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen_config = subparsers.add_parser("gen-config", help="Write a template config file")
    gen_config.add_argument("--force", action="store_true", help="Overwrite an existing file")

    load = subparsers.add_parser(
        "load-follows", help="Reconcile the follow list from relays and store it"
    )
    _add_run_options(load)

    update = subparsers.add_parser(
        "update-follows", help="Reconcile, store and publish the follow list"
    )
    _add_run_options(update)

    subparsers.add_parser("show", help="Print the stored follow list")

    return parser.parse_args(list(argv))


def _run_options(args: argparse.Namespace) -> FollowRunOptions:
    return FollowRunOptions(
        follow_set_policy=FollowSetPolicy.UNION if args.union else FollowSetPolicy.REPLACE,
        drift_policy=args.drift_policy,
        max_concurrency=args.concurrency,
        timeout_seconds=args.timeout,
        dry_run=args.dry_run,
    )


def _print_contacts(state: ContactListState) -> None:
    verified = sorted(
        (record for record in state.records if record.identifier is not None),
        key=lambda record: (str(record.identifier), record.identity),
    )
    for record in verified:
        print(f"{record.identity}  {record.identifier}")
    for identity in sorted(state.unresolved):
        print(identity)
    print(f"{len(verified)} verified, {len(state.unresolved)} unverified", file=sys.stderr)


def _log_result(result: FollowRunResult) -> None:
    report = result.report
    log.info("Run %s: %s, changes=%d", report.run_state, report.counts, len(report.delta))
    for identity, error in sorted(report.errors.items()):
        log.info("Unverified %s (%s): %s", identity, error.claimed, error.reason)
    if result.published is not None:
        log.info("Follow list %s published", result.published.event_id)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    storage = get_storage_config(config_path=parsed_args.config)

    try:
        if parsed_args.command == "gen-config":
            path = generate_config(storage=storage, force=parsed_args.force)
            log.info("Edit %s and set your private key", path)
        elif parsed_args.command == "load-follows":
            _log_result(load_follows(_run_options(parsed_args), storage=storage))
        elif parsed_args.command == "update-follows":
            _log_result(update_follows(_run_options(parsed_args), storage=storage))
        elif parsed_args.command == "show":
            _print_contacts(show_contacts(storage=storage))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during follow update")
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
