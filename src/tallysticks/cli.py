"""Command line entry point.

Usage:
    tallysticks status
    tallysticks open-escrows --app-id 1234
    tallysticks reset-app

Endpoints, the app id and the admin mnemonic come from the environment or
.env (see tallysticks.config.Settings); --app-id overrides MATCHING_APP_ID.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from algosdk.error import AlgodHTTPError

from tallysticks.config import get_settings
from tallysticks.domain.exceptions import TallysticksError
from tallysticks.domain.principal import Admin
from tallysticks.infrastructure.ledger import close_ledger, init_ledger
from tallysticks.ledger.signers import KeySigner
from tallysticks.logging_config import get_logger, log_context, setup_logging
from tallysticks.services.admin_service import AdminService
from tallysticks.services.base import ProtocolContext
from tallysticks.services.matching_service import MatchingService

logger = get_logger(__name__)


def _status(context: ProtocolContext, args: argparse.Namespace) -> int:
    matching = MatchingService(context)
    snapshot = matching.snapshot()
    print(snapshot.model_dump_json(indent=2))
    if args.verbose:
        print(f"set up:          {matching.is_app_set_up()}")
        print(f"locked:          {matching.is_locked()}")
        print(f"winner found:    {matching.is_winner_found()}")
    return 0


def _open_escrows(context: ProtocolContext, args: argparse.Namespace) -> int:
    holdings = MatchingService(context).open_escrows()
    for holding in holdings:
        print(holding.address)
    print(f"{len(holdings)} open escrow(s)", file=sys.stderr)
    return 0


def _reset_app(context: ProtocolContext, args: argparse.Namespace) -> int:
    settings = context.settings
    if not settings.admin_mnemonic:
        print("ADMIN_MNEMONIC is not set", file=sys.stderr)
        return 2
    admin = Admin.from_signer(KeySigner.from_mnemonic(settings.admin_mnemonic))
    results = AdminService(context, admin).reset_app()
    failed = 0
    for result in results:
        if result.error:
            failed += 1
            print(f"{result.escrow_address}  FAILED  {result.error}")
        else:
            print(f"{result.escrow_address}  {result.outcome}")
    print(f"Reclaimed {len(results) - failed} of {len(results)} escrow(s)", file=sys.stderr)
    return 1 if failed else 0


COMMANDS = {
    "status": _status,
    "open-escrows": _open_escrows,
    "reset-app": _reset_app,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tallysticks",
        description="Tallysticks invoice-lending client",
    )
    parser.add_argument("--app-id", type=int, default=None, help="Matching application id.")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL.")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show the matching app's global state.")
    status.add_argument("-v", "--verbose", action="store_true", help="Also run derived queries.")
    subparsers.add_parser("open-escrows", help="List escrows holding an access token.")
    subparsers.add_parser(
        "reset-app",
        help="Reset the invoice in play and have every open escrow reclaim.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(
        log_level=args.log_level or settings.log_level,
        json_logs=args.json_logs or settings.json_logs,
    )
    if args.app_id is not None:
        settings = settings.model_copy(update={"matching_app_id": args.app_id})
    if not settings.matching_app_id:
        print("No matching application id: set MATCHING_APP_ID or pass --app-id", file=sys.stderr)
        return 2

    with log_context(command=args.command, app_id=settings.matching_app_id):
        try:
            init_ledger()
            context = ProtocolContext.from_settings(settings)
            return COMMANDS[args.command](context, args)
        except TallysticksError as exc:
            logger.error("cli.failed", command=args.command, code=exc.code, error=exc.message)
            print(f"{exc.code}: {exc.message}", file=sys.stderr)
            return 1
        except (AlgodHTTPError, OSError) as exc:
            logger.error(
                "cli.failed", command=args.command, code="LEDGER_UNAVAILABLE", error=str(exc)
            )
            print(f"LEDGER_UNAVAILABLE: {exc}", file=sys.stderr)
            return 1
        finally:
            close_ledger()


if __name__ == "__main__":
    sys.exit(main())
