"""Command line front-end for door staff and event admins."""

from __future__ import annotations

import argparse
import logging
import sys

from checkin.backend.config import RegistrySettings, load_settings
from checkin.backend.errors import InvalidIdentifier, PersistenceWriteFailure
from checkin.backend.registry import CheckInRegistry, open_registry
from checkin.backend.store import PostgresMembershipStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="checkin-admin", description="Event check-in registry")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    issue = commands.add_parser("issue", help="print the check-in code for a member")
    issue.add_argument("identifier")

    codes = commands.add_parser("codes", help="print check-in codes for several members")
    codes.add_argument("identifiers", nargs="+")

    verify = commands.add_parser("verify", help="verify a scanned code and admit its member")
    verify.add_argument("code")

    admit = commands.add_parser("admit", help="check in a member by identifier")
    admit.add_argument("identifier")

    commands.add_parser("list", help="list admitted members")

    reset = commands.add_parser("reset", help="clear all admissions")
    reset.add_argument("--yes", action="store_true", help="confirm the reset")

    commands.add_parser("migrate", help="create the PostgreSQL state table")

    serve = commands.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return parser.parse_args(argv)


def run_server(settings: RegistrySettings, host: str | None, port: int | None) -> None:
    import uvicorn

    uvicorn.run(
        "checkin.backend.api:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
    )


def run_migration(settings: RegistrySettings) -> int:
    if not settings.database_url:
        print("CHECKIN_DATABASE_URL is required for migration", file=sys.stderr)
        return 1
    try:
        PostgresMembershipStore(database_url=settings.database_url).ensure_schema()
    except PersistenceWriteFailure as exc:
        print(exc, file=sys.stderr)
        return 1
    print("Check-in state table is ready.")
    return 0


def run_command(args: argparse.Namespace, registry: CheckInRegistry) -> int:
    if args.command == "issue":
        print(registry.issue_token(args.identifier).token)
        return 0
    if args.command == "codes":
        for issued in registry.pre_generated_codes(args.identifiers):
            print(f"{issued.identifier}\t{issued.token}")
        return 0
    if args.command == "verify":
        result = registry.verify_and_admit(args.code)
        print(result.message)
        return 0 if result.admitted else 1
    if args.command == "admit":
        result = registry.admit_by_id(args.identifier)
        print(result.message)
        return 0 if result.admitted else 1
    if args.command == "list":
        for identifier in registry.list_admitted():
            print(identifier)
        return 0
    if args.command == "reset":
        if not args.yes:
            print("Refusing to reset without --yes.", file=sys.stderr)
            return 1
        print(registry.reset().message)
        return 0
    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()

    if args.command == "serve":
        run_server(settings, host=args.host, port=args.port)
        return 0
    if args.command == "migrate":
        return run_migration(settings)

    registry = open_registry(settings)
    try:
        return run_command(args, registry)
    except InvalidIdentifier as exc:
        print(exc.reason, file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
