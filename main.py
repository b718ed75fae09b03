"""Command-line interface for the KeyHub credential service."""

from __future__ import annotations

import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Optional, Sequence

from keyhub.admins import MIN_PASSWORD_LENGTH, AdminAuth
from keyhub.config import Settings, load_settings
from keyhub.credentials import CredentialStore
from keyhub.database import Database
from keyhub.errors import KeyHubError
from keyhub.queries import QueryService
from keyhub.users import UserDirectory

logger = logging.getLogger("keyhub.main")

_KNOWN_COMMANDS = {"serve", "init-db", "create-admin", "list-admins", "list-users"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="KeyHub credential service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML configuration file (default: KEYHUB_CONFIG)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the credential database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: KEYHUB_HOST or 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: KEYHUB_PORT or 3000)")

    admin_parser = subparsers.add_parser("create-admin", help="Register an administrator account")
    admin_parser.add_argument("email", help="Unique email address used to log in")

    subparsers.add_parser("list-admins", help="Print registered administrator accounts")

    subparsers.add_parser("list-users", help="Print users with their total and active key counts")

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    # Options given without a subcommand belong to ``serve``.
    elif not any(arg in _KNOWN_COMMANDS for arg in args_list):
        if not any(flag in args_list for flag in ("-h", "--help")):
            global_args, serve_args = _split_global_options(args_list)
            args_list = [*global_args, "serve", *serve_args]

    return parser.parse_args(args_list)


def _split_global_options(args: Sequence[str]) -> tuple[list[str], list[str]]:
    global_args: list[str] = []
    rest: list[str] = []
    iterator = iter(args)
    for arg in iterator:
        if arg in ("--config", "--log-level"):
            global_args.append(arg)
            value = next(iterator, None)
            if value is not None:
                global_args.append(value)
        elif arg.startswith(("--config=", "--log-level=")):
            global_args.append(arg)
        else:
            rest.append(arg)
    return global_args, rest


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path, timeout=settings.database_timeout)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(settings: Settings, database: Database, *, host: Optional[str], port: Optional[int]) -> None:
    from keyhub.api import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting KeyHub API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings, database=database, initialize_database=False)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {MIN_PASSWORD_LENGTH} characters): ")
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        return password
    return None


def _create_admin(database: Database, email: str) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating admin.", file=sys.stderr)
        return 1

    try:
        admin = AdminAuth(database).register(email, password, password)
    except KeyHubError as exc:
        print(f"Failed to create admin: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created admin #{admin.id}: {admin.email}")
    return 0


def _list_admins(database: Database) -> int:
    admins = AdminAuth(database).list_all()
    if not admins:
        print("No admins are currently registered.")
        return 0

    print(f"{len(admins)} admin(s) found:")
    for admin in admins:
        print(f"{admin.id:>4}  {admin.email}")
    return 0


def _list_users(database: Database) -> int:
    queries = QueryService(UserDirectory(database), CredentialStore(database))
    rows = queries.users_with_key_counts()
    if not rows:
        print("No users are currently registered.")
        return 0

    print(f"{len(rows)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Keys':>5}  {'Active':>6}")
    print("-" * 80)
    for row in rows:
        user = row.user
        print(f"{user.id:>4}  {user.full_name:<24}  {user.email:<32}  {row.total_keys:>5}  {row.active_keys:>6}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = load_settings(Path(args.config).expanduser() if args.config else None)
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings, database, host=args.host, port=args.port)
    elif args.command == "create-admin":
        return _create_admin(database, args.email)
    elif args.command == "list-users":
        return _list_users(database)
    elif args.command == "list-admins":
        return _list_admins(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
