"""Command-line interface for the MODEMODE service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from typing import Sequence

from modemode.application import build_store, create_application
from modemode.config import Settings, load_settings
from modemode.database import CredentialStore
from modemode.errors import AuthError, ConfigurationError, DuplicateEmail, EmailTaken
from modemode.passwords import BCRYPT_MAX_PASSWORD_BYTES, PasswordHasher, password_too_long

logger = logging.getLogger("modemode.main")

_MIN_PASSWORD_LENGTH = 8


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MODEMODE account service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the credential database")
    subparsers.add_parser("list-users", help="List registered accounts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for the HTTP API (default: 3000)",
    )

    create_parser = subparsers.add_parser("create-user", help="Register a new account")
    create_parser.add_argument("name", help="Display name for the user")
    create_parser.add_argument("email", help="Unique email address for login")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users", "create-user"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_store(settings: Settings) -> CredentialStore:
    store = build_store(settings)
    if settings.store == "sqlite":
        logger.info("Database initialised at %s", settings.db_path)
    return store


def _serve(*, settings: Settings, store: CredentialStore, host: str, port: int) -> None:
    import uvicorn

    app = create_application(settings, store=store)
    logger.info("Starting MODEMODE API on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _prompt_for_password() -> str:
    for _ in range(3):
        password = getpass("Password: ")
        confirm = getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < _MIN_PASSWORD_LENGTH:
            print(
                f"Password must be at least {_MIN_PASSWORD_LENGTH} characters long.",
                file=sys.stderr,
            )
            continue
        if password_too_long(password):
            print(
                f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes long.",
                file=sys.stderr,
            )
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def _create_user(settings: Settings, store: CredentialStore, name: str, email: str) -> int:
    name = name.strip()
    email = email.strip()
    if not name or not email:
        print("Error: name and email must not be empty", file=sys.stderr)
        return 1

    password = _prompt_for_password()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    try:
        user = store.create_user(email, name, hasher.hash(password))
    except DuplicateEmail:
        print(f"Error: {EmailTaken.message}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


def _list_users(store: CredentialStore) -> None:
    users = store.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Created")
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {created}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        settings = load_settings()
        store = _initialise_store(settings)

        if args.command == "serve":
            _serve(settings=settings, store=store, host=args.host, port=args.port)
        elif args.command == "create-user":
            return _create_user(settings, store, args.name, args.email)
        elif args.command == "list-users":
            _list_users(store)
        elif args.command == "init-db":
            print("Database initialisation complete.")
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except AuthError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
