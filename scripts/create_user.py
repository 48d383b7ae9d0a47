import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modemode.config import load_settings
from modemode.database import SQLiteCredentialStore, resolve_database_path
from modemode.errors import AuthError, DuplicateEmail, EmailTaken
from modemode.passwords import BCRYPT_MAX_PASSWORD_BYTES, PasswordHasher, password_too_long


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a MODEMODE user account")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to MODEMODE_DB_PATH or data/modemode.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        if password_too_long(password):
            print(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    settings = load_settings()
    password = prompt_for_password()

    db_path = resolve_database_path(args.db_path) if args.db_path else settings.db_path
    store = SQLiteCredentialStore(db_path)
    store.initialize()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    name = args.name.strip()
    email = args.email.strip()
    if not name or not email:
        print("Error: name and email must not be empty", file=sys.stderr)
        return 1

    try:
        user = store.create_user(email, name, hasher.hash(password))
    except DuplicateEmail:
        print(f"Error: {EmailTaken.message}", file=sys.stderr)
        return 1
    except AuthError as exc:  # storage failures
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    print("No session token was issued; sign in through the web app to obtain one.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
