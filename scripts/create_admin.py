import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from keyhub.admins import MIN_PASSWORD_LENGTH, AdminAuth
from keyhub.config import load_settings
from keyhub.database import Database
from keyhub.errors import KeyHubError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a KeyHub administrator")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Optional YAML configuration file (defaults to KEYHUB_CONFIG)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    settings = load_settings(Path(args.config_path) if args.config_path else None)
    password = prompt_for_password()

    database = Database(settings.database_path, timeout=settings.database_timeout)
    database.initialize()

    try:
        admin = AdminAuth(database).register(args.email.strip(), password, password)
    except KeyHubError as exc:  # duplicates, etc.
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created admin #{admin.id}: {admin.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
