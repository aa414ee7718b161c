#!/usr/bin/env python3
"""
Tourguard admin CLI.

Signup through the API always creates plain "user" accounts. Guides, lead
guides and admins are created here, on a machine that can reach the database.

Usage:
  python main.py create-user --name "Ann Guide" --email ann@example.com --role guide
  python main.py create-user --name Root --email root@example.com --role admin --password-stdin < pw.txt
  python main.py config

Configuration comes from the same environment variables / .env file as the
API (DATABASE_URL, SECRET_KEY, BCRYPT_ROUNDS, ...).
"""

import argparse
import getpass
import sys

from auth.errors import AuthError, ValidationError
from auth.models import ROLES, ROLE_USER, User
from auth.passwords import PasswordHasher
from auth.service import check_email, check_new_password
from auth.store import UserStore
from core.config import Settings, get_settings


def _read_password(from_stdin: bool) -> tuple[str, str]:
    if from_stdin:
        password = sys.stdin.readline().rstrip("\n")
        return password, password
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")
    return password, confirm


def create_user(settings: Settings, name: str, email: str, role: str, password: str, confirm: str) -> User:
    """Validate and insert one user. Raises AuthError on bad input or a taken email."""
    if not name.strip():
        raise ValidationError("Please provide a name.")
    email = check_email(email)
    check_new_password(password, confirm)
    hasher = PasswordHasher(settings.bcrypt_rounds)
    store = UserStore(settings.database_url)
    try:
        return store.create_user(
            User(name=name.strip(), email=email, hashed_password=hasher.hash(password), role=role)
        )
    finally:
        store.close()


def _print_config(settings: Settings) -> None:
    print("\nTourguard configuration")
    print("─" * 40)
    print(f"  environment          {settings.environment}")
    print(f"  database             {settings.database_url}")
    print(f"  token TTL            {settings.token_expire_seconds}s")
    print(f"  cookie               {settings.session_cookie_name} ({settings.cookie_expire_days} days, "
          f"secure={settings.cookie_secure})")
    print(f"  reset token TTL      {settings.reset_token_expire_minutes} min")
    print(f"  bcrypt rounds        {settings.bcrypt_rounds}")
    print(f"  mail                 {settings.smtp_host or '(log only)'}")
    print(f"  allowed hosts        {', '.join(settings.allowed_hosts)}")
    print(f"  reset link base      {settings.public_base_url or '(from request)'}")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="tourguard",
        description="Administrative tasks for the Tourguard credential service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-user", help="Create an account with any role")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--email", required=True, help="Login email (stored lower-cased)")
    create.add_argument(
        "--role",
        choices=sorted(ROLES),
        default=ROLE_USER,
        help=f"Account role (default: {ROLE_USER})",
    )
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )

    sub.add_parser("config", help="Print the effective configuration (secrets omitted)")

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Invalid configuration: {e}")
        sys.exit(2)

    if args.command == "config":
        _print_config(settings)
        return

    password, confirm = _read_password(args.password_stdin)
    try:
        user = create_user(settings, args.name, args.email, args.role, password, confirm)
    except AuthError as e:
        print(f"  [!] {e.message}")
        sys.exit(1)
    print(f"  Created {user.role} {user.email} (id {user.id}).")


if __name__ == "__main__":
    main()
