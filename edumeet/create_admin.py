"""Create an administrator account from the command line.

Usage:
    python -m edumeet.create_admin --name "Ada Admin" --email admin@example.com
"""
import argparse
import getpass
import sys

from edumeet.auth.passwords import validate_password_strength
from edumeet.core.errors import ConflictError
from edumeet.database import SessionLocal, ensure_schema
from edumeet.routes.admin_routes import create_admin_account
from edumeet.routes.auth_routes import validate_person_name
from edumeet.schemas import normalize_email


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Create an EduMeet administrator account.')
    parser.add_argument('--name', required=True)
    parser.add_argument('--email', required=True)
    parser.add_argument('--password', help='Prompted for when omitted.')
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    password = args.password or getpass.getpass('Password: ')

    try:
        name = validate_person_name(args.name)
        email = normalize_email(args.email)
        password = validate_password_strength(password)
    except ValueError as exc:
        print(f'Invalid input: {exc}', file=sys.stderr)
        sys.exit(1)

    ensure_schema()
    db = SessionLocal()
    try:
        admin = create_admin_account(db, name, email, password)
    except ConflictError as exc:
        print(exc.detail, file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f'Created admin {admin.email} (id {admin.id})')


if __name__ == '__main__':
    main()
