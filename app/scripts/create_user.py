"""
Create a verified user (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user EMAIL USERNAME PASSWORD [role]
Example:
  python -m app.scripts.create_user admin@example.com admin your-secure-password ADMIN
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    hash_password,
)
from app.models.user import ROLE_USER, ROLES, User
from app.schemas.auth import normalize_email


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a verified media catalog user.")
    parser.add_argument("email", help="Account email")
    parser.add_argument("username", help=f"Username ({USERNAME_MIN_LEN}-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default=ROLE_USER, type=str.upper, choices=ROLES)
    args = parser.parse_args(argv)

    try:
        email = normalize_email(args.email)
    except ValueError:
        print("Invalid email address.", file=sys.stderr)
        return 1
    username = args.username.strip()
    if not USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        existing = (
            db.query(User).filter((User.email == email) | (User.username == username)).first()
        )
        if existing:
            print(f"User '{username}' or '{email}' already exists.", file=sys.stderr)
            return 1
        user = User(
            email=email,
            username=username,
            password_hash=hash_password(args.password),
            role=args.role,
            is_verified=True,
        )
        db.add(user)
        db.commit()
        print(f"Created user '{username}' <{email}> with role '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
