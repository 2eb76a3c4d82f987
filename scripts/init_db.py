"""Creates the data directory and seeds an admin account.

Usage:
    python scripts/init_db.py --username admin --email admin@hoodshop.com --password secret
"""
import argparse
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from storefront.config import get_settings  # noqa: E402
from storefront.core.errors import DuplicateRecordError  # noqa: E402
from storefront.core.security import hash_password  # noqa: E402
from storefront.database import FileBackedDB  # noqa: E402
from storefront.models.order import utcnow_iso  # noqa: E402
from storefront.models.user import User  # noqa: E402


def main(argv=None):
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Seed an admin user into the file-backed store")
    parser.add_argument("--username", default="admin")
    parser.add_argument("--email", default=settings.ADMIN_EMAIL)
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--full-name", default="Store Admin")
    args = parser.parse_args(argv)

    if not args.password:
        parser.error("--password (or ADMIN_PASSWORD) is required")

    db = FileBackedDB(settings.DATA_DIR, settings.table_files)
    admin = User(
        username=args.username,
        email=args.email.strip().lower(),
        password_hash=hash_password(args.password),
        is_admin=True,
        full_name=args.full_name,
        created_at=utcnow_iso(),
    )
    try:
        row = db.create_record("users", admin.to_dict(), id_field="id", unique=("username", "email"))
    except DuplicateRecordError:
        print(f"User {args.username} / {args.email} already exists in {settings.DATA_DIR}")
        return 1
    print(f"Created admin {row['username']} (id={row['id']}) in {settings.DATA_DIR}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
