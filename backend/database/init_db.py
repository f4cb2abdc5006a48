"""
Database setup script.

Applies schema.sql to the database in DATABASE_URL and optionally creates a
global admin account, which no HTTP route can do.

Usage:
    python -m backend.database.init_db
    python -m backend.database.init_db --admin-email admin@kampus.ac.id --admin-password s3cret!
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from backend.common.errors import Conflict
from backend.common.roles import GlobalRole
from backend.database.db_connection import Database
from backend.database.ledger import Ledger

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def apply_schema(db: Database) -> None:
    """Run every statement of schema.sql in one transaction."""
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    with db.transaction() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)


def create_admin(ledger: Ledger, email: str, password: str, full_name: str = "Administrator") -> dict:
    return ledger.create_user(email, password, role=GlobalRole.ADMIN.value, full_name=full_name)


def main(argv=None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Create tables and seed a global admin.")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL"))
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args(argv)

    if not args.database_url:
        print("Error: DATABASE_URL is not set.")
        return 1

    db = Database(args.database_url, maxconn=2).open()
    try:
        apply_schema(db)
        print("Schema applied.")

        if args.admin_email and args.admin_password:
            try:
                admin = create_admin(Ledger(db), args.admin_email, args.admin_password)
                print(f"Admin created: user_id={admin['user_id']} email={admin['email']}")
            except Conflict:
                print(f"Admin {args.admin_email} already exists, skipped.")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
