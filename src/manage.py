"""Orderflow database management CLI.

Creates or drops the order, transaction and purchase-relationship tables
of the ordering domain in the database named by DATABASE_URL (or
--database-url). With no SQL database configured the domain keeps its
in-memory provider and there is nothing to create.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

from ordering.domain import init_domain
from shared.config import settings
from shared.db import drop_db, setup_db


def setup_databases(database_url=None):
    """Create the database schema."""
    print("Initializing ordering domain...")
    domain = init_domain(database_url or settings.DATABASE_URL)
    print("Creating ordering database schema...")
    providers = setup_db(domain)
    print(f"  schema ready in: {', '.join(providers) or 'no SQL provider'}")
    print("Done.")


def drop_databases(database_url=None):
    """Drop the database schema."""
    print("Initializing ordering domain...")
    domain = init_domain(database_url or settings.DATABASE_URL)
    print("Dropping ordering database schema...")
    providers = drop_db(domain)
    print(f"  schema dropped in: {', '.join(providers) or 'no SQL provider'}")
    print("Done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Orderflow database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("setup-db", "Create all database tables"), ("drop-db", "Drop all database tables")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--database-url", help="SQLAlchemy URL (default: DATABASE_URL)")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_databases(args.database_url)
    elif args.command == "drop-db":
        drop_databases(args.database_url)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
