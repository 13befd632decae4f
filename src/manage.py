"""Merch database management CLI.

Creates or drops the relational schema of the merch domain when it is
configured with an SQLAlchemy-backed provider.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_database():
    """Create the merch database schema."""
    from merch.domain import merch
    from merch.utils.db import setup_db

    print("Initializing merch domain...")
    merch.init()
    print("Creating merch database schema...")
    created = setup_db(merch)
    if created:
        print(f"  schema ready on: {', '.join(created)}")
    else:
        print("  no relational provider configured; nothing to create.")

    print("Done.")


def drop_database():
    """Drop the merch database schema."""
    from merch.domain import merch
    from merch.utils.db import drop_db

    print("Initializing merch domain...")
    merch.init()
    print("Dropping merch database schema...")
    dropped = drop_db(merch)
    if dropped:
        print(f"  schema dropped on: {', '.join(dropped)}")
    else:
        print("  no relational provider configured; nothing to drop.")

    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Merch database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
