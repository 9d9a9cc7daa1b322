"""Storefront management CLI.

Usage:
    python src/manage.py setup-db               # Create all tables
    python src/manage.py drop-db                # Drop all tables
    python src/manage.py abandon-carts --days 3 # Mark idle carts abandoned
"""

import argparse
import sys

from shared.config import get_settings


def setup_database():
    from shared.database import setup_db

    print(f"Creating schema on {get_settings().database_uri}...")
    setup_db()
    print("Done.")


def drop_database():
    from shared.database import drop_db

    print(f"Dropping schema on {get_settings().database_uri}...")
    drop_db()
    print("Done.")


def abandon_carts(days=None):
    """Sweep carts with items that have been idle for ``days`` days."""
    from ordering.cart.abandonment import abandon_inactive_carts

    count = abandon_inactive_carts(days=days)
    print(f"Marked {count} cart(s) as abandoned.")
    return count


def main(argv=None):
    from shared.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Storefront management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    abandon_parser = subparsers.add_parser("abandon-carts", help="Mark idle carts as abandoned")
    abandon_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Idle days before a cart counts as abandoned (default: ABANDONED_CART_DAYS)",
    )

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "abandon-carts":
        abandon_carts(args.days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
