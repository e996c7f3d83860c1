"""Storefront Orders management CLI.

Creates and drops the database schema, and runs the penalty sweep on demand.

Usage:
    python src/manage.py setup-db                         # Create all tables
    python src/manage.py drop-db                          # Drop all tables
    python src/manage.py sweep-penalties                  # Sweep as of now
    python src/manage.py sweep-penalties --as-of 2025-03-01T00:00:00+00:00
"""

import argparse
import sys
from datetime import datetime


def _get_domain():
    from orders.domain import orders

    orders.init()
    return orders


def setup_database():
    """Create the orders database schema."""
    from orders.utils.db import setup_db

    print("Initializing orders domain...")
    domain = _get_domain()
    print("Creating orders database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    """Drop the orders database schema."""
    from orders.utils.db import drop_db

    print("Initializing orders domain...")
    domain = _get_domain()
    print("Dropping orders database schema...")
    drop_db(domain)
    print("Done.")


def sweep_penalties(as_of=None):
    """Run a single penalty sweep and report what it did."""
    from orders.penalty.engine import sweep

    domain = _get_domain()
    with domain.domain_context():
        report = sweep(as_of)

    print(f"Swept {report.scanned} orders as of {report.as_of.isoformat()}")
    print(f"  updated: {len(report.updated)}")
    for order_id, error in report.failed.items():
        print(f"  failed: {order_id}: {error}")
    return 1 if report.failed else 0


def main():
    parser = argparse.ArgumentParser(description="Storefront Orders management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("sweep-penalties", help="Run one penalty sweep")
    sweep_parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        help="ISO timestamp to sweep as of, with timezone (default: now)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-penalties":
        sys.exit(sweep_penalties(args.as_of))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
