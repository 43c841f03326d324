#!/usr/bin/env python3
"""
Initialize the library circulation database.

This script:
1. Creates all database tables
2. Optionally loads demo patrons, assets and circulation history
3. Verifies the database is ready for the MCP server

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from library_circulation.database import get_db_manager
from library_circulation.database.seed import seed_database

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    "assets",
    "patrons",
    "checkout_records",
    "hold_records",
    "circulation_events",
}


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(
        description="Initialize the library circulation database"
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load demo data after creating tables",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for demo data",
    )

    args = parser.parse_args()

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables: %s", ", ".join(sorted(tables)))
        missing_tables = EXPECTED_TABLES - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", missing_tables)
            sys.exit(1)

        if args.sample_data:
            logger.info("Loading sample data...")
            summary = seed_database(db_manager, seed=args.seed)
            logger.info("Sample data loaded: %s", summary)

        logger.info("Database initialization complete")

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
