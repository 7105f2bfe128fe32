"""Seed the tables collection with the restaurant's floor plan.

Usage: python seed_tables.py [--database-url URL] [--database-name NAME]

Errors are logged and end the run; the process always exits 0.
"""

import argparse

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import DATABASE_NAME, SEED_DATABASE_URL, init_log
from database import create_document, use_database
from errors import AppError
from schemas import Table

logger = init_log("seed_tables")

TABLES = [
    Table(table_number=1, capacity=2),
    Table(table_number=2, capacity=4),
    Table(table_number=3, capacity=2),
    Table(table_number=4, capacity=6),
    Table(table_number=5, capacity=4),
    Table(table_number=6, capacity=2),
    Table(table_number=7, capacity=8),
    Table(table_number=8, capacity=4),
]


def seed_tables() -> int:
    """Insert every table in order; returns how many were written."""
    seeded = 0
    try:
        for table in TABLES:
            create_document("tables", table.model_dump())
            seeded += 1
            logger.info(f"Seeded table #{table.table_number}")
        logger.info("All tables seeded!")
    except AppError as e:
        logger.error(f"Seeding tables failed: {e.message}")
    return seeded


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed restaurant tables")
    parser.add_argument("--database-url", default=SEED_DATABASE_URL)
    parser.add_argument("--database-name", default=DATABASE_NAME)
    args = parser.parse_args(argv)

    try:
        with MongoClient(args.database_url) as client:
            use_database(client[args.database_name])
            seed_tables()
    except (AppError, PyMongoError) as e:
        logger.error(f"Seeding tables failed: {e}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
