#!/usr/bin/env python3
"""
Initialize the finance tracker database.

Run this script to create the database schema.
"""
import sys

from finance_tracker.database.connection import DatabaseConfig, DatabaseManager, SCHEMA_PATH

def main():
    """initialize the database."""
    config = DatabaseConfig(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Initializing database at: {config.db_path}")

    with DatabaseManager(config) as db:
        print(f"Executing schema from: {SCHEMA_PATH}")
        db.initialize_schema()

        row = db.get_connection().execute(
            "SELECT version, description FROM schema_version ORDER BY version DESC LIMIT 1"
        ).fetchone()

        if row:
            print("✓ Database initialized successfully!")
            print(f"  Schema version: {row['version']}")
            print(f"  Description: {row['description']}")
        else:
            print("✗ Database initialization may have failed")

if __name__ == "__main__":
    main()
