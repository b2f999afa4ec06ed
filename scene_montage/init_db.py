#!/usr/bin/env python3
"""
Database initialization script for Docker.
Creates the job ledger tables if they don't exist.
"""

import sys

from sqlalchemy.exc import SQLAlchemyError

from scene_montage.config import Settings
from scene_montage.database import create_session_factory, init_database


def main():
    """Initialize the database by creating all tables."""
    settings = Settings()
    try:
        print("Creating database tables...")
        engine, _ = create_session_factory(settings.database_url)
        init_database(engine)
        print("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        print(f"❌ Error creating database tables: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
