# database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for our database models
Base = declarative_base()


def create_session_factory(database_url: str):
    """Create the engine for the job ledger and a session factory bound to it."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Jobs run on worker threads, each opening its own session.
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_database(engine):
    """Create the ledger tables if they don't exist."""
    from scene_montage import models  # noqa: F401  (registers the tables)

    Base.metadata.create_all(bind=engine)
