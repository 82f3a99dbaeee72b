"""Database engine utilities.

This module centralizes database connectivity primitives to enforce the db-layer
boundary for all SQLAlchemy usage.
"""

from sqlalchemy import Engine, create_engine


def db_create_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for balance ledger database access.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        Engine: Configured SQLAlchemy engine with pre-ping enabled.

    Raises:
        ValueError: Raised when the database URL is blank.
    """

    if not isinstance(database_url, str) or not database_url.strip():
        raise ValueError("database_url must not be blank")

    return create_engine(database_url.strip(), pool_pre_ping=True)
