"""
Database Package.

SQLAlchemy base, engine construction and transaction scope
shared by the alert store, risk history and telemetry
ingestion repositories.
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    create_session_factory,
    transaction_scope,
    verify_database_connection,
    create_all_tables,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseInitializationError,
    DatabasePersistenceError,
)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "DatabasePersistenceError",
]
