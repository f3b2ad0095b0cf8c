"""Database layer for riskledger."""

from riskledger.db.config import (
    check_connection,
    create_engine,
    create_session_factory,
    get_async_session,
)

__all__ = [
    "check_connection",
    "create_engine",
    "create_session_factory",
    "get_async_session",
]
