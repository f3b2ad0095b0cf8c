"""Repositories for database access."""

from riskledger.db.repositories.base import BaseRepository
from riskledger.db.repositories.risk import SqlAlchemyRiskGateway

__all__ = [
    "BaseRepository",
    "SqlAlchemyRiskGateway",
]
