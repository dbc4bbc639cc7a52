"""Storage layer - Database schemas and repositories."""

from memecoin_risk_engine.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from memecoin_risk_engine.storage.models import Base
from memecoin_risk_engine.storage.repos import (
    AlertRepository,
    HolderDTO,
    HolderRepository,
    TokenDTO,
    TokenRepository,
)

__all__ = [
    "AlertRepository",
    "Base",
    "DatabaseManager",
    "HolderDTO",
    "HolderRepository",
    "TokenDTO",
    "TokenRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
