"""servicelayer — transactional action services over SQLAlchemy."""

from servicelayer.domain import Entity
from servicelayer.exceptions import (
    AlreadyFinishedError,
    FrozenEntityError,
    NotFoundError,
    PersistenceError,
    ServiceConfigurationError,
    ServiceLayerError,
    ValidationError,
)
from servicelayer.infrastructure.database import Database, Transaction, entity_table
from servicelayer.services import BaseService, ServiceContext, ServiceResponse

__version__ = "0.1.0"

__all__ = [
    "AlreadyFinishedError",
    "BaseService",
    "Database",
    "Entity",
    "FrozenEntityError",
    "NotFoundError",
    "PersistenceError",
    "ServiceConfigurationError",
    "ServiceContext",
    "ServiceLayerError",
    "ServiceResponse",
    "Transaction",
    "ValidationError",
    "__version__",
    "entity_table",
]
