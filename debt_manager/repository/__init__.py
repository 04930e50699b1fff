"""Entity repository package."""

from debt_manager.repository.entity_repository import EntityRepository
from debt_manager.repository.errors import (
    DuplicateError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)

__all__ = [
    "DuplicateError",
    "EntityRepository",
    "NotFoundError",
    "RepositoryError",
    "ValidationError",
]
