"""Exceptions raised by the entity repository."""


class RepositoryError(Exception):
    """Base exception for repository operations."""
    pass


class ValidationError(RepositoryError):
    """A required text field was empty or a field value was unusable."""
    pass


class DuplicateError(RepositoryError):
    """Attempted to create or rename a location to an existing name."""
    pass


class NotFoundError(RepositoryError):
    """A referenced record does not exist."""
    pass
