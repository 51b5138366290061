"""
Error Taxonomy

Domain-rule violations are raised as typed errors with fixed message
texts. Callers should match on the error type; the message strings are
kept stable for compatibility.

Dependency (store) failures are NOT domain errors: they surface as
StorageError and bubble up unmodified. The engine performs no retries.
"""

from datetime import date
from typing import Optional
from uuid import UUID


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """A uniqueness constraint was violated at commit time."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


# Any collaborator I/O failure
DependencyFailure = StorageError


class DomainError(Exception):
    """Base exception for user-facing domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Malformed input at construction time (pattern, rule, exception, money)."""
    pass


class NotFoundError(DomainError):
    """Referenced rule or account does not exist."""

    def __init__(self, message: str, entity_id: Optional[UUID] = None):
        self.entity_id = entity_id
        super().__init__(message)


class AlreadyRealizedError(DomainError):
    """The occurrence already has a realized transaction."""

    MESSAGE = "This instance has already been realized."

    def __init__(self, rule_id: UUID, instance_date: date):
        self.rule_id = rule_id
        self.instance_date = instance_date
        super().__init__(self.MESSAGE)


class InstanceSkippedError(DomainError):
    """The occurrence was skipped and cannot be realized."""

    MESSAGE = "This instance has been skipped."

    def __init__(self, rule_id: UUID, instance_date: date):
        self.rule_id = rule_id
        self.instance_date = instance_date
        super().__init__(self.MESSAGE)
