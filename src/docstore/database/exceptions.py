from __future__ import annotations

from typing import Optional


class RepositoryError(RuntimeError):
    """Raised when repository operations fail.

    Wraps store-level reports to provide a stable, domain-friendly API.

    Attributes
    ----------
    collection: str
        Logical collection the operation targeted.
    operation: str
        Repository operation that failed (eg, ``get_by_id``).
    entity_id: Optional[str]
        Identifier involved, when the operation had one.
    """

    def __init__(self, message: str, *, collection: str, operation: str, entity_id: Optional[str] = None) -> None:
        self.collection = collection
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(f"[{collection}] {operation}: {message}")


class NotFoundError(RepositoryError):
    """The target entity or its collection does not exist."""


class AlreadyExistsError(RepositoryError):
    """An entity with the same identifier already exists."""


class StoreError(Exception):
    """Base for not-found / conflict reports raised by a collection client."""

    def __init__(self, message: str, *, collection: str, entity_id: Optional[str] = None) -> None:
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(message)


class DocumentNotFound(StoreError):
    pass


class DocumentConflict(StoreError):
    pass
