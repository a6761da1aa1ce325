from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, TypeVar, runtime_checkable


@dataclass(kw_only=True)
class BaseEntity:
    """Common shape of every stored entity.

    Concrete entities subclass this dataclass and add their own fields; the
    repository only ever touches ``id``.
    """

    id: str = ""


E = TypeVar("E", bound=BaseEntity)

Document = Dict[str, Any]


@runtime_checkable
class CollectionClient(Protocol):
    """Handle bound to a single collection.

    Raises ``DocumentNotFound`` / ``DocumentConflict`` for the two store
    conditions the repository maps; every other failure is the store's own.
    """

    def read(self, entity_id: str, partition_key: Optional[str]) -> Document: ...

    def create(self, document: Document, partition_key: Optional[str]) -> Document: ...

    def replace(self, entity_id: str, document: Document, partition_key: Optional[str]) -> Document: ...

    def delete(self, entity_id: str, partition_key: Optional[str]) -> None: ...

    def read_all(self) -> List[Document]: ...

    def query(self, source: str, where_clause: str, parameters: Mapping[str, Any]) -> List[Document]: ...


@runtime_checkable
class ClientProvider(Protocol):
    """Hands out collection clients and provisions missing collections."""

    def get_client(self, collection_name: str) -> CollectionClient: ...

    def ensure_provisioned(self) -> None: ...
