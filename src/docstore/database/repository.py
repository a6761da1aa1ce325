from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, ClassVar, Generic, List, Mapping, Optional, Type

from .exceptions import AlreadyExistsError, DocumentConflict, DocumentNotFound, NotFoundError
from .keys import PartitionKeyResolver, no_partition_key
from .serialization import from_document, to_document, to_dynamo_value
from .types import ClientProvider, CollectionClient, E

logger = logging.getLogger(__name__)

# First attempt plus one retry after provisioning the collection.
MAX_CREATE_ATTEMPTS = 2

IdGenerator = Callable[[Any], str]


def random_id(entity: Any) -> str:
    return str(uuid.uuid4())


class DocumentRepository(Generic[E]):
    """Typed CRUD and query operations over one document collection.

    A concrete repository fixes ``collection_name`` and ``entity_type`` as
    class attributes, or they are passed to the constructor::

        class EmployeeRepository(DocumentRepository[Employee]):
            collection_name = "Employees"
            entity_type = Employee

    Identifier generation and partition-key resolution are injectable
    strategies; subclasses may also override ``generate_id`` and
    ``resolve_partition_key`` directly.

    Store-level not-found and conflict reports are raised as ``NotFoundError``
    and ``AlreadyExistsError``. Every other store failure (``ClientError``,
    ``BotoCoreError``) propagates unchanged.
    """

    collection_name: ClassVar[str] = ""
    entity_type: ClassVar[Optional[Type[Any]]] = None

    def __init__(
        self,
        provider: ClientProvider,
        entity_type: Optional[Type[E]] = None,
        collection_name: Optional[str] = None,
        id_generator: Optional[IdGenerator] = None,
        partition_key_resolver: Optional[PartitionKeyResolver] = None,
    ) -> None:
        self._provider = provider
        self._entity_type: Type[E] = entity_type or type(self).entity_type  # type: ignore[assignment]
        self._collection: str = collection_name or type(self).collection_name
        if not self._collection:
            raise ValueError(f"{type(self).__name__} requires a collection name")
        if self._entity_type is None:
            raise ValueError(f"{type(self).__name__} requires an entity type")
        self._id_generator = id_generator or random_id
        self._partition_key_resolver = partition_key_resolver or no_partition_key

    @property
    def collection(self) -> str:
        return self._collection

    # ---------- Extension points ----------
    def generate_id(self, entity: E) -> str:
        return self._id_generator(entity)

    def resolve_partition_key(self, entity_id: str) -> Optional[str]:
        return self._partition_key_resolver(entity_id)

    # ---------- Helpers ----------
    def _client(self) -> CollectionClient:
        return self._provider.get_client(self._collection)

    def _to_entity(self, document: Mapping[str, Any]) -> E:
        return from_document(self._entity_type, dict(document))

    def _not_found(self, exc: DocumentNotFound, operation: str, entity_id: Optional[str] = None) -> NotFoundError:
        return NotFoundError(str(exc), collection=self._collection, operation=operation, entity_id=entity_id)

    def _require_id(self, entity_id: Any, operation: str) -> str:
        if not isinstance(entity_id, str) or not entity_id:
            raise ValueError(f"{operation} requires a non-empty string id, got {entity_id!r}")
        return entity_id

    # ---------- CRUD ----------
    def get_by_id(self, entity_id: str) -> E:
        """Read one entity.

        Raises
        ------
        NotFoundError
            No document with this id under its resolved partition key, or the
            collection does not exist.
        """
        entity_id = self._require_id(entity_id, "get_by_id")
        try:
            document = self._client().read(entity_id, self.resolve_partition_key(entity_id))
        except DocumentNotFound as exc:
            raise self._not_found(exc, "get_by_id", entity_id) from exc
        return self._to_entity(document)

    def add(self, entity: E) -> E:
        """Store a new entity under a freshly generated id.

        The id set by the caller is ignored and overwritten. When the
        collection does not exist yet, provisioning is triggered and the
        create is retried once with the same id.

        Raises
        ------
        AlreadyExistsError
            The generated id collides with an existing document.
        DocumentNotFound
            The collection was still missing after provisioning.
        """
        entity.id = self.generate_id(entity)
        partition_key = self.resolve_partition_key(entity.id)
        document = to_document(entity)

        attempt = 1
        while True:
            try:
                stored = self._client().create(document, partition_key)
                break
            except DocumentConflict as exc:
                raise AlreadyExistsError(
                    str(exc), collection=self._collection, operation="add", entity_id=entity.id
                ) from exc
            except DocumentNotFound:
                if attempt >= MAX_CREATE_ATTEMPTS:
                    raise
                logger.warning(
                    "Collection %s missing on add (id=%s); provisioning and retrying",
                    self._collection,
                    entity.id,
                )
                self._provider.ensure_provisioned()
                attempt += 1
        return self._to_entity(stored)

    def update(self, entity: E) -> E:
        """Replace an existing entity keyed by ``entity.id``.

        Raises
        ------
        NotFoundError
            No document with this id exists.
        """
        entity_id = self._require_id(entity.id, "update")
        try:
            stored = self._client().replace(entity_id, to_document(entity), self.resolve_partition_key(entity_id))
        except DocumentNotFound as exc:
            raise self._not_found(exc, "update", entity_id) from exc
        return self._to_entity(stored)

    def delete(self, entity: E) -> None:
        """Delete the document keyed by ``entity.id``.

        Raises
        ------
        NotFoundError
            No document with this id under its resolved partition key.
        """
        entity_id = self._require_id(entity.id, "delete")
        try:
            self._client().delete(entity_id, self.resolve_partition_key(entity_id))
        except DocumentNotFound as exc:
            raise self._not_found(exc, "delete", entity_id) from exc

    # ---------- Reads over the collection ----------
    def get_all(self) -> List[E]:
        """Return every entity of the collection, in store order."""
        try:
            documents = self._client().read_all()
        except DocumentNotFound as exc:
            raise self._not_found(exc, "get_all") from exc
        return [self._to_entity(d) for d in documents]

    def query(self, source: str, where_clause: str, parameters: Optional[Mapping[str, Any]] = None) -> List[E]:
        """Return entities matching a filter in the store's native dialect.

        ``where_clause`` and ``parameters`` go to the store as given, eg::

            repo.query("Employees", "department = :dept", {":dept": "R&D"})

        The filter string is not validated or sanitized; only values bound
        through ``parameters`` are safe for untrusted input.
        """
        bound = {k: to_dynamo_value(v) for k, v in (parameters or {}).items()}
        try:
            documents = self._client().query(source, where_clause, bound)
        except DocumentNotFound as exc:
            raise self._not_found(exc, "query") from exc
        return [self._to_entity(d) for d in documents]
