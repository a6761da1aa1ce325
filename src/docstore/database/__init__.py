# pyright: reportMissingTypeStubs=false
"""Database access layer package.

Exposes the generic document repository, its DynamoDB-backed client
provider and helpers.
"""
from .client import DynamoClientFactory, DynamoCollectionClient, DynamoConfig, get_dynamo_resource
from .keys import (
    hash_bucket_partition_key,
    make_table_name,
    no_partition_key,
    prefix_partition_key,
)
from .repository import MAX_CREATE_ATTEMPTS, DocumentRepository, random_id
from .exceptions import (
    AlreadyExistsError,
    DocumentConflict,
    DocumentNotFound,
    NotFoundError,
    RepositoryError,
    StoreError,
)
from .serialization import from_document, to_document
from .types import BaseEntity, ClientProvider, CollectionClient

__all__ = [
    "DynamoConfig",
    "DynamoClientFactory",
    "DynamoCollectionClient",
    "get_dynamo_resource",
    "DocumentRepository",
    "MAX_CREATE_ATTEMPTS",
    "random_id",
    "BaseEntity",
    "ClientProvider",
    "CollectionClient",
    "RepositoryError",
    "NotFoundError",
    "AlreadyExistsError",
    "StoreError",
    "DocumentNotFound",
    "DocumentConflict",
    "to_document",
    "from_document",
    "make_table_name",
    "no_partition_key",
    "hash_bucket_partition_key",
    "prefix_partition_key",
]
