from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import boto3  # type: ignore[import]
from botocore.exceptions import ClientError  # type: ignore[import]

from .exceptions import DocumentConflict, DocumentNotFound
from .keys import ID_ATTR, PARTITION_KEY_ATTR, make_stored_partition_key, make_table_name
from .types import Document

logger = logging.getLogger(__name__)

_RESOURCE_NOT_FOUND = "ResourceNotFoundException"
_RESOURCE_IN_USE = "ResourceInUseException"
_CONDITION_FAILED = "ConditionalCheckFailedException"
_VALIDATION = "ValidationException"
_MISSING_INDEX = "does not have the specified index"


@dataclass(frozen=True)
class DynamoConfig:
    """Immutable configuration for DynamoDB access.

    Attributes
    ----------
    region: Optional[str]
        The AWS region; if omitted, will fall back to environment or SDK defaults.
    table_prefix: Optional[str]
        Prepended to every collection name to form the table name (eg, ``dev``).
    endpoint_url: Optional[str]
        Alternate endpoint, eg, DynamoDB Local at ``http://localhost:8000``.
    collections: Tuple[str, ...]
        Collections that ``ensure_provisioned`` creates when missing.
    billing_mode: str
        Billing mode used for newly created tables.
    """

    region: Optional[str] = None
    table_prefix: Optional[str] = None
    endpoint_url: Optional[str] = None
    collections: Tuple[str, ...] = field(default_factory=tuple)
    billing_mode: str = "PAY_PER_REQUEST"

    @classmethod
    def from_env(cls, **overrides: Any) -> "DynamoConfig":
        """Build a config from ``DOCSTORE_*`` environment variables.

        Explicit keyword arguments win over the environment.
        """
        raw_collections = os.getenv("DOCSTORE_COLLECTIONS", "")
        values: Dict[str, Any] = {
            "region": _resolve_region(None),
            "table_prefix": os.getenv("DOCSTORE_TABLE_PREFIX") or None,
            "endpoint_url": os.getenv("DOCSTORE_ENDPOINT_URL") or None,
            "collections": tuple(c.strip() for c in raw_collections.split(",") if c.strip()),
        }
        values.update(overrides)
        return cls(**values)


def _resolve_region(explicit_region: Optional[str]) -> Optional[str]:
    # Prefer explicit, then env, otherwise let boto3 resolve (eg, IAM role default)
    return explicit_region or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")


def get_dynamo_resource(config: DynamoConfig):
    """Create and return a DynamoDB service resource.

    Notes
    -----
    In local environments, ensure AWS credentials and region are configured
    or passed via env.
    """
    region = _resolve_region(config.region)
    return boto3.resource("dynamodb", region_name=region, endpoint_url=config.endpoint_url)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class DynamoCollectionClient:
    """Collection handle backed by one DynamoDB table.

    Table schema: ``_pk`` (HASH), ``id`` (RANGE).

    Missing tables and failed existence conditions are reported as
    ``DocumentNotFound``; a failed non-existence condition on create as
    ``DocumentConflict``. Any other ``ClientError`` or ``BotoCoreError``
    propagates unchanged.
    """

    def __init__(self, table, collection_name: str) -> None:
        self._table = table
        self._collection = collection_name

    @property
    def collection_name(self) -> str:
        return self._collection

    def _key(self, entity_id: str, partition_key: Optional[str]) -> Dict[str, str]:
        return {
            PARTITION_KEY_ATTR: make_stored_partition_key(entity_id, partition_key),
            ID_ATTR: entity_id,
        }

    def _not_found(self, exc: Optional[ClientError], entity_id: Optional[str], what: str) -> DocumentNotFound:
        detail = f"{what} not found in {self._collection}"
        if exc is not None:
            detail = f"{detail}: {exc}"
        return DocumentNotFound(detail, collection=self._collection, entity_id=entity_id)

    # ---------- Point operations ----------
    def read(self, entity_id: str, partition_key: Optional[str]) -> Document:
        logger.debug("GetItem %s id=%s pk=%s", self._collection, entity_id, partition_key)
        try:
            res = self._table.get_item(Key=self._key(entity_id, partition_key))
        except ClientError as exc:
            if _error_code(exc) == _RESOURCE_NOT_FOUND:
                raise self._not_found(exc, entity_id, "Collection") from exc
            raise
        item = res.get("Item")
        if item is None:
            raise self._not_found(None, entity_id, "Document")
        return item

    def create(self, document: Document, partition_key: Optional[str]) -> Document:
        entity_id = document[ID_ATTR]
        item = dict(document)
        item.update(self._key(entity_id, partition_key))
        logger.debug("PutItem(create) %s id=%s pk=%s", self._collection, entity_id, partition_key)
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_not_exists(id)")
        except ClientError as exc:
            code = _error_code(exc)
            if code == _CONDITION_FAILED:
                raise DocumentConflict(
                    f"Document {entity_id} already exists in {self._collection}",
                    collection=self._collection,
                    entity_id=entity_id,
                ) from exc
            if code == _RESOURCE_NOT_FOUND:
                raise self._not_found(exc, entity_id, "Collection") from exc
            raise
        return item

    def replace(self, entity_id: str, document: Document, partition_key: Optional[str]) -> Document:
        item = dict(document)
        item.update(self._key(entity_id, partition_key))
        logger.debug("PutItem(replace) %s id=%s pk=%s", self._collection, entity_id, partition_key)
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_exists(id)")
        except ClientError as exc:
            code = _error_code(exc)
            if code == _CONDITION_FAILED:
                raise self._not_found(exc, entity_id, "Document") from exc
            if code == _RESOURCE_NOT_FOUND:
                raise self._not_found(exc, entity_id, "Collection") from exc
            raise
        return item

    def delete(self, entity_id: str, partition_key: Optional[str]) -> None:
        logger.debug("DeleteItem %s id=%s pk=%s", self._collection, entity_id, partition_key)
        try:
            self._table.delete_item(
                Key=self._key(entity_id, partition_key),
                ConditionExpression="attribute_exists(id)",
            )
        except ClientError as exc:
            code = _error_code(exc)
            if code == _CONDITION_FAILED:
                raise self._not_found(exc, entity_id, "Document") from exc
            if code == _RESOURCE_NOT_FOUND:
                raise self._not_found(exc, entity_id, "Collection") from exc
            raise

    # ---------- Scans ----------
    def _scan(self, params: Dict[str, Any]) -> List[Document]:
        try:
            items: List[Document] = []
            last_evaluated_key: Optional[Dict[str, Any]] = None
            while True:
                if last_evaluated_key:
                    params["ExclusiveStartKey"] = last_evaluated_key
                page = self._table.scan(**params)
                items.extend(page.get("Items", []))
                last_evaluated_key = page.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
            return items
        except ClientError as exc:
            code = _error_code(exc)
            if code == _RESOURCE_NOT_FOUND:
                raise self._not_found(exc, None, "Collection") from exc
            # A scan of an undefined index fails validation rather than lookup.
            if "IndexName" in params and code == _VALIDATION and _MISSING_INDEX in str(exc):
                raise self._not_found(exc, None, f"Index {params['IndexName']}") from exc
            raise

    def read_all(self) -> List[Document]:
        logger.debug("Scan %s", self._collection)
        return self._scan({})

    def query(self, source: str, where_clause: str, parameters: Mapping[str, Any]) -> List[Document]:
        """Filtered scan of the table, or of the secondary index named ``source``.

        Parameters
        ----------
        source: str
            The collection name to read the table itself, otherwise an index name.
        where_clause: str
            DynamoDB filter expression, passed through verbatim
            (eg, ``department = :dept AND #lvl > :min_level``).
        parameters: Mapping[str, Any]
            Named placeholders: ``:value`` keys are bound as expression
            attribute values, ``#name`` keys as expression attribute names.
        """
        params: Dict[str, Any] = {"FilterExpression": where_clause}
        values: Dict[str, Any] = {}
        names: Dict[str, str] = {}
        for key, value in parameters.items():
            if key.startswith(":"):
                values[key] = value
            elif key.startswith("#"):
                names[key] = str(value)
            else:
                raise ValueError(f"Query parameter {key!r} must start with ':' or '#'")
        if values:
            params["ExpressionAttributeValues"] = values
        if names:
            params["ExpressionAttributeNames"] = names
        if source != self._collection:
            params["IndexName"] = source
        logger.debug("Scan %s source=%s filter=%s", self._collection, source, where_clause)
        return self._scan(params)


class DynamoClientFactory:
    """Store client provider: one cached handle per collection.

    Handles are built lazily without network I/O. ``ensure_provisioned``
    creates the tables of every known collection that does not exist yet.
    """

    def __init__(self, config: DynamoConfig, resource=None) -> None:
        self._config = config
        self._resource = resource
        self._clients: Dict[str, DynamoCollectionClient] = {}

    def _get_resource(self):
        if self._resource is None:
            self._resource = get_dynamo_resource(self._config)
        return self._resource

    def table_name(self, collection_name: str) -> str:
        return make_table_name(collection_name, self._config.table_prefix)

    def get_client(self, collection_name: str) -> DynamoCollectionClient:
        client = self._clients.get(collection_name)
        if client is None:
            table = self._get_resource().Table(self.table_name(collection_name))
            client = DynamoCollectionClient(table, collection_name)
            self._clients[collection_name] = client
        return client

    def known_collections(self) -> List[str]:
        names = list(self._config.collections)
        names.extend(n for n in self._clients if n not in names)
        return names

    def ensure_provisioned(self) -> None:
        """Create every missing collection table and wait until it is active.

        Safe to call repeatedly and from several processes at once.
        """
        ddb = self._get_resource().meta.client
        created: List[str] = []
        for collection in self.known_collections():
            table_name = self.table_name(collection)
            try:
                ddb.describe_table(TableName=table_name)
                logger.debug("Table %s already exists", table_name)
                continue
            except ClientError as exc:
                if _error_code(exc) != _RESOURCE_NOT_FOUND:
                    raise
            try:
                ddb.create_table(
                    TableName=table_name,
                    KeySchema=[
                        {"AttributeName": PARTITION_KEY_ATTR, "KeyType": "HASH"},
                        {"AttributeName": ID_ATTR, "KeyType": "RANGE"},
                    ],
                    AttributeDefinitions=[
                        {"AttributeName": PARTITION_KEY_ATTR, "AttributeType": "S"},
                        {"AttributeName": ID_ATTR, "AttributeType": "S"},
                    ],
                    BillingMode=self._config.billing_mode,
                )
                logger.info("Creating table %s for collection %s", table_name, collection)
            except ClientError as exc:
                # Another process is creating it; wait below like for our own.
                if _error_code(exc) != _RESOURCE_IN_USE:
                    raise
                logger.info("Table %s is being created elsewhere", table_name)
            created.append(table_name)

        for table_name in created:
            ddb.get_waiter("table_exists").wait(TableName=table_name)
            logger.info("Table %s is active", table_name)
