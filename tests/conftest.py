from __future__ import annotations

import copy
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest  # type: ignore[import]
from botocore.exceptions import ClientError  # type: ignore[import]

from docstore.database import DynamoClientFactory, DynamoConfig


def client_error(code: str, operation: str, message: str = "fake") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def _normalized(number: Decimal) -> Decimal:
    # DynamoDB drops trailing zeros: 3.0 -> 3, 1E+16 -> 10000000000000000
    result = number.normalize()
    if result.as_tuple().exponent > 0:
        result = result.quantize(Decimal(1))
    return result


def _stored(value: Any) -> Any:
    # Mirrors boto3: numbers come back as Decimal, floats are rejected
    if isinstance(value, float):
        raise TypeError("Float types are not supported. Use Decimal types instead.")
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, Decimal)):
        return _normalized(Decimal(value))
    if isinstance(value, list):
        return [_stored(v) for v in value]
    if isinstance(value, dict):
        return {k: _stored(v) for k, v in value.items()}
    return value


def _matches(item: Dict[str, Any], params: Dict[str, Any]) -> bool:
    """Evaluate ``a = :x AND #b = :y`` filters, enough for the tests."""
    expression = params.get("FilterExpression")
    if not expression:
        return True
    values = params.get("ExpressionAttributeValues", {})
    names = params.get("ExpressionAttributeNames", {})
    for clause in expression.split(" AND "):
        attr, placeholder = (part.strip() for part in clause.split("="))
        attr = names.get(attr, attr)
        if item.get(attr) != _stored(values[placeholder]):
            return False
    return True


class FakeTable:
    """In-process stand-in for a boto3 DynamoDB Table resource."""

    def __init__(self, name: str, exists: bool = True, page_size: int = 2) -> None:
        self.name = name
        self.exists = exists
        self.page_size = page_size
        self.items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.scan_params: List[Dict[str, Any]] = []
        self.fail_with: Optional[str] = None
        self.indexes: Set[str] = set()

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with:
            raise client_error(self.fail_with, operation)
        if not self.exists:
            raise client_error("ResourceNotFoundException", operation, "Requested resource not found")

    def get_item(self, Key: Dict[str, str]) -> Dict[str, Any]:  # noqa: N803 (match boto3 signature)
        self._enter("GetItem")
        item = self.items.get((Key["_pk"], Key["id"]))
        return {} if item is None else {"Item": copy.deepcopy(item)}

    def put_item(self, Item: Dict[str, Any], ConditionExpression: Optional[str] = None) -> Dict[str, Any]:  # noqa: N803
        self._enter("PutItem")
        key = (Item["_pk"], Item["id"])
        if ConditionExpression == "attribute_not_exists(id)" and key in self.items:
            raise client_error("ConditionalCheckFailedException", "PutItem")
        if ConditionExpression == "attribute_exists(id)" and key not in self.items:
            raise client_error("ConditionalCheckFailedException", "PutItem")
        self.items[key] = _stored(Item)
        return {}

    def delete_item(self, Key: Dict[str, str], ConditionExpression: Optional[str] = None) -> Dict[str, Any]:  # noqa: N803
        self._enter("DeleteItem")
        key = (Key["_pk"], Key["id"])
        if ConditionExpression == "attribute_exists(id)" and key not in self.items:
            raise client_error("ConditionalCheckFailedException", "DeleteItem")
        self.items.pop(key, None)
        return {}

    def scan(self, **params: Any) -> Dict[str, Any]:
        self._enter("Scan")
        index = params.get("IndexName")
        if index is not None and index not in self.indexes:
            raise client_error("ValidationException", "Scan", f"The table does not have the specified index: {index}")
        self.scan_params.append(copy.deepcopy(params))
        start = params.get("ExclusiveStartKey", {}).get("offset", 0)
        all_items = list(self.items.values())
        page = all_items[start : start + self.page_size]
        res: Dict[str, Any] = {"Items": [copy.deepcopy(i) for i in page if _matches(i, params)]}
        if start + self.page_size < len(all_items):
            res["LastEvaluatedKey"] = {"offset": start + self.page_size}
        return res


class _FakeWaiter:
    def __init__(self, client: "FakeDynamoClient") -> None:
        self._client = client

    def wait(self, TableName: str) -> None:  # noqa: N803
        self._client.waited.append(TableName)


class FakeDynamoClient:
    """Low-level client exposed as ``resource.meta.client``."""

    def __init__(self, resource: "FakeResource") -> None:
        self._resource = resource
        self.created: List[str] = []
        self.waited: List[str] = []
        self.create_error: Optional[str] = None
        # When False, create_table is accepted but the table never appears.
        self.create_makes_table = True

    def describe_table(self, TableName: str) -> Dict[str, Any]:  # noqa: N803
        table = self._resource.tables.get(TableName)
        if table is None or not table.exists:
            raise client_error("ResourceNotFoundException", "DescribeTable")
        return {"Table": {"TableName": TableName, "TableStatus": "ACTIVE"}}

    def create_table(self, **params: Any) -> Dict[str, Any]:
        if self.create_error:
            raise client_error(self.create_error, "CreateTable")
        name = params["TableName"]
        self.created.append(name)
        if self.create_makes_table:
            self._resource.Table(name).exists = True
        return {"TableDescription": {"TableName": name, "KeySchema": params["KeySchema"]}}

    def get_waiter(self, name: str) -> _FakeWaiter:
        assert name == "table_exists"
        return _FakeWaiter(self)


class _Meta:
    def __init__(self, client: FakeDynamoClient) -> None:
        self.client = client


class FakeResource:
    """Stand-in for ``boto3.resource("dynamodb")``.

    Tables not listed in ``existing`` start out missing.
    """

    def __init__(self, existing: Tuple[str, ...] = ()) -> None:
        self.tables: Dict[str, FakeTable] = {name: FakeTable(name) for name in existing}
        self.meta = _Meta(FakeDynamoClient(self))

    def Table(self, name: str) -> FakeTable:  # noqa: N802 (match boto3 signature)
        if name not in self.tables:
            self.tables[name] = FakeTable(name, exists=False)
        return self.tables[name]


@pytest.fixture
def resource() -> FakeResource:
    return FakeResource(existing=("Employees",))


@pytest.fixture
def factory(resource: FakeResource) -> DynamoClientFactory:
    return DynamoClientFactory(DynamoConfig(collections=("Employees",)), resource=resource)
