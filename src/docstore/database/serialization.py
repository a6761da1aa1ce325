"""Entity <-> document conversion at the store boundary.

DynamoDB does not support native Python float, so floats are converted to
Decimal on the way in. On the way out every value is coerced by the type the
entity field declares; the store trims trailing zeros (3.0 is read back as
``Decimal("3")``), so the stored number alone cannot tell int from float.
"""
from __future__ import annotations

import dataclasses
import collections.abc
import functools
import types
from decimal import Decimal
from typing import Any, Dict, Type, Union, get_args, get_origin, get_type_hints

from .types import Document, E

_NONE_TYPE = type(None)


def to_dynamo_value(value: Any) -> Any:
    # Convert floats to Decimal using string constructor to preserve precision
    if isinstance(value, float):
        return Decimal(str(value))
    # bool is a subclass of int; both are directly supported
    if isinstance(value, (int, bool)):
        return value
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return [to_dynamo_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_dynamo_value(v) for k, v in value.items()}
    # Fallback: leave as-is (DynamoDB may reject unsupported types)
    return value


def from_dynamo_value(value: Any) -> Any:
    """Best-effort conversion for values without a declared type (eg, ``Dict[str, Any]``)."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, list):
        return [from_dynamo_value(v) for v in value]
    if isinstance(value, dict):
        return {k: from_dynamo_value(v) for k, v in value.items()}
    return value


def to_document(entity: Any) -> Document:
    """Serialize a dataclass entity into a DynamoDB-compatible document."""
    if not dataclasses.is_dataclass(entity) or isinstance(entity, type):
        raise TypeError(f"Expected a dataclass instance, got {type(entity).__name__}")
    return to_dynamo_value(dataclasses.asdict(entity))


def from_document(entity_type: Type[E], document: Document) -> E:
    """Build ``entity_type`` from a stored document.

    Keys that are not fields of ``entity_type`` (eg, the ``_pk`` routing
    attribute) are dropped. Field annotations drive the conversion: numbers
    follow ``int``/``float``, nested dataclasses are rebuilt inside
    ``Optional``, ``List``, ``Tuple`` and ``Dict`` annotations, and tuples
    come back as tuples.

    Annotations must be resolvable at runtime; names imported only under
    ``TYPE_CHECKING`` make ``get_type_hints`` raise ``NameError``.
    """
    return _build(entity_type, document)


@functools.lru_cache(maxsize=None)
def _field_hints(cls: Type[Any]) -> Dict[str, Any]:
    return get_type_hints(cls)


def _build(cls: Type[Any], data: Dict[str, Any]) -> Any:
    hints = _field_hints(cls)
    kwargs: Dict[str, Any] = {}
    for field in dataclasses.fields(cls):
        if not field.init or field.name not in data:
            continue
        kwargs[field.name] = _coerce(hints.get(field.name, Any), data[field.name])
    return cls(**kwargs)


def _coerce(hint: Any, value: Any) -> Any:
    if value is None:
        return None
    if hint is Any:
        return from_dynamo_value(value)

    origin = get_origin(hint)
    args = get_args(hint)

    if origin is Union or origin is types.UnionType:
        members = [a for a in args if a is not _NONE_TYPE]
        if len(members) == 1:
            return _coerce(members[0], value)
        return from_dynamo_value(value)

    if isinstance(hint, type) and dataclasses.is_dataclass(hint) and isinstance(value, dict):
        return _build(hint, value)

    if hint is bool:
        return value
    if hint is float and isinstance(value, Decimal):
        return float(value)
    if hint is int and isinstance(value, Decimal):
        return int(value)
    if hint is Decimal:
        return value

    if isinstance(value, list):
        if origin in (list, collections.abc.Sequence) or hint is list:
            item_hint = args[0] if args else Any
            return [_coerce(item_hint, v) for v in value]
        if origin is tuple or hint is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return tuple(_coerce(args[0], v) for v in value)
            if args and len(args) == len(value):
                return tuple(_coerce(a, v) for a, v in zip(args, value))
            return tuple(from_dynamo_value(v) for v in value)

    if isinstance(value, dict) and (origin is dict or hint is dict):
        value_hint = args[1] if len(args) == 2 else Any
        return {k: _coerce(value_hint, v) for k, v in value.items()}

    return from_dynamo_value(value)
