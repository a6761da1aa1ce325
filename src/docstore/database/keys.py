from __future__ import annotations

import hashlib
from typing import Callable, Optional

PartitionKeyResolver = Callable[[str], Optional[str]]

# Reserved attribute names of every collection table.
PARTITION_KEY_ATTR = "_pk"
ID_ATTR = "id"


def _concat(*parts: Optional[str]) -> str:
    return "#".join(str(p) for p in parts if p is not None and p != "")


def make_table_name(collection_name: str, prefix: Optional[str] = None) -> str:
    """Physical table name for a logical collection.

    Example: dev-Employees
    """
    if not prefix:
        return collection_name
    return f"{prefix}-{collection_name}"


def make_stored_partition_key(entity_id: str, partition_key: Optional[str]) -> str:
    """Value written to the ``_pk`` attribute.

    Collections without partition routing store the id itself, so each
    document gets its own partition.
    """
    return partition_key if partition_key is not None else entity_id


def no_partition_key(entity_id: str) -> Optional[str]:
    return None


def hash_bucket_partition_key(buckets: int) -> PartitionKeyResolver:
    """Spread ids over a fixed number of partitions.

    Example: BUCKET#07

    The bucket comes from a SHA-256 digest, so it is stable across processes
    (unlike ``hash()``, which is salted per interpreter).
    """
    if buckets < 1:
        raise ValueError(f"buckets must be >= 1, got {buckets}")
    width = len(str(buckets - 1))

    def _resolve(entity_id: str) -> Optional[str]:
        digest = hashlib.sha256(entity_id.encode("utf-8")).digest()
        bucket = int.from_bytes(digest[:8], "big") % buckets
        return _concat("BUCKET", str(bucket).zfill(width))

    return _resolve


def prefix_partition_key(length: int) -> PartitionKeyResolver:
    """Route ids by their first ``length`` characters.

    Example: PREFIX#ab
    """
    if length < 1:
        raise ValueError(f"length must be >= 1, got {length}")

    def _resolve(entity_id: str) -> Optional[str]:
        return _concat("PREFIX", entity_id[:length])

    return _resolve
