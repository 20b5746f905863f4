from .keys import (
    HashKey,
    HashRangeKey,
    Key,
    KeyLike,
    KeySchema,
    KeySchemaElement,
    KeyType,
    derive_key,
    unique_keys,
)
from .search import CountInput, SearchInput
from .table_config import ProjectionType, SecondaryIndex, TableConfig

__all__ = [
    # Keys
    "HashKey",
    "HashRangeKey",
    "Key",
    "KeyLike",
    "KeySchema",
    "KeySchemaElement",
    "KeyType",
    "derive_key",
    "unique_keys",

    # Configuration
    "ProjectionType",
    "SecondaryIndex",
    "TableConfig",

    # Reads
    "CountInput",
    "SearchInput",
]
