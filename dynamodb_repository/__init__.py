"""
DynamoDB Repository

Client-side data access for DynamoDB tables with an identity-preserving,
single-flight read cache and a unit of work that persists exactly the
changes made to tracked entities on flush.
"""

from .config import DynamoDBConfig
from .core import (
    DocumentStore,
    DynamoDBDocumentStore,
    Page,
    TableGateway,
    create_table_gateway,
)
from .events import (
    Action,
    CacheKeyInUse,
    EntityOperationFailed,
    EventDispatcher,
    Flushed,
    FlushFailed,
    RepositoryEvent,
    RepositoryObserver,
)
from .exceptions import (
    ConflictError,
    ConnectionError,
    DynamoDBRepositoryError,
    FlushError,
    InvalidRequestError,
    ItemNotFoundError,
    RetryableError,
    SchemaError,
    StoreError,
    ValidationError,
)
from .models import (
    CountInput,
    HashKey,
    HashRangeKey,
    Key,
    KeySchema,
    KeySchemaElement,
    ProjectionType,
    SearchInput,
    SecondaryIndex,
    TableConfig,
    derive_key,
)
from .pagination import EXHAUSTED, EntityGenerator
from .repositories import (
    CachedDynamoRepository,
    DynamoRepository,
    ManagedDynamoRepository,
)

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",
    "TableConfig",
    "SecondaryIndex",
    "ProjectionType",

    # Keys
    "HashKey",
    "HashRangeKey",
    "Key",
    "KeySchema",
    "KeySchemaElement",
    "derive_key",

    # Reads
    "SearchInput",
    "CountInput",
    "EntityGenerator",
    "EXHAUSTED",

    # Store
    "DocumentStore",
    "DynamoDBDocumentStore",
    "Page",
    "TableGateway",
    "create_table_gateway",

    # Repositories
    "DynamoRepository",
    "CachedDynamoRepository",
    "ManagedDynamoRepository",

    # Events
    "Action",
    "CacheKeyInUse",
    "EntityOperationFailed",
    "EventDispatcher",
    "Flushed",
    "FlushFailed",
    "RepositoryEvent",
    "RepositoryObserver",

    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DynamoDBRepositoryError",
    "FlushError",
    "InvalidRequestError",
    "ItemNotFoundError",
    "RetryableError",
    "SchemaError",
    "StoreError",
    "ValidationError",
]
