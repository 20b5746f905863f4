# Base exception class
from .base import DynamoDBRepositoryError

from .domain_exceptions import (
    ConflictError,
    ConnectionError,
    FlushError,
    InvalidRequestError,
    ItemNotFoundError,
    RetryableError,
    SchemaError,
    StoreError,
    ValidationError,
)

__all__ = [
    # Base exception
    "DynamoDBRepositoryError",

    # Domain exceptions (alphabetically ordered)
    "ConflictError",
    "ConnectionError",
    "FlushError",
    "InvalidRequestError",
    "ItemNotFoundError",
    "RetryableError",
    "SchemaError",
    "StoreError",
    "ValidationError",
]
