"""
Core infrastructure components for DynamoDB operations.

- TableGateway: Thin blocking wrapper over boto3 table operations
- DocumentStore: Asynchronous store protocol consumed by the repositories
- DynamoDBDocumentStore: boto3-backed DocumentStore
"""

from .document_store import DocumentStore, DynamoDBDocumentStore, Page
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error

__all__ = [
    "DocumentStore",
    "DynamoDBDocumentStore",
    "Page",
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
]
