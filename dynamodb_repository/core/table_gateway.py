"""
Thin DynamoDB Table Gateway

Blocking wrapper around the boto3 Table resource. It exposes the handful of
operations the repositories need (get, batch get, query, scan, put, delete)
and converts botocore ``ClientError`` into the package's exception hierarchy.

The gateway does no caching and no retrying of its own; botocore's retry
configuration is the only retry layer. The asynchronous document store runs
these calls in an executor.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConflictError,
    ConnectionError,
    InvalidRequestError,
    ItemNotFoundError,
    RetryableError,
)

logger = logging.getLogger(__name__)


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to domain-specific exceptions.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "PutItem")
        table_name: The DynamoDB table name
        resource_id: Optional resource identifier for context

    Returns:
        A StoreError subclass wrapping the original error
    """
    error_code = error.response.get('Error', {}).get('Code', 'Unknown')
    error_message = error.response.get('Error', {}).get('Message', str(error))

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"

    full_message = f"{context}: {error_message}"

    if error_code == 'ConditionalCheckFailedException':
        return ConflictError(f"Conditional check failed - {full_message}", resource_id, original_error=error)

    elif error_code == 'ResourceNotFoundException':
        if resource_id:
            return ItemNotFoundError(table_name, {'resource_id': resource_id}, original_error=error)
        else:
            return ConnectionError(f"Table not found - {full_message}", original_error=error)

    elif error_code in ['ValidationException', 'ItemCollectionSizeLimitExceededException', 'LimitExceededException']:
        return InvalidRequestError(f"Request rejected - {full_message}", original_error=error)

    elif error_code in [
        'ProvisionedThroughputExceededException', 'RequestLimitExceeded',
        'ThrottlingException', 'TooManyRequestsException'
    ]:
        return RetryableError(f"Throttling - {full_message}", original_error=error)

    elif error_code in [
        'InternalServerError', 'ServiceUnavailable', 'ServiceUnavailableException',
        'RequestTimeoutException'
    ]:
        return RetryableError(f"Service unavailable - {full_message}", original_error=error)

    elif error_code in ['TransactionConflictException', 'ResourceInUseException']:
        return ConflictError(f"Conflict - {full_message}", resource_id, original_error=error)

    elif error_code in [
        'UnrecognizedClientException', 'AccessDeniedException',
        'InvalidSignatureException', 'ExpiredTokenException'
    ]:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", original_error=error)

    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


def _describe_key(key: Dict[str, Any]) -> str:
    return ", ".join(f"{k}={v}" for k, v in key.items())


class TableGateway:
    """
    Thin gateway for the operations of a single DynamoDB table.

    The boto3 resource and Table handle are created lazily on first use.
    """

    def __init__(self, config: DynamoDBConfig, table_name: str):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
            table_name: Physical name of the DynamoDB table
        """
        self.config = config
        self.table_name = table_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            try:
                session = boto3.Session(
                    aws_access_key_id=self.config.aws_access_key_id,
                    aws_secret_access_key=self.config.aws_secret_access_key,
                    region_name=self.config.region_name
                )

                dynamodb_config = {
                    'region_name': self.config.region_name
                }

                if self.config.endpoint_url:
                    dynamodb_config['endpoint_url'] = self.config.endpoint_url

                boto_config = Config(
                    retries={'max_attempts': self.config.retries},
                    max_pool_connections=self.config.max_pool_connections,
                    read_timeout=self.config.timeout_seconds,
                    connect_timeout=self.config.timeout_seconds
                )
                dynamodb_config['config'] = boto_config

                self._dynamodb = session.resource('dynamodb', **dynamodb_config)
            except Exception as e:
                logger.error(f"Failed to create DynamoDB resource: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._dynamodb

    @property
    def table(self):
        """boto3 DynamoDB Table resource."""
        if self._table is None:
            try:
                self._table = self.dynamodb.Table(self.table_name)
            except Exception as e:
                logger.error(f"Failed to access table '{self.table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{self.table_name}': {e}", e) from e
        return self._table

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Read one item by key.

        Returns:
            The item, or None when no item has that key
        """
        try:
            response = self.table.get_item(Key=key)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", self.table_name, _describe_key(key)) from e
        return response.get('Item')

    def batch_get_items(self, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Read many items by key.

        Keys are sent in chunks of ``config.batch_get_chunk_size``; keys the
        service reports as unprocessed are requested again until none remain.
        Missing items are omitted and the result order is not the key order.
        """
        items: List[Dict[str, Any]] = []
        chunk_size = self.config.batch_get_chunk_size

        for start in range(0, len(keys), chunk_size):
            request_items = {self.table_name: {'Keys': keys[start:start + chunk_size]}}
            while request_items:
                try:
                    response = self.dynamodb.batch_get_item(RequestItems=request_items)
                except ClientError as e:
                    raise map_dynamodb_error(e, "BatchGetItem", self.table_name) from e

                items.extend(response.get('Responses', {}).get(self.table_name, []))
                request_items = response.get('UnprocessedKeys') or {}
                if request_items:
                    unprocessed = len(request_items.get(self.table_name, {}).get('Keys', []))
                    logger.debug(f"BatchGetItem on {self.table_name} left {unprocessed} unprocessed keys")

        logger.debug(f"BatchGetItem on {self.table_name}: {len(items)} of {len(keys)} keys found")
        return items

    def query(self, **kwargs) -> Dict[str, Any]:
        """Execute DynamoDB Query operation.

        Raw pass-through to boto3 with error handling.

        Args:
            **kwargs: All boto3 query parameters

        Returns:
            Raw DynamoDB response
        """
        try:
            return self.table.query(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Query", self.table_name) from e

    def scan(self, **kwargs) -> Dict[str, Any]:
        """Execute DynamoDB Scan operation.

        Args:
            **kwargs: All boto3 scan parameters

        Returns:
            Raw DynamoDB response
        """
        if 'Limit' not in kwargs and kwargs.get('Select') != 'COUNT':
            logger.warning(f"Scan on {self.table_name} without Limit - consider adding one")
        try:
            return self.table.scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Scan", self.table_name) from e

    def put_item(self, item: Dict[str, Any]) -> None:
        """Write a whole item, replacing any item with the same key."""
        try:
            self.table.put_item(Item=item)
            logger.info(f"Put item in {self.table_name}: {item}")
        except ClientError as e:
            raise map_dynamodb_error(e, "PutItem", self.table_name) from e

    def delete_item(self, key: Dict[str, Any]) -> None:
        """Delete the item with the given key. Deleting a missing item is not an error."""
        try:
            self.table.delete_item(Key=key)
            logger.info(f"Deleted item from {self.table_name}: {key}")
        except ClientError as e:
            raise map_dynamodb_error(e, "DeleteItem", self.table_name, _describe_key(key)) from e


def create_table_gateway(config: DynamoDBConfig, table_name: str) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration
        table_name: Logical table name, resolved with config.get_table_name()

    Returns:
        Configured TableGateway instance
    """
    full_table_name = config.get_table_name(table_name)
    return TableGateway(config, full_table_name)
