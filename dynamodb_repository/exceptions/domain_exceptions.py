"""
Domain-Specific Exceptions for the DynamoDB repository

This module holds all exceptions that extend the base DynamoDBRepositoryError.

Organized by category:
1. Configuration and Validation Errors
2. Store Errors (anything the remote store reports)
3. Unit-of-Work Errors
"""

from typing import Any, Dict, List, Optional

from .base import DynamoDBRepositoryError


# =============================================================================
# Configuration and Validation Errors
# =============================================================================

class SchemaError(DynamoDBRepositoryError):
    """Raised when a table key schema is malformed.

    Used for:
    - Key schemas without a HASH attribute
    - Key schemas with more than one HASH or RANGE attribute
    """

    def __init__(self, message: str, key_schema: Optional[List[Dict[str, Any]]] = None):
        self.key_schema = key_schema
        context = {}
        if key_schema is not None:
            context['key_schema'] = key_schema
        super().__init__(message, None, context)


class ValidationError(DynamoDBRepositoryError):
    """Raised when data handed to the repository is invalid.

    Used for:
    - Items missing an attribute named by the key schema
    - Keys that cannot be converted to the table's key shape
    - Pydantic validation failures of configuration or search input
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Dictionary of field-level validation errors
            original_error: The original exception that caused this error
        """
        self.errors = errors or {}
        context = {}
        if self.errors:
            context['validation_errors'] = self.errors
        super().__init__(message, original_error, context)


# =============================================================================
# Store Errors
# =============================================================================

class StoreError(DynamoDBRepositoryError):
    """Base class for every failure reported by the document store.

    The repository never retries these; they reach the caller unchanged.
    """


class ItemNotFoundError(StoreError):
    """Raised when a specific item or resource is not found in DynamoDB."""

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        """Initialize item not found error.

        Args:
            table_name: Name of the DynamoDB table
            key: The key that was not found
            original_error: The original exception that caused this error
        """
        self.table_name = table_name
        self.key = key
        message = f"Item not found in table '{table_name}' with key: {key}"
        context = {
            'table_name': table_name,
            'key': key
        }
        super().__init__(message, original_error, context)


class ConflictError(StoreError):
    """Raised when a conditional operation fails due to existing data.

    Used for:
    - ConditionalCheckFailedException from DynamoDB
    - Transaction conflicts
    - Resources already in use
    """

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        """Initialize conflict error.

        Args:
            message: Human-readable error message
            resource_id: ID of the conflicting resource
            original_error: The original exception that caused this error
        """
        self.resource_id = resource_id
        context = {}
        if resource_id:
            context['resource_id'] = resource_id
        super().__init__(message, original_error, context)


class ConnectionError(StoreError):
    """Raised when connection to DynamoDB fails.

    Used for:
    - Network connectivity issues
    - Authentication/authorization failures
    - Invalid endpoint configurations
    - Unknown service errors
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, original_error, context)


class InvalidRequestError(StoreError):
    """Raised when DynamoDB rejects a request as invalid (ValidationException and limits)."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)


class RetryableError(StoreError):
    """Raised when an operation fails due to temporary/throttling issues.

    The repository does not retry; the hint is for the caller's retry policy.

    Used for:
    - ProvisionedThroughputExceededException
    - RequestLimitExceeded errors
    - Temporary service unavailability
    """

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        """Initialize retryable error.

        Args:
            message: Human-readable error message
            retry_after_seconds: Suggested retry delay in seconds
            original_error: The original exception that caused this error
        """
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)


# =============================================================================
# Unit-of-Work Errors
# =============================================================================

class FlushError(DynamoDBRepositoryError):
    """Raised when one or more operations dispatched by a flush failed.

    Raised only after every dispatched operation has settled. ``original_error``
    is the first failure; ``errors`` holds all of them in dispatch order.
    """

    def __init__(self, errors: List[Exception]):
        self.errors = list(errors)
        first = self.errors[0] if self.errors else None
        message = f"Flush failed: {len(self.errors)} operation(s) failed"
        if first is not None:
            message += f", first error: {first}"
        super().__init__(message, first, {'failed_operations': len(self.errors)})
