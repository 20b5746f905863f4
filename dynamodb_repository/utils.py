"""
Serialization helpers for change detection.

A snapshot is the canonical JSON text of a marshaled entity. Two snapshots
are equal exactly when the marshaled forms are structurally equal, so change
detection can only see what ``marshal`` exposes.
"""

import base64
import dataclasses
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> Any:
    """Render the non-JSON types found in DynamoDB items and entities."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode('ascii')
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    # boto3.dynamodb.types.Binary
    if hasattr(obj, 'value') and isinstance(getattr(obj, 'value'), (bytes, bytearray)):
        return base64.b64encode(bytes(obj.value)).decode('ascii')
    if hasattr(obj, '__dict__'):
        return {k: v for k, v in vars(obj).items() if not k.startswith('_')}
    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")


def serialize(value: Any) -> str:
    """Canonical JSON text of ``value`` (sorted keys, compact separators).

    Raises:
        ValidationError: If the value contains something that cannot be rendered
    """
    try:
        return json.dumps(value, sort_keys=True, separators=(',', ':'), default=_json_default)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to serialize {type(value).__name__} for snapshot: {e}")
        raise ValidationError(f"Failed to serialize {type(value).__name__} for snapshot: {e}", original_error=e) from e
