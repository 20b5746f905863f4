"""
Key schema and logical keys.

A table is addressed by a hash attribute and, optionally, a range attribute.
Logical keys are modelled as a sum type so that a table without a range
attribute never carries a placeholder range value:

    HashKey(hash_value="e1")
    HashRangeKey(hash_value="pipeline-1", range_value="2024-01-01")

Keys are frozen pydantic models: hashable and compared by value, which is what
the read cache buckets on and what request lists are deduplicated by.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import SchemaError, ValidationError

logger = logging.getLogger(__name__)


class KeyType(str, Enum):
    """Role of an attribute in the key schema."""
    HASH = "HASH"
    RANGE = "RANGE"


class KeySchemaElement(BaseModel):
    """One element of a DynamoDB-style key schema."""

    attribute_name: str = Field(..., alias="AttributeName", min_length=1)
    key_type: KeyType = Field(..., alias="KeyType")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class HashKey(BaseModel):
    """Key of a table that only has a hash attribute."""

    hash_value: Any

    model_config = ConfigDict(frozen=True)


class HashRangeKey(BaseModel):
    """Key of a table with both hash and range attributes."""

    hash_value: Any
    range_value: Any

    model_config = ConfigDict(frozen=True)


Key = Union[HashKey, HashRangeKey]
KeyLike = Union[HashKey, HashRangeKey, Mapping[str, Any]]


class KeySchema(BaseModel):
    """Validated key schema: exactly one hash attribute, at most one range attribute."""

    hash_attribute: str
    range_attribute: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_elements(cls, elements: Iterable[Union[KeySchemaElement, Mapping[str, Any]]]) -> 'KeySchema':
        """Build a key schema from DynamoDB-style elements.

        Args:
            elements: ``KeySchemaElement`` instances or mappings such as
                ``{"AttributeName": "id", "KeyType": "HASH"}``

        Returns:
            KeySchema instance

        Raises:
            SchemaError: If there is no hash attribute, or more than one hash
                or range attribute
        """
        parsed: List[KeySchemaElement] = []
        for element in elements:
            if isinstance(element, KeySchemaElement):
                parsed.append(element)
                continue
            try:
                parsed.append(KeySchemaElement.model_validate(element))
            except Exception as e:
                raise SchemaError(f"Invalid key schema element: {element!r}") from e

        raw = [e.model_dump(by_alias=True, mode="json") for e in parsed]
        hashes = [e.attribute_name for e in parsed if e.key_type == KeyType.HASH]
        ranges = [e.attribute_name for e in parsed if e.key_type == KeyType.RANGE]

        if not hashes:
            raise SchemaError("Key schema has no HASH attribute", raw)
        if len(hashes) > 1:
            raise SchemaError(f"Key schema has more than one HASH attribute: {hashes}", raw)
        if len(ranges) > 1:
            raise SchemaError(f"Key schema has more than one RANGE attribute: {ranges}", raw)

        return cls(hash_attribute=hashes[0], range_attribute=ranges[0] if ranges else None)

    @property
    def attribute_names(self) -> List[str]:
        names = [self.hash_attribute]
        if self.range_attribute:
            names.append(self.range_attribute)
        return names

    def key(self, hash_value: Any, range_value: Any = None) -> Key:
        """Build a logical key of the right shape for this schema."""
        if self.range_attribute is None:
            if range_value is not None:
                raise ValidationError(
                    f"Table keyed by '{self.hash_attribute}' has no range attribute",
                    {'range_value': range_value}
                )
            return HashKey(hash_value=hash_value)
        return HashRangeKey(hash_value=hash_value, range_value=range_value)

    def key_from(self, value: KeyLike) -> Key:
        """Normalize a key object or a key mapping into a logical key.

        Raises:
            ValidationError: If the key shape does not match the schema
        """
        if isinstance(value, HashKey):
            if self.range_attribute is not None:
                raise ValidationError(
                    f"Key {value!r} lacks a value for range attribute '{self.range_attribute}'"
                )
            return value
        if isinstance(value, HashRangeKey):
            if self.range_attribute is None:
                raise ValidationError(f"Key {value!r} has a range value but the table has no range attribute")
            return value
        if isinstance(value, Mapping):
            return derive_key(self, value)
        raise ValidationError(f"Unsupported key type: {type(value).__name__}")

    def to_item(self, key: Key) -> Dict[str, Any]:
        """Render a logical key as the store's key mapping (``{"id": "e1"}``)."""
        item = {self.hash_attribute: key.hash_value}
        if isinstance(key, HashRangeKey):
            item[self.range_attribute] = key.range_value
        return item


def derive_key(
    schema: Union[KeySchema, Sequence[Union[KeySchemaElement, Mapping[str, Any]]]],
    marshaled_entity: Mapping[str, Any],
) -> Key:
    """Derive the logical key of a marshaled entity.

    Only the attributes named by the schema are read; everything else in the
    item is ignored.

    Args:
        schema: A KeySchema or DynamoDB-style key schema elements
        marshaled_entity: Item in the store's attribute representation

    Returns:
        HashKey or HashRangeKey

    Raises:
        SchemaError: If the schema is malformed
        ValidationError: If the item lacks a schema-named attribute
    """
    if not isinstance(schema, KeySchema):
        schema = KeySchema.from_elements(schema)

    missing = [name for name in schema.attribute_names if name not in marshaled_entity]
    if missing:
        raise ValidationError(
            f"Item is missing key attribute(s) {missing}",
            {name: "missing" for name in missing}
        )

    if schema.range_attribute is None:
        return HashKey(hash_value=marshaled_entity[schema.hash_attribute])
    return HashRangeKey(
        hash_value=marshaled_entity[schema.hash_attribute],
        range_value=marshaled_entity[schema.range_attribute],
    )


def unique_keys(keys: Iterable[Key]) -> List[Key]:
    """Remove duplicate keys by value, keeping first-seen order."""
    return list(dict.fromkeys(keys))
