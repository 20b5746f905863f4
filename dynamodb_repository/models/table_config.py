"""
Table configuration consumed by the repositories.

Supplied once per repository and immutable afterwards.
"""

import copy
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .keys import KeySchema, KeySchemaElement


class ProjectionType(str, Enum):
    """Attribute projection of a secondary index."""
    KEYS_ONLY = "KEYS_ONLY"
    INCLUDE = "INCLUDE"
    ALL = "ALL"


class SecondaryIndex(BaseModel):
    """Projection completeness of a secondary index."""

    projection_type: ProjectionType = Field(..., alias="ProjectionType")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


def _structural_copy(value: Any) -> Any:
    return copy.deepcopy(value)


class TableConfig(BaseModel):
    """Table name, key schema, index projections and the marshal/unmarshal pair.

    ``marshal`` turns an entity into a store item; ``unmarshal`` does the
    reverse. Both default to a structural deep copy, which suits entities that
    already are plain dictionaries.

    Example:
        config = TableConfig(
            table_name="pipelines",
            key_schema=[{"AttributeName": "pipeline_id", "KeyType": "HASH"}],
            secondary_indexes={"StatusIndex": {"ProjectionType": "KEYS_ONLY"}},
            marshal=lambda p: p.model_dump(),
            unmarshal=lambda item: Pipeline(**item),
        )
    """

    table_name: str = Field(..., alias="TableName", min_length=1)
    key_schema: Tuple[KeySchemaElement, ...] = Field(..., alias="KeySchema")
    secondary_indexes: Dict[str, SecondaryIndex] = Field(default_factory=dict)
    marshal: Callable[[Any], Dict[str, Any]] = Field(default=_structural_copy)
    unmarshal: Callable[[Dict[str, Any]], Any] = Field(default=_structural_copy)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def get_key_schema(self) -> KeySchema:
        """Validated key schema of the table.

        Raises:
            SchemaError: If the key schema is malformed
        """
        return KeySchema.from_elements(self.key_schema)

    def index_needs_refetch(self, index_name: Optional[str]) -> bool:
        """Whether items read through ``index_name`` are partial projections."""
        if not index_name:
            return False
        index = self.secondary_indexes.get(index_name)
        if index is None:
            return False
        return index.projection_type != ProjectionType.ALL
