"""
Search and count inputs.

Field names follow Python conventions; the DynamoDB request names are
accepted as aliases and used when the request is rendered for the store.
The presence of ``key_condition_expression`` selects Query, its absence Scan.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class CountInput(BaseModel):
    """Input of a count over a query or scan."""

    index_name: Optional[str] = Field(default=None, alias="IndexName")
    filter_expression: Optional[Any] = Field(default=None, alias="FilterExpression")
    key_condition_expression: Optional[Any] = Field(default=None, alias="KeyConditionExpression")
    expression_attribute_names: Optional[Dict[str, str]] = Field(default=None, alias="ExpressionAttributeNames")
    expression_attribute_values: Optional[Dict[str, Any]] = Field(default=None, alias="ExpressionAttributeValues")
    exclusive_start_key: Optional[Dict[str, Any]] = Field(default=None, alias="ExclusiveStartKey")

    model_config = ConfigDict(populate_by_name=True, frozen=True, arbitrary_types_allowed=True)

    @property
    def is_query(self) -> bool:
        return self.key_condition_expression is not None

    def to_request(self) -> Dict[str, Any]:
        """Render as DynamoDB request parameters, omitting unset fields."""
        request = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is not None:
                request[field.alias or name] = value
        return request


class SearchInput(CountInput):
    """Input of a search over a query or scan."""

    select: Optional[str] = Field(default=None, alias="Select")
    limit: Optional[int] = Field(default=None, alias="Limit", gt=0)
    scan_index_forward: Optional[bool] = Field(default=None, alias="ScanIndexForward")
