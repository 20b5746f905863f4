"""
Asynchronous document store.

``DocumentStore`` is the collaborator the repositories talk to. Any object
with these coroutine methods satisfies it, which is how tests plug in an
in-memory store. ``DynamoDBDocumentStore`` is the boto3-backed
implementation: every call is a blocking ``TableGateway`` call run in the
event loop's default executor, so fanned-out requests overlap.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ..config import DynamoDBConfig
from .table_gateway import TableGateway, create_table_gateway

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Page(BaseModel):
    """One page of a query or scan."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    last_evaluated_key: Optional[Dict[str, Any]] = None
    count: int = 0

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> 'Page':
        """Build a page from a raw DynamoDB Query/Scan response."""
        items = response.get('Items', [])
        return cls(
            items=items,
            last_evaluated_key=response.get('LastEvaluatedKey'),
            count=response.get('Count', len(items)),
        )


@runtime_checkable
class DocumentStore(Protocol):
    """Operations the repositories need from the remote store.

    Every failure is raised as-is; implementations must not retry.
    """

    async def get_item(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def batch_get_items(self, table_name: str, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...

    async def query(self, table_name: str, request: Dict[str, Any]) -> Page:
        ...

    async def scan(self, table_name: str, request: Dict[str, Any]) -> Page:
        ...

    async def put_item(self, table_name: str, item: Dict[str, Any]) -> None:
        ...

    async def delete_item(self, table_name: str, key: Dict[str, Any]) -> None:
        ...


class DynamoDBDocumentStore:
    """DocumentStore backed by boto3.

    Logical table names are resolved to physical names with
    ``DynamoDBConfig.get_table_name`` (prefix and environment).
    """

    def __init__(self, config: DynamoDBConfig):
        self.config = config
        self._gateways: Dict[str, TableGateway] = {}

    def gateway(self, table_name: str) -> TableGateway:
        """Gateway for a logical table name, created once and reused."""
        gateway = self._gateways.get(table_name)
        if gateway is None:
            gateway = create_table_gateway(self.config, table_name)
            self._gateways[table_name] = gateway
        return gateway

    async def _call(self, table_name: str, method: Callable[..., T], *args, **kwargs) -> T:
        gateway = self.gateway(table_name)
        # Resolve the lazy boto3 handles on the loop thread, not inside the workers.
        _ = gateway.table
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(method, gateway, *args, **kwargs))

    async def get_item(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._call(table_name, TableGateway.get_item, key)

    async def batch_get_items(self, table_name: str, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not keys:
            return []
        return await self._call(table_name, TableGateway.batch_get_items, keys)

    async def query(self, table_name: str, request: Dict[str, Any]) -> Page:
        response = await self._call(table_name, TableGateway.query, **request)
        return Page.from_response(response)

    async def scan(self, table_name: str, request: Dict[str, Any]) -> Page:
        response = await self._call(table_name, TableGateway.scan, **request)
        return Page.from_response(response)

    async def put_item(self, table_name: str, item: Dict[str, Any]) -> None:
        await self._call(table_name, TableGateway.put_item, item)

    async def delete_item(self, table_name: str, key: Dict[str, Any]) -> None:
        await self._call(table_name, TableGateway.delete_item, key)
