"""
Pull-based reading of paginated query/scan results.

``PageReader`` walks the continuation-key protocol of Query and Scan and hands
out raw items one at a time. ``EntityGenerator`` is what ``search`` returns:
an awaitable callable that yields the next entity or ``EXHAUSTED``.

    generator = repository.search(SearchInput(index_name="StatusIndex", ...))
    first = await generator()
    rest = await generator.to_list()

    async for entity in repository.search():
        ...
"""

import asyncio
import logging
from collections import deque
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Dict, Generic, List, Optional, TypeVar, Union

from .core.document_store import Page

logger = logging.getLogger(__name__)

E = TypeVar('E')


class _Exhausted:
    """Sentinel returned by a generator whose source has no more items."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = _Exhausted()


class PageReader:
    """Hands out raw items across pages of a Query or Scan.

    Args:
        fetch_page: Coroutine function issuing one Query or Scan request
        request: Request parameters; ``ExclusiveStartKey`` is the starting cursor
    """

    def __init__(self, fetch_page: Callable[[Dict[str, Any]], Awaitable[Page]], request: Dict[str, Any]):
        self._fetch_page = fetch_page
        self._request = dict(request)
        self._cursor: Optional[Dict[str, Any]] = self._request.pop('ExclusiveStartKey', None)
        self._items: Deque[Dict[str, Any]] = deque()
        self._source_exhausted = False
        self._lock = asyncio.Lock()

    @property
    def exhausted(self) -> bool:
        return self._source_exhausted and not self._items

    async def _next_page(self) -> Page:
        request = dict(self._request)
        if self._cursor is not None:
            request['ExclusiveStartKey'] = self._cursor
        page = await self._fetch_page(request)
        self._cursor = page.last_evaluated_key
        if self._cursor is None:
            self._source_exhausted = True
        logger.debug(f"Fetched page of {len(page.items)} items (more: {not self._source_exhausted})")
        return page

    async def next_item(self) -> Optional[Dict[str, Any]]:
        """Pop the next raw item, fetching pages as needed. None once exhausted."""
        async with self._lock:
            while not self._items and not self._source_exhausted:
                page = await self._next_page()
                self._items.extend(page.items)
            if not self._items:
                return None
            return self._items.popleft()

    async def pages(self) -> AsyncIterator[Page]:
        """Iterate the remaining pages without buffering their items."""
        async with self._lock:
            while not self._source_exhausted:
                yield await self._next_page()


class EntityGenerator(Generic[E]):
    """Lazy, pull-based sequence of entities.

    Each ``await generator()`` returns the next entity or ``EXHAUSTED``; once
    exhausted it stays exhausted. Not restartable: build a new one with
    another ``search`` call.
    """

    def __init__(self, pull: Callable[[], Awaitable[Union[E, _Exhausted]]]):
        self._pull = pull
        self._done = False

    async def __call__(self) -> Union[E, _Exhausted]:
        if self._done:
            return EXHAUSTED
        entity = await self._pull()
        if entity is EXHAUSTED:
            self._done = True
        return entity

    async def to_list(self) -> List[E]:
        """Drain the remaining entities into a list, in store order."""
        entities: List[E] = []
        while True:
            entity = await self()
            if entity is EXHAUSTED:
                return entities
            entities.append(entity)

    def __aiter__(self) -> 'EntityGenerator[E]':
        return self

    async def __anext__(self) -> E:
        entity = await self()
        if entity is EXHAUSTED:
            raise StopAsyncIteration
        return entity
