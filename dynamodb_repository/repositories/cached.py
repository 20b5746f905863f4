"""
Identity-preserving read cache.

Every key maps to one future of its entity (or of None for "not found"). The
first read of a key installs the fetch in the cache before it resolves, so
concurrent and repeated reads of that key share one store call and get the
same object back. Entries live until ``clear()``; a fetch that fails is
dropped so the error is not memoized.

Cache layout: ``{hash_value: {key: future}}``.
"""

import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional

from ..events import CacheKeyInUse, RepositoryEvent
from ..models import Key, KeyLike, unique_keys
from ..pagination import EXHAUSTED, EntityGenerator
from .base import DynamoRepository, Entity, SearchLike

logger = logging.getLogger(__name__)


class CachedDynamoRepository(DynamoRepository[Entity]):
    """DynamoRepository with single-flight, identity-preserving reads."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._cache: Dict[Any, Dict[Key, asyncio.Future]] = {}

    async def get(self, key: KeyLike) -> Optional[Entity]:
        """Read one entity, sharing the fetch with every other reader of the key."""
        key = self.key_schema.key_from(key)
        return await asyncio.shield(self._cached_fetch(key))

    async def get_list(self, keys: List[KeyLike]) -> Dict[Key, Optional[Entity]]:
        """Read many entities; only the keys not cached yet go to the store, in one batch."""
        requested = unique_keys(self.key_schema.key_from(k) for k in keys)
        # Pending futures go in before the batch is sent so other readers join it
        pending = {key: self._install_pending(key) for key in requested if not self._is_cached(key)}

        if pending:
            logger.debug(f"Cache miss for {len(pending)} of {len(requested)} keys on {self.table_name}")
            try:
                fetched = await super().get_list(list(pending))
            except asyncio.CancelledError:
                for future in pending.values():
                    future.cancel()
                raise
            except Exception as e:
                for future in pending.values():
                    future.set_exception(e)
                raise
            for key, future in pending.items():
                future.set_result(fetched.get(key))

        result: Dict[Key, Optional[Entity]] = {}
        for key in requested:
            result[key] = await asyncio.shield(self._cached_fetch(key))
        return result

    def search(self, input: SearchLike = None) -> EntityGenerator[Entity]:
        """Search, handing out the cached instance of every entity found."""
        source = super().search(input)

        async def pull():
            entity = await source()
            if entity is EXHAUSTED:
                return EXHAUSTED
            key = self.get_entity_key(entity)
            await self.add_to_cache_by_key(key, entity)
            return await asyncio.shield(self._cached_fetch(key))

        return EntityGenerator(pull)

    async def add_to_cache(self, entity: Entity) -> None:
        """Seed the cache with an entity under its derived key."""
        await self.add_to_cache_by_key(self.get_entity_key(entity), entity)

    async def add_to_cache_by_key(self, key: KeyLike, entity: Optional[Entity]) -> None:
        """Seed the cache with ``entity`` (or a "not found") under ``key``.

        A cached entity is never replaced: offering a different object emits
        CACHE_KEY_IN_USE and keeps the original. A cached "not found" is
        filled by the offered entity. Pending fetches are awaited first.
        """
        key = self.key_schema.key_from(key)

        while True:
            current = self._get_from_cache(key)
            if current is None:
                break
            if not current.done():
                await asyncio.wait([current])
                continue
            if current.cancelled() or current.exception() is not None:
                break

            cached = current.result()
            if cached is None:
                break
            if entity is not None and cached is not entity:
                logger.warning(f"Cache key {key!r} on {self.table_name} already holds another entity")
                self.events.emit(
                    RepositoryEvent.CACHE_KEY_IN_USE,
                    CacheKeyInUse(cached_item=cached, new_item=entity),
                )
            return

        future = asyncio.get_running_loop().create_future()
        future.set_result(entity)
        self._cache.setdefault(key.hash_value, {})[key] = future

    def clear(self) -> None:
        """Drop every cached entry."""
        self._cache.clear()
        logger.debug(f"Cleared cache of {self.table_name}")

    def _is_cached(self, key: Key) -> bool:
        return key in self._cache.get(key.hash_value, {})

    def _get_from_cache(self, key: Key) -> Optional[asyncio.Future]:
        return self._cache.get(key.hash_value, {}).get(key)

    def _cached_fetch(self, key: Key) -> asyncio.Future:
        bucket = self._cache.setdefault(key.hash_value, {})
        future = bucket.get(key)
        if future is None:
            logger.debug(f"Cache miss for {key!r} on {self.table_name}")
            future = asyncio.ensure_future(super().get(key))
            bucket[key] = future
            future.add_done_callback(functools.partial(self._drop_failed_fetch, key))
        return future

    def _install_pending(self, key: Key) -> asyncio.Future:
        """Install an unresolved future for ``key``, resolved by the caller."""
        future = asyncio.get_running_loop().create_future()
        self._cache.setdefault(key.hash_value, {})[key] = future
        future.add_done_callback(functools.partial(self._drop_failed_fetch, key))
        return future

    def _drop_failed_fetch(self, key: Key, future: asyncio.Future) -> None:
        if not future.cancelled() and future.exception() is None:
            return
        if self._get_from_cache(key) is future:
            del self._cache[key.hash_value][key]
            logger.debug(f"Dropped failed fetch for {key!r} on {self.table_name}")
