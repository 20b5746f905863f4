"""
Unit of work on top of the read cache.

Every entity that comes out of a read is tracked for UPDATE with a snapshot
of its serialized state. ``track_new`` registers entities to CREATE and
``delete`` marks entities to DELETE. ``flush`` persists what changed:

    repository = ManagedDynamoRepository(store, table_config)
    pipeline = await repository.get({"pipeline_id": "p-1"})
    pipeline["status"] = "RUNNING"
    await repository.track_new({"pipeline_id": "p-2", "status": "NEW"})
    await repository.flush()    # one put for p-1, one put for p-2

Tracked entries survive a flush; ``reset_tracking`` starts a new cycle.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..events import (
    FAILURE_EVENTS,
    Action,
    EntityOperationFailed,
    Flushed,
    FlushFailed,
    RepositoryEvent,
)
from ..exceptions import FlushError
from ..models import Key, KeyLike
from ..pagination import EXHAUSTED, EntityGenerator
from ..utils import serialize
from .base import Entity, SearchLike
from .cached import CachedDynamoRepository

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
DELETED = "deleted"


class TrackedEntry(BaseModel):
    """What flush will do with one entity."""

    action: Action
    entity: Any
    snapshot: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ManagedDynamoRepository(CachedDynamoRepository[Entity]):
    """CachedDynamoRepository that tracks entities and persists their changes on flush."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Keyed by id(entity); each entry holds the entity, so the id stays valid while tracked.
        self._tracked: Dict[int, TrackedEntry] = {}

    async def get(self, key: KeyLike) -> Optional[Entity]:
        entity = await super().get(key)
        self.track(entity)
        return entity

    async def get_list(self, keys: List[KeyLike]) -> Dict[Key, Optional[Entity]]:
        entities = await super().get_list(keys)
        for entity in entities.values():
            self.track(entity)
        return entities

    def search(self, input: SearchLike = None) -> EntityGenerator[Entity]:
        source = super().search(input)

        async def pull():
            entity = await source()
            if entity is not EXHAUSTED:
                self.track(entity)
            return entity

        return EntityGenerator(pull)

    def serialize(self, entity: Entity) -> str:
        """Snapshot form of an entity: canonical JSON of its marshaled state."""
        return serialize(self.marshal(entity))

    def track(self, entity: Optional[Entity]) -> None:
        """Track an entity read from the store for UPDATE. No-op if already tracked."""
        if entity is None or id(entity) in self._tracked:
            return
        self._tracked[id(entity)] = TrackedEntry(
            action=Action.UPDATE,
            entity=entity,
            snapshot=self.serialize(entity),
        )

    async def track_new(self, entity: Optional[Entity]) -> None:
        """Cache a new entity and track it for CREATE. No-op if already tracked."""
        if entity is None:
            return
        await self.add_to_cache(entity)
        if id(entity) in self._tracked:
            return
        self._tracked[id(entity)] = TrackedEntry(action=Action.CREATE, entity=entity)

    def delete(self, entity: Optional[Entity]) -> None:
        """Mark an entity for DELETE.

        An entity tracked for CREATE was never persisted, so it is simply
        dropped from tracking instead.
        """
        if entity is None:
            return
        entry = self._tracked.get(id(entity))
        if entry is not None and entry.action == Action.CREATE:
            del self._tracked[id(entity)]
            return
        self._tracked[id(entity)] = TrackedEntry(action=Action.DELETE, entity=entity)

    def is_tracked(self, entity: Entity) -> bool:
        return id(entity) in self._tracked

    def tracked_action(self, entity: Entity) -> Optional[Action]:
        entry = self._tracked.get(id(entity))
        return None if entry is None else entry.action

    def reset_tracking(self) -> None:
        """Forget every tracked entity."""
        self._tracked = {}

    async def flush(self) -> Flushed:
        """Persist every tracked change concurrently.

        All operations run to completion even when some fail.

        Returns:
            Counts of created, updated, unchanged and deleted entities

        Raises:
            FlushError: If any operation failed; ``original_error`` is the first failure
        """
        entries = list(self._tracked.values())
        logger.info(f"Flushing {len(entries)} tracked entities of {self.table_name}")

        results = await asyncio.gather(
            *(self._persist(entry) for entry in entries),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            logger.error(f"Flush of {self.table_name} failed: {len(errors)} of {len(entries)} operations failed")
            self.events.emit(RepositoryEvent.FLUSH_FAILED, FlushFailed(errors=errors))
            raise FlushError(errors) from errors[0]

        outcome = Flushed(
            created=results.count(CREATED),
            updated=results.count(UPDATED),
            unchanged=results.count(UNCHANGED),
            deleted=results.count(DELETED),
        )
        logger.info(f"Flushed {self.table_name}: {outcome}")
        self.events.emit(RepositoryEvent.FLUSHED, outcome)
        return outcome

    async def _persist(self, entry: TrackedEntry) -> str:
        try:
            if entry.action == Action.CREATE:
                await self.store.put_item(self.table_name, self.marshal(entry.entity))
                return CREATED
            if entry.action == Action.UPDATE:
                if not self._has_changed(entry):
                    return UNCHANGED
                await self.store.put_item(self.table_name, self.marshal(entry.entity))
                return UPDATED
            key = self.get_entity_key(entry.entity)
            await self.store.delete_item(self.table_name, self.key_schema.to_item(key))
            return DELETED
        except Exception as e:
            logger.error(f"Failed to {entry.action.value.lower()} entity in {self.table_name}: {e}")
            self.events.emit(
                FAILURE_EVENTS[entry.action],
                EntityOperationFailed(action=entry.action, error=e, entity=entry.entity),
            )
            raise

    def _has_changed(self, entry: TrackedEntry) -> bool:
        return self.serialize(entry.entity) != entry.snapshot
