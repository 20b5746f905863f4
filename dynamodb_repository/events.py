"""
Repository notifications.

Repositories report non-fatal conditions and flush outcomes through an
``EventDispatcher``. Each event kind carries a typed payload:

    CACHE_KEY_IN_USE  -> CacheKeyInUse(cached_item, new_item)
    FLUSHED           -> Flushed(created, updated, deleted, unchanged)
    FLUSH_FAILED      -> FlushFailed(errors)
    CREATE_FAILED     -> EntityOperationFailed(action=CREATE, error, entity)
    UPDATE_FAILED     -> EntityOperationFailed(action=UPDATE, error, entity)
    DELETE_FAILED     -> EntityOperationFailed(action=DELETE, error, entity)

Handlers may be plain callables or coroutine functions. A handler that raises
is logged and never interrupts the repository operation that emitted the event.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Protocol, Set, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Persistence action recorded for a tracked entity."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class RepositoryEvent(str, Enum):
    CACHE_KEY_IN_USE = "cacheKeyInUse"
    FLUSHED = "flushed"
    FLUSH_FAILED = "error.flushing"
    CREATE_FAILED = "error.creating"
    UPDATE_FAILED = "error.updating"
    DELETE_FAILED = "error.deleting"


FAILURE_EVENTS = {
    Action.CREATE: RepositoryEvent.CREATE_FAILED,
    Action.UPDATE: RepositoryEvent.UPDATE_FAILED,
    Action.DELETE: RepositoryEvent.DELETE_FAILED,
}


class CacheKeyInUse(BaseModel):
    """A different object was offered for a key that already holds a cached entity."""

    cached_item: Any
    new_item: Any


class EntityOperationFailed(BaseModel):
    """A create, update or delete dispatched by a flush failed."""

    action: Action
    error: Exception
    entity: Any

    model_config = ConfigDict(arbitrary_types_allowed=True)


class FlushFailed(BaseModel):
    errors: List[Exception]

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Flushed(BaseModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0


@runtime_checkable
class RepositoryObserver(Protocol):
    """Anything with a ``notify`` method can observe a repository."""

    def notify(self, event: RepositoryEvent, payload: Any) -> None:
        ...


Handler = Callable[[Any], Any]


class EventDispatcher:
    """In-process dispatcher for repository notifications."""

    def __init__(self):
        self._handlers: Dict[RepositoryEvent, List[Handler]] = {}
        self._observers: List[RepositoryObserver] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event: RepositoryEvent, handler: Handler) -> None:
        """Call ``handler(payload)`` every time ``event`` is emitted."""
        self._handlers.setdefault(RepositoryEvent(event), []).append(handler)

    def unsubscribe(self, event: RepositoryEvent, handler: Handler) -> None:
        handlers = self._handlers.get(RepositoryEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def add_observer(self, observer: RepositoryObserver) -> None:
        """Register an observer that receives every event."""
        self._observers.append(observer)

    def remove_observer(self, observer: RepositoryObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: RepositoryEvent, payload: Any = None) -> None:
        """Deliver ``payload`` to the handlers of ``event`` and to all observers."""
        for handler in list(self._handlers.get(event, [])):
            self._deliver(event, handler, payload)
        for observer in list(self._observers):
            self._deliver(event, lambda p, o=observer: o.notify(event, p), payload)

    def _deliver(self, event: RepositoryEvent, handler: Handler, payload: Any) -> None:
        try:
            result = handler(payload)
        except Exception as e:
            logger.error(f"Handler for '{event.value}' raised: {e}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(lambda t, ev=event: self._on_handler_done(ev, t))

    def _on_handler_done(self, event: RepositoryEvent, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async handler for '{event.value}' raised: {error}")

    async def drain(self) -> None:
        """Wait for async handlers scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
