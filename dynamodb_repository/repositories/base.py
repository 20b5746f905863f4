import logging
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar, Union

from ..core.document_store import DocumentStore
from ..events import EventDispatcher
from ..exceptions import ItemNotFoundError
from ..models import CountInput, Key, KeyLike, SearchInput, TableConfig, derive_key, unique_keys
from ..pagination import EXHAUSTED, EntityGenerator, PageReader

Entity = TypeVar('Entity')

SearchLike = Union[SearchInput, Mapping[str, Any], None]
CountLike = Union[CountInput, Mapping[str, Any], None]

logger = logging.getLogger(__name__)


class DynamoRepository(Generic[Entity]):
    """Reads entities of one table through a DocumentStore.

    No caching: every call goes to the store. Keys may be given as logical
    keys (``HashKey``/``HashRangeKey``) or as key mappings (``{"id": "e1"}``).
    """

    def __init__(
        self,
        store: DocumentStore,
        table_config: TableConfig,
        events: Optional[EventDispatcher] = None,
    ):
        """Initialize repository.

        Args:
            store: Document store collaborator
            table_config: Table name, key schema, indexes and marshal/unmarshal pair
            events: Dispatcher notifications are emitted on (a new one by default)

        Raises:
            SchemaError: If the table key schema is malformed
        """
        self.store = store
        self.config = table_config
        self.key_schema = table_config.get_key_schema()
        self.events = events if events is not None else EventDispatcher()

    @property
    def table_name(self) -> str:
        return self.config.table_name

    def marshal(self, entity: Entity) -> Dict[str, Any]:
        return self.config.marshal(entity)

    def unmarshal(self, item: Dict[str, Any]) -> Entity:
        return self.config.unmarshal(item)

    def get_entity_key(self, entity: Entity) -> Key:
        """Logical key of an entity, derived from its marshaled form."""
        return derive_key(self.key_schema, self.marshal(entity))

    async def get(self, key: KeyLike) -> Optional[Entity]:
        """Read one entity by key.

        Returns:
            The entity, or None if no item has that key

        Raises:
            StoreError: If the store call fails
        """
        key = self.key_schema.key_from(key)
        item = await self.store.get_item(self.table_name, self.key_schema.to_item(key))
        return None if item is None else self.unmarshal(item)

    async def get_or_raise(self, key: KeyLike) -> Entity:
        """Read one entity by key or raise ItemNotFoundError if not found."""
        entity = await self.get(key)
        if entity is None:
            key = self.key_schema.key_from(key)
            raise ItemNotFoundError(self.table_name, self.key_schema.to_item(key))
        return entity

    async def get_list(self, keys: List[KeyLike]) -> Dict[Key, Optional[Entity]]:
        """Read many entities with one batch request.

        Duplicate keys are requested once. Every requested key is present in
        the result, mapped to None when the store has no such item.
        """
        requested = unique_keys(self.key_schema.key_from(k) for k in keys)
        result: Dict[Key, Optional[Entity]] = {key: None for key in requested}
        if not requested:
            return result

        items = await self.store.batch_get_items(
            self.table_name,
            [self.key_schema.to_item(key) for key in requested],
        )
        for item in items:
            key = derive_key(self.key_schema, item)
            if key not in result:
                logger.warning(f"BatchGet on {self.table_name} returned unrequested key {key!r}")
                continue
            result[key] = self.unmarshal(item)

        logger.debug(f"get_list on {self.table_name}: {len(items)} of {len(requested)} keys found")
        return result

    def search(self, input: SearchLike = None) -> EntityGenerator[Entity]:
        """Lazily read the entities matched by a query or scan.

        A ``key_condition_expression`` makes this a Query, otherwise a Scan.
        Items read through an index whose projection is not ALL are partial,
        so the full item is read by its table key before unmarshaling.
        """
        search_input = _coerce(SearchInput, input)
        request = search_input.to_request()
        if not search_input.is_query:
            request.pop('ScanIndexForward', None)
        reader = PageReader(self._page_fetcher(search_input), request)
        refetch = self.config.index_needs_refetch(search_input.index_name)

        async def pull():
            while True:
                item = await reader.next_item()
                if item is None:
                    return EXHAUSTED
                if not refetch:
                    return self.unmarshal(item)

                key = derive_key(self.key_schema, item)
                entity = await self.get(key)
                if entity is not None:
                    return entity
                logger.debug(f"Projected item {key!r} of {search_input.index_name} no longer exists, skipping")

        return EntityGenerator(pull)

    async def count(self, input: CountLike = None) -> int:
        """Count matching items across all pages of a query or scan."""
        count_input = _coerce(CountInput, input)
        request = count_input.to_request()
        request['Select'] = 'COUNT'
        reader = PageReader(self._page_fetcher(count_input), request)

        total = 0
        async for page in reader.pages():
            total += page.count
        return total

    def _page_fetcher(self, input: CountInput):
        fetch = self.store.query if input.is_query else self.store.scan

        async def fetch_page(request: Dict[str, Any]):
            return await fetch(self.table_name, request)

        return fetch_page


def _coerce(model, value):
    if value is None:
        return model()
    if type(value) is model:
        return value
    # A SearchInput is a CountInput too; keep only the fields of the target model
    if isinstance(value, CountInput):
        return model.model_validate(value.model_dump(include=set(model.model_fields), exclude_none=True))
    return model.model_validate(value)
