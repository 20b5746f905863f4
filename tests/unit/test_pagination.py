"""
Tests for paginated reads: PageReader, EntityGenerator and the uncached
DynamoRepository search/count/get paths.
"""

import pytest
from boto3.dynamodb.conditions import Key

from dynamodb_repository import (
    EXHAUSTED,
    DynamoRepository,
    HashKey,
    HashRangeKey,
    ItemNotFoundError,
    SchemaError,
    SearchInput,
    TableConfig,
)
from dynamodb_repository.core.document_store import Page
from dynamodb_repository.pagination import EntityGenerator, PageReader
from tests.conftest import TABLE_NAME
from tests.helpers import FakeDocumentStore

RUNS = "runs"
RUNS_KEY_SCHEMA = [
    {"AttributeName": "pipeline_id", "KeyType": "HASH"},
    {"AttributeName": "run_id", "KeyType": "RANGE"},
]


class TestPageReader:

    async def test_follows_cursor_until_exhausted(self):
        pages = [
            Page(items=[{"id": "a"}, {"id": "b"}], last_evaluated_key={"id": "b"}),
            Page(items=[], last_evaluated_key={"id": "b"}),
            Page(items=[{"id": "c"}]),
        ]
        requests = []

        async def fetch(request):
            requests.append(request)
            return pages[len(requests) - 1]

        reader = PageReader(fetch, {"Limit": 2})

        assert [await reader.next_item() for _ in range(3)] == [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        assert await reader.next_item() is None
        assert reader.exhausted
        assert requests == [
            {"Limit": 2},
            {"Limit": 2, "ExclusiveStartKey": {"id": "b"}},
            {"Limit": 2, "ExclusiveStartKey": {"id": "b"}},
        ]

    async def test_starts_from_given_cursor(self):
        requests = []

        async def fetch(request):
            requests.append(request)
            return Page()

        reader = PageReader(fetch, {"ExclusiveStartKey": {"id": "x"}})

        assert await reader.next_item() is None
        assert requests == [{"ExclusiveStartKey": {"id": "x"}}]

    async def test_no_fetch_after_exhaustion(self):
        requests = []

        async def fetch(request):
            requests.append(request)
            return Page()

        reader = PageReader(fetch, {})
        await reader.next_item()
        await reader.next_item()

        assert len(requests) == 1


class TestEntityGenerator:

    async def test_to_list_and_async_iteration(self):
        values = iter([1, 2, 3])

        async def pull():
            return next(values, EXHAUSTED)

        generator = EntityGenerator(pull)
        assert await generator() == 1
        assert await generator.to_list() == [2, 3]
        assert await generator() is EXHAUSTED

    async def test_async_for(self):
        values = iter(["a", "b"])

        async def pull():
            return next(values, EXHAUSTED)

        assert [value async for value in EntityGenerator(pull)] == ["a", "b"]

    def test_exhausted_sentinel(self):
        assert not EXHAUSTED
        assert repr(EXHAUSTED) == "EXHAUSTED"


class TestDynamoRepositoryReads:
    """Uncached reads: every call reaches the store."""

    @pytest.fixture
    def repository(self, seeded_store, table_config):
        return DynamoRepository(seeded_store, table_config)

    def test_malformed_schema_fails_at_construction(self, store):
        config = TableConfig(table_name=TABLE_NAME, key_schema=[{"AttributeName": "id", "KeyType": "RANGE"}])

        with pytest.raises(SchemaError):
            DynamoRepository(store, config)

    async def test_get_unmarshals(self, repository):
        entity = await repository.get({"id": "e1"})

        assert entity == {"id": "e1", "marshaled": False}

    async def test_get_missing_returns_none(self, repository):
        assert await repository.get(HashKey(hash_value="missing")) is None

    async def test_get_or_raise(self, repository):
        assert (await repository.get_or_raise({"id": "e2"}))["id"] == "e2"

        with pytest.raises(ItemNotFoundError):
            await repository.get_or_raise({"id": "missing"})

    async def test_get_is_not_cached(self, repository, seeded_store):
        first = await repository.get({"id": "e1"})
        second = await repository.get({"id": "e1"})

        assert first == second
        assert first is not second
        assert len(seeded_store.calls_of("get_item")) == 2

    async def test_get_list_maps_every_requested_key(self, repository, seeded_store):
        result = await repository.get_list([{"id": "e1"}, {"id": "missing"}, {"id": "e1"}])

        assert result == {
            HashKey(hash_value="e1"): {"id": "e1", "marshaled": False},
            HashKey(hash_value="missing"): None,
        }
        (_, _, keys), = seeded_store.calls_of("batch_get_items")
        assert keys == [{"id": "e1"}, {"id": "missing"}]

    async def test_get_list_of_nothing(self, repository, seeded_store):
        assert await repository.get_list([]) == {}
        assert seeded_store.calls == []

    async def test_search_scans_in_store_order(self, repository, seeded_store):
        generator = repository.search({})

        assert (await generator())["id"] == "e1"
        assert (await generator())["id"] == "e2"
        assert (await generator())["id"] == "e3"
        assert await generator() is EXHAUSTED
        assert await generator() is EXHAUSTED
        assert len(seeded_store.calls_of("scan")) == 1

    async def test_search_across_pages(self, repository, seeded_store):
        seeded_store.page_size = 2

        entities = await repository.search().to_list()

        assert [e["id"] for e in entities] == ["e1", "e2", "e3"]
        assert len(seeded_store.calls_of("scan")) == 2

    async def test_search_with_page_boundary_on_last_item(self, repository, seeded_store):
        seeded_store.page_size = 3

        entities = await repository.search().to_list()

        assert len(entities) == 3
        # A full last page still carries a cursor, so one more (empty) page is read
        assert len(seeded_store.calls_of("scan")) == 2

    async def test_search_with_limit_pages_by_limit(self, repository, seeded_store):
        entities = await repository.search(SearchInput(limit=1)).to_list()

        assert [e["id"] for e in entities] == ["e1", "e2", "e3"]
        assert [call[2].get("Limit") for call in seeded_store.calls_of("scan")] == [1, 1, 1, 1]

    async def test_search_with_key_condition_queries(self, repository, seeded_store):
        search = SearchInput(key_condition_expression=Key("id").eq("e2"), scan_index_forward=True)

        entities = await repository.search(search).to_list()

        assert [e["id"] for e in entities] == ["e2"]
        assert seeded_store.calls_of("scan") == []
        assert seeded_store.calls_of("query")[0][2]["ScanIndexForward"] is True

    async def test_scan_drops_scan_direction(self, repository, seeded_store):
        await repository.search(SearchInput(scan_index_forward=False)).to_list()

        assert "ScanIndexForward" not in seeded_store.calls_of("scan")[0][2]

    async def test_search_from_start_key(self, repository):
        entities = await repository.search({"ExclusiveStartKey": {"id": "e1"}}).to_list()

        assert [e["id"] for e in entities] == ["e2", "e3"]

    async def test_count_across_pages(self, repository, seeded_store):
        seeded_store.page_size = 2

        assert await repository.count() == 3
        assert all(call[2]["Select"] == "COUNT" for call in seeded_store.calls_of("scan"))

    async def test_count_query(self, repository, seeded_store):
        assert await repository.count({"KeyConditionExpression": Key("id").eq("e3")}) == 1
        assert len(seeded_store.calls_of("query")) == 1

    async def test_count_ignores_search_only_fields(self, repository, seeded_store):
        search = SearchInput(limit=1, scan_index_forward=False, select="ALL_ATTRIBUTES")

        assert await repository.count(search) == 3
        assert await repository.count({"Limit": 1, "ScanIndexForward": True}) == 3

        for _, _, request in seeded_store.calls_of("scan"):
            assert request == {"Select": "COUNT"}

    async def test_store_errors_propagate(self, repository, seeded_store):
        seeded_store.fail_on_call(RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await repository.get({"id": "e1"})
        with pytest.raises(RuntimeError, match="boom"):
            await repository.search()()


class TestIndexRefetch:
    """Items read through a partially projected index are re-read in full."""

    @pytest.fixture
    def store(self):
        config = TableConfig(table_name=RUNS, key_schema=RUNS_KEY_SCHEMA)
        store = FakeDocumentStore(
            {RUNS: config.get_key_schema()},
            indexes={RUNS: {"StatusIndex": ("status", "KEYS_ONLY"), "FullIndex": ("status", "ALL")}},
        )
        store.set(RUNS, {"pipeline_id": "p1", "run_id": "r1", "status": "RUNNING", "rows": 10})
        store.set(RUNS, {"pipeline_id": "p1", "run_id": "r2", "status": "FAILED", "rows": 0})
        store.set(RUNS, {"pipeline_id": "p2", "run_id": "r1", "status": "RUNNING", "rows": 7})
        return store

    @pytest.fixture
    def repository(self, store):
        config = TableConfig(
            table_name=RUNS,
            key_schema=RUNS_KEY_SCHEMA,
            secondary_indexes={
                "StatusIndex": {"ProjectionType": "KEYS_ONLY"},
                "FullIndex": {"ProjectionType": "ALL"},
            },
        )
        return DynamoRepository(store, config)

    async def test_keys_only_index_refetches_full_items(self, repository, store):
        search = SearchInput(index_name="StatusIndex", key_condition_expression=Key("status").eq("RUNNING"))

        runs = await repository.search(search).to_list()

        assert runs == [
            {"pipeline_id": "p1", "run_id": "r1", "status": "RUNNING", "rows": 10},
            {"pipeline_id": "p2", "run_id": "r1", "status": "RUNNING", "rows": 7},
        ]
        assert [call[2] for call in store.calls_of("get_item")] == [
            {"pipeline_id": "p1", "run_id": "r1"},
            {"pipeline_id": "p2", "run_id": "r1"},
        ]

    async def test_all_projection_is_not_refetched(self, repository, store):
        search = SearchInput(index_name="FullIndex", key_condition_expression=Key("status").eq("FAILED"))

        runs = await repository.search(search).to_list()

        assert runs[0]["rows"] == 0
        assert store.calls_of("get_item") == []

    async def test_projected_item_deleted_before_refetch_is_skipped(self, repository, store):
        generator = repository.search(SearchInput(index_name="StatusIndex", limit=3))
        first = await generator()
        # p1/r2 is already buffered as a projected item
        store.tables[RUNS].pop(("p1", "r2"))

        rest = await generator.to_list()

        assert first["run_id"] == "r1"
        assert [(r["pipeline_id"], r["run_id"]) for r in rest] == [("p2", "r1")]

    async def test_get_with_hash_range_key(self, repository):
        run = await repository.get(HashRangeKey(hash_value="p1", range_value="r2"))

        assert run["status"] == "FAILED"
