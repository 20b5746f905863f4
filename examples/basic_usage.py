#!/usr/bin/env python3
"""
Basic usage of the DynamoDB repository.

This example demonstrates:
1. Setting up configuration
2. Describing a table and its entity mapping
3. Cached reads (get, get_list, search)
4. Changing entities and persisting them with flush
5. Listening to repository events
"""

import asyncio
from typing import Optional

from boto3.dynamodb.conditions import Key
from pydantic import BaseModel

from dynamodb_repository import (
    DynamoDBConfig,
    DynamoDBDocumentStore,
    EventDispatcher,
    FlushError,
    HashRangeKey,
    ManagedDynamoRepository,
    RepositoryEvent,
    SearchInput,
    TableConfig,
)


class PipelineRun(BaseModel):
    pipeline_id: str
    run_id: str
    status: str
    rows_processed: int = 0
    error_message: Optional[str] = None


async def main():
    """Demonstrate reads, change tracking and flush against DynamoDB."""

    # 1. Configure DynamoDB connection
    print("1. Setting up DynamoDB configuration...")
    config = DynamoDBConfig.from_env()  # Uses environment variables

    # For local development, you might use:
    # config = DynamoDBConfig.for_local_development()
    config.configure_logging()

    # 2. Describe the table: key schema, indexes and entity mapping
    print("2. Creating repository...")
    runs_table = TableConfig(
        table_name="pipeline_runs",
        key_schema=[
            {"AttributeName": "pipeline_id", "KeyType": "HASH"},
            {"AttributeName": "run_id", "KeyType": "RANGE"},
        ],
        secondary_indexes={"StatusIndex": {"ProjectionType": "KEYS_ONLY"}},
        marshal=lambda run: run.model_dump(exclude_none=True),
        unmarshal=PipelineRun.model_validate,
    )

    events = EventDispatcher()
    events.subscribe(RepositoryEvent.FLUSHED, lambda outcome: print(f"Flushed: {outcome}"))
    events.subscribe(RepositoryEvent.UPDATE_FAILED, lambda failure: print(f"Update failed: {failure.error}"))

    store = DynamoDBDocumentStore(config)
    repository = ManagedDynamoRepository(store, runs_table, events)

    # 3. Register a new run; it is written on the next flush
    print("3. Creating a pipeline run...")
    run = PipelineRun(pipeline_id="sales-analytics-pipeline", run_id="run-001", status="PENDING")
    await repository.track_new(run)
    await repository.flush()
    # Start a new unit of work; the next read tracks the stored run for UPDATE
    repository.reset_tracking()

    # 4. Reads are cached: the same key always returns the same object
    print("4. Reading runs...")
    same_run = await repository.get({"pipeline_id": "sales-analytics-pipeline", "run_id": "run-001"})
    print(f"Same instance: {same_run is run}")

    runs = await repository.get_list([
        HashRangeKey(hash_value="sales-analytics-pipeline", range_value="run-001"),
        HashRangeKey(hash_value="sales-analytics-pipeline", range_value="run-002"),
    ])
    for key, found in runs.items():
        print(f"  {key}: {found.status if found else 'not found'}")

    # 5. Query through a KEYS_ONLY index; full entities are read back
    print("5. Searching pending runs...")
    pending = repository.search(
        SearchInput(index_name="StatusIndex", key_condition_expression=Key("status").eq("PENDING"), limit=25)
    )
    async for pending_run in pending:
        print(f"  {pending_run.pipeline_id}/{pending_run.run_id}")

    total = await repository.count({"KeyConditionExpression": Key("pipeline_id").eq("sales-analytics-pipeline")})
    print(f"Runs of the pipeline: {total}")

    # 6. Change entities in memory, then flush only what changed
    print("6. Completing the run...")
    run.status = "SUCCESS"
    run.rows_processed = 15000
    try:
        outcome = await repository.flush()
        print(f"Created {outcome.created}, updated {outcome.updated}, deleted {outcome.deleted}")
    except FlushError as e:
        print(f"Flush failed: {e}")
        return

    # 7. Clean up
    print("7. Deleting the run...")
    repository.delete(run)
    await repository.flush()
    await events.drain()

    print("\n✅ Basic usage example completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
