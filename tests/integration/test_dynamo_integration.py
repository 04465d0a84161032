"""
Integration tests for DynamoStore against LocalStack.

Tests the full path from PaginatedCollectionView through DynamoStore to a
real DynamoDB API: paging, filters, conditional writes and the partition
index layout.
"""

import pytest

from scrollfeed import (
    Attr,
    DynamoStore,
    DynamoTableOptions,
    FetchStatus,
    PaginatedCollectionView,
    QuerySignature,
    SortOrder,
)
from scrollfeed.dynamo import default_tables
from scrollfeed.exceptions import CollectionNotFoundError, ConditionFailedError, RecordNotFoundError
from tests.helpers.factories import make_article, make_video

PREFIX = "it-"
COLLECTIONS = ("articles", "videos", "questions")


@pytest.fixture
def dynamo_tables(localstack_helper):
    """Creates one empty table per collection and cleans up after."""
    for name in COLLECTIONS:
        localstack_helper.create_table(f"{PREFIX}{name}")
        localstack_helper.clear_table(f"{PREFIX}{name}")

    yield default_tables(prefix=PREFIX)

    for name in COLLECTIONS:
        localstack_helper.clear_table(f"{PREFIX}{name}")


@pytest.fixture
def dynamo_store(dynamo_tables, localstack_client) -> DynamoStore:
    return DynamoStore(dynamo_tables, client=localstack_client)


async def _seed_articles(store: DynamoStore, count: int) -> None:
    for n in range(count):
        await store.insert("articles", make_article(n))


@pytest.mark.integration
class TestPagingIntegration:
    """Paging a real table."""

    @pytest.mark.asyncio
    async def test_twenty_five_articles(self, dynamo_store):
        await _seed_articles(dynamo_store, 25)
        view = PaginatedCollectionView(dynamo_store)
        sig = QuerySignature("articles")

        state = await view.query(sig)
        assert state.count == 12
        await view.fetch_next(sig)
        await view.fetch_next(sig)

        assert state.count == 25
        assert state.status is FetchStatus.EXHAUSTED
        assert [a.id for a in state.items] == [f"article-{n:03d}" for n in range(24, -1, -1)]

    @pytest.mark.asyncio
    async def test_filters_and_search(self, dynamo_store):
        await _seed_articles(dynamo_store, 25)
        view = PaginatedCollectionView(dynamo_store)

        tarih = await view.query(QuerySignature("articles", (Attr("category") == "Tarih",)))
        assert {a.category for a in tarih.items} == {"Tarih"}

        search = await view.query(QuerySignature("articles", (Attr("title").matches("ARTICLE 2"),)))
        assert len(search.items) == 6

    @pytest.mark.asyncio
    async def test_count(self, dynamo_store):
        await _seed_articles(dynamo_store, 5)
        assert await dynamo_store.count("articles") == 5
        assert await dynamo_store.count("articles", (Attr("category") == "Tarih",)) == 3


@pytest.mark.integration
class TestWritesIntegration:
    """Conditional writes against a real table."""

    @pytest.mark.asyncio
    async def test_insert_get_update_delete(self, dynamo_store):
        row = await dynamo_store.insert("videos", make_video(1))
        assert (await dynamo_store.get("videos", row["id"]))["video_id"] == "abcdefghi01"

        updated = await dynamo_store.update("videos", row["id"], {"title": "Renamed", "thumbnail_url": None})
        assert updated["title"] == "Renamed"

        await dynamo_store.delete("videos", row["id"])
        assert await dynamo_store.get("videos", row["id"]) is None

    @pytest.mark.asyncio
    async def test_insert_existing_id_fails(self, dynamo_store):
        await dynamo_store.insert("videos", make_video(1))
        with pytest.raises(ConditionFailedError):
            await dynamo_store.insert("videos", make_video(1))

    @pytest.mark.asyncio
    async def test_update_missing_record(self, dynamo_store):
        with pytest.raises(RecordNotFoundError):
            await dynamo_store.update("videos", "missing", {"title": "x"})

    @pytest.mark.asyncio
    async def test_missing_table(self, localstack_client):
        store = DynamoStore({"articles": DynamoTableOptions("it-does-not-exist")}, client=localstack_client)
        with pytest.raises(CollectionNotFoundError):
            await store.select("articles", (), SortOrder("published_at"), (0, 11))


@pytest.mark.integration
class TestPartitionIndexIntegration:
    """Several collections in one table, read through a partition index."""

    TABLE = "it-content"

    @pytest.fixture
    def shared_store(self, localstack_helper, localstack_client):
        localstack_helper.create_table(
            self.TABLE,
            gsi_definitions=[
                {"index_name": "collection-index", "pk_name": "collection", "sk_name": "created_at"}
            ],
        )
        localstack_helper.clear_table(self.TABLE)
        tables = {
            name: DynamoTableOptions(
                table_name=self.TABLE,
                index_name="collection-index",
                partition_key="collection",
                partition_value=name,
            )
            for name in ("articles", "videos")
        }
        yield DynamoStore(tables, client=localstack_client)
        localstack_helper.clear_table(self.TABLE)

    @pytest.mark.asyncio
    async def test_collections_do_not_mix(self, shared_store):
        for n in range(3):
            await shared_store.insert("articles", make_article(n))
            await shared_store.insert("videos", make_video(n))

        view = PaginatedCollectionView(shared_store)
        videos = await view.query(QuerySignature("videos"))
        assert [v.id for v in videos.items] == ["video-002", "video-001", "video-000"]
        assert await shared_store.count("articles") == 3
