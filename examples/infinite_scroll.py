"""
Example: an infinitely scrolling article list with a category filter.

Runs against the in-memory store, so it needs no AWS account. Swap in
DynamoStore(default_tables(prefix="site-")) to read real tables.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from scrollfeed import (
    ArticleDraft,
    ContentService,
    MemoryStore,
    PaginatedCollectionView,
    SessionAuth,
    WriterCredentials,
    hash_password,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

start = datetime(2024, 1, 1, tzinfo=timezone.utc)
store = MemoryStore(
    {
        "articles": [
            {
                "id": f"article-{n:03d}",
                "title": f"Makale {n}",
                "content": "...",
                "category": "Tarih" if n % 3 else "Edebiyat",
                "status": "published",
                "type": "article",
                "published_at": start + timedelta(days=n),
                "created_at": start + timedelta(days=n),
            }
            for n in range(30)
        ]
    }
)

view = PaginatedCollectionView(store)
auth = SessionAuth(WriterCredentials("writer", hash_password("change-me")))
service = ContentService(store, view, auth)


async def main() -> None:
    feed = service.article_feed()

    # First screen
    snapshot = await feed.load()
    print(f"Loaded {len(snapshot.items)} articles, more: {snapshot.has_more}")

    # The user scrolls to the bottom twice
    while snapshot.has_more:
        task = feed.on_sentinel_visible()
        if task is not None:
            await task
        snapshot = feed.snapshot()
        print(f"Now showing {len(snapshot.items)} articles, more: {snapshot.has_more}")

    # Filter by category: a new result stream, nothing mixed in from before
    feed.set_category("Edebiyat")
    snapshot = await feed.load()
    print("Edebiyat:", [a.title for a in snapshot.items])

    # The writer publishes; cached article views are invalidated
    auth.login("writer", "change-me")
    await service.save_article(
        ArticleDraft(title="Yeni makale", content="...", category="Edebiyat", status="published")
    )
    snapshot = await feed.load()
    print("After publishing:", snapshot.items[0].title)


if __name__ == "__main__":
    asyncio.run(main())
