"""
Content service of the author site.

Detail lookups, the public feeds, the reader's question form and the writer
panel's mutations. Every mutation invalidates the cached views of the
collection it touched, so the next `load()` of a feed refetches.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict

from ._logging import logger, redact_value
from .auth import Session, SessionAuth
from .exceptions import ContentValidationError, RecordValidationError
from .feed import CollectionFeed
from .filters import Attr
from .models import Article, ContentStatus, Question, QuestionStatus, Video, parse_record
from .signature import SortOrder
from .store import RemoteStore
from .view import PaginatedCollectionView

YOUTUBE_URL = re.compile(r"^.*(youtu.be\/|v\/|u\/\w\/|embed\/|watch\?v=|&v=)([^#&?]*).*")
YOUTUBE_ID_LENGTH = 11


def extract_video_id(url: str) -> str | None:
    """
    Extracts the YouTube video id from the usual URL forms.

    Usage:
        extract_video_id("https://youtu.be/dQw4w9WgXcQ")               # 'dQw4w9WgXcQ'
        extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ") # 'dQw4w9WgXcQ'
        extract_video_id("https://example.com/")                       # None
    """
    match = YOUTUBE_URL.match(url)
    if match and len(match.group(2)) == YOUTUBE_ID_LENGTH:
        return match.group(2)
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArticleDraft(BaseModel):
    """What the writer fills in on the article form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    excerpt: str = ""
    content: str = ""
    category: str = ""
    image_url: str = ""
    status: ContentStatus = ContentStatus.DRAFT
    type: str = "article"
    published_at: datetime | None = None


@dataclass(frozen=True)
class DashboardStats:
    articles: int
    videos: int
    questions: int
    pending_questions: int
    latest_questions: tuple[Question, ...]
    top_articles: tuple[Article, ...]


class ContentService:
    """
    Everything the site does with content besides scrolling through it.

    Usage:
        service = ContentService(store, view, auth)
        feed = service.article_feed()
        await feed.load()

        auth.login("writer", "...")
        await service.save_article(ArticleDraft(title="...", content="...", status="published"))
    """

    def __init__(
        self,
        store: RemoteStore,
        view: PaginatedCollectionView,
        auth: SessionAuth,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.view = view
        self.auth = auth
        self.now = now

    # --- Detail lookups ---

    async def _get(self, collection: str, model: type[Any], record_id: str) -> Any | None:
        row = await self.store.get(collection, record_id)
        if row is None:
            logger.debug(
                "Record not found",
                extra={"collection": collection, "operation": "get", "key_hash": redact_value(record_id)},
            )
            return None
        return parse_record(model, collection, row)

    async def get_article(self, article_id: str) -> Article | None:
        return await self._get("articles", Article, article_id)

    async def get_video(self, video_id: str) -> Video | None:
        return await self._get("videos", Video, video_id)

    async def get_question(self, question_id: str) -> Question | None:
        return await self._get("questions", Question, question_id)

    # --- Public feeds ---

    def article_feed(self) -> CollectionFeed:
        """Published articles of type 'article', newest first; filterable by category."""
        return CollectionFeed(
            self.view,
            "articles",
            base_filters=(
                Attr("status") == ContentStatus.PUBLISHED,
                Attr("type") == "article",
            ),
        )

    def video_feed(self) -> CollectionFeed:
        return CollectionFeed(
            self.view,
            "videos",
            base_filters=(Attr("status") == ContentStatus.PUBLISHED,),
            category_field="type",
        )

    def question_feed(self) -> CollectionFeed:
        return CollectionFeed(
            self.view,
            "questions",
            base_filters=(Attr("is_published") == True,),  # noqa: E712
            category_field="status",
            search_field="question",
        )

    # --- Reader ---

    async def submit_question(self, name: str, email: str, title: str, question: str) -> Question:
        """
        Stores a reader's question as pending and unpublished.

        Raises:
            ContentValidationError: If name, email or question is blank
        """
        values = {"name": name.strip(), "email": email.strip(), "question": question.strip()}
        for field_name, value in values.items():
            if not value:
                raise ContentValidationError(f"'{field_name}' is required", field=field_name)

        row = await self.store.insert(
            "questions",
            {
                **values,
                "title": title.strip(),
                "status": QuestionStatus.PENDING,
                "is_published": False,
                "created_at": self.now(),
            },
        )
        self._invalidate("questions")
        logger.info(
            "Question submitted",
            extra={"collection": "questions", "operation": "insert", "email_hash": redact_value(values["email"])},
        )
        return parse_record(Question, "questions", row)

    # --- Writer panel ---

    def _require_writer(self) -> Session:
        return self.auth.require()

    def _invalidate(self, collection: str) -> None:
        self.view.invalidate_collection(collection)

    async def save_article(self, draft: ArticleDraft, article_id: str | None = None) -> Article:
        """
        Creates an article, or updates it when `article_id` is given.

        Publishing without an explicit `published_at` stamps the current time.

        Raises:
            AuthenticationError: If no writer is logged in
            ContentValidationError: If title or content is blank
            RecordNotFoundError: If `article_id` does not exist
        """
        session = self._require_writer()
        if not draft.title:
            raise ContentValidationError("Article title is required", field="title")
        if not draft.content:
            raise ContentValidationError("Article content is required", field="content")

        now = self.now()
        row: dict[str, Any] = draft.model_dump(exclude={"published_at"})
        row["updated_at"] = now
        row["author_id"] = session.username
        if draft.status is ContentStatus.PUBLISHED:
            row["published_at"] = draft.published_at or now

        if article_id is None:
            row["created_at"] = now
            saved = await self.store.insert("articles", row)
            operation = "insert"
        else:
            saved = await self.store.update("articles", article_id, row)
            operation = "update"

        self._invalidate("articles")
        logger.info(
            "Article saved",
            extra={"collection": "articles", "operation": operation, "status": draft.status.value},
        )
        return parse_record(Article, "articles", saved)

    async def delete_article(self, article_id: str) -> None:
        await self._delete("articles", article_id)

    async def add_video(
        self,
        title: str,
        video_url: str,
        description: str = "",
        thumbnail_url: str = "",
        status: ContentStatus = ContentStatus.DRAFT,
    ) -> Video:
        """
        Adds a YouTube video.

        Raises:
            AuthenticationError: If no writer is logged in
            ContentValidationError: If the title is blank or the URL has no YouTube video id
        """
        self._require_writer()
        if not title.strip():
            raise ContentValidationError("Video title is required", field="title")
        video_id = extract_video_id(video_url.strip())
        if video_id is None:
            raise ContentValidationError("Not a YouTube video URL", field="video_url")

        now = self.now()
        row = await self.store.insert(
            "videos",
            {
                "title": title.strip(),
                "video_url": video_url.strip(),
                "video_id": video_id,
                "type": "video",
                "description": description,
                "thumbnail_url": thumbnail_url,
                "status": status,
                "created_at": now,
                "updated_at": now,
            },
        )
        self._invalidate("videos")
        logger.info("Video added", extra={"collection": "videos", "operation": "insert"})
        return parse_record(Video, "videos", row)

    async def delete_video(self, video_id: str) -> None:
        await self._delete("videos", video_id)

    async def answer_question(self, question_id: str, answer: str, is_published: bool = True) -> Question:
        """
        Answers a question and sets its visibility.

        Raises:
            AuthenticationError: If no writer is logged in
            ContentValidationError: If the answer is blank
            RecordNotFoundError: If the question does not exist
        """
        self._require_writer()
        if not answer.strip():
            raise ContentValidationError("Answer is required", field="answer")

        row = await self.store.update(
            "questions",
            question_id,
            {"answer": answer.strip(), "status": QuestionStatus.ANSWERED, "is_published": is_published},
        )
        self._invalidate("questions")
        logger.info(
            "Question answered",
            extra={"collection": "questions", "operation": "update", "is_published": is_published},
        )
        return parse_record(Question, "questions", row)

    async def delete_question(self, question_id: str) -> None:
        await self._delete("questions", question_id)

    async def _delete(self, collection: str, record_id: str) -> None:
        self._require_writer()
        await self.store.delete(collection, record_id)
        self._invalidate(collection)
        logger.info(
            "Record deleted",
            extra={"collection": collection, "operation": "delete", "key_hash": redact_value(record_id)},
        )

    async def dashboard(self) -> DashboardStats:
        """
        Counts and short lists for the writer panel's landing page.

        Raises:
            AuthenticationError: If no writer is logged in
        """
        self._require_writer()
        latest = await self.store.select("questions", (), SortOrder("created_at"), (0, 2))
        top = await self.store.select("articles", (), SortOrder("views"), (0, 2))
        return DashboardStats(
            articles=await self.store.count("articles"),
            videos=await self.store.count("videos"),
            questions=await self.store.count("questions"),
            pending_questions=await self.store.count(
                "questions", (Attr("status") == QuestionStatus.PENDING,)
            ),
            latest_questions=self._parse_many(Question, "questions", latest),
            top_articles=self._parse_many(Article, "articles", top),
        )

    @staticmethod
    def _parse_many(model: type[Any], collection: str, rows: list[dict[str, Any]]) -> tuple[Any, ...]:
        """Parses rows into records, skipping the ones that fail validation."""
        records = []
        for row in rows:
            try:
                records.append(parse_record(model, collection, row))
            except RecordValidationError as e:
                logger.warning(
                    "Skipping invalid record",
                    extra={"collection": collection, "operation": "dashboard", "errors": len(e.errors)},
                )
        return tuple(records)
