"""
Typed records for the content collections.

Records coming out of a store are plain dicts; they are validated into these
models at the store boundary (see ``parse_record``) and never handed to a
consumer untyped.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import RecordValidationError
from .fields import Filterable, Identifier, Searchable, Sortable

R = TypeVar("R", bound="ContentRecord")


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"


class ContentRecord(BaseModel):
    """Base for every record served by a collection view."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Identifier()
    created_at: datetime = Sortable()

    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, value: Any) -> Any:
        # Mixed naive/aware timestamps cannot be compared when ordering pages.
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Article(ContentRecord):
    title: str = Searchable()
    excerpt: str = Searchable("")
    content: str = ""
    category: str = Filterable("")
    image_url: str = ""
    status: ContentStatus = Filterable(ContentStatus.DRAFT)
    type: str = Filterable("article")
    published_at: datetime | None = Sortable(None)
    updated_at: datetime | None = None
    author_id: str | None = None
    views: int = Sortable(0)


class Video(ContentRecord):
    title: str = Searchable()
    video_url: str
    video_id: str
    type: str = Filterable("video")
    description: str = Searchable("")
    thumbnail_url: str = ""
    status: ContentStatus = Filterable(ContentStatus.DRAFT)
    updated_at: datetime | None = None


class Question(ContentRecord):
    name: str
    email: str
    title: str = Searchable("")
    question: str = Searchable()
    answer: str | None = None
    status: QuestionStatus = Filterable(QuestionStatus.PENDING)
    is_published: bool = Filterable(False)


def parse_record(model: type[R], collection: str, raw: dict[str, Any]) -> R:
    """
    Validates a raw store row into its record model.

    Raises:
        RecordValidationError: If the row does not match the model
    """
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise RecordValidationError(collection, errors=e.errors(), original_error=e) from e
