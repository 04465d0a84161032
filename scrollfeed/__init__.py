from .auth import FileSessionStorage, MemorySessionStorage, SessionAuth, hash_password
from .cache import QueryCache
from .config import (
    DEFAULT_COLLECTIONS,
    CacheOptions,
    CollectionOptions,
    DynamoTableOptions,
    WriterCredentials,
)
from .content import ArticleDraft, ContentService, DashboardStats, extract_video_id
from .dynamo import DynamoStore, default_tables
from .exceptions import (
    AuthenticationError,
    CollectionNotFoundError,
    ConditionFailedError,
    ContentValidationError,
    InvalidSignatureError,
    InvalidStateTransition,
    PageFetchError,
    RecordNotFoundError,
    RecordValidationError,
    ScrollfeedError,
    StoreError,
    StoreSerializationError,
    StoreTimeoutError,
    StoreUnavailableError,
    ThrottledError,
)
from .feed import CollectionFeed, FeedSnapshot
from .fields import Filterable, Identifier, Searchable, Sortable
from .filters import Attr, Predicate
from .models import Article, ContentRecord, ContentStatus, Question, QuestionStatus, Video
from .pagination import Page
from .signature import QuerySignature, SortOrder
from .state import FetchState, FetchStatus
from .store import MemoryStore, RemoteStore
from .view import PaginatedCollectionView

__all__ = [
    "PaginatedCollectionView",
    "QuerySignature",
    "SortOrder",
    "FetchState",
    "FetchStatus",
    "Page",
    "QueryCache",
    "CollectionFeed",
    "FeedSnapshot",
    # Filters DSL
    "Attr",  # Primary builder for predicates
    "Predicate",  # Result type (rarely built directly)
    # Records
    "ContentRecord",
    "Article",
    "Video",
    "Question",
    "ContentStatus",
    "QuestionStatus",
    "Identifier",
    "Sortable",
    "Filterable",
    "Searchable",
    # Stores
    "RemoteStore",
    "MemoryStore",
    "DynamoStore",
    "default_tables",
    # Site services
    "ContentService",
    "ArticleDraft",
    "DashboardStats",
    "extract_video_id",
    "SessionAuth",
    "MemorySessionStorage",
    "FileSessionStorage",
    "hash_password",
    # Configuration
    "CacheOptions",
    "CollectionOptions",
    "DynamoTableOptions",
    "WriterCredentials",
    "DEFAULT_COLLECTIONS",
    # Exceptions
    "ScrollfeedError",
    "InvalidSignatureError",
    "InvalidStateTransition",
    "RecordValidationError",
    "RecordNotFoundError",
    "AuthenticationError",
    "ContentValidationError",
    "PageFetchError",
    "StoreError",
    "CollectionNotFoundError",
    "ConditionFailedError",
    "ThrottledError",
    "StoreTimeoutError",
    "StoreUnavailableError",
    "StoreSerializationError",
]
