from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

if TYPE_CHECKING:
    from .signature import QuerySignature


class ScrollfeedError(Exception):
    """Base exception for all Scrollfeed errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class InvalidSignatureError(ScrollfeedError):
    """Raised when a query signature or filter predicate is malformed."""

    def __init__(
        self, message: str, field: str | None = None, original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)
        self.field = field


class InvalidStateTransition(ScrollfeedError):
    """Raised when a fetch state is moved along an edge the state machine does not allow."""

    def __init__(self, current: Any, target: Any) -> None:
        super().__init__(f"Cannot move fetch state from {current} to {target}")
        self.current = current
        self.target = target


class RecordValidationError(ScrollfeedError):
    """Raised when a record coming from the store does not match its model."""

    def __init__(
        self,
        collection: str,
        errors: list[Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(f"Invalid record in collection '{collection}'", original_error)
        self.collection = collection
        self.errors = errors or []


class RecordNotFoundError(ScrollfeedError):
    """Raised when a record addressed by id does not exist."""

    def __init__(
        self, collection: str, record_id: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(
            f"Record '{record_id}' not found in collection '{collection}'", original_error
        )
        self.collection = collection
        self.record_id = record_id


class AuthenticationError(ScrollfeedError):
    """Raised when a writer-panel operation is attempted without a session."""

    def __init__(self, message: str = "Writer session required") -> None:
        super().__init__(message)


class ContentValidationError(ScrollfeedError):
    """Raised for invalid writer or reader input (empty title, bad video URL, ...)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


# --- Store errors ---


class StoreError(ScrollfeedError):
    """Base class for errors raised by a remote store."""

    retryable: bool = False


class CollectionNotFoundError(StoreError):
    """Raised when the backing table for a collection does not exist."""

    def __init__(self, collection: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Collection '{collection}' not found", original_error)
        self.collection = collection


class ConditionFailedError(StoreError):
    """Raised when a conditional write fails (record exists / does not exist)."""

    def __init__(
        self, condition: str | None = None, original_error: Exception | None = None
    ) -> None:
        msg = "Conditional check failed"
        if condition:
            msg += f": {condition}"
        super().__init__(msg, original_error)
        self.condition = condition


class ThrottledError(StoreError):
    """Raised when the store throttles requests."""

    retryable = True

    def __init__(
        self, message: str = "Request rate exceeded", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class StoreTimeoutError(StoreError):
    """Raised when a request to the store times out."""

    retryable = True

    def __init__(
        self, message: str = "Request timed out", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class StoreUnavailableError(StoreError):
    """Raised when the store endpoint cannot be reached."""

    retryable = True

    def __init__(
        self, message: str = "Store unavailable", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class StoreSerializationError(StoreError):
    """Raised when a value cannot be converted to the store's wire format."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, original_error)


class PageFetchError(ScrollfeedError):
    """
    Exposed on a FetchState when a page fetch failed.

    Never raised out of the view: callers inspect ``FetchState.error`` and may
    retry with another ``fetch_next``/``query`` call. Accumulated pages are kept.
    """

    retryable = True

    def __init__(
        self,
        signature: "QuerySignature",
        page: int,
        original_error: Exception | None = None,
    ) -> None:
        detail = f": {original_error}" if original_error is not None else ""
        super().__init__(
            f"Failed to fetch page {page} of '{signature.collection}'{detail}", original_error
        )
        self.signature = signature
        self.page = page


@contextmanager
def handle_store_errors(collection: str | None = None) -> Generator[None, None, None]:
    """
    Context manager that catches botocore errors and raises the appropriate
    StoreError subclass.

    Args:
        collection: Optional collection name for better error messages

    Usage:
        with handle_store_errors(collection="articles"):
            client.query(...)
    """
    try:
        yield
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))

        if error_code == "ResourceNotFoundException":
            raise CollectionNotFoundError(collection=collection or "unknown", original_error=e) from e

        if error_code == "ConditionalCheckFailedException":
            raise ConditionFailedError(original_error=e) from e

        if error_code in (
            "ProvisionedThroughputExceededException",
            "ThrottlingException",
            "RequestLimitExceeded",
        ):
            raise ThrottledError(message=error_message, original_error=e) from e

        if error_code in ("ValidationException", "SerializationException"):
            raise StoreSerializationError(message=error_message, original_error=e) from e

        if error_code in ("RequestTimeout", "RequestTimeoutException"):
            raise StoreTimeoutError(message=error_message, original_error=e) from e

        if error_code in ("InternalServerError", "ServiceUnavailable"):
            raise StoreUnavailableError(message=error_message, original_error=e) from e

        raise StoreError(
            message=f"DynamoDB error ({error_code}): {error_message}", original_error=e
        ) from e
    except (ReadTimeoutError, ConnectTimeoutError) as e:
        raise StoreTimeoutError(original_error=e) from e
    except EndpointConnectionError as e:
        raise StoreUnavailableError(message=str(e), original_error=e) from e
