"""
Unit tests for custom exception handling in Scrollfeed.

These tests verify that the exception hierarchy works correctly and that
the handle_store_errors context manager properly translates botocore
exceptions into StoreError subclasses.
"""

import pytest
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from scrollfeed import Attr, QuerySignature
from scrollfeed.exceptions import (
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
    handle_store_errors,
)


def _client_error(code: str, message: str = "boom", operation: str = "Query") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class TestExceptionHierarchy:
    """Test the exception class hierarchy and instantiation."""

    def test_scrollfeed_error_base_class(self):
        error = ScrollfeedError("Test message")
        assert isinstance(error, Exception)
        assert error.message == "Test message"
        assert error.original_error is None

    def test_scrollfeed_error_with_original_error(self):
        original = ValueError("Original error")
        error = ScrollfeedError("Wrapped message", original_error=original)
        assert error.original_error is original

    def test_invalid_signature_error_keeps_field(self):
        error = InvalidSignatureError("bad field", field="category")
        assert isinstance(error, ScrollfeedError)
        assert error.field == "category"

    def test_invalid_state_transition(self):
        error = InvalidStateTransition("idle", "idle")
        assert error.current == "idle"
        assert "idle" in str(error)

    def test_record_validation_error(self):
        error = RecordValidationError("articles", errors=[{"loc": ("title",)}])
        assert error.collection == "articles"
        assert len(error.errors) == 1
        assert "articles" in str(error)

    def test_record_not_found_error(self):
        error = RecordNotFoundError("videos", "video-001")
        assert error.record_id == "video-001"
        assert "video-001" in str(error)

    def test_authentication_and_content_errors(self):
        assert "session" in str(AuthenticationError()).lower()
        error = ContentValidationError("Title required", field="title")
        assert error.field == "title"

    def test_store_errors_carry_retryable(self):
        assert StoreError("x").retryable is False
        assert CollectionNotFoundError("articles").retryable is False
        assert ConditionFailedError().retryable is False
        assert StoreSerializationError("x").retryable is False
        assert ThrottledError().retryable is True
        assert StoreTimeoutError().retryable is True
        assert StoreUnavailableError().retryable is True

    def test_condition_failed_error_message(self):
        error = ConditionFailedError("attribute_not_exists(id)")
        assert error.condition == "attribute_not_exists(id)"
        assert "attribute_not_exists(id)" in str(error)

    def test_page_fetch_error(self):
        sig = QuerySignature("articles", (Attr("category") == "Tarih",))
        original = ThrottledError()
        error = PageFetchError(sig, 2, original_error=original)
        assert error.retryable is True
        assert error.page == 2
        assert error.signature is sig
        assert error.original_error is original
        assert str(error).startswith("Failed to fetch page 2 of 'articles'")


class TestHandleStoreErrors:
    """Test translation of botocore errors."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("ResourceNotFoundException", CollectionNotFoundError),
            ("ConditionalCheckFailedException", ConditionFailedError),
            ("ProvisionedThroughputExceededException", ThrottledError),
            ("ThrottlingException", ThrottledError),
            ("RequestLimitExceeded", ThrottledError),
            ("ValidationException", StoreSerializationError),
            ("RequestTimeout", StoreTimeoutError),
            ("InternalServerError", StoreUnavailableError),
            ("ServiceUnavailable", StoreUnavailableError),
        ],
    )
    def test_client_error_codes(self, code, expected):
        with pytest.raises(expected) as exc_info:
            with handle_store_errors(collection="articles"):
                raise _client_error(code)
        assert isinstance(exc_info.value.original_error, ClientError)
        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_resource_not_found_names_collection(self):
        with pytest.raises(CollectionNotFoundError) as exc_info:
            with handle_store_errors(collection="videos"):
                raise _client_error("ResourceNotFoundException")
        assert exc_info.value.collection == "videos"

    def test_unknown_code_becomes_store_error(self):
        with pytest.raises(StoreError) as exc_info:
            with handle_store_errors(collection="articles"):
                raise _client_error("SomethingNew", "odd failure")
        assert type(exc_info.value) is StoreError
        assert "SomethingNew" in str(exc_info.value)
        assert "odd failure" in str(exc_info.value)

    def test_timeouts(self):
        with pytest.raises(StoreTimeoutError):
            with handle_store_errors():
                raise ReadTimeoutError(endpoint_url="http://localhost:4566")
        with pytest.raises(StoreTimeoutError):
            with handle_store_errors():
                raise ConnectTimeoutError(endpoint_url="http://localhost:4566")

    def test_endpoint_connection_error(self):
        with pytest.raises(StoreUnavailableError):
            with handle_store_errors():
                raise EndpointConnectionError(endpoint_url="http://localhost:4566")

    def test_other_exceptions_pass_through(self):
        with pytest.raises(KeyError):
            with handle_store_errors():
                raise KeyError("not a store error")
