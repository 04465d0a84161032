"""
Unit tests for the per-signature fetch state machine.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from scrollfeed.exceptions import InvalidStateTransition, PageFetchError
from scrollfeed.models import Article
from scrollfeed.signature import QuerySignature, SortOrder
from scrollfeed.state import FetchState, FetchStatus

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)
SIG = QuerySignature("articles", order=SortOrder("published_at"))


def articles(*ns: int) -> list[Article]:
    """Articles with published_at growing with n."""
    return [
        Article(
            id=f"article-{n:03d}",
            title=f"Article {n}",
            created_at=BASE,
            published_at=BASE + timedelta(hours=n),
        )
        for n in ns
    ]


@pytest.fixture
def state() -> FetchState:
    return FetchState(SIG, page_size=3)


class TestTransitions:
    """Test allowed and forbidden moves."""

    def test_initial_state(self, state):
        assert state.status is FetchStatus.EMPTY
        assert state.items == ()
        assert state.has_more is False
        assert state.cursor == 0
        assert state.updated_at is None

    def test_needs_resolved_signature(self):
        with pytest.raises(ValueError):
            FetchState(QuerySignature("articles"), page_size=3)

    def test_first_full_page_goes_idle(self, state):
        assert state.begin_first() == 0
        assert state.is_fetching_first_page
        state.complete(0, articles(9, 8, 7), fetched=3, now=10.0)
        assert state.status is FetchStatus.IDLE
        assert state.has_more is True
        assert state.cursor == 1
        assert state.updated_at == 10.0

    def test_short_page_exhausts(self, state):
        state.begin_first()
        state.complete(0, articles(9), fetched=1, now=10.0)
        assert state.status is FetchStatus.EXHAUSTED
        assert state.has_more is False
        assert state.cursor is None

    def test_next_page_from_idle(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=10.0)
        assert state.begin_next() == 1
        assert state.is_fetching_next_page
        state.complete(1, articles(6, 5), fetched=2, now=20.0)
        assert [a.id for a in state.items] == [
            "article-009", "article-008", "article-007", "article-006", "article-005",
        ]
        assert state.status is FetchStatus.EXHAUSTED
        assert state.updated_at == 10.0

    def test_begin_next_is_noop_while_fetching_or_exhausted(self, state):
        assert state.begin_next() is None  # EMPTY
        state.begin_first()
        assert state.begin_next() is None  # FETCHING_FIRST
        state.complete(0, articles(1), fetched=1, now=1.0)
        assert state.begin_next() is None  # EXHAUSTED
        assert state.status is FetchStatus.EXHAUSTED

    def test_forbidden_transition_raises(self, state):
        with pytest.raises(InvalidStateTransition):
            state.transition(FetchStatus.IDLE)
        state.begin_first()
        with pytest.raises(InvalidStateTransition):
            state.begin_first()

    def test_failure_keeps_pages(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=10.0)
        state.begin_next()
        error = PageFetchError(SIG, 1, original_error=RuntimeError("down"))
        state.fail(error)
        assert state.status is FetchStatus.ERRORED
        assert state.error is error
        assert state.count == 3
        assert state.is_fetching is False

    def test_retry_after_failed_next_page(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=10.0)
        state.begin_next()
        state.fail(PageFetchError(SIG, 1))
        assert state.begin_next() == 1
        state.complete(1, articles(6), fetched=1, now=20.0)
        assert state.error is None
        assert state.count == 4

    def test_retry_after_failed_first_page(self, state):
        state.begin_first()
        state.fail(PageFetchError(SIG, 0))
        assert state.begin_next() == 0
        assert state.is_fetching_first_page

    def test_refresh_replaces_pages(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=10.0)
        state.begin_next()
        state.complete(1, articles(6, 5, 4), fetched=3, now=20.0)

        state.begin_first()
        assert state.is_refreshing
        assert state.count == 6  # old pages stay visible meanwhile
        state.complete(0, articles(10, 9), fetched=2, now=400.0)
        assert [a.id for a in state.items] == ["article-010", "article-009"]
        assert state.updated_at == 400.0
        assert state.status is FetchStatus.EXHAUSTED


class TestAppending:
    """De-duplication and order guard."""

    def test_duplicates_across_pages_dropped(self, state, caplog):
        caplog.set_level(logging.DEBUG, logger="scrollfeed")
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=1.0)
        state.begin_next()
        # Row 7 shifted into the next page after an insert upstream.
        page = state.complete(1, articles(7, 6, 5), fetched=3, now=2.0)
        assert page.count == 2
        assert page.fetched == 3
        assert page.has_more is True
        assert [a.id for a in state.items][-3:] == ["article-007", "article-006", "article-005"]
        assert "Dropped records while appending page" in caplog.text

    def test_out_of_order_records_dropped(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=1.0)
        state.begin_next()
        page = state.complete(1, articles(6, 10, 5), fetched=3, now=2.0)
        assert [a.id for a in page.items] == ["article-006", "article-005"]

    def test_has_more_uses_raw_length(self, state):
        state.begin_first()
        page = state.complete(0, articles(9, 9, 9), fetched=3, now=1.0)
        assert page.count == 1
        assert state.has_more is True

    def test_no_duplicate_ids_ever(self, state):
        state.begin_first()
        state.complete(0, articles(9, 8, 7), fetched=3, now=1.0)
        state.begin_next()
        state.complete(1, articles(8, 7, 6), fetched=3, now=2.0)
        ids = [a.id for a in state.items]
        assert len(ids) == len(set(ids))
