"""Unit tests for start-line pagination.

Tests cover:
- PaginationConfig validation
- Page window progression and the short-page stop rule
- max_pages limits
"""

import pytest

from campaign.lib.pagination import (
    DEFAULT_PAGE_SIZE,
    PaginationConfig,
    StartLinePaginationState,
)


class TestPaginationConfig:
    """Tests for PaginationConfig dataclass."""

    def test_defaults(self):
        """Default page size is 10, starting at line 1, unlimited pages."""
        config = PaginationConfig()
        assert config.page_size == DEFAULT_PAGE_SIZE == 10
        assert config.start_line == 1
        assert config.max_pages == 0

    @pytest.mark.parametrize(
        "kwargs", [{"page_size": 0}, {"start_line": 0}, {"max_pages": -1}]
    )
    def test_invalid_values_rejected(self, kwargs):
        """Non-positive sizes and negative limits should be rejected."""
        with pytest.raises(ValueError):
            PaginationConfig(**kwargs)


class TestStartLinePaginationState:
    """Tests for StartLinePaginationState."""

    def test_initial_params(self):
        """First page starts at line 1."""
        state = StartLinePaginationState(PaginationConfig())
        assert state.should_fetch_more() is True
        assert state.build_params() == {"startLine": 1, "lineCount": 10}

    def test_full_page_advances(self):
        """A full page moves the window by the page size."""
        state = StartLinePaginationState(PaginationConfig())
        assert state.on_response(10) is True
        assert state.build_params() == {"startLine": 11, "lineCount": 10}
        assert state.pages_fetched == 1

    def test_short_page_stops(self):
        """A page shorter than the page size is the last one."""
        state = StartLinePaginationState(PaginationConfig())
        state.on_response(10)
        assert state.on_response(3) is False
        assert state.should_fetch_more() is False
        assert state.pages_fetched == 2

    def test_empty_first_page_stops(self):
        """An empty first page ends pagination after one request."""
        state = StartLinePaginationState(PaginationConfig())
        assert state.on_response(0) is False
        assert state.pages_fetched == 1

    def test_exact_multiple_needs_extra_request(self):
        """When the total is a multiple of the page size, an empty page ends it."""
        state = StartLinePaginationState(PaginationConfig(page_size=5))
        windows = []
        for count in (5, 5, 0):
            windows.append(state.build_params()["startLine"])
            state.on_response(count)
        assert windows == [1, 6, 11]
        assert state.should_fetch_more() is False

    def test_max_pages_limit(self):
        """max_pages stops pagination and is reported."""
        state = StartLinePaginationState(PaginationConfig(page_size=2, max_pages=2))
        assert state.on_response(2) is True
        assert state.on_response(2) is False
        assert state.max_pages_limit_hit is True

    def test_describe(self):
        """describe() reports the current window."""
        state = StartLinePaginationState(PaginationConfig(page_size=10))
        state.on_response(10)
        assert state.describe() == "lines 11 to 20"
