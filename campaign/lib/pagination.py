"""Start-line pagination for select queries.

The server pages select results with a 1-based ``startLine`` and a
``lineCount`` (the page size):

    startLine=1  lineCount=10   -> records 1..10
    startLine=11 lineCount=10   -> records 11..20
    ...

A page holding fewer records than the page size is the last one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "PaginationConfig",
    "StartLinePaginationState",
]

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class PaginationConfig:
    """Configuration for select pagination.

    Examples:
        config = PaginationConfig()              # 10 records per page
        config = PaginationConfig(page_size=500)
        config = PaginationConfig(page_size=50, max_pages=3)
    """

    page_size: int = DEFAULT_PAGE_SIZE
    start_line: int = 1
    max_pages: int = 0  # 0 = unlimited

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.start_line < 1:
            raise ValueError(f"start_line must be >= 1, got {self.start_line}")
        if self.max_pages < 0:
            raise ValueError(f"max_pages must be >= 0, got {self.max_pages}")


class StartLinePaginationState:
    """State machine tracking the page window of one schema's export.

    Usage:
        state = StartLinePaginationState(config)
        while state.should_fetch_more():
            params = state.build_params()
            count = fetch_page(**params)
            state.on_response(count)
    """

    def __init__(self, config: PaginationConfig) -> None:
        self.config = config
        self.start_line = config.start_line
        self.pages_fetched = 0
        self._exhausted = False
        self._max_pages_reached = False

    def should_fetch_more(self) -> bool:
        if self._exhausted:
            return False
        if self.config.max_pages and self.pages_fetched >= self.config.max_pages:
            self._max_pages_reached = True
            return False
        return True

    def build_params(self) -> Dict[str, Any]:
        return {"startLine": self.start_line, "lineCount": self.config.page_size}

    def on_response(self, record_count: int) -> bool:
        """Record the size of the page just fetched.

        Returns:
            True if another page should be requested
        """
        self.pages_fetched += 1
        if record_count < self.config.page_size:
            self._exhausted = True
            return False
        self.start_line += self.config.page_size
        return self.should_fetch_more()

    def describe(self) -> str:
        end_line = self.start_line + self.config.page_size - 1
        return f"lines {self.start_line} to {end_line}"

    @property
    def max_pages_limit_hit(self) -> bool:
        return self._max_pages_reached
