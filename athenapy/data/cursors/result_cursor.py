# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import logging
from collections import deque
from enum import Enum

from athenapy.data.info.result_metadata import ResultSetMetadata, Row
from athenapy.data.query_results import PageFetcher
from athenapy.exceptions import ClosedResourceException, MultiCallTimeoutManager
from athenapy.settings.defaults import DEFAULT_FETCH_SIZE
from athenapy.utils.api_options import check_fetch_size

logger = logging.getLogger(__name__)


class ResultPosition(Enum):
    """
    The logical position of a `ResultCursor` within the result.

    Values:
        BEFORE_FIRST: no advance has been made yet.
        FIRST: exactly one advance has been made.
        MIDDLE: somewhere between the first and the last row.
        LAST: on the last row of a finite result.
        AFTER_LAST: advancing has failed since the result is exhausted.
    """

    BEFORE_FIRST = "before_first"
    FIRST = "first"
    MIDDLE = "middle"
    LAST = "last"
    AFTER_LAST = "after_last"


class ResultCursor:
    """
    A forward-only cursor over the rows of a query result, lazily fetching
    pages from the query service as the iteration proceeds.

    The first row of the first page is the header row of the result and is
    never exposed. A committed page is never fetched again: when a fetch fails
    or times out, the state of the cursor (row number, buffered rows,
    continuation token, metadata) is left untouched, so that a later call
    retries the same page.
    When the failure happens while skipping a run of empty pages, the pages
    fetched before it are discarded as well: the retry requests the whole run
    again, starting from the last committed continuation token.

    Args:
        fetcher: the PageFetcher for the query.
        fetch_size: the number of rows requested per page, 0 meaning the
            largest page the service admits.
        timeout_ms: how long an advance may wait for the pages it needs,
            in milliseconds. Zero or None mean no limit.
        timeout_label: the name of the timeout setting, used in error messages.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        fetch_size: int = DEFAULT_FETCH_SIZE,
        timeout_ms: int | None = None,
        timeout_label: str | None = "api_call_timeout_ms",
    ) -> None:
        self._fetcher = fetcher
        self._fetch_size = check_fetch_size(fetch_size)
        self._timeout_ms = timeout_ms
        self._timeout_label = timeout_label
        self._row_number = 0
        self._buffer: deque[Row] = deque()
        self._current_row: Row | None = None
        self._next_token: str | None = None
        self._page_loaded = False
        self._metadata: ResultSetMetadata | None = None
        self._pages_retrieved = 0
        self._closed = False

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self._fetcher.query_execution_id}", '
            f"row_number={self._row_number}, "
            f"{'closed' if self._closed else self._position().value})"
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedResourceException(
                text="The result cursor is closed.",
                resource="result cursor",
            )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def timeout_ms(self) -> int | None:
        return self._timeout_ms

    @property
    def pages_retrieved(self) -> int:
        """The number of pages fetched so far."""
        return self._pages_retrieved

    def _should_load_next_page(self) -> bool:
        if not self._page_loaded:
            return True
        return not self._buffer and self._next_token is not None

    def _ensure_results(self) -> None:
        if not self._should_load_next_page():
            return
        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=self._timeout_ms,
            timeout_label=self._timeout_label,
        )
        # work on local copies: nothing is committed unless every fetch succeeds
        first_page = not self._page_loaded
        next_token = self._next_token
        metadata = self._metadata
        rows: deque[Row] = deque()
        pages = 0
        while True:
            page = self._fetcher.load_page(
                next_token=next_token,
                max_results=self._fetch_size,
                timeout_context=timeout_manager.remaining_timeout(),
            )
            pages += 1
            next_token = page.next_token
            if metadata is None:
                metadata = page.metadata
            rows = deque(page.rows)
            if first_page and self._row_number == 0 and rows:
                # the header row
                rows.popleft()
            first_page = False
            if rows or next_token is None:
                break
            logger.debug("result cursor: empty page, fetching the next one")
        self._buffer = rows
        self._next_token = next_token
        self._metadata = metadata
        self._page_loaded = True
        self._pages_retrieved += pages

    def advance(self) -> bool:
        """
        Move to the next row, fetching a new page if necessary.

        Returns:
            True if the cursor is on a row after the call, False if the
            result is exhausted.

        Raises:
            ClosedResourceException: if the cursor is closed.
            QueryTimeoutException: if a needed page was not received in time.
            QueryFailedException: if fetching a needed page failed.
        """
        self._ensure_open()
        self._ensure_results()
        self._row_number += 1
        if self._buffer:
            self._current_row = self._buffer.popleft()
        else:
            self._current_row = None
        return self._current_row is not None

    @property
    def current_row(self) -> Row | None:
        """The row the cursor is on, None before the first row and after the last."""
        self._ensure_open()
        return self._current_row

    def get_string(self, column_index: int) -> str | None:
        """
        Return the string value of a column (1-based) in the current row,
        None for SQL null. The caller is responsible for checking the position.
        """
        self._ensure_open()
        if self._current_row is None:
            raise IndexError("The cursor is not positioned on a row")
        return self._current_row.get(column_index)

    def get_metadata(self) -> ResultSetMetadata:
        """
        Return the column descriptions of the result, fetching the first page
        if this has not happened yet.
        """
        self._ensure_open()
        if self._metadata is None:
            self._ensure_results()
        # the first successful fetch always sets the metadata
        assert self._metadata is not None
        return self._metadata

    @property
    def fetch_size(self) -> int:
        return self._fetch_size

    def set_fetch_size(self, fetch_size: int) -> None:
        """
        Set the number of rows requested with the next page fetch.

        Raises:
            InvalidConfigurationException: if the value is negative or
                larger than the maximum page size.
        """
        self._ensure_open()
        self._fetch_size = check_fetch_size(fetch_size)

    @property
    def on_last_row(self) -> bool:
        """Whether the cursor is on a row and no further row exists."""
        return (
            self._current_row is not None
            and not self._buffer
            and self._next_token is None
            and self._page_loaded
        )

    def get_row_number(self) -> int:
        """The number of advances made so far (0 before the first one)."""
        self._ensure_open()
        return self._row_number

    def _position(self) -> ResultPosition:
        if self._row_number == 0:
            return ResultPosition.BEFORE_FIRST
        elif self._row_number == 1:
            return ResultPosition.FIRST
        elif (
            self._next_token is None
            and self._page_loaded
            and self._current_row is not None
            and not self._buffer
        ):
            return ResultPosition.LAST
        elif (
            self._next_token is None
            and self._page_loaded
            and self._current_row is None
        ):
            return ResultPosition.AFTER_LAST
        else:
            return ResultPosition.MIDDLE

    def get_position(self) -> ResultPosition:
        """The logical position of the cursor, see `ResultPosition`."""
        self._ensure_open()
        return self._position()

    def close(self) -> None:
        """Release the buffered rows. Idempotent."""
        if not self._closed:
            logger.debug(
                f"closing result cursor for query '{self._fetcher.query_execution_id}'"
            )
        self._closed = True
        self._buffer = deque()
        self._current_row = None
