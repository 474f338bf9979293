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

from typing import Dict, List, Optional

from athenapy.data.info.result_metadata import (
    ColumnInfo,
    ResultPage,
    ResultSetMetadata,
    Row,
)
from athenapy.exceptions import _TimeoutContext

QUERY_EXECUTION_ID = "8a6f90d2-1b2c-4d5e-8f90-123456789abc"

TEST_COLUMNS = [
    ColumnInfo(name="id", label="id", type="integer", precision=10),
    ColumnInfo(name="name", label="name", type="varchar", precision=255),
    ColumnInfo(name="score", label="score", type="double", precision=17),
]

RawRows = List[List[Optional[str]]]


def make_page(
    rows: RawRows,
    next_token: str | None = None,
    *,
    header: bool = False,
    columns: list[ColumnInfo] = TEST_COLUMNS,
) -> ResultPage:
    """Build a page, optionally prepending the header row made of the labels."""
    all_rows: RawRows = (
        [[column.label for column in columns]] if header else []
    ) + rows
    return ResultPage(
        rows=[Row(values=list(row)) for row in all_rows],
        next_token=next_token,
        metadata=ResultSetMetadata(columns=list(columns)),
    )


def make_raw_response(
    rows: RawRows,
    next_token: str | None = None,
    *,
    header: bool = False,
    columns: list[ColumnInfo] = TEST_COLUMNS,
) -> dict[str, object]:
    """The GetQueryResults JSON response matching `make_page`."""
    page = make_page(rows, next_token, header=header, columns=columns)
    response: dict[str, object] = {
        "ResultSet": {
            "Rows": [
                {
                    "Data": [
                        {"VarCharValue": value} if value is not None else {}
                        for value in row.values
                    ]
                }
                for row in page.rows
            ],
            "ResultSetMetadata": page.metadata.as_dict(),
        },
        "UpdateCount": 0,
    }
    if next_token is not None:
        response["NextToken"] = next_token
    return response


class FakePageFetcher:
    """
    Serves pages from memory, keyed by continuation token (None for the first
    page), and records every call. Exceptions queued in `failures` are raised,
    one per call, before serving any page; those in `failures_by_token` are
    raised once, when the page for that token is requested.
    """

    def __init__(
        self,
        pages: Dict[Optional[str], ResultPage],
        query_execution_id: str = QUERY_EXECUTION_ID,
    ) -> None:
        self.pages = pages
        self.query_execution_id = query_execution_id
        self.calls: list[tuple[str | None, int]] = []
        self.timeout_contexts: list[_TimeoutContext] = []
        self.failures: list[Exception] = []
        self.failures_by_token: dict[str | None, Exception] = {}

    def load_page(
        self,
        next_token: str | None,
        max_results: int,
        timeout_context: _TimeoutContext,
    ) -> ResultPage:
        self.calls.append((next_token, max_results))
        self.timeout_contexts.append(timeout_context)
        if self.failures:
            raise self.failures.pop(0)
        if next_token in self.failures_by_token:
            raise self.failures_by_token.pop(next_token)
        return self.pages[next_token]


def three_row_fetcher() -> FakePageFetcher:
    """A single page with the header row and three data rows."""
    return FakePageFetcher(
        {
            None: make_page(
                [["1", "alice", "0.5"], ["2", "bob", None], ["3", None, "1.5"]],
                header=True,
            ),
        }
    )


def multi_page_fetcher() -> FakePageFetcher:
    """Five data rows over three pages, the second being empty."""
    return FakePageFetcher(
        {
            None: make_page([["1", "a", "1.0"], ["2", "b", "2.0"]], "t1", header=True),
            "t1": make_page([], "t2"),
            "t2": make_page([["3", "c", "3.0"], ["4", "d", "4.0"], ["5", "e", "5.0"]]),
        }
    )
